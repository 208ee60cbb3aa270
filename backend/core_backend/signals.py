from django.core.signals import setting_changed
from django.dispatch import receiver
import logging

from core_backend.config import engine_settings

logger = logging.getLogger(__name__)


@receiver(setting_changed)
def reload_engine_settings(sender, setting, **kwargs):
    """Drop cached ORDER_ENGINE values when the setting is overridden."""
    if setting != "ORDER_ENGINE":
        return

    from orders.catalog import reset_catalog

    engine_settings.reload()
    reset_catalog()
    logger.debug("ORDER_ENGINE changed; engine settings and catalog reloaded")
