from django.apps import AppConfig
import logging

logger = logging.getLogger(__name__)


class CoreBackendConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core_backend"

    def ready(self):
        """
        Connect signal receivers. ``setting_changed`` drops cached engine
        settings and the catalog backend whenever ORDER_ENGINE is
        overridden (tests, management shells).
        """
        import core_backend.signals  # noqa
