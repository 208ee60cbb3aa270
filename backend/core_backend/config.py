"""
Centralized access to engine tunables.

All knobs live in the ``ORDER_ENGINE`` dict in Django settings. This lazy
singleton fills defaults on first access so business logic never reads
``django.conf.settings`` directly.
"""

from decimal import Decimal
from typing import Optional, Any
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)


DEFAULTS = {
    "CURRENCY": "INR",
    "TAX_RATE": "0.18",
    "CAS_MAX_ATTEMPTS": 5,
    "CAS_BASE_DELAY_SECONDS": 0.01,
    "CAS_MAX_DELAY_SECONDS": 0.25,
    "IDEMPOTENCY_TTL_SECONDS": 60 * 60 * 24,
    "PUBLISH_TIMEOUT_SECONDS": 2.0,
    "SETTLEMENT_TOLERANCE_MINOR": 0,
    "CATALOG_BACKEND": "orders.catalog.SettingsCatalog",
    "CATALOG": {},
    "TICKET_ITEM_ORDERING": "catalog",
}

TICKET_ITEM_ORDERINGS = ("catalog", "arrival")


class EngineSettings:
    """
    A LAZY singleton over ``settings.ORDER_ENGINE``. Values are loaded on the
    first attribute access and can be dropped with ``reload()`` (tests use
    this together with ``override_settings``).
    """

    _instance: Optional["EngineSettings"] = None

    def __new__(cls) -> "EngineSettings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._loaded = False
            cls._instance._values = {}
        return cls._instance

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if not self._loaded:
            self.load_settings()
        try:
            return self._values[name.lower()]
        except KeyError:
            raise AttributeError(f"'EngineSettings' object has no attribute '{name}'")

    def load_settings(self) -> None:
        configured = getattr(settings, "ORDER_ENGINE", {}) or {}
        unknown = set(configured) - set(DEFAULTS)
        if unknown:
            logger.warning(f"Ignoring unknown ORDER_ENGINE keys: {sorted(unknown)}")

        values = {**DEFAULTS, **configured}

        if values["TICKET_ITEM_ORDERING"] not in TICKET_ITEM_ORDERINGS:
            raise ImproperlyConfigured(
                f"ORDER_ENGINE['TICKET_ITEM_ORDERING'] must be one of {TICKET_ITEM_ORDERINGS}"
            )
        if int(values["CAS_MAX_ATTEMPTS"]) < 1:
            raise ImproperlyConfigured("ORDER_ENGINE['CAS_MAX_ATTEMPTS'] must be at least 1")

        self._values = {
            "currency": str(values["CURRENCY"]).upper(),
            "tax_rate": Decimal(str(values["TAX_RATE"])),
            "cas_max_attempts": int(values["CAS_MAX_ATTEMPTS"]),
            "cas_base_delay_seconds": float(values["CAS_BASE_DELAY_SECONDS"]),
            "cas_max_delay_seconds": float(values["CAS_MAX_DELAY_SECONDS"]),
            "idempotency_ttl_seconds": int(values["IDEMPOTENCY_TTL_SECONDS"]),
            "publish_timeout_seconds": float(values["PUBLISH_TIMEOUT_SECONDS"]),
            "settlement_tolerance_minor": int(values["SETTLEMENT_TOLERANCE_MINOR"]),
            "catalog_backend": values["CATALOG_BACKEND"],
            "catalog": values["CATALOG"],
            "ticket_item_ordering": values["TICKET_ITEM_ORDERING"],
        }
        self._loaded = True

    def reload(self) -> None:
        self._loaded = False


engine_settings = EngineSettings()
