"""
Catalog lookup.

Menu management lives outside this service; the engine only needs to resolve
an item id to its price, preparation station and display name at the moment
an order line is created. The result is snapshotted onto the order line,
refreshed once when the draft is confirmed, and never re-queried after that.

The backend class is chosen with ``ORDER_ENGINE["CATALOG_BACKEND"]``.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any

from django.utils.module_loading import import_string

from core_backend.config import engine_settings
from core_backend.exceptions import NotFound, ValidationError


@dataclass(frozen=True)
class CatalogItem:
    item_id: str
    name: str
    price: Decimal
    station_id: str
    # Order in which the station prepares items (lower first)
    prep_sequence: int = 100
    prep_minutes: int = 15


class CatalogLookup:
    """Interface for catalog backends."""

    def resolve_item(self, item_id: str) -> CatalogItem:
        raise NotImplementedError


class SettingsCatalog(CatalogLookup):
    """
    Catalog read from ``ORDER_ENGINE["CATALOG"]``::

        "CATALOG": {
            "burger": {"name": "Burger", "price": "250.00", "station": "grill",
                       "prep_sequence": 10, "prep_minutes": 12},
        }

    Used for development, demos and tests.
    """

    def __init__(self, entries: Dict[str, Dict[str, Any]] = None):
        self._entries = entries

    @property
    def entries(self):
        if self._entries is not None:
            return self._entries
        return engine_settings.catalog

    def resolve_item(self, item_id: str) -> CatalogItem:
        entry = self.entries.get(str(item_id))
        if entry is None:
            raise NotFound("CatalogItem", item_id)

        try:
            price = Decimal(str(entry["price"]))
            station = str(entry["station"]).strip()
        except (KeyError, ArithmeticError, ValueError):
            raise ValidationError(f"Catalog item '{item_id}' has no usable price or station")

        if price < 0 or not station:
            raise ValidationError(f"Catalog item '{item_id}' has no usable price or station")

        return CatalogItem(
            item_id=str(item_id),
            name=entry.get("name", str(item_id)),
            price=price,
            station_id=station,
            prep_sequence=int(entry.get("prep_sequence", 100)),
            prep_minutes=int(entry.get("prep_minutes", 15)),
        )


_catalog = None


def get_catalog() -> CatalogLookup:
    global _catalog
    if _catalog is None:
        _catalog = import_string(engine_settings.catalog_backend)()
    return _catalog


def reset_catalog() -> None:
    global _catalog
    _catalog = None
