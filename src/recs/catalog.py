"""
Read-only catalog collaborator.

The engine never owns catalog storage; it only needs to look items up by id
and list a collection. ``CatalogRepository`` is that seam, and
``InMemoryCatalog`` serves it from a JSON file (``CATALOG_PATH``) holding a
list of catalog items, or an object with a ``products`` list:

    [{"id": "kit-1", "title": "Home Kit", "productType": "Kits",
      "vendor": "Acme", "tags": ["sale"], "price": 59.0,
      "collections": ["kits"], "variants": [{"quantityAvailable": 12}]}]
"""

import json
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from pydantic import ValidationError

from config.settings import Settings, get_settings
from core.errors import CatalogLookupError
from core.logging import get_logger
from recs.models import CatalogItem

logger = get_logger(__name__)


@runtime_checkable
class CatalogRepository(Protocol):
    """Read-only item lookup used by the HTTP layer."""

    def get(self, item_id: str) -> Optional[CatalogItem]:
        ...

    def by_collection(self, handle: str) -> List[CatalogItem]:
        ...

    def all_items(self) -> List[CatalogItem]:
        ...


class InMemoryCatalog:
    """Catalog held in memory, in load order."""

    def __init__(self, items: Sequence[CatalogItem] = ()):
        self._items: Dict[str, CatalogItem] = {}
        for item in items:
            self._items[item.id] = item

    def get(self, item_id: str) -> Optional[CatalogItem]:
        return self._items.get(item_id)

    def by_collection(self, handle: str) -> List[CatalogItem]:
        return [item for item in self._items.values() if handle in item.collections]

    def all_items(self) -> List[CatalogItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    @classmethod
    def from_json(cls, path: Path) -> "InMemoryCatalog":
        """
        Load a catalog file.

        Raises:
            CatalogLookupError: file unreadable, not a list, or an item invalid
        """
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogLookupError(f"Cannot read catalog {path}: {e}") from e

        if isinstance(raw, dict):
            raw = raw.get("products")
        if not isinstance(raw, list):
            raise CatalogLookupError(f"Catalog {path} must be a list of products")

        try:
            items = [CatalogItem.model_validate(entry) for entry in raw]
        except ValidationError as e:
            raise CatalogLookupError(f"Malformed catalog item in {path}: {e}") from e

        logger.info("Loaded catalog", path=str(path), items=len(items))
        return cls(items)


def load_catalog(settings: Settings) -> InMemoryCatalog:
    """Catalog from ``settings.catalog_path``, empty when unset."""
    if settings.catalog_path is None:
        return InMemoryCatalog()
    return InMemoryCatalog.from_json(settings.catalog_path)


_catalog: Optional[InMemoryCatalog] = None


def get_catalog() -> InMemoryCatalog:
    """Get or load the catalog singleton."""
    global _catalog
    if _catalog is None:
        _catalog = load_catalog(get_settings())
    return _catalog


def reset_catalog() -> None:
    global _catalog
    _catalog = None
