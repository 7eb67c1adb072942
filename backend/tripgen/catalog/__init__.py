"""Place catalog: stores, preload resolver and background writes."""

from backend.tripgen.catalog.background import BackgroundWriter
from backend.tripgen.catalog.resolver import CatalogIndex, CatalogResolver, fold
from backend.tripgen.catalog.store import CatalogStore, InMemoryCatalogStore, merge_alias

__all__ = [
    "BackgroundWriter",
    "CatalogIndex",
    "CatalogResolver",
    "CatalogStore",
    "InMemoryCatalogStore",
    "fold",
    "merge_alias",
]
