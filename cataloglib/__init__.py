"""Storage and configuration helpers shared by the catalog service."""

from .errors import CatalogError, NotFound, StoreError, ValidationError  # noqa: F401
from .storage import ListStore
from .assets import AssetStore, is_allowed_image
from .config import CatalogConfig, load_catalog_config

__all__ = [
    "CatalogError",
    "NotFound",
    "StoreError",
    "ValidationError",
    "ListStore",
    "AssetStore",
    "is_allowed_image",
    "CatalogConfig",
    "load_catalog_config",
]
