"""Exception types shared by the catalog storage helpers and the Flask app."""

from __future__ import annotations

from typing import Any, Sequence


class CatalogError(RuntimeError):
    """Base class for catalog failures."""


class StoreError(CatalogError):
    """Raised when a persistence operation fails."""


class ValidationError(CatalogError):
    """Raised for bad input: missing fields, rejected uploads, oversize files."""

    def __init__(self, message: str, details: Sequence[Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])


class NotFound(CatalogError):
    """Raised when an operation references an unknown product id."""

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id!r} not found")
        self.product_id = product_id
