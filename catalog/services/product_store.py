"""Product lifecycle on top of the JSON list store and the image asset store.

Every change to a product's ``image`` is paired with the matching asset side
effect. New uploads are written before the record is committed; assets a
product stops referencing are removed only after the commit, so a failure at
any step leaves at worst a stray file on disk, never a record pointing at a
missing one.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError as SchemaError
from werkzeug.datastructures import FileStorage

from cataloglib.assets import DEFAULT_MAX_BYTES, AssetStore, generate_id
from cataloglib.errors import NotFound, StoreError, ValidationError
from cataloglib.storage import ListStore

from catalog.schemas import ProductCreateModel, ProductUpdateModel

logger = logging.getLogger(__name__)

PRODUCT_ID_LENGTH = 8
TEXT_FIELDS = ("name", "tag", "description", "detailDescription")


def _find(items: list[dict], product_id: str) -> Optional[dict]:
    target = str(product_id)
    for item in items:
        if str(item.get("id")) == target:
            return item
    return None


def _validation_error(err: SchemaError) -> ValidationError:
    details = err.errors(include_url=False, include_context=False, include_input=False)
    message = "; ".join(
        f"{'.'.join(str(part) for part in e['loc']) or 'payload'}: {e['msg']}" for e in details
    )
    return ValidationError(message or "Invalid product payload", details)


@dataclass(slots=True)
class ProductCatalog:
    """High-level product operations with coupled image cleanup."""

    path: str | Path
    uploads_dir: str | Path
    backups: int = 3
    url_prefix: str = "/uploads"
    max_upload_bytes: int = DEFAULT_MAX_BYTES
    _store: ListStore = field(init=False, repr=False)
    _assets: AssetStore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._store = ListStore(self.path, backups=self.backups, label="product catalog")
        self._assets = AssetStore(
            self.uploads_dir,
            url_prefix=self.url_prefix,
            max_bytes=self.max_upload_bytes,
        )

    @property
    def store(self) -> ListStore:
        return self._store

    @property
    def assets(self) -> AssetStore:
        return self._assets

    # ------------------------------------------------------------------
    # Asset helpers
    # ------------------------------------------------------------------
    def _store_upload(self, image: FileStorage) -> str:
        return self._assets.store(image.stream, image.filename, image.mimetype)

    def _discard(self, ref: str | None, remaining: Iterable[dict] = ()) -> None:
        """Best-effort removal of an owned asset nobody references any more."""

        if not self._assets.is_owned(ref):
            return
        if any(item.get("image") == ref for item in remaining):
            logger.info("Keeping asset %s, still referenced by another product", ref)
            return
        try:
            self._assets.delete(ref)
        except StoreError as exc:
            logger.warning("Could not remove asset %s: %s", ref, exc)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def all(self) -> list[dict]:
        return self._store.load()

    def get(self, product_id: str) -> dict:
        item = _find(self._store.load(), product_id)
        if item is None:
            raise NotFound(product_id)
        return item

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def upload_image(self, image: FileStorage) -> str:
        return self._store_upload(image)

    def create(self, payload: Mapping[str, Any], image: FileStorage | None = None) -> dict:
        try:
            product = ProductCreateModel.model_validate(dict(payload))
        except SchemaError as err:
            raise _validation_error(err) from err

        new_ref = self._store_upload(image) if image else None
        record: dict[str, Any] = {
            "id": "",
            "name": product.name,
            "tag": product.tag,
            "description": product.description,
            "detailDescription": product.detail_description,
            "image": new_ref or product.existing_image or "",
            "specs": product.specs,
        }

        def mutator(items: list[dict]) -> None:
            taken = {str(item.get("id")) for item in items}
            product_id = generate_id(PRODUCT_ID_LENGTH)
            while product_id in taken:
                product_id = generate_id(PRODUCT_ID_LENGTH)
            record["id"] = product_id
            items.append(record)

        try:
            self._store.mutate(mutator)
        except StoreError:
            if new_ref:
                self._discard(new_ref)
            raise
        logger.info("Created product %s (%s)", record["id"], record["name"])
        return record

    def update(
        self,
        product_id: str,
        payload: Mapping[str, Any],
        image: FileStorage | None = None,
    ) -> dict:
        try:
            changes = ProductUpdateModel.model_validate(dict(payload)).changes()
        except SchemaError as err:
            raise _validation_error(err) from err

        new_ref = self._store_upload(image) if image else None
        updated: Optional[dict] = None
        replaced: Optional[str] = None
        remaining: list[dict] = []

        def mutator(items: list[dict]) -> None:
            nonlocal updated, replaced, remaining
            item = _find(items, product_id)
            if item is None:
                raise NotFound(product_id)
            for key in TEXT_FIELDS:
                if key in changes:
                    item[key] = changes[key]
            if "specs" in changes:
                item["specs"] = changes["specs"]
            if new_ref:
                replaced = item.get("image")
                item["image"] = new_ref
            elif "existingImage" in changes:
                item["image"] = changes["existingImage"] or ""
            updated = item
            remaining = items

        # The old asset is checked and removed before another writer can alias it.
        with self._store.lock:
            try:
                self._store.mutate(mutator)
            except (NotFound, StoreError):
                if new_ref:
                    self._discard(new_ref)
                raise
            if replaced and replaced != new_ref:
                self._discard(replaced, remaining)
        logger.info("Updated product %s", product_id)
        return dict(updated or {})

    def delete(self, product_id: str) -> None:
        removed: Optional[dict] = None
        kept: list[dict] = []

        def mutator(items: list[dict]) -> list[dict]:
            nonlocal removed, kept
            removed = _find(items, product_id)
            if removed is None:
                raise NotFound(product_id)
            kept = [item for item in items if item is not removed]
            return kept

        with self._store.lock:
            self._store.mutate(mutator)
            self._discard(removed.get("image"), kept)
        logger.info("Deleted product %s", product_id)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def orphaned_assets(self, min_age: float = 0) -> list[str]:
        """Asset filenames no product references, older than ``min_age`` seconds.

        Freshly uploaded files are usually waiting for the create/update call
        that will reference them, hence the age threshold.
        """

        referenced = {
            path.name
            for path in (self._assets.path_for(item.get("image")) for item in self._store.load())
            if path is not None
        }
        cutoff = time.time() - min_age
        orphans: list[str] = []
        for name in self._assets.list_files():
            if name in referenced:
                continue
            try:
                if (self._assets.directory / name).stat().st_mtime > cutoff:
                    continue
            except FileNotFoundError:
                continue
            orphans.append(name)
        return orphans

    def prune_orphans(self, min_age: float = 3600, dry_run: bool = False) -> list[str]:
        with self._store.lock:
            orphans = self.orphaned_assets(min_age)
            if not dry_run:
                for name in orphans:
                    self._discard(self._assets.ref_for(name))
        return orphans
