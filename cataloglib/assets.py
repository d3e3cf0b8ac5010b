"""Image asset storage for product pictures.

Uploaded files land in a single directory under a generated name and are
published under a URL prefix (``/uploads`` by default) that maps 1:1 onto that
directory. References that do not start with the prefix are treated as
external URLs and never touched.
"""
from __future__ import annotations

import io
import logging
import os
import secrets
from pathlib import Path
from typing import BinaryIO

from .errors import StoreError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".jpeg", ".jpg", ".png", ".gif", ".webp"})
ALLOWED_MIMETYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
)
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
NAME_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_-"
CHUNK_SIZE = 64 * 1024


def generate_id(length: int) -> str:
    return "".join(secrets.choice(NAME_ALPHABET) for _ in range(length))


def is_allowed_image(filename: str | None, mimetype: str | None) -> bool:
    """Accept only known image extensions with a matching declared type."""

    extension = Path(filename or "").suffix.lower()
    declared = (mimetype or "").split(";", 1)[0].strip().lower()
    return extension in ALLOWED_EXTENSIONS and declared in ALLOWED_MIMETYPES


class AssetStore:
    """Stores image bytes under generated filenames inside ``directory``."""

    def __init__(
        self,
        directory: Path | str,
        *,
        url_prefix: str = "/uploads",
        max_bytes: int = DEFAULT_MAX_BYTES,
        name_length: int = 10,
    ) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.max_bytes = max_bytes
        self.name_length = name_length

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------
    def _filename_for(self, ref: str | None) -> str | None:
        if not ref or not ref.startswith(self.url_prefix + "/"):
            return None
        name = ref[len(self.url_prefix) + 1 :]
        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            return None
        return name

    def is_owned(self, ref: str | None) -> bool:
        return self._filename_for(ref) is not None

    def path_for(self, ref: str | None) -> Path | None:
        name = self._filename_for(ref)
        return self.directory / name if name else None

    def ref_for(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def public_url(self, ref: str) -> str:
        return ref

    def list_files(self) -> list[str]:
        return sorted(
            entry.name
            for entry in self.directory.iterdir()
            if entry.is_file() and not entry.name.startswith(".")
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def _unique_name(self, extension: str) -> str:
        while True:
            name = f"{generate_id(self.name_length)}{extension}"
            if not (self.directory / name).exists():
                return name

    def store(self, data: bytes | BinaryIO, filename: str | None, mimetype: str | None) -> str:
        """Write an uploaded image and return its reference."""

        if not is_allowed_image(filename, mimetype):
            raise ValidationError("Only image files are allowed (jpeg, jpg, png, gif, webp)")

        stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        name = self._unique_name(Path(filename or "").suffix.lower())
        target = self.directory / name
        tmp_path = self.directory / f".{name}.part"
        written = 0
        try:
            with tmp_path.open("wb") as fh:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise ValidationError(
                            f"Image exceeds the {self.max_bytes // (1024 * 1024)} MiB limit"
                        )
                    fh.write(chunk)
            os.replace(tmp_path, target)
        except OSError as exc:
            raise StoreError(f"Unable to store image: {exc}") from exc
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.info("Stored asset %s (%d bytes)", name, written)
        return self.ref_for(name)

    def delete(self, ref: str | None) -> bool:
        """Remove the file behind an owned ``ref``; returns whether one was removed."""

        path = self.path_for(ref)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StoreError(f"Unable to delete {path.name}: {exc}") from exc
        logger.info("Deleted asset %s", path.name)
        return True
