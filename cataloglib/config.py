"""Configuration helpers for the catalog service.

All settings are read once at startup from the process environment (after
loading an optional ``.env`` next to the application) into a frozen
``CatalogConfig``. Tests and installers can pass an explicit mapping instead
of touching ``os.environ``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping
import os

from dotenv import load_dotenv

from .assets import DEFAULT_MAX_BYTES

DEFAULT_ORIGINS = (
    "http://localhost",
    "http://127.0.0.1",
    "https://localhost",
    "https://127.0.0.1",
)


@dataclass(frozen=True)
class CatalogConfig:
    """Strongly typed configuration for the catalog service."""

    base_dir: Path
    data_file: Path
    uploads_dir: Path
    uploads_url_prefix: str
    admin_user: str
    admin_password: str
    max_upload_bytes: int
    backups: int
    allowed_origins: tuple[str, ...]
    force_tls: bool
    host: str
    port: int
    log_level: str

    @property
    def auth_realm(self) -> str:
        return "Admin"


def env_bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _coerce_origins(raw: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(raw, str):
        items = [piece.strip() for piece in raw.split(",")]
    else:
        items = [piece.strip() for piece in raw]
    return tuple(filter(None, items)) or DEFAULT_ORIGINS


def _resolve(base_dir: Path, raw: str) -> Path:
    path = Path(raw).expanduser()
    return path if path.is_absolute() else base_dir / path


def load_catalog_config(base_dir: Path, env: Mapping[str, str] | None = None) -> CatalogConfig:
    """Load catalog configuration from the given base directory and env mapping."""

    base_dir = Path(base_dir)
    if env is None:
        load_dotenv(base_dir / ".env")
        env = os.environ
    env_map = dict(env)

    return CatalogConfig(
        base_dir=base_dir,
        data_file=_resolve(base_dir, env_map.get("DATA_FILE", "data/products.json")),
        uploads_dir=_resolve(base_dir, env_map.get("UPLOADS_DIR", "uploads")),
        uploads_url_prefix="/" + env_map.get("UPLOADS_URL_PREFIX", "/uploads").strip("/"),
        admin_user=env_map.get("ADMIN_USER", "admin"),
        admin_password=env_map.get("ADMIN_PASSWORD", ""),
        max_upload_bytes=int(env_map.get("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_BYTES))),
        backups=int(env_map.get("PRODUCT_BACKUPS", "3")),
        allowed_origins=_coerce_origins(env_map.get("ALLOWED_ORIGINS", "")),
        force_tls=env_bool(env_map.get("FORCE_TLS"), False),
        host=env_map.get("API_HOST", "0.0.0.0"),
        port=int(env_map.get("API_PORT", "3000")),
        log_level=env_map.get("LOG_LEVEL", "INFO").upper(),
    )
