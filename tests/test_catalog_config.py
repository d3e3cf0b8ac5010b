import os
from pathlib import Path

from cataloglib.config import DEFAULT_ORIGINS, load_catalog_config


def test_defaults(tmp_path):
    config = load_catalog_config(tmp_path, {})
    assert config.data_file == tmp_path / "data" / "products.json"
    assert config.uploads_dir == tmp_path / "uploads"
    assert config.uploads_url_prefix == "/uploads"
    assert config.admin_user == "admin"
    assert config.admin_password == ""
    assert config.max_upload_bytes == 5 * 1024 * 1024
    assert config.backups == 3
    assert config.allowed_origins == DEFAULT_ORIGINS
    assert config.force_tls is False
    assert config.port == 3000
    assert config.log_level == "INFO"


def test_overrides(tmp_path):
    env = {
        "DATA_FILE": "/srv/catalog/products.json",
        "UPLOADS_DIR": "media",
        "UPLOADS_URL_PREFIX": "media/",
        "ADMIN_USER": "operator",
        "ADMIN_PASSWORD": "s3cret",
        "MAX_UPLOAD_BYTES": "1024",
        "PRODUCT_BACKUPS": "0",
        "ALLOWED_ORIGINS": "https://shop.example.com, https://admin.example.com",
        "FORCE_TLS": "yes",
        "API_PORT": "8080",
        "LOG_LEVEL": "debug",
    }
    config = load_catalog_config(tmp_path, env)
    assert config.data_file == Path("/srv/catalog/products.json")
    assert config.uploads_dir == tmp_path / "media"
    assert config.uploads_url_prefix == "/media"
    assert config.admin_user == "operator"
    assert config.admin_password == "s3cret"
    assert config.max_upload_bytes == 1024
    assert config.backups == 0
    assert config.allowed_origins == ("https://shop.example.com", "https://admin.example.com")
    assert config.force_tls is True
    assert config.port == 8080
    assert config.log_level == "DEBUG"


def test_dotenv_is_loaded_when_no_mapping_given(tmp_path, monkeypatch):
    # Register ADMIN_USER with monkeypatch so teardown restores the original value.
    monkeypatch.setenv("ADMIN_USER", "placeholder")
    monkeypatch.delenv("ADMIN_USER")
    (tmp_path / ".env").write_text("ADMIN_USER=from-dotenv\n", encoding="utf-8")
    config = load_catalog_config(tmp_path)
    assert config.admin_user == "from-dotenv"
    os.environ.pop("ADMIN_USER", None)
