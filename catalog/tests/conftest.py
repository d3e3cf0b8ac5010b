import base64
import io

import pytest

from catalog import app as flask_app

ADMIN_USER = "admin"
ADMIN_PASSWORD = "test-password"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def basic_auth(user: str = ADMIN_USER, password: str = ADMIN_PASSWORD) -> dict:
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


def png_upload(name: str = "photo.png", content_type: str = "image/png", data: bytes = PNG_BYTES):
    return (io.BytesIO(data), name, content_type)


@pytest.fixture(autouse=True)
def configure_test_env(tmp_path, monkeypatch):
    flask_app.app.config.update(
        TESTING=True,
        CATALOG_ADMIN_USER=ADMIN_USER,
        CATALOG_ADMIN_PASSWORD=ADMIN_PASSWORD,
    )
    product_file = tmp_path / "data" / "products.json"
    uploads_dir = tmp_path / "uploads"
    monkeypatch.setattr(flask_app, "PRODUCT_FILE", product_file)
    monkeypatch.setattr(flask_app, "UPLOADS_DIR", uploads_dir)
    monkeypatch.setattr(flask_app, "_PRODUCT_CATALOG", None)
    talisman = flask_app.app.extensions.get("talisman")
    if talisman:
        talisman.force_https = False
    yield product_file


@pytest.fixture
def uploads_dir(configure_test_env):
    return configure_test_env.parent.parent / "uploads"


@pytest.fixture
def client():
    return flask_app.app.test_client()


@pytest.fixture
def admin_headers():
    return basic_auth()
