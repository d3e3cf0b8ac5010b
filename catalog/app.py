"""Flask service for the product catalog.

- Products live in a single JSON document (``data/products.json`` by default)
  with atomic writes, rotating backups and a writer lock around every
  read-modify-write cycle.
- Product images are uploaded into ``uploads/`` under generated names and
  served back from ``/uploads/<name>``; replacing or deleting a product's
  image removes the file it no longer references.
- Reads are public. Writes and the admin dashboard sit behind HTTP Basic
  credentials taken from the environment.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import click
from flask import (
    Flask,
    jsonify,
    render_template,
    request,
    send_from_directory,
)
from flask_cors import CORS
from flask_talisman import Talisman
from werkzeug.exceptions import RequestEntityTooLarge

from cataloglib.config import load_catalog_config
from cataloglib.errors import NotFound, StoreError, ValidationError

from catalog.auth import admin_required
from catalog.services.product_store import ProductCatalog

BASE_DIR = Path(__file__).resolve().parent
PROJECT_DIR = BASE_DIR.parent
TEMPLATE_DIR = BASE_DIR / "templates"

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
CONFIG = load_catalog_config(PROJECT_DIR)


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


configure_logging(CONFIG.log_level)

if not CONFIG.admin_password:
    logger.warning("ADMIN_PASSWORD is not set; every write request will be rejected")

# ---------------------------------------------------------------------------
# Flask app
# ---------------------------------------------------------------------------
app = Flask(__name__, template_folder=str(TEMPLATE_DIR))
app.config.update(
    CATALOG_ADMIN_USER=CONFIG.admin_user,
    CATALOG_ADMIN_PASSWORD=CONFIG.admin_password,
    CATALOG_AUTH_REALM=CONFIG.auth_realm,
    # Leave room for the text fields that travel alongside the image.
    MAX_CONTENT_LENGTH=CONFIG.max_upload_bytes + 1024 * 1024,
)
app.json.sort_keys = False

CORS(app, resources={r"/api/*": {"origins": list(CONFIG.allowed_origins)}})
Talisman(app, content_security_policy=None, force_https=CONFIG.force_tls)

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
PRODUCT_FILE = CONFIG.data_file
UPLOADS_DIR = CONFIG.uploads_dir
_PRODUCT_CATALOG: ProductCatalog | None = None
_CATALOG_INIT_LOCK = threading.Lock()


def get_catalog() -> ProductCatalog:
    """Return the process-wide catalog; one instance means one writer lock."""

    global _PRODUCT_CATALOG
    if _PRODUCT_CATALOG is None:
        with _CATALOG_INIT_LOCK:
            if _PRODUCT_CATALOG is None:
                _PRODUCT_CATALOG = ProductCatalog(
                    PRODUCT_FILE,
                    UPLOADS_DIR,
                    backups=CONFIG.backups,
                    url_prefix=CONFIG.uploads_url_prefix,
                    max_upload_bytes=CONFIG.max_upload_bytes,
                )
    return _PRODUCT_CATALOG


def _request_fields() -> dict:
    if request.is_json:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}
    return request.form.to_dict()


def _request_image():
    image = request.files.get("image")
    if image is None or not image.filename:
        return None
    return image


def _validation_response(err: ValidationError):
    body = {"error": err.message}
    if err.details:
        body["details"] = err.details
    return jsonify(body), 400


def _storage_response(action: str):
    logger.exception("Product catalog storage failure while %s", action)
    return jsonify({"error": f"Storage failure while {action}"}), 500


# ---------------------------------------------------------------------------
# Routes — Products API
# ---------------------------------------------------------------------------
@app.route("/api/products", methods=["GET"])
def list_products():
    try:
        return jsonify(get_catalog().all())
    except StoreError:
        return _storage_response("loading products")


@app.route("/api/products/<product_id>", methods=["GET"])
def get_product(product_id):
    try:
        return jsonify(get_catalog().get(product_id))
    except NotFound:
        return jsonify({"error": "Product not found"}), 404
    except StoreError:
        return _storage_response("loading products")


@app.route("/api/products", methods=["POST"])
@admin_required
def create_product():
    try:
        product = get_catalog().create(_request_fields(), _request_image())
    except ValidationError as err:
        return _validation_response(err)
    except StoreError:
        return _storage_response("creating the product")
    return jsonify(product), 201


@app.route("/api/products/<product_id>", methods=["PUT"])
@admin_required
def update_product(product_id):
    try:
        product = get_catalog().update(product_id, _request_fields(), _request_image())
    except ValidationError as err:
        return _validation_response(err)
    except NotFound:
        return jsonify({"error": "Product not found"}), 404
    except StoreError:
        return _storage_response("updating the product")
    return jsonify(product)


@app.route("/api/products/<product_id>", methods=["DELETE"])
@admin_required
def delete_product(product_id):
    try:
        get_catalog().delete(product_id)
    except NotFound:
        return jsonify({"error": "Product not found"}), 404
    except StoreError:
        return _storage_response("deleting the product")
    return jsonify({"success": True})


@app.route("/api/upload", methods=["POST"])
@admin_required
def upload_image():
    image = _request_image()
    if image is None:
        return jsonify({"error": "No file uploaded"}), 400
    try:
        ref = get_catalog().upload_image(image)
    except ValidationError as err:
        return _validation_response(err)
    except StoreError:
        return _storage_response("storing the image")
    return jsonify({"url": get_catalog().assets.public_url(ref)})


@app.errorhandler(RequestEntityTooLarge)
def request_too_large(_err):
    limit_mib = CONFIG.max_upload_bytes // (1024 * 1024)
    return jsonify({"error": f"Upload exceeds the {limit_mib} MiB limit"}), 400


# ---------------------------------------------------------------------------
# Routes — Assets and pages
# ---------------------------------------------------------------------------
@app.route(f"{CONFIG.uploads_url_prefix}/<path:filename>")
def serve_upload(filename: str):
    return send_from_directory(UPLOADS_DIR, filename)


@app.route("/")
def storefront_home():
    try:
        products = get_catalog().all()
    except StoreError:
        logger.exception("Product catalog unavailable for storefront")
        return render_template("index.html", products=[], unavailable=True), 503
    return render_template("index.html", products=products, unavailable=False)


@app.route("/admin")
@admin_required
def admin_dashboard():
    try:
        products = get_catalog().all()
    except StoreError:
        logger.exception("Product catalog unavailable for dashboard")
        return render_template("admin/dashboard.html", products=[], unavailable=True), 503
    return render_template("admin/dashboard.html", products=products, unavailable=False)


# ---------------------------------------------------------------------------
# Security headers
# ---------------------------------------------------------------------------
@app.after_request
def secure_headers(resp):
    resp.headers["X-Content-Type-Options"] = "nosniff"
    resp.headers["X-Frame-Options"] = "DENY"
    return resp


# ---------------------------------------------------------------------------
# Maintenance commands (flask --app catalog.app <command>)
# ---------------------------------------------------------------------------
@app.cli.command("restore-products")
def restore_products_command():
    """Replace the product document with the newest readable backup."""

    try:
        items = get_catalog().store.restore_backup()
    except StoreError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Restored {len(items)} products from backup")


@app.cli.command("prune-uploads")
@click.option("--min-age", default=3600, show_default=True, help="Only files older than this many seconds.")
@click.option("--dry-run", is_flag=True, help="List orphaned files without deleting them.")
def prune_uploads_command(min_age: int, dry_run: bool):
    """Remove uploaded images that no product references."""

    try:
        orphans = get_catalog().prune_orphans(min_age=min_age, dry_run=dry_run)
    except StoreError as exc:
        raise click.ClickException(str(exc)) from exc
    verb = "Would remove" if dry_run else "Removed"
    for name in orphans:
        click.echo(f"{verb} {name}")
    click.echo(f"{verb} {len(orphans)} orphaned file(s)")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def main() -> None:
    logger.info("Catalog service listening on http://%s:%s", CONFIG.host, CONFIG.port)
    logger.info("Admin dashboard: http://%s:%s/admin", CONFIG.host, CONFIG.port)
    app.run(host=CONFIG.host, port=CONFIG.port)


if __name__ == "__main__":
    main()
