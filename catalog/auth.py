"""HTTP Basic guard for the admin routes."""

from __future__ import annotations

import hmac
from functools import wraps

from flask import current_app, jsonify, request


def _matches(supplied: str | None, expected: str) -> bool:
    return hmac.compare_digest((supplied or "").encode("utf-8"), expected.encode("utf-8"))


def is_authorized() -> bool:
    auth = request.authorization
    if auth is None or auth.type != "basic":
        return False
    expected_user = current_app.config.get("CATALOG_ADMIN_USER", "")
    expected_password = current_app.config.get("CATALOG_ADMIN_PASSWORD", "")
    if not expected_password:
        return False
    # Compare both so timing does not reveal which half was wrong.
    user_ok = _matches(auth.username, expected_user)
    password_ok = _matches(auth.password, expected_password)
    return user_ok and password_ok


def _challenge(message: str):
    realm = current_app.config.get("CATALOG_AUTH_REALM", "Admin")
    resp = jsonify({"error": message})
    resp.status_code = 401
    resp.headers["WWW-Authenticate"] = f'Basic realm="{realm}"'
    return resp


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if request.authorization is None:
            return _challenge("Authentication required")
        if not is_authorized():
            return _challenge("Invalid credentials")
        return fn(*args, **kwargs)

    return wrapper
