from __future__ import annotations

from functools import wraps

from flask import current_app, g, jsonify, request
from flask_login import current_user

from navhub.extensions import login_manager
from navhub.models import ApiPrincipal
from navhub.services.passwords import PasswordVerifier
from navhub.services.tokens import TokenCodec

AUTH_COOKIE_NAME = "auth_token"
GUEST_SUBJECT = "guest"


def get_token_codec() -> TokenCodec:
    codec = current_app.extensions.get("token_codec")
    if codec is None:
        codec = TokenCodec(current_app.config["AUTH_SECRET"])
        current_app.extensions["token_codec"] = codec
    return codec


def get_password_verifier() -> PasswordVerifier:
    return PasswordVerifier(method=current_app.config["PASSWORD_HASH_METHOD"])


def token_from_request() -> str | None:
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if token:
        return token

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.removeprefix("Bearer ").strip() or None


def client_identifier() -> str:
    forwarded = request.headers.get("CF-Connecting-IP")
    if forwarded:
        return forwarded.strip()
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.remote_addr or "unknown"


@login_manager.request_loader
def load_principal_from_request(_request):
    if not current_app.config["AUTH_ENABLED"]:
        return ApiPrincipal(GUEST_SUBJECT)

    token = token_from_request()
    if not token:
        return None
    result = get_token_codec().verify(token)
    if not result.valid:
        return None
    return ApiPrincipal(result.subject, result.claims)


def is_authenticated() -> bool:
    return bool(current_user.is_authenticated)


def api_auth_required(read=False):
    """Guard a route.

    Write routes always need a valid token. Read routes (``read=True``) only
    need one when AUTH_REQUIRED_FOR_READ is set; either way ``g.authenticated``
    tells the view what the caller may see.
    """

    def decorator(func):
        @wraps(func)
        def wrapped(*args, **kwargs):
            authenticated = is_authenticated()
            enforce = not read or current_app.config["AUTH_REQUIRED_FOR_READ"]
            if enforce and not authenticated:
                return jsonify({"success": False, "error": "Unauthorized"}), 401
            g.authenticated = authenticated
            return func(*args, **kwargs)

        return wrapped

    return decorator
