import hmac

from flask import current_app, jsonify, request

from navhub.auth import auth_bp
from navhub.extensions import login_throttle
from navhub.services.common import to_bool
from navhub.services.security import (
    AUTH_COOKIE_NAME,
    GUEST_SUBJECT,
    client_identifier,
    get_password_verifier,
    get_token_codec,
    is_authenticated,
)


def _credentials_match(username: str, password: str) -> bool:
    expected_username = current_app.config["AUTH_USERNAME"] or ""
    password_ok = get_password_verifier().verify(
        password, current_app.config["AUTH_PASSWORD"] or ""
    )
    username_ok = bool(expected_username) and hmac.compare_digest(
        username.encode("utf-8"), expected_username.encode("utf-8")
    )
    return username_ok and password_ok


@auth_bp.route("/login", methods=["POST"])
def login():
    identifier = client_identifier()
    if not login_throttle.check(identifier):
        current_app.logger.warning("Login attempts throttled for %s", identifier)
        return (
            jsonify(
                {
                    "success": False,
                    "error": "Too many login attempts, please try again later",
                }
            ),
            429,
        )

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    username = str(payload.get("username") or "").strip()
    password = str(payload.get("password") or "")
    remember = to_bool(payload.get("rememberMe"), default=False)

    config = current_app.config
    ttl = config["REMEMBER_ME_TTL_SECONDS"] if remember else config["TOKEN_TTL_SECONDS"]

    if not config["AUTH_ENABLED"]:
        subject = GUEST_SUBJECT
        message = "Authentication disabled, logged in as guest"
    elif _credentials_match(username, password):
        subject = username
        message = "Login successful"
    else:
        return jsonify({"success": False, "error": "Invalid username or password"}), 401

    token = get_token_codec().sign(subject, ttl)
    response = jsonify({"success": True, "message": message})
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=ttl,
        httponly=True,
        secure=config["AUTH_COOKIE_SECURE"],
        samesite="Strict",
        path="/",
    )
    return response


@auth_bp.route("/logout", methods=["POST"])
def logout():
    response = jsonify({"success": True, "message": "Logged out successfully"})
    response.delete_cookie(
        AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=current_app.config["AUTH_COOKIE_SECURE"],
        samesite="Strict",
    )
    return response


@auth_bp.route("/auth/status", methods=["GET"])
def auth_status():
    return jsonify(
        {
            "success": True,
            "data": {
                "authenticated": is_authenticated(),
                "authEnabled": bool(current_app.config["AUTH_ENABLED"]),
            },
        }
    )
