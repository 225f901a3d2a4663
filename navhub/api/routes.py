from __future__ import annotations

from flask import current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from navhub.api import api_bp
from navhub.extensions import db
from navhub.models import ConfigEntry, Group, Site, all_configs, upsert_config, utcnow
from navhub.services.common import is_store_int, is_valid_url, to_bool
from navhub.services.groups import (
    InvalidParentError,
    ensure_valid_parent,
    next_group_order,
)
from navhub.services.importer import ImportFailedError, merge_snapshot
from navhub.services.ordering import (
    OrderUpdateError,
    apply_order_updates,
    parse_order_updates,
)
from navhub.services.security import api_auth_required
from navhub.services.snapshot import (
    SnapshotValidationError,
    export_snapshot,
    parse_snapshot,
)
from navhub.services.tree import load_forest


def _ok(data=None, message=None, status=200):
    payload = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return jsonify(payload), status


def _error(message: str, status: int, **extra):
    payload = {"success": False, "error": message}
    payload.update(extra)
    return jsonify(payload), status


def _json_object() -> dict | None:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return None
    return payload


def _clean_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _visible_group_or_none(group_id: int) -> Group | None:
    group = db.session.get(Group, group_id)
    if group is None:
        return None
    if not g.authenticated and not group.is_public:
        return None
    return group


def _visible_site_or_none(site_id: int) -> Site | None:
    site = db.session.get(Site, site_id)
    if site is None:
        return None
    if not g.authenticated and not (site.is_public and site.group.is_public):
        return None
    return site


def _next_site_order(group_id: int) -> int:
    current = (
        db.session.query(db.func.max(Site.order_num))
        .filter(Site.group_id == group_id)
        .scalar()
    )
    return 0 if current is None else current + 1


@api_bp.errorhandler(SQLAlchemyError)
def handle_store_error(exc):
    db.session.rollback()
    current_app.logger.error(
        "Store error on %s %s: %s", request.method, request.path, exc
    )
    return _error("Internal server error", 500)


@api_bp.errorhandler(RequestEntityTooLarge)
def handle_body_too_large(_exc):
    return _error("Request body too large, maximum 1MB allowed", 413)


@api_bp.errorhandler(Exception)
def handle_unexpected_error(exc):
    if isinstance(exc, HTTPException):
        return exc
    db.session.rollback()
    current_app.logger.exception(
        "Unhandled error on %s %s", request.method, request.path
    )
    return _error("Internal server error", 500)


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "timestamp": utcnow().isoformat()})


@api_bp.route("/groups", methods=["GET"])
@api_auth_required(read=True)
def groups_list():
    query = Group.query
    if not g.authenticated:
        query = query.filter(Group.is_public.is_(True))
    items = query.order_by(Group.order_num.asc(), Group.id.asc()).all()
    return _ok([item.as_dict() for item in items])


@api_bp.route("/groups/<int:group_id>", methods=["GET"])
@api_auth_required(read=True)
def groups_get(group_id: int):
    group = _visible_group_or_none(group_id)
    if not group:
        return _error("Group not found", 404)
    return _ok(group.as_dict())


@api_bp.route("/groups", methods=["POST"])
@api_auth_required()
def groups_create():
    payload = _json_object()
    if payload is None:
        return _error("Invalid JSON format", 400)

    name = _clean_text(payload.get("name"))
    if not name:
        return _error("group name is required", 400)
    parent_id = payload.get("parentId")
    if parent_id is not None and not is_store_int(parent_id):
        return _error("parentId must be a number or null", 400)
    parent_id = int(parent_id) if parent_id is not None else None
    try:
        ensure_valid_parent(None, parent_id)
    except InvalidParentError as exc:
        return _error(str(exc), 400)

    order_num = payload.get("orderNum")
    if order_num is not None and not is_store_int(order_num):
        return _error("orderNum must be a number", 400)

    if order_num is None:
        order_num = next_group_order(parent_id)
    group = Group(
        name=name,
        parent_id=parent_id,
        order_num=int(order_num),
        is_public=to_bool(payload.get("isPublic"), default=True),
    )
    db.session.add(group)
    db.session.commit()
    return _ok(group.as_dict(), status=201)


@api_bp.route("/groups/<int:group_id>", methods=["PUT"])
@api_auth_required()
def groups_update(group_id: int):
    group = db.session.get(Group, group_id)
    if not group:
        return _error("Group not found", 404)

    payload = _json_object()
    if payload is None:
        return _error("Invalid JSON format", 400)

    changed = False
    if "name" in payload:
        name = _clean_text(payload.get("name"))
        if not name:
            return _error("group name cannot be empty", 400)
        group.name = name
        changed = True
    if "parentId" in payload:
        parent_id = payload.get("parentId")
        if parent_id is not None and not is_store_int(parent_id):
            return _error("parentId must be a number or null", 400)
        parent_id = int(parent_id) if parent_id is not None else None
        try:
            ensure_valid_parent(group.id, parent_id)
        except InvalidParentError as exc:
            db.session.rollback()
            return _error(str(exc), 400)
        group.parent_id = parent_id
        changed = True
    if "orderNum" in payload:
        if not is_store_int(payload.get("orderNum")):
            return _error("orderNum must be a number", 400)
        group.order_num = int(payload["orderNum"])
        changed = True
    if "isPublic" in payload:
        group.is_public = to_bool(payload.get("isPublic"), default=True)
        changed = True

    if not changed:
        return _error("No fields to update", 400)

    group.updated_at = utcnow()
    db.session.commit()
    return _ok(group.as_dict())


@api_bp.route("/groups/<int:group_id>", methods=["DELETE"])
@api_auth_required()
def groups_delete(group_id: int):
    group = db.session.get(Group, group_id)
    if not group:
        return _error("Group not found", 404)
    db.session.delete(group)
    db.session.commit()
    return _ok({"deleted": True})


@api_bp.route("/group-orders", methods=["PUT"])
@api_auth_required()
def group_orders_update():
    updates, errors = parse_order_updates(request.get_json(silent=True))
    if errors:
        return _error("Validation failed", 400, errors=errors)
    try:
        updated = apply_order_updates(Group, updates)
    except OrderUpdateError as exc:
        current_app.logger.error("Group reorder rolled back: %s", exc)
        return _error(str(exc), 500)
    return _ok({"updated": updated})


@api_bp.route("/sites", methods=["GET"])
@api_auth_required(read=True)
def sites_list():
    query = Site.query
    group_id = request.args.get("groupId", type=int)
    if group_id is not None:
        query = query.filter(Site.group_id == group_id)
    if not g.authenticated:
        query = query.join(Group, Site.group_id == Group.id).filter(
            Site.is_public.is_(True), Group.is_public.is_(True)
        )
    items = query.order_by(Site.order_num.asc(), Site.id.asc()).all()
    return _ok([item.as_dict() for item in items])


@api_bp.route("/sites/<int:site_id>", methods=["GET"])
@api_auth_required(read=True)
def sites_get(site_id: int):
    site = _visible_site_or_none(site_id)
    if not site:
        return _error("Site not found", 404)
    return _ok(site.as_dict())


@api_bp.route("/sites", methods=["POST"])
@api_auth_required()
def sites_create():
    payload = _json_object()
    if payload is None:
        return _error("Invalid JSON format", 400)

    name = _clean_text(payload.get("name"))
    url = _clean_text(payload.get("url"))
    group_id = payload.get("groupId")
    if not name:
        return _error("site name is required", 400)
    if not url or not is_valid_url(url):
        return _error("invalid URL format", 400)
    if not is_store_int(group_id) or db.session.get(Group, int(group_id)) is None:
        return _error("groupId must reference an existing group", 400)
    group_id = int(group_id)

    order_num = payload.get("orderNum")
    if order_num is not None and not is_store_int(order_num):
        return _error("orderNum must be a number", 400)

    if order_num is None:
        order_num = _next_site_order(group_id)
    site = Site(
        group_id=group_id,
        name=name,
        url=url,
        icon=_clean_text(payload.get("icon")),
        description=_clean_text(payload.get("description")),
        notes=_clean_text(payload.get("notes")),
        order_num=int(order_num),
        is_public=to_bool(payload.get("isPublic"), default=True),
    )
    db.session.add(site)
    db.session.commit()
    return _ok(site.as_dict(), status=201)


@api_bp.route("/sites/<int:site_id>", methods=["PUT"])
@api_auth_required()
def sites_update(site_id: int):
    site = db.session.get(Site, site_id)
    if not site:
        return _error("Site not found", 404)

    payload = _json_object()
    if payload is None:
        return _error("Invalid JSON format", 400)

    changed = False
    if "name" in payload:
        name = _clean_text(payload.get("name"))
        if not name:
            return _error("site name cannot be empty", 400)
        site.name = name
        changed = True
    if "url" in payload:
        url = _clean_text(payload.get("url"))
        if not url or not is_valid_url(url):
            return _error("invalid URL format", 400)
        site.url = url
        changed = True
    if "groupId" in payload:
        group_id = payload.get("groupId")
        if not is_store_int(group_id) or db.session.get(Group, int(group_id)) is None:
            return _error("groupId must reference an existing group", 400)
        site.group_id = int(group_id)
        changed = True
    for field in ("icon", "description", "notes"):
        if field in payload:
            setattr(site, field, _clean_text(payload.get(field)))
            changed = True
    if "orderNum" in payload:
        if not is_store_int(payload.get("orderNum")):
            return _error("orderNum must be a number", 400)
        site.order_num = int(payload["orderNum"])
        changed = True
    if "isPublic" in payload:
        site.is_public = to_bool(payload.get("isPublic"), default=True)
        changed = True

    if not changed:
        return _error("No fields to update", 400)

    site.updated_at = utcnow()
    db.session.commit()
    return _ok(site.as_dict())


@api_bp.route("/sites/<int:site_id>", methods=["DELETE"])
@api_auth_required()
def sites_delete(site_id: int):
    site = db.session.get(Site, site_id)
    if not site:
        return _error("Site not found", 404)
    db.session.delete(site)
    db.session.commit()
    return _ok({"deleted": True})


@api_bp.route("/site-orders", methods=["PUT"])
@api_auth_required()
def site_orders_update():
    updates, errors = parse_order_updates(request.get_json(silent=True))
    if errors:
        return _error("Validation failed", 400, errors=errors)
    try:
        updated = apply_order_updates(Site, updates)
    except OrderUpdateError as exc:
        current_app.logger.error("Site reorder rolled back: %s", exc)
        return _error(str(exc), 500)
    return _ok({"updated": updated})


@api_bp.route("/groups-with-sites", methods=["GET"])
@api_auth_required(read=True)
def groups_with_sites():
    forest = load_forest(
        authenticated=g.authenticated,
        auth_required_for_read=current_app.config["AUTH_REQUIRED_FOR_READ"],
    )
    return _ok([node.as_dict() for node in forest])


@api_bp.route("/configs", methods=["GET"])
@api_auth_required(read=True)
def configs_list():
    return _ok(all_configs())


@api_bp.route("/configs/<key>", methods=["GET"])
@api_auth_required(read=True)
def configs_get(key: str):
    entry = db.session.get(ConfigEntry, key)
    return _ok({"key": key, "value": entry.value if entry else None})


@api_bp.route("/configs/<key>", methods=["PUT"])
@api_auth_required()
def configs_set(key: str):
    payload = _json_object()
    if payload is None or not isinstance(payload.get("value"), str):
        return _error("value must be a string", 400)
    upsert_config(key, payload["value"])
    db.session.commit()
    return _ok({"key": key, "value": payload["value"]})


@api_bp.route("/export", methods=["GET"])
@api_auth_required()
def export_data():
    return _ok(export_snapshot())


@api_bp.route("/import", methods=["POST"])
@api_auth_required()
def import_data():
    payload = request.get_json(silent=True)
    if payload is None:
        return _error("Invalid JSON format", 400)
    try:
        snapshot = parse_snapshot(payload)
    except SnapshotValidationError as exc:
        return _error(str(exc), 400, errors=exc.errors)

    try:
        stats = merge_snapshot(snapshot)
    except ImportFailedError as exc:
        return _error(str(exc) or "Import failed", 500)
    return _ok(stats.as_dict(), message="Import completed")
