"""Snapshot export and validation.

A snapshot is the full content of the store as a plain mapping::

    {"version": "1.0.0", "exportDate": "...", "groups": [...],
     "sites": [...], "configs": {"key": "value"}}

Group and site records carry the ids they had in the exporting store; those
ids only link records to each other inside one snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from navhub.models import Group, Site, all_configs, utcnow
from navhub.services.common import is_store_int, is_valid_url, to_bool

SNAPSHOT_VERSION = "1.0.0"


class SnapshotValidationError(ValueError):
    def __init__(self, errors: list[str]):
        super().__init__("Validation failed: " + ", ".join(errors))
        self.errors = errors


@dataclass
class SnapshotGroup:
    origin_id: int | None
    name: str
    order_num: int
    is_public: bool = True
    parent_origin_id: int | None = None


@dataclass
class SnapshotSite:
    origin_id: int | None
    group_origin_id: int
    name: str
    url: str
    order_num: int
    icon: str | None = None
    description: str | None = None
    notes: str | None = None
    is_public: bool = True


@dataclass
class Snapshot:
    version: str
    export_date: str
    groups: list[SnapshotGroup] = field(default_factory=list)
    sites: list[SnapshotSite] = field(default_factory=list)
    configs: dict[str, str] = field(default_factory=dict)


def _non_empty_string(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _optional_id(value) -> int | None:
    if is_store_int(value):
        return int(value)
    return None


def _optional_store_int(value) -> bool:
    return value is None or is_store_int(value)


def _optional_text(value) -> str | None:
    if value is None:
        return None
    return str(value)


def validate_snapshot(data) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Data must be an object"]

    if not _non_empty_string(data.get("version")):
        errors.append("Missing or invalid version")
    if not _non_empty_string(data.get("exportDate")):
        errors.append("Missing or invalid export date")

    groups = data.get("groups")
    if not isinstance(groups, list):
        errors.append("groups must be an array")
    else:
        for index, group in enumerate(groups):
            if not isinstance(group, dict):
                errors.append(f"groups[{index}]: must be an object")
                continue
            if not _non_empty_string(group.get("name")):
                errors.append(f"groups[{index}]: name must be a string")
            if not is_store_int(group.get("orderNum")):
                errors.append(f"groups[{index}]: orderNum must be a number")
            for key in ("id", "parentId"):
                if not _optional_store_int(group.get(key)):
                    errors.append(f"groups[{index}]: {key} must be a number or null")

    sites = data.get("sites")
    if not isinstance(sites, list):
        errors.append("sites must be an array")
    else:
        for index, site in enumerate(sites):
            if not isinstance(site, dict):
                errors.append(f"sites[{index}]: must be an object")
                continue
            if not _non_empty_string(site.get("name")):
                errors.append(f"sites[{index}]: name must be a string")
            url = site.get("url")
            if not _non_empty_string(url):
                errors.append(f"sites[{index}]: url must be a string")
            elif not is_valid_url(url):
                errors.append(f"sites[{index}]: invalid URL format")
            if not is_store_int(site.get("groupId")):
                errors.append(f"sites[{index}]: groupId must be a number")
            if not is_store_int(site.get("orderNum")):
                errors.append(f"sites[{index}]: orderNum must be a number")
            if not _optional_store_int(site.get("id")):
                errors.append(f"sites[{index}]: id must be a number or null")

    configs = data.get("configs")
    if not isinstance(configs, dict):
        errors.append("configs must be an object")
    else:
        for key, value in configs.items():
            if not isinstance(value, str):
                errors.append(f"configs[{key}]: value must be a string")

    return errors


def parse_snapshot(data) -> Snapshot:
    """Validate ``data`` and convert it to typed records.

    Raises SnapshotValidationError listing every offending field.
    """
    errors = validate_snapshot(data)
    if errors:
        raise SnapshotValidationError(errors)

    groups = [
        SnapshotGroup(
            origin_id=_optional_id(item.get("id")),
            name=item["name"].strip(),
            order_num=int(item["orderNum"]),
            is_public=to_bool(item.get("isPublic"), default=True),
            parent_origin_id=_optional_id(item.get("parentId")),
        )
        for item in data["groups"]
    ]
    sites = [
        SnapshotSite(
            origin_id=_optional_id(item.get("id")),
            group_origin_id=int(item["groupId"]),
            name=item["name"].strip(),
            url=item["url"].strip(),
            order_num=int(item["orderNum"]),
            icon=_optional_text(item.get("icon")),
            description=_optional_text(item.get("description")),
            notes=_optional_text(item.get("notes")),
            is_public=to_bool(item.get("isPublic"), default=True),
        )
        for item in data["sites"]
    ]
    return Snapshot(
        version=data["version"],
        export_date=data["exportDate"],
        groups=groups,
        sites=sites,
        configs=dict(data["configs"]),
    )


def export_snapshot() -> dict:
    groups = Group.query.order_by(Group.order_num.asc(), Group.id.asc()).all()
    sites = Site.query.order_by(Site.order_num.asc(), Site.id.asc()).all()
    return {
        "version": SNAPSHOT_VERSION,
        "exportDate": utcnow().isoformat(),
        "groups": [group.as_dict() for group in groups],
        "sites": [site.as_dict() for site in sites],
        "configs": all_configs(),
    }
