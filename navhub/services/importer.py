"""Snapshot import.

Groups are matched to existing groups by name and sites to existing sites by
URL within the same destination group. Both are heuristics, not strong keys:
two unrelated groups that share a name are merged into one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from navhub.extensions import db
from navhub.models import Group, Site, upsert_config, utcnow
from navhub.services.groups import creates_cycle
from navhub.services.snapshot import Snapshot

logger = logging.getLogger(__name__)


class ImportFailedError(RuntimeError):
    pass


@dataclass
class ImportStats:
    total_groups: int = 0
    created_groups: int = 0
    merged_groups: int = 0
    total_sites: int = 0
    created_sites: int = 0
    updated_sites: int = 0
    skipped_sites: int = 0

    def as_dict(self):
        return {
            "groups": {
                "total": self.total_groups,
                "created": self.created_groups,
                "merged": self.merged_groups,
            },
            "sites": {
                "total": self.total_sites,
                "created": self.created_sites,
                "updated": self.updated_sites,
                "skipped": self.skipped_sites,
            },
        }


def _merge_groups(snapshot: Snapshot, stats: ImportStats) -> dict[int, int]:
    id_map: dict[int, int] = {}

    for item in snapshot.groups:
        existing = (
            Group.query.filter_by(name=item.name).order_by(Group.id.asc()).first()
        )
        if existing:
            destination_id = existing.id
            stats.merged_groups += 1
        else:
            group = Group(
                name=item.name, order_num=item.order_num, is_public=item.is_public
            )
            db.session.add(group)
            db.session.flush()
            destination_id = group.id
            stats.created_groups += 1
        if item.origin_id is not None:
            id_map[item.origin_id] = destination_id

    for item in snapshot.groups:
        if item.parent_origin_id is None or item.origin_id is None:
            continue
        group_id = id_map.get(item.origin_id)
        parent_id = id_map.get(item.parent_origin_id)
        if group_id is None or parent_id is None:
            continue
        if creates_cycle(group_id, parent_id):
            logger.warning(
                "Skipped parent link %s -> %s: it would nest a group inside itself",
                group_id,
                parent_id,
            )
            continue
        group = db.session.get(Group, group_id)
        group.parent_id = parent_id
        db.session.flush()

    return id_map


def _merge_sites(
    snapshot: Snapshot, id_map: dict[int, int], stats: ImportStats
) -> None:
    for item in snapshot.sites:
        group_id = id_map.get(item.group_origin_id)
        if group_id is None:
            stats.skipped_sites += 1
            continue

        existing = (
            Site.query.filter_by(url=item.url, group_id=group_id)
            .order_by(Site.id.asc())
            .first()
        )
        if existing:
            existing.name = item.name
            existing.icon = item.icon
            existing.description = item.description
            existing.notes = item.notes
            existing.order_num = item.order_num
            existing.is_public = item.is_public
            existing.updated_at = utcnow()
            stats.updated_sites += 1
        else:
            db.session.add(
                Site(
                    group_id=group_id,
                    name=item.name,
                    url=item.url,
                    icon=item.icon,
                    description=item.description,
                    notes=item.notes,
                    order_num=item.order_num,
                    is_public=item.is_public,
                )
            )
            stats.created_sites += 1
        db.session.flush()


def merge_snapshot(snapshot: Snapshot) -> ImportStats:
    """Merge ``snapshot`` into the store in one transaction.

    Either everything commits or nothing does; on failure ImportFailedError
    carries the store's message and no statistics are returned.
    """
    stats = ImportStats(
        total_groups=len(snapshot.groups), total_sites=len(snapshot.sites)
    )
    try:
        id_map = _merge_groups(snapshot, stats)
        _merge_sites(snapshot, id_map, stats)
        for key, value in snapshot.configs.items():
            upsert_config(key, value)
        db.session.commit()
    except (SQLAlchemyError, OverflowError) as exc:
        db.session.rollback()
        logger.error("Snapshot import rolled back: %s", exc)
        raise ImportFailedError(str(exc)) from exc

    logger.info(
        "Imported snapshot: %s group(s) created, %s merged; "
        "%s site(s) created, %s updated, %s skipped",
        stats.created_groups,
        stats.merged_groups,
        stats.created_sites,
        stats.updated_sites,
        stats.skipped_sites,
    )
    return stats
