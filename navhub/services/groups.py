from __future__ import annotations

from navhub.extensions import db
from navhub.models import Group

MAX_GROUP_DEPTH = 1000


class InvalidParentError(ValueError):
    pass


def creates_cycle(
    group_id: int | None, parent_id: int | None, max_depth: int = MAX_GROUP_DEPTH
) -> bool:
    """Return True when making ``parent_id`` the parent of ``group_id`` closes a loop.

    Walks the ancestors of the proposed parent. A walk that exceeds
    ``max_depth`` means the stored hierarchy is already corrupt and is
    treated as a cycle.
    """
    if group_id is None or parent_id is None:
        return False

    current = parent_id
    for _ in range(max_depth):
        if current is None:
            return False
        if current == group_id:
            return True
        row = (
            db.session.query(Group.parent_id).filter(Group.id == current).one_or_none()
        )
        if row is None:
            return False
        current = row[0]
    return True


def ensure_valid_parent(group_id: int | None, parent_id: int | None) -> None:
    if parent_id is None:
        return
    if db.session.get(Group, parent_id) is None:
        raise InvalidParentError(f"parent group {parent_id} does not exist")
    if creates_cycle(group_id, parent_id):
        raise InvalidParentError("a group cannot be nested inside itself")


def next_group_order(parent_id: int | None) -> int:
    if parent_id is None:
        sibling_filter = Group.parent_id.is_(None)
    else:
        sibling_filter = Group.parent_id == parent_id
    current = (
        db.session.query(db.func.max(Group.order_num)).filter(sibling_filter).scalar()
    )
    return 0 if current is None else current + 1
