from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from navhub.extensions import db
from navhub.models import utcnow
from navhub.services.common import is_store_int


class OrderUpdateError(RuntimeError):
    pass


@dataclass(frozen=True)
class OrderUpdate:
    id: int
    order_num: int


def parse_order_updates(payload) -> tuple[list[OrderUpdate], list[str]]:
    if not isinstance(payload, list):
        return [], ["body must be an array of {id, orderNum} objects"]

    updates: list[OrderUpdate] = []
    errors: list[str] = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            errors.append(f"[{index}]: must be an object")
            continue
        if not is_store_int(item.get("id")):
            errors.append(f"[{index}]: id must be a number")
        if not is_store_int(item.get("orderNum")):
            errors.append(f"[{index}]: orderNum must be a number")
        if not errors:
            updates.append(
                OrderUpdate(id=int(item["id"]), order_num=int(item["orderNum"]))
            )
    return updates, errors


def apply_order_updates(model, updates: list[OrderUpdate]) -> int:
    """Write every ``order_num`` in one transaction and return the rows touched.

    Sibling uniqueness is the caller's concern; ids that match no row are
    ignored.
    """
    if not updates:
        return 0

    touched = 0
    try:
        for update in updates:
            touched += (
                db.session.query(model)
                .filter(model.id == update.id)
                .update(
                    {"order_num": update.order_num, "updated_at": utcnow()},
                    synchronize_session=False,
                )
            )
        db.session.commit()
    except (SQLAlchemyError, OverflowError) as exc:
        db.session.rollback()
        raise OrderUpdateError(str(exc)) from exc
    return touched
