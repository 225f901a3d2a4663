from datetime import datetime, timezone

from flask_login import UserMixin

from navhub.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class ApiPrincipal(UserMixin):
    """The authenticated caller, rebuilt from a verified token on each request."""

    def __init__(self, subject: str, claims: dict | None = None):
        self.id = subject
        self.claims = claims or {}


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    parent_id = db.Column(
        db.Integer, db.ForeignKey("groups.id"), nullable=True, index=True
    )
    order_num = db.Column(db.Integer, nullable=False, default=0)
    is_public = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    children = db.relationship(
        "Group",
        backref=db.backref("parent", remote_side=[id]),
        cascade="all, delete",
    )
    sites = db.relationship("Site", backref="group", cascade="all, delete")

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "parentId": self.parent_id,
            "orderNum": self.order_num,
            "isPublic": bool(self.is_public),
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


class Site(db.Model):
    __tablename__ = "sites"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(
        db.Integer, db.ForeignKey("groups.id"), nullable=False, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    url = db.Column(db.Text, nullable=False, index=True)
    icon = db.Column(db.Text, nullable=True)
    description = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    order_num = db.Column(db.Integer, nullable=False, default=0)
    is_public = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (db.Index("ix_site_group_order", "group_id", "order_num"),)

    def as_dict(self):
        return {
            "id": self.id,
            "groupId": self.group_id,
            "name": self.name,
            "url": self.url,
            "icon": self.icon,
            "description": self.description,
            "notes": self.notes,
            "orderNum": self.order_num,
            "isPublic": bool(self.is_public),
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


class ConfigEntry(db.Model):
    __tablename__ = "configs"

    key = db.Column(db.String(255), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


def all_configs() -> dict[str, str]:
    return {entry.key: entry.value for entry in ConfigEntry.query.all()}


def upsert_config(key: str, value: str) -> ConfigEntry:
    entry = db.session.get(ConfigEntry, key)
    if entry is None:
        entry = ConfigEntry(key=key, value=value)
        db.session.add(entry)
    else:
        entry.value = value
        entry.updated_at = utcnow()
    return entry
