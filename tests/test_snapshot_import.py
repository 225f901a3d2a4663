import pytest
from sqlalchemy.exc import SQLAlchemyError

from navhub.extensions import db
from navhub.models import ConfigEntry, Group, Site
from navhub.services.importer import ImportFailedError, merge_snapshot
from navhub.services.snapshot import (
    SnapshotValidationError,
    parse_snapshot,
    validate_snapshot,
)
from navhub.services.tree import load_forest


def _snapshot(**overrides):
    data = {
        "version": "1.0.0",
        "exportDate": "2026-01-01T00:00:00Z",
        "groups": [
            {"id": 1, "name": "Dev", "orderNum": 0, "isPublic": 1},
            {"id": 2, "name": "Python", "parentId": 1, "orderNum": 0},
            {"id": 3, "name": "Private", "orderNum": 1, "isPublic": False},
        ],
        "sites": [
            {
                "id": 10,
                "groupId": 2,
                "name": "Docs",
                "url": "https://docs.python.org",
                "orderNum": 0,
            },
            {
                "id": 11,
                "groupId": 1,
                "name": "GitHub",
                "url": "https://github.com",
                "orderNum": 1,
                "icon": "gh.png",
            },
            {
                "id": 12,
                "groupId": 3,
                "name": "Mail",
                "url": "https://mail.example.com",
                "orderNum": 0,
                "isPublic": 0,
            },
        ],
        "configs": {"site.title": "My Hub"},
    }
    data.update(overrides)
    return data


def _shape(nodes):
    return [
        (node.group.name, [site.url for site in node.sites], _shape(node.children))
        for node in nodes
    ]


def test_validate_snapshot_reports_each_offending_field():
    data = _snapshot(
        groups=[{"id": 1, "name": "", "orderNum": "x"}],
        sites=[
            {"name": "ok", "url": "https://ok.example", "groupId": 1, "orderNum": 0},
            {"name": "bad", "url": "not a url", "groupId": 1, "orderNum": 0},
            {"name": "", "url": "https://x.example", "groupId": "1", "orderNum": 0},
        ],
        configs={"theme": 3},
    )
    errors = validate_snapshot(data)

    assert "groups[0]: name must be a string" in errors
    assert "groups[0]: orderNum must be a number" in errors
    assert "sites[1]: invalid URL format" in errors
    assert "sites[2]: name must be a string" in errors
    assert "sites[2]: groupId must be a number" in errors
    assert "configs[theme]: value must be a string" in errors
    assert not any(error.startswith("sites[0]") for error in errors)


def test_validate_snapshot_requires_top_level_fields():
    errors = validate_snapshot({"groups": {}, "configs": []})
    assert errors == [
        "Missing or invalid version",
        "Missing or invalid export date",
        "groups must be an array",
        "sites must be an array",
        "configs must be an object",
    ]
    assert validate_snapshot([]) == ["Data must be an object"]


def test_parse_snapshot_raises_with_error_list():
    with pytest.raises(SnapshotValidationError) as excinfo:
        parse_snapshot(_snapshot(version=None))
    assert excinfo.value.errors == ["Missing or invalid version"]


def test_merge_creates_groups_sites_and_configs(app):
    with app.app_context():
        stats = merge_snapshot(parse_snapshot(_snapshot()))

        assert stats.as_dict() == {
            "groups": {"total": 3, "created": 3, "merged": 0},
            "sites": {"total": 3, "created": 3, "updated": 0, "skipped": 0},
        }
        assert _shape(load_forest(authenticated=True)) == [
            (
                "Dev",
                ["https://github.com"],
                [("Python", ["https://docs.python.org"], [])],
            ),
            ("Private", ["https://mail.example.com"], []),
        ]
        assert db.session.get(ConfigEntry, "site.title").value == "My Hub"
        private = Group.query.filter_by(name="Private").one()
        assert private.is_public is False


def test_merge_twice_is_idempotent(app):
    with app.app_context():
        merge_snapshot(parse_snapshot(_snapshot()))
        stats = merge_snapshot(parse_snapshot(_snapshot()))

        assert stats.created_groups == 0
        assert stats.merged_groups == 3
        assert stats.created_sites == 0
        assert stats.updated_sites == 3
        assert Group.query.count() == 3
        assert Site.query.count() == 3


def test_second_import_still_creates_genuinely_new_records(app):
    with app.app_context():
        merge_snapshot(parse_snapshot(_snapshot()))
        data = _snapshot()
        data["groups"].append({"id": 4, "name": "News", "orderNum": 2})
        data["sites"].append(
            {
                "groupId": 4,
                "name": "HN",
                "url": "https://news.ycombinator.com",
                "orderNum": 0,
            }
        )
        stats = merge_snapshot(parse_snapshot(data))

        assert (stats.created_groups, stats.merged_groups) == (1, 3)
        assert (stats.created_sites, stats.updated_sites) == (1, 3)


def test_merge_overwrites_mutable_site_fields_in_same_group(app):
    with app.app_context():
        merge_snapshot(parse_snapshot(_snapshot()))
        data = _snapshot()
        data["sites"][1].update({"name": "GitHub Home", "orderNum": 7, "icon": None})
        merge_snapshot(parse_snapshot(data))

        site = Site.query.filter_by(url="https://github.com").one()
        assert site.name == "GitHub Home"
        assert site.order_num == 7
        assert site.icon is None


def test_merge_does_not_move_site_between_groups(app):
    with app.app_context():
        merge_snapshot(parse_snapshot(_snapshot()))
        data = _snapshot()
        data["sites"][1]["groupId"] = 3
        stats = merge_snapshot(parse_snapshot(data))

        assert stats.created_sites == 1
        rows = Site.query.filter_by(url="https://github.com").all()
        assert sorted(row.group.name for row in rows) == ["Dev", "Private"]


def test_merge_skips_sites_with_unknown_group_and_commits_the_rest(app):
    with app.app_context():
        data = _snapshot()
        data["sites"].append(
            {
                "groupId": 404,
                "name": "Lost",
                "url": "https://lost.example",
                "orderNum": 0,
            }
        )
        stats = merge_snapshot(parse_snapshot(data))

        assert stats.skipped_sites == 1
        assert stats.created_sites == 3
        assert Site.query.filter_by(url="https://lost.example").count() == 0
        assert Site.query.count() == 3


def test_merge_matches_existing_group_by_name(app):
    with app.app_context():
        existing = Group(name="Dev", order_num=5, is_public=True)
        db.session.add(existing)
        db.session.commit()
        existing_id = existing.id

        stats = merge_snapshot(parse_snapshot(_snapshot()))

        assert stats.merged_groups == 1
        assert stats.created_groups == 2
        dev = db.session.get(Group, existing_id)
        assert dev.order_num == 5
        python = Group.query.filter_by(name="Python").one()
        assert python.parent_id == existing_id


def test_unresolved_parent_leaves_group_at_root(app):
    with app.app_context():
        data = _snapshot()
        data["groups"][1]["parentId"] = 99
        merge_snapshot(parse_snapshot(data))

        python = Group.query.filter_by(name="Python").one()
        assert python.parent_id is None


def test_cyclic_parent_links_in_snapshot_are_not_applied(app):
    with app.app_context():
        data = _snapshot(
            groups=[
                {"id": 1, "name": "A", "parentId": 2, "orderNum": 0},
                {"id": 2, "name": "B", "parentId": 1, "orderNum": 1},
            ],
            sites=[],
        )
        merge_snapshot(parse_snapshot(data))

        a = Group.query.filter_by(name="A").one()
        b = Group.query.filter_by(name="B").one()
        assert a.parent_id == b.id
        assert b.parent_id is None
        assert [node.group.name for node in load_forest(authenticated=True)] == ["B"]


def test_store_failure_rolls_back_everything(app, monkeypatch):
    def _fail(*_args, **_kwargs):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr("navhub.services.importer.upsert_config", _fail)

    with app.app_context():
        with pytest.raises(ImportFailedError, match="disk I/O error"):
            merge_snapshot(parse_snapshot(_snapshot()))

        assert Group.query.count() == 0
        assert Site.query.count() == 0
        assert ConfigEntry.query.count() == 0


def test_validate_snapshot_rejects_numbers_outside_integer_column_range():
    data = _snapshot(
        groups=[{"id": 2**63, "name": "G", "parentId": -1e19, "orderNum": 1e20}],
        sites=[
            {
                "id": 1,
                "groupId": 9.3e18,
                "name": "S",
                "url": "https://s.example",
                "orderNum": 2**64,
            }
        ],
    )
    errors = validate_snapshot(data)

    assert errors == [
        "groups[0]: orderNum must be a number",
        "groups[0]: id must be a number or null",
        "groups[0]: parentId must be a number or null",
        "sites[0]: groupId must be a number",
        "sites[0]: orderNum must be a number",
    ]


def test_integer_overflow_in_store_becomes_import_failure(app, monkeypatch):
    def _overflow(*_args, **_kwargs):
        raise OverflowError("Python int too large to convert to SQLite INTEGER")

    monkeypatch.setattr("navhub.services.importer.upsert_config", _overflow)

    with app.app_context():
        with pytest.raises(ImportFailedError, match="too large"):
            merge_snapshot(parse_snapshot(_snapshot()))

        assert Group.query.count() == 0
        assert Site.query.count() == 0
