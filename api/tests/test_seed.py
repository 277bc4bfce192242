"""Seed helper tests."""
from marketportal.models.role import Role
from marketportal.models.role_assignment import RoleAssignment
from marketportal.seed import (
    ensure_active_assignment,
    ensure_user,
    parse_bool_env,
    seed_role_catalog,
    should_seed_demo_data,
)


def test_role_catalog_is_idempotent(db_session):
    first = seed_role_catalog(db_session)
    second = seed_role_catalog(db_session)

    assert set(first) == {"super_admin", "market_manager", "vendor", "inspector", "accountant"}
    assert {name: role.role_id for name, role in first.items()} == {
        name: role.role_id for name, role in second.items()
    }
    assert db_session.query(Role).count() == 5
    assert second["vendor"].is_elevated is False
    assert second["inspector"].is_elevated is True


def test_ensure_active_assignment_mirrors_legacy_role(db_session, roles):
    user = ensure_user(db_session, "seeded", "Seeded Manager", "pw123456")

    ensure_active_assignment(db_session, user, roles["market_manager"])
    ensure_active_assignment(db_session, user, roles["market_manager"])

    rows = db_session.query(RoleAssignment).filter(RoleAssignment.user_id == user.user_id).all()
    assert [row.status for row in rows] == ["active"]
    assert user.role == "admin"


def test_parse_bool_env():
    assert parse_bool_env("yes") is True
    assert parse_bool_env(" 0 ") is False
    assert parse_bool_env("maybe") is None
    assert parse_bool_env(None) is None


def test_demo_data_override(monkeypatch):
    monkeypatch.setenv("SEED_DEMO_DATA", "false")
    assert should_seed_demo_data() is False
    monkeypatch.setenv("SEED_DEMO_DATA", "true")
    assert should_seed_demo_data() is True
