import pytest

from bms.auth import ROLE_PERMISSIONS, SessionUser, authorize, permissions_for
from bms.errors import InsufficientPermission, InsufficientRole, Unauthenticated


def _user(role):
    return SessionUser(id="1", username=role, email=f"{role}@example.com", role=role, name=role)


def test_no_session_is_unauthenticated():
    decision = authorize(None)
    assert not decision.allowed
    assert decision.reason == "UNAUTHENTICATED"
    with pytest.raises(Unauthenticated):
        decision.raise_for_denial()


def test_finance_manager_cannot_act_as_admin():
    decision = authorize(_user("finance_manager"), required_role="admin")
    assert decision.reason == "INSUFFICIENT_ROLE"
    with pytest.raises(InsufficientRole):
        decision.raise_for_denial()


def test_permission_is_checked_after_role():
    decision = authorize(_user("finance_manager"), required_permission="create_tenders")
    assert decision.reason == "INSUFFICIENT_PERMISSION"
    with pytest.raises(InsufficientPermission):
        decision.raise_for_denial()


def test_wrong_role_wins_over_missing_permission():
    decision = authorize(_user("finance_manager"), required_role="admin", required_permission="manage_users")
    assert decision.reason == "INSUFFICIENT_ROLE"


def test_admin_holds_every_permission():
    admin = _user("admin")
    for perm in ROLE_PERMISSIONS["admin"]:
        assert authorize(admin, required_role="admin", required_permission=perm).allowed


def test_senior_bidder_permissions():
    perms = permissions_for("senior_bidder")
    assert {"create_tenders", "edit_tenders", "assign_tenders", "import_tenders"} <= perms
    assert "delete_tenders" not in perms
    assert "manage_users" not in perms


def test_unknown_role_has_no_permissions():
    assert permissions_for("intern") == frozenset()
    assert permissions_for(None) == frozenset()
    assert not authorize(_user("intern"), required_permission="view_tenders").allowed


def test_plain_login_requirement_allows_any_role():
    decision = authorize(_user("bidder"))
    assert decision.allowed
    decision.raise_for_denial()


def test_only_admin_may_delete_tenders():
    holders = {role for role, perms in ROLE_PERMISSIONS.items() if "delete_tenders" in perms}
    assert holders == {"admin"}
