import pytest

from app.core.exceptions import InvalidStateError, PermissionDeniedError
from app.modules.groups.models import MemberRole
from app.modules.groups.permissions import (
    GroupAction, can, can_view_join_code, ensure_can, ensure_can_change_role, ensure_can_remove
)

OWNER = MemberRole.OWNER
ADMIN = MemberRole.ADMIN
MEMBER = MemberRole.MEMBER


@pytest.mark.parametrize("action", [
    GroupAction.UPDATE_SETTINGS,
    GroupAction.VIEW_JOIN_CODE,
    GroupAction.REGENERATE_JOIN_CODE,
    GroupAction.INVITE_MEMBER,
    GroupAction.APPROVE_MEMBER,
    GroupAction.REMOVE_MEMBER,
])
def test_managers_only_actions(action):
    assert can(OWNER, action)
    assert can(ADMIN, action)
    assert not can(MEMBER, action)
    assert not can(None, action)


def test_only_owner_deletes():
    assert can(OWNER, GroupAction.DELETE_GROUP)
    assert not can(ADMIN, GroupAction.DELETE_GROUP)
    assert not can(MEMBER, GroupAction.DELETE_GROUP)


def test_ensure_can_raises_permission_denied_with_group():
    with pytest.raises(PermissionDeniedError) as exc_info:
        ensure_can(MEMBER, GroupAction.UPDATE_SETTINGS, "group-1")
    assert exc_info.value.group_id == "group-1"
    assert exc_info.value.kind == "permission_denied"


def test_join_code_visibility():
    assert can_view_join_code(OWNER)
    assert can_view_join_code(ADMIN)
    assert not can_view_join_code(MEMBER)
    assert not can_view_join_code(None)


@pytest.mark.parametrize("actor,target", [
    (OWNER, ADMIN),
    (OWNER, MEMBER),
    (ADMIN, MEMBER),
])
def test_allowed_removals(actor, target):
    ensure_can_remove(actor, target)


@pytest.mark.parametrize("actor,target", [
    (ADMIN, ADMIN),
    (ADMIN, OWNER),
    (OWNER, OWNER),
    (MEMBER, MEMBER),
    (MEMBER, ADMIN),
    (None, MEMBER),
])
def test_denied_removals(actor, target):
    with pytest.raises(PermissionDeniedError):
        ensure_can_remove(actor, target)


def test_owner_promotes_and_demotes():
    ensure_can_change_role(OWNER, MEMBER, ADMIN)
    ensure_can_change_role(OWNER, ADMIN, MEMBER)


def test_admin_cannot_promote():
    with pytest.raises(PermissionDeniedError):
        ensure_can_change_role(ADMIN, MEMBER, ADMIN)


def test_admin_cannot_demote_admin():
    with pytest.raises(PermissionDeniedError):
        ensure_can_change_role(ADMIN, ADMIN, MEMBER)


def test_member_cannot_change_roles():
    with pytest.raises(PermissionDeniedError):
        ensure_can_change_role(MEMBER, MEMBER, ADMIN)


def test_owner_target_is_invalid_state_before_role_pair_checks():
    # Even a plain member gets InvalidState rather than PermissionDenied here
    for actor in (OWNER, ADMIN, MEMBER, None):
        with pytest.raises(InvalidStateError):
            ensure_can_change_role(actor, OWNER, MEMBER)


def test_ownership_cannot_be_granted():
    with pytest.raises(InvalidStateError):
        ensure_can_change_role(OWNER, ADMIN, OWNER)


def test_own_role_cannot_change():
    with pytest.raises(PermissionDeniedError):
        ensure_can_change_role(ADMIN, ADMIN, MEMBER, is_self=True)


def test_same_role_is_noop_for_managers():
    ensure_can_change_role(ADMIN, MEMBER, MEMBER)
