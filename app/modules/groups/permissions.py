"""
Role authorization matrix for groups.

Every group-level permission is a lookup in GROUP_ACTION_ROLES plus a few
target-aware rules for removing members and changing roles. The functions here
are pure: they take roles and return or raise, and never touch storage.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional

from app.core.exceptions import InvalidStateError, PermissionDeniedError
from app.modules.groups.models import MemberRole


class GroupAction(str, Enum):
    UPDATE_SETTINGS = "update_settings"
    VIEW_JOIN_CODE = "view_join_code"
    REGENERATE_JOIN_CODE = "regenerate_join_code"
    DELETE_GROUP = "delete_group"
    INVITE_MEMBER = "invite_member"
    APPROVE_MEMBER = "approve_member"
    REMOVE_MEMBER = "remove_member"
    CHANGE_ROLE = "change_role"


_MANAGERS = frozenset({MemberRole.OWNER, MemberRole.ADMIN})
_OWNER_ONLY = frozenset({MemberRole.OWNER})

# Which actor roles may attempt each action at all
GROUP_ACTION_ROLES: Dict[GroupAction, FrozenSet[MemberRole]] = {
    GroupAction.UPDATE_SETTINGS: _MANAGERS,
    GroupAction.VIEW_JOIN_CODE: _MANAGERS,
    GroupAction.REGENERATE_JOIN_CODE: _MANAGERS,
    GroupAction.DELETE_GROUP: _OWNER_ONLY,
    GroupAction.INVITE_MEMBER: _MANAGERS,
    GroupAction.APPROVE_MEMBER: _MANAGERS,
    GroupAction.REMOVE_MEMBER: _MANAGERS,
    GroupAction.CHANGE_ROLE: _MANAGERS,
}

# Which target roles each actor role may remove
REMOVABLE_ROLES: Dict[MemberRole, FrozenSet[MemberRole]] = {
    MemberRole.OWNER: frozenset({MemberRole.ADMIN, MemberRole.MEMBER}),
    MemberRole.ADMIN: frozenset({MemberRole.MEMBER}),
    MemberRole.MEMBER: frozenset(),
}


def can(actor_role: Optional[MemberRole], action: GroupAction) -> bool:
    """True if a member with actor_role may perform action. Non-members (None) may do nothing."""
    if actor_role is None:
        return False
    return actor_role in GROUP_ACTION_ROLES[action]


def ensure_can(actor_role: Optional[MemberRole], action: GroupAction, group_id: Optional[str] = None) -> None:
    if not can(actor_role, action):
        raise PermissionDeniedError(
            f"Role {_role_name(actor_role)} may not {action.value.replace('_', ' ')}",
            group_id=group_id,
        )


def can_view_join_code(actor_role: Optional[MemberRole]) -> bool:
    return can(actor_role, GroupAction.VIEW_JOIN_CODE)


def ensure_can_remove(
    actor_role: Optional[MemberRole],
    target_role: MemberRole,
    group_id: Optional[str] = None,
) -> None:
    """Owner removes admins and members, admins remove members only, nobody removes the owner."""
    ensure_can(actor_role, GroupAction.REMOVE_MEMBER, group_id)
    if target_role == MemberRole.OWNER:
        raise PermissionDeniedError("The group owner cannot be removed", group_id=group_id, field="user_id")
    if target_role not in REMOVABLE_ROLES[actor_role]:
        raise PermissionDeniedError(
            f"{_role_name(actor_role)} cannot remove {_role_name(target_role)}",
            group_id=group_id,
            field="user_id",
        )


def ensure_can_change_role(
    actor_role: Optional[MemberRole],
    target_role: MemberRole,
    new_role: MemberRole,
    group_id: Optional[str] = None,
    is_self: bool = False,
) -> None:
    """
    Check a role change before it is written.

    The owner's role can never change through this path, and that is checked
    before anything else. Ownership cannot be granted here either. After that
    only the owner may promote a member or demote an admin.
    """
    if target_role == MemberRole.OWNER:
        raise InvalidStateError("The owner's role cannot be changed", group_id=group_id, field="user_id")
    if new_role == MemberRole.OWNER:
        raise InvalidStateError("Ownership cannot be assigned by a role change", group_id=group_id, field="role")
    if is_self:
        raise PermissionDeniedError("Members cannot change their own role", group_id=group_id, field="user_id")
    ensure_can(actor_role, GroupAction.CHANGE_ROLE, group_id)
    if new_role == target_role:
        return
    if actor_role != MemberRole.OWNER:
        if new_role == MemberRole.ADMIN:
            raise PermissionDeniedError("Only the owner can promote members to admin", group_id=group_id)
        raise PermissionDeniedError("Admins cannot demote other admins", group_id=group_id)


def _role_name(role: Optional[MemberRole]) -> str:
    return role.value if role is not None else "non-member"
