import logging
from typing import List, Optional

from app.core.exceptions import (
    AlreadyMemberError, InvalidStateError, NotFoundError,
    PermissionDeniedError, ValidationError
)
from app.modules.groups.models import Group, GroupMembership, MemberRole
from app.modules.groups.permissions import (
    GroupAction, ensure_can, ensure_can_change_role, ensure_can_remove
)
from app.modules.groups.repository import GroupRepository
from app.modules.groups.schemas import (
    GroupMemberResponse, GroupResponse, InviteMemberRequest
)
from app.modules.groups.service import GroupService, to_group_response
from app.modules.users.schemas import UserProfile
from app.modules.users.service import UserService

logger = logging.getLogger(__name__)


def to_member_response(membership: GroupMembership, profile: Optional[UserProfile]) -> GroupMemberResponse:
    return GroupMemberResponse(
        user_id=membership.user_id,
        display_name=profile.display_name if profile else "Unknown",
        avatar_url=profile.avatar_url if profile else None,
        role=membership.role,
        joined_at=membership.joined_at,
    )


class MembershipService:
    """Joining, leaving and managing the members of a group."""

    def __init__(self, repository: GroupRepository, groups: GroupService, users: UserService):
        self.repository = repository
        self.groups = groups
        self.users = users

    def _ensure_not_member(self, group_id: str, user_id: str) -> None:
        if self.repository.get_membership(group_id, user_id) is not None:
            raise AlreadyMemberError("User is already a member of this group", group_id=group_id)

    def _ensure_has_room(self, group: Group) -> None:
        if group.member_count >= group.max_members:
            raise InvalidStateError(
                f"Group is full ({group.max_members} members)", group_id=group.id, field="max_members"
            )

    def _get_target_membership(self, group_id: str, target_user_id: str) -> GroupMembership:
        membership = self.repository.get_membership(group_id, target_user_id)
        if membership is None:
            raise NotFoundError(f"Member not found: {target_user_id}", group_id=group_id, field="user_id")
        return membership

    def _admit(self, group: Group, user_id: str) -> GroupResponse:
        self._ensure_not_member(group.id, user_id)
        self._ensure_has_room(group)
        self.repository.add_member(group.id, user_id, MemberRole.MEMBER)
        logger.info(f"User {user_id} joined group {group.id}")
        refreshed = self.groups.get_group_or_raise(group.id)
        return to_group_response(refreshed, MemberRole.MEMBER)

    # Joining and leaving

    def join(self, user_id: str, group_id: str, join_code: Optional[str] = None) -> GroupResponse:
        """Join a public group, or a private one with its join code"""
        group = self.groups.get_group_or_raise(group_id)
        self._ensure_not_member(group_id, user_id)
        if not group.is_public and (not join_code or join_code != group.join_code):
            logger.info(f"User {user_id} gave an invalid join code for group {group_id}")
            raise PermissionDeniedError("Invalid join code", group_id=group_id, field="join_code")
        return self._admit(group, user_id)

    def join_by_code(self, user_id: str, code: str) -> GroupResponse:
        """Join whichever group owns this code"""
        code = (code or "").strip()
        if not code:
            raise ValidationError("Join code cannot be empty", field="code")
        group = self.repository.get_group_by_join_code(code)
        if group is None:
            raise NotFoundError("Invalid join code. Group not found.", field="code")
        return self._admit(group, user_id)

    def leave(self, user_id: str, group_id: str) -> None:
        """
        Leave a group.

        The owner may only leave when nobody else is left; the group goes with
        them so it never exists without an owner.
        """
        group = self.groups.get_group_or_raise(group_id)
        membership = self.repository.get_membership(group_id, user_id)
        if membership is None:
            raise NotFoundError("You are not a member of this group", group_id=group_id)

        if membership.role == MemberRole.OWNER:
            if self.repository.count_members(group_id) > 1:
                raise InvalidStateError(
                    "Group owner cannot leave while other members remain. Transfer ownership or delete the group.",
                    group_id=group_id,
                )
            self.repository.delete_group(group.id)
            logger.info(f"Owner {user_id} left group {group_id}; empty group deleted")
            return

        self.repository.remove_member(group_id, user_id)
        logger.info(f"User {user_id} left group {group_id}")

    # Managing other members

    def invite_member(self, user_id: str, group_id: str, invite: InviteMemberRequest) -> GroupMemberResponse:
        """Add another user directly as a member (owner or admin)"""
        group, membership = self.groups.load_for_actor(group_id, user_id)
        ensure_can(membership.role, GroupAction.INVITE_MEMBER, group_id)

        profile = self.users.get_by_id(invite.user_id)
        if profile is None:
            raise NotFoundError(f"User not found: {invite.user_id}", group_id=group_id, field="user_id")
        self._ensure_not_member(group_id, invite.user_id)
        self._ensure_has_room(group)

        created = self.repository.add_member(group_id, invite.user_id, MemberRole.MEMBER)
        logger.info(f"User {invite.user_id} invited to group {group_id} by {user_id}")
        return to_member_response(created, profile)

    def remove_member(self, user_id: str, group_id: str, target_user_id: str) -> None:
        """Remove another member; see permissions.REMOVABLE_ROLES for who may remove whom"""
        _, membership = self.groups.load_for_actor(group_id, user_id)
        ensure_can(membership.role, GroupAction.REMOVE_MEMBER, group_id)
        target = self._get_target_membership(group_id, target_user_id)
        ensure_can_remove(membership.role, target.role, group_id)

        if not self.repository.remove_member(group_id, target_user_id):
            raise NotFoundError(f"Member not found: {target_user_id}", group_id=group_id, field="user_id")
        logger.info(f"User {target_user_id} ({target.role.value}) removed from group {group_id} by {user_id}")

    def update_member_role(
        self,
        user_id: str,
        group_id: str,
        target_user_id: str,
        new_role: MemberRole,
    ) -> GroupMemberResponse:
        """Promote a member to admin or demote an admin (owner only)"""
        _, membership = self.groups.load_for_actor(group_id, user_id)
        target = self._get_target_membership(group_id, target_user_id)
        ensure_can_change_role(
            membership.role,
            target.role,
            new_role,
            group_id,
            is_self=target_user_id == user_id,
        )

        updated = self.repository.update_member_role(group_id, target_user_id, new_role)
        if updated is None:
            raise NotFoundError(f"Member not found: {target_user_id}", group_id=group_id, field="user_id")
        logger.info(
            f"User {target_user_id} in group {group_id} changed from {target.role.value} "
            f"to {new_role.value} by {user_id}"
        )
        return to_member_response(updated, self.users.get_by_id(target_user_id))

    def approve_member(self, user_id: str, group_id: str, target_user_id: str) -> GroupMemberResponse:
        """Confirm a membership (owner or admin). Memberships have no pending state yet, so this only validates."""
        _, membership = self.groups.load_for_actor(group_id, user_id)
        ensure_can(membership.role, GroupAction.APPROVE_MEMBER, group_id)
        target = self._get_target_membership(group_id, target_user_id)
        return to_member_response(target, self.users.get_by_id(target_user_id))

    def list_members(self, user_id: str, group_id: str) -> List[GroupMemberResponse]:
        """All members of a group the caller belongs to, with profiles fetched in one batch"""
        self.groups.load_for_actor(group_id, user_id)
        memberships = self.repository.list_memberships(group_id)
        if not memberships:
            return []
        profiles = {p.id: p for p in self.users.get_by_ids(m.user_id for m in memberships)}
        return [to_member_response(m, profiles.get(m.user_id)) for m in memberships]
