import logging
from typing import List, Optional, Tuple

from app.config import settings
from app.core.exceptions import (
    GroupEngineError, InvalidStateError, InvariantViolationError,
    NotFoundError, PermissionDeniedError, ValidationError
)
from app.modules.groups.join_codes import generate_join_code
from app.modules.groups.models import CompetitionPeriodType, Group, GroupMembership, MemberRole
from app.modules.groups.permissions import GroupAction, can_view_join_code, ensure_can
from app.modules.groups.repository import GroupRepository
from app.modules.groups.schemas import (
    GroupCreate, GroupUpdate, GroupResponse, GroupListResponse, GroupSearchResponse
)

logger = logging.getLogger(__name__)

MIN_GROUP_NAME_LENGTH = 2
MAX_GROUP_NAME_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500
MIN_MAX_MEMBERS = 1
MAX_MAX_MEMBERS = 50
MAX_SEARCH_LIMIT = 100


def validate_name(name: Optional[str]) -> str:
    """Return the trimmed name or raise ValidationError"""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Group name cannot be empty", field="name")
    if not MIN_GROUP_NAME_LENGTH <= len(name) <= MAX_GROUP_NAME_LENGTH:
        raise ValidationError(
            f"Group name must be between {MIN_GROUP_NAME_LENGTH} and {MAX_GROUP_NAME_LENGTH} characters",
            field="name",
        )
    return name


def validate_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    description = description.strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters", field="description"
        )
    return description or None


def validate_max_members(max_members: int) -> int:
    if not MIN_MAX_MEMBERS <= max_members <= MAX_MAX_MEMBERS:
        raise ValidationError(
            f"max_members must be between {MIN_MAX_MEMBERS} and {MAX_MAX_MEMBERS}", field="max_members"
        )
    return max_members


def to_group_response(group: Group, role: MemberRole) -> GroupResponse:
    return GroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        is_public=group.is_public,
        period_type=group.period_type,
        member_count=group.member_count,
        max_members=group.max_members,
        join_code=group.join_code if can_view_join_code(role) else None,
        role=role,
        created_at=group.created_at,
    )


class GroupService:
    """Group lifecycle: create, read, update, delete and join-code management."""

    def __init__(self, repository: GroupRepository):
        self.repository = repository

    # Lookups shared with the membership and leaderboard services

    def get_group_or_raise(self, group_id: str) -> Group:
        group = self.repository.get_group(group_id)
        if group is None:
            logger.info(f"Group {group_id} not found")
            raise NotFoundError(f"Group not found: {group_id}", group_id=group_id)
        return group

    def get_actor_membership(self, group_id: str, user_id: str) -> GroupMembership:
        """The caller's own membership; absence is a permission problem, not a 404"""
        membership = self.repository.get_membership(group_id, user_id)
        if membership is None:
            raise PermissionDeniedError("You are not a member of this group", group_id=group_id)
        return membership

    def load_for_actor(self, group_id: str, user_id: str) -> Tuple[Group, GroupMembership]:
        group = self.get_group_or_raise(group_id)
        return group, self.get_actor_membership(group_id, user_id)

    def new_join_code(self) -> str:
        """Generate a join code not used by any other group"""
        for _ in range(settings.join_code_max_attempts):
            code = generate_join_code()
            if not self.repository.join_code_exists(code):
                return code
            logger.warning("Join code collision, regenerating")
        raise InvariantViolationError(
            f"Could not generate a unique join code after {settings.join_code_max_attempts} attempts",
            field="join_code",
        )

    # Operations

    def create_group(self, user_id: str, group_data: GroupCreate) -> GroupResponse:
        """Create a group with the caller as its owner"""
        name = validate_name(group_data.name)
        description = validate_description(group_data.description)
        if group_data.period_type == CompetitionPeriodType.CUSTOM:
            raise ValidationError("Custom competition periods are not supported", field="period_type")
        max_members = validate_max_members(
            group_data.max_members if group_data.max_members is not None else settings.default_max_members
        )

        group = self.repository.create_group({
            "name": name,
            "description": description,
            "created_by_id": user_id,
            "is_public": group_data.is_public,
            "join_code": None if group_data.is_public else self.new_join_code(),
            "period_type": group_data.period_type.value,
            "max_members": max_members,
        })

        try:
            self.repository.add_member(group.id, user_id, MemberRole.OWNER)
        except GroupEngineError as e:
            logger.error(f"Failed to add owner {user_id} to new group {group.id}, rolling back: {e}")
            try:
                self.repository.delete_group(group.id)
            except GroupEngineError as rollback_error:
                logger.exception(f"Rollback of ownerless group {group.id} failed")
                raise InvariantViolationError(
                    "Group was left without an owner and could not be removed", group_id=group.id
                ) from rollback_error
            raise InvariantViolationError(
                "Group could not be created with an owner", group_id=group.id
            ) from e

        logger.info(f"Group {group.id} created by {user_id} (public={group.is_public}, period={group.period_type.value})")
        group.member_count = 1
        return to_group_response(group, MemberRole.OWNER)

    def get_group(self, user_id: str, group_id: str) -> GroupResponse:
        """Get a group the caller belongs to"""
        group, membership = self.load_for_actor(group_id, user_id)
        return to_group_response(group, membership.role)

    def list_user_groups(self, user_id: str) -> GroupListResponse:
        """All groups the caller belongs to, with their role in each"""
        memberships = self.repository.list_user_memberships(user_id)
        roles = {m.group_id: m.role for m in memberships}
        groups = {g.id: g for g in self.repository.list_groups_by_ids(list(roles))}
        return GroupListResponse(groups=[
            to_group_response(groups[m.group_id], m.role)
            for m in memberships
            if m.group_id in groups
        ])

    def update_group(self, user_id: str, group_id: str, group_data: GroupUpdate) -> GroupResponse:
        """Update name, description, visibility and capacity (owner or admin)"""
        name = validate_name(group_data.name)
        description = validate_description(group_data.description)
        if group_data.max_members is not None:
            validate_max_members(group_data.max_members)

        group, membership = self.load_for_actor(group_id, user_id)
        ensure_can(membership.role, GroupAction.UPDATE_SETTINGS, group_id)

        update_data = {
            "name": name,
            "description": description,
            "is_public": group_data.is_public,
        }
        if group_data.max_members is not None:
            if group_data.max_members < group.member_count:
                raise InvalidStateError(
                    f"Group already has {group.member_count} members", group_id=group_id, field="max_members"
                )
            update_data["max_members"] = group_data.max_members

        # Visibility and join code always change together
        if group_data.is_public:
            update_data["join_code"] = None
        elif not group.join_code:
            update_data["join_code"] = self.new_join_code()

        updated = self.repository.update_group(group_id, update_data)
        if updated is None:
            raise NotFoundError(f"Group not found: {group_id}", group_id=group_id)
        logger.info(f"Group {group_id} updated by {user_id}")
        return to_group_response(updated, membership.role)

    def delete_group(self, user_id: str, group_id: str) -> bool:
        """Delete a group and all its memberships (owner only)"""
        _, membership = self.load_for_actor(group_id, user_id)
        ensure_can(membership.role, GroupAction.DELETE_GROUP, group_id)
        deleted = self.repository.delete_group(group_id)
        logger.info(f"Group {group_id} deleted by {user_id}")
        return deleted

    def regenerate_join_code(self, user_id: str, group_id: str) -> GroupResponse:
        """Replace a private group's join code (owner or admin)"""
        group, membership = self.load_for_actor(group_id, user_id)
        ensure_can(membership.role, GroupAction.REGENERATE_JOIN_CODE, group_id)
        if group.is_public:
            raise InvalidStateError("Public groups do not have join codes", group_id=group_id, field="join_code")

        updated = self.repository.update_group(group_id, {"join_code": self.new_join_code()})
        if updated is None:
            raise NotFoundError(f"Group not found: {group_id}", group_id=group_id)
        logger.info(f"Join code regenerated for group {group_id} by {user_id}")
        return to_group_response(updated, membership.role)

    def search_public_groups(self, query: str, limit: Optional[int] = None) -> List[GroupSearchResponse]:
        """Public groups whose name contains query (case-insensitive)"""
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query cannot be empty", field="query")
        if limit is None:
            limit = settings.search_default_limit
        if limit <= 0:
            raise ValidationError("Limit must be positive", field="limit")
        limit = min(limit, MAX_SEARCH_LIMIT)

        groups = self.repository.search_public_groups(query, limit)
        return [
            GroupSearchResponse(
                id=g.id,
                name=g.name,
                description=g.description,
                member_count=g.member_count,
                max_members=g.max_members,
                is_public=g.is_public,
            )
            for g in groups
        ]
