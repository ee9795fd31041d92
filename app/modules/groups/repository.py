import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from postgrest.exceptions import APIError
from supabase import Client

from app.core.exceptions import AlreadyMemberError, UpstreamError
from app.modules.groups.models import Group, GroupMembership, MemberRole

logger = logging.getLogger(__name__)

GROUPS_TABLE = "groups"
MEMBERSHIPS_TABLE = "group_memberships"

UNIQUE_VIOLATION = "23505"


def _run(query, action: str, group_id: Optional[str] = None):
    """Execute a PostgREST query, turning transport/API failures into UpstreamError."""
    try:
        return query.execute()
    except APIError as e:
        logger.error(f"Supabase error while trying to {action}: {e.message}")
        raise UpstreamError(f"Failed to {action}", group_id=group_id) from e


def escape_like(text: str) -> str:
    """Escape LIKE metacharacters so text matches literally"""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _first(result) -> Optional[Dict[str, Any]]:
    if result is None or not result.data:
        return None
    return result.data[0]


class GroupRepository:
    """Data access for groups and group_memberships over the Supabase client."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    # Groups

    def create_group(self, group_data: Dict[str, Any]) -> Group:
        result = _run(
            self.supabase.table(GROUPS_TABLE).insert(group_data),
            "create group",
        )
        row = _first(result)
        if row is None:
            raise UpstreamError("Failed to create group")
        return Group(**row)

    def get_group(self, group_id: str) -> Optional[Group]:
        result = _run(
            self.supabase.table(GROUPS_TABLE)
            .select("*")
            .eq("id", group_id)
            .limit(1),
            "read group",
            group_id,
        )
        row = _first(result)
        if row is None:
            return None
        return Group(**row, member_count=self.count_members(group_id))

    def get_group_by_join_code(self, join_code: str) -> Optional[Group]:
        result = _run(
            self.supabase.table(GROUPS_TABLE)
            .select("*")
            .eq("join_code", join_code)
            .limit(1),
            "look up join code",
        )
        row = _first(result)
        if row is None:
            return None
        return Group(**row, member_count=self.count_members(row["id"]))

    def join_code_exists(self, join_code: str) -> bool:
        result = _run(
            self.supabase.table(GROUPS_TABLE)
            .select("id")
            .eq("join_code", join_code)
            .limit(1),
            "check join code",
        )
        return _first(result) is not None

    def update_group(self, group_id: str, update_data: Dict[str, Any]) -> Optional[Group]:
        result = _run(
            self.supabase.table(GROUPS_TABLE)
            .update(update_data)
            .eq("id", group_id),
            "update group",
            group_id,
        )
        row = _first(result)
        if row is None:
            return None
        return Group(**row, member_count=self.count_members(group_id))

    def delete_group(self, group_id: str) -> bool:
        """Delete the group row; group_memberships rows go with it via on delete cascade"""
        result = _run(
            self.supabase.table(GROUPS_TABLE)
            .delete()
            .eq("id", group_id),
            "delete group",
            group_id,
        )
        return bool(result.data)

    def list_groups_by_ids(self, group_ids: List[str]) -> List[Group]:
        if not group_ids:
            return []
        result = _run(
            self.supabase.table(GROUPS_TABLE)
            .select("*")
            .in_("id", group_ids),
            "list groups",
        )
        counts = self.count_members_bulk(group_ids)
        return [Group(**row, member_count=counts.get(row["id"], 0)) for row in result.data]

    def search_public_groups(self, query: str, limit: int) -> List[Group]:
        result = _run(
            self.supabase.table(GROUPS_TABLE)
            .select("*")
            .eq("is_public", True)
            .ilike("name", f"%{escape_like(query)}%")
            .order("name")
            .limit(limit),
            "search groups",
        )
        counts = self.count_members_bulk([row["id"] for row in result.data])
        return [Group(**row, member_count=counts.get(row["id"], 0)) for row in result.data]

    # Memberships

    def count_members(self, group_id: str) -> int:
        result = _run(
            self.supabase.table(MEMBERSHIPS_TABLE)
            .select("id", count="exact")
            .eq("group_id", group_id),
            "count members",
            group_id,
        )
        if result.count is not None:
            return result.count
        return len(result.data)

    def count_members_bulk(self, group_ids: Iterable[str]) -> Dict[str, int]:
        group_ids = list(group_ids)
        if not group_ids:
            return {}
        result = _run(
            self.supabase.table(MEMBERSHIPS_TABLE)
            .select("group_id")
            .in_("group_id", group_ids),
            "count members",
        )
        return dict(Counter(row["group_id"] for row in result.data))

    def get_membership(self, group_id: str, user_id: str) -> Optional[GroupMembership]:
        result = _run(
            self.supabase.table(MEMBERSHIPS_TABLE)
            .select("*")
            .eq("group_id", group_id)
            .eq("user_id", user_id)
            .limit(1),
            "read membership",
            group_id,
        )
        row = _first(result)
        return GroupMembership(**row) if row else None

    def list_memberships(self, group_id: str) -> List[GroupMembership]:
        result = _run(
            self.supabase.table(MEMBERSHIPS_TABLE)
            .select("*")
            .eq("group_id", group_id)
            .order("joined_at"),
            "list members",
            group_id,
        )
        return [GroupMembership(**row) for row in result.data]

    def list_user_memberships(self, user_id: str) -> List[GroupMembership]:
        result = _run(
            self.supabase.table(MEMBERSHIPS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("joined_at"),
            "list user memberships",
        )
        return [GroupMembership(**row) for row in result.data]

    def add_member(self, group_id: str, user_id: str, role: MemberRole) -> GroupMembership:
        """Insert a membership row; the (group_id, user_id) unique constraint rejects duplicates."""
        try:
            result = self.supabase.table(MEMBERSHIPS_TABLE).insert({
                "group_id": group_id,
                "user_id": user_id,
                "role": role.value,
            }).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise AlreadyMemberError("User is already a member of this group", group_id=group_id) from e
            logger.error(f"Supabase error while adding member {user_id} to {group_id}: {e.message}")
            raise UpstreamError("Failed to add member", group_id=group_id) from e
        row = _first(result)
        if row is None:
            raise UpstreamError("Failed to add member", group_id=group_id)
        return GroupMembership(**row)

    def remove_member(self, group_id: str, user_id: str) -> bool:
        """Delete a non-owner membership. The owner's row only goes away with the group."""
        query = self.supabase.table(MEMBERSHIPS_TABLE)\
            .delete()\
            .eq("group_id", group_id)\
            .eq("user_id", user_id)\
            .neq("role", MemberRole.OWNER.value)
        result = _run(query, "remove member", group_id)
        return bool(result.data)

    def update_member_role(self, group_id: str, user_id: str, role: MemberRole) -> Optional[GroupMembership]:
        """Conditional update that never touches the owner's row."""
        result = _run(
            self.supabase.table(MEMBERSHIPS_TABLE)
            .update({"role": role.value})
            .eq("group_id", group_id)
            .eq("user_id", user_id)
            .neq("role", MemberRole.OWNER.value),
            "update member role",
            group_id,
        )
        row = _first(result)
        return GroupMembership(**row) if row else None
