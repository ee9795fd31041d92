import logging
from postgrest.exceptions import APIError
from supabase import Client
from app.core.exceptions import UpstreamError
from app.modules.users.models import USERS_TABLE
from app.modules.users.schemas import UserProfile
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


class UserService:
    """Read-only access to display profiles, always batched."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        """Get a single profile, or None if the user does not exist"""
        profiles = self.get_by_ids([user_id])
        return profiles[0] if profiles else None

    def get_by_ids(self, user_ids: Iterable[str]) -> List[UserProfile]:
        """Get display profiles for all user_ids in one query"""
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return []
        try:
            result = self.supabase.table(USERS_TABLE)\
                .select("id, display_name, avatar_url")\
                .in_("id", user_ids)\
                .execute()
        except APIError as e:
            logger.error(f"Error fetching {len(user_ids)} user profiles: {e.message}")
            raise UpstreamError("Failed to load user profiles") from e
        return [UserProfile(**row) for row in result.data]
