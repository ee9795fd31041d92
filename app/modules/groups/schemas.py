from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime

from app.modules.groups.models import CompetitionPeriodType, MemberRole


class GroupCreate(BaseModel):
    name: str
    description: Optional[str] = None
    is_public: bool = False
    period_type: CompetitionPeriodType = CompetitionPeriodType.WEEKLY
    max_members: Optional[int] = None  # defaults to settings.default_max_members


class GroupUpdate(BaseModel):
    name: str
    description: Optional[str] = None
    is_public: bool
    max_members: Optional[int] = None  # unchanged when omitted


class GroupResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    is_public: bool
    period_type: CompetitionPeriodType
    member_count: int
    max_members: int
    join_code: Optional[str] = None  # owners and admins only
    role: MemberRole
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupListResponse(BaseModel):
    groups: List[GroupResponse]


class GroupSearchResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    member_count: int
    max_members: int
    is_public: bool


class JoinGroupRequest(BaseModel):
    join_code: Optional[str] = None


class JoinByCodeRequest(BaseModel):
    code: str


class InviteMemberRequest(BaseModel):
    user_id: str


class UpdateMemberRoleRequest(BaseModel):
    role: MemberRole


class GroupMemberResponse(BaseModel):
    user_id: str
    display_name: str
    avatar_url: Optional[str] = None
    role: MemberRole
    joined_at: Optional[datetime] = None


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    display_name: str
    avatar_url: Optional[str] = None
    total_steps: int
    total_distance_meters: float = 0.0
    rank_change: int = 0  # positive = moved up since the previous period
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    group_id: str
    period_type: CompetitionPeriodType
    period_start: date
    period_end: date
    entries: List[LeaderboardEntry] = Field(default_factory=list)
