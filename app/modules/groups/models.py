# Supabase tables: groups, group_memberships
# This file documents the expected database schema and the domain rows built from it
# Actual operations are handled via Supabase SDK in repository.py

"""
Expected Supabase table structure:

groups:
- id: uuid (primary key)
- name: text (not null, 2-50 chars)
- description: text (nullable)
- created_by_id: uuid (foreign key to auth.users.id, not null)
- is_public: boolean (not null, default: false)
- join_code: text (unique, nullable) - set iff is_public = false
- period_type: text (not null, default: 'weekly') - values: daily, weekly, monthly, custom
- max_members: integer (not null, default: 5, 1-50)
- created_at: timestamp (default: now())

group_memberships:
- id: uuid (primary key)
- group_id: uuid (foreign key to groups.id, on delete cascade)
- user_id: uuid (foreign key to auth.users.id, on delete cascade)
- role: text (not null, default: 'member') - values: owner, admin, member
- joined_at: timestamp (default: now())
- unique constraint on (group_id, user_id)
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class CompetitionPeriodType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"  # legacy rows only; rejected for new groups


class Group(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_by_id: str
    is_public: bool
    join_code: Optional[str] = None
    period_type: CompetitionPeriodType
    max_members: int = 5
    created_at: Optional[datetime] = None
    member_count: int = 0  # derived from group_memberships, never stored


class GroupMembership(BaseModel):
    id: Optional[str] = None
    group_id: str
    user_id: str
    role: MemberRole
    joined_at: Optional[datetime] = None


class CompetitionPeriod(BaseModel):
    """Inclusive date window a leaderboard is summed over."""

    start_date: date
    end_date: date
    period_type: CompetitionPeriodType

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: "CompetitionPeriod") -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date
