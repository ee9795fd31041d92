"""
Shared fixtures: in-memory stand-ins for the Supabase-backed repository and
collaborators, so service and route tests run without a database.
"""

import itertools
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Dict, Iterable, List, Optional

import pytest

from app.core.exceptions import AlreadyMemberError, UpstreamError, ValidationError
from app.modules.groups.leaderboard import LeaderboardService
from app.modules.groups.membership import MembershipService
from app.modules.groups.models import Group, GroupMembership, MemberRole
from app.modules.groups.service import GroupService
from app.modules.steps.schemas import StepTotal
from app.modules.users.schemas import UserProfile

OWNER = "user-a"
ADMIN = "user-b"
MEMBER = "user-c"
OUTSIDER = "user-d"


class FakeGroupRepository:
    """Mirrors GroupRepository, including its owner-protecting conditional writes."""

    def __init__(self):
        self.groups: Dict[str, dict] = {}
        self.memberships: List[GroupMembership] = []
        self.fail_add_member = False
        self.fail_delete_group = False
        self._ids = itertools.count(1)
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _to_group(self, row: dict) -> Group:
        return Group(**row, member_count=self.count_members(row["id"]))

    def create_group(self, group_data):
        row = dict(group_data, id=f"group-{next(self._ids)}", created_at=self._tick())
        self.groups[row["id"]] = row
        return Group(**row)

    def get_group(self, group_id):
        row = self.groups.get(group_id)
        return self._to_group(row) if row else None

    def get_group_by_join_code(self, join_code):
        for row in self.groups.values():
            if row.get("join_code") == join_code:
                return self._to_group(row)
        return None

    def join_code_exists(self, join_code):
        return any(row.get("join_code") == join_code for row in self.groups.values())

    def update_group(self, group_id, update_data):
        row = self.groups.get(group_id)
        if row is None:
            return None
        row.update(update_data)
        return self._to_group(row)

    def delete_group(self, group_id):
        if self.fail_delete_group:
            raise UpstreamError("Failed to delete group", group_id=group_id)
        self.memberships = [m for m in self.memberships if m.group_id != group_id]
        return self.groups.pop(group_id, None) is not None

    def list_groups_by_ids(self, group_ids):
        return [self._to_group(self.groups[gid]) for gid in group_ids if gid in self.groups]

    def search_public_groups(self, query, limit):
        rows = [
            row for row in self.groups.values()
            if row["is_public"] and query.lower() in row["name"].lower()
        ]
        rows.sort(key=lambda row: row["name"])
        return [self._to_group(row) for row in rows[:limit]]

    def count_members(self, group_id):
        return sum(1 for m in self.memberships if m.group_id == group_id)

    def count_members_bulk(self, group_ids):
        wanted = set(group_ids)
        return dict(Counter(m.group_id for m in self.memberships if m.group_id in wanted))

    def get_membership(self, group_id, user_id) -> Optional[GroupMembership]:
        for m in self.memberships:
            if m.group_id == group_id and m.user_id == user_id:
                return m
        return None

    def list_memberships(self, group_id):
        return [m for m in self.memberships if m.group_id == group_id]

    def list_user_memberships(self, user_id):
        return [m for m in self.memberships if m.user_id == user_id]

    def add_member(self, group_id, user_id, role):
        if self.fail_add_member:
            raise UpstreamError("Failed to add member", group_id=group_id)
        if self.get_membership(group_id, user_id) is not None:
            raise AlreadyMemberError("User is already a member of this group", group_id=group_id)
        membership = GroupMembership(
            id=f"membership-{next(self._ids)}",
            group_id=group_id,
            user_id=user_id,
            role=role,
            joined_at=self._tick(),
        )
        self.memberships.append(membership)
        return membership

    def remove_member(self, group_id, user_id):
        membership = self.get_membership(group_id, user_id)
        if membership is None or membership.role == MemberRole.OWNER:
            return False
        self.memberships.remove(membership)
        return True

    def update_member_role(self, group_id, user_id, role):
        membership = self.get_membership(group_id, user_id)
        if membership is None or membership.role == MemberRole.OWNER:
            return None
        membership.role = role
        return membership

    def owners(self, group_id) -> List[str]:
        return [m.user_id for m in self.list_memberships(group_id) if m.role == MemberRole.OWNER]


class FakeUserService:
    def __init__(self, profiles: Iterable[UserProfile] = ()):
        self.profiles = {p.id: p for p in profiles}
        self.batch_calls = 0
        self.fail = False

    def get_by_id(self, user_id):
        profiles = self.get_by_ids([user_id])
        return profiles[0] if profiles else None

    def get_by_ids(self, user_ids):
        if self.fail:
            raise UpstreamError("Failed to load user profiles")
        self.batch_calls += 1
        return [self.profiles[uid] for uid in dict.fromkeys(user_ids) if uid in self.profiles]


class FakeStepService:
    """Step entries as (user_id, day, steps, meters) tuples, summed like StepService."""

    def __init__(self):
        self.entries: List[tuple] = []
        self.calls: List[tuple] = []
        self.fail = False

    def record(self, user_id: str, day: date, steps: int, meters: float = 0.0):
        self.entries.append((user_id, day, steps, meters))

    def get_totals(self, user_ids, start_date, end_date):
        if end_date < start_date:
            raise ValidationError("Invalid date range", field="end_date")
        self.calls.append((tuple(user_ids), start_date, end_date))
        if self.fail:
            raise UpstreamError("Failed to load step totals")
        totals = {uid: StepTotal(user_id=uid) for uid in user_ids}
        for user_id, day, steps, meters in self.entries:
            if user_id in totals and start_date <= day <= end_date:
                totals[user_id].total_steps += steps
                totals[user_id].total_distance_meters += meters
        return list(totals.values())


class FakeQuery:
    """Chainable stand-in for a postgrest request builder."""

    def __init__(self, results=None, error=None, count=None):
        self.results = list(results) if results is not None else [[]]
        self.error = error
        self.count = count
        self.calls = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return method

    def execute(self):
        if self.error is not None:
            raise self.error
        data = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        return SimpleNamespace(data=data, count=self.count)

    def called(self, name):
        return [args for call, args, _ in self.calls if call == name]


class FakeSupabase:
    def __init__(self, **tables: FakeQuery):
        self.tables = tables

    def table(self, name):
        return self.tables[name]


@pytest.fixture
def repository():
    return FakeGroupRepository()


@pytest.fixture
def users():
    return FakeUserService([
        UserProfile(id=OWNER, display_name="Alice"),
        UserProfile(id=ADMIN, display_name="Bob", avatar_url="https://example.com/bob.png"),
        UserProfile(id=MEMBER, display_name="Carol"),
        UserProfile(id=OUTSIDER, display_name="Dave"),
    ])


@pytest.fixture
def steps():
    return FakeStepService()


@pytest.fixture
def group_service(repository):
    return GroupService(repository)


@pytest.fixture
def membership_service(repository, group_service, users):
    return MembershipService(repository, group_service, users)


@pytest.fixture
def leaderboard_service(repository, group_service, steps, users):
    return LeaderboardService(repository, group_service, steps, users)


@pytest.fixture
def private_group(repository):
    """Weekly private group with an owner, an admin and a member."""
    group = repository.create_group({
        "name": "Morning Walkers",
        "description": None,
        "created_by_id": OWNER,
        "is_public": False,
        "join_code": "K7X2PQ9M",
        "period_type": "weekly",
        "max_members": 5,
    })
    repository.add_member(group.id, OWNER, MemberRole.OWNER)
    repository.add_member(group.id, ADMIN, MemberRole.ADMIN)
    repository.add_member(group.id, MEMBER, MemberRole.MEMBER)
    return repository.get_group(group.id)


@pytest.fixture
def public_group(repository):
    group = repository.create_group({
        "name": "City Striders",
        "description": "Open to everyone",
        "created_by_id": OWNER,
        "is_public": True,
        "join_code": None,
        "period_type": "daily",
        "max_members": 3,
    })
    repository.add_member(group.id, OWNER, MemberRole.OWNER)
    return repository.get_group(group.id)
