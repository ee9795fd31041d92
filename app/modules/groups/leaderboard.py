import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Dict, Iterable, List, Optional

from app.config import settings
from app.core.exceptions import InvariantViolationError
from app.modules.groups import periods
from app.modules.groups.repository import GroupRepository
from app.modules.groups.schemas import LeaderboardEntry, LeaderboardResponse
from app.modules.groups.service import GroupService
from app.modules.steps.schemas import StepTotal
from app.modules.steps.service import StepService
from app.modules.users.service import UserService

logger = logging.getLogger(__name__)


def rank_totals(totals: Iterable[StepTotal], include_zero: bool = True) -> List[StepTotal]:
    """
    Order totals for ranking: most steps first, ties broken by user_id.

    Position i in the returned list is rank i + 1, so ranks are always 1..N
    with no gaps or shared places.
    """
    ordered = sorted(totals, key=lambda t: (-t.total_steps, t.user_id))
    if not include_zero:
        ordered = [t for t in ordered if t.total_steps > 0]
    return ordered


def rank_map(totals: Iterable[StepTotal], include_zero: bool = True) -> Dict[str, int]:
    return {t.user_id: rank for rank, t in enumerate(rank_totals(totals, include_zero), start=1)}


class LeaderboardService:
    """Builds a group's leaderboard for its current competition period."""

    def __init__(
        self,
        repository: GroupRepository,
        groups: GroupService,
        steps: StepService,
        users: UserService,
    ):
        self.repository = repository
        self.groups = groups
        self.steps = steps
        self.users = users

    def get_leaderboard(
        self,
        user_id: str,
        group_id: str,
        reference_date: Optional[date] = None,
    ) -> LeaderboardResponse:
        """Current-period ranking with movement against the previous period (members only)"""
        group, _ = self.groups.load_for_actor(group_id, user_id)

        reference_date = reference_date or periods.today()
        current = periods.compute_period(group.period_type, reference_date)
        previous = periods.compute_previous_period(group.period_type, current.start_date)
        if not current.contains(reference_date) or previous.overlaps(current):
            raise InvariantViolationError(
                f"Competition windows {previous.start_date}..{previous.end_date} and "
                f"{current.start_date}..{current.end_date} are inconsistent for {reference_date}",
                group_id=group_id,
                field="period_type",
            )

        member_ids = [m.user_id for m in self.repository.list_memberships(group_id)]
        if not member_ids:
            return LeaderboardResponse(
                group_id=group_id,
                period_type=group.period_type,
                period_start=current.start_date,
                period_end=current.end_date,
            )

        # Independent reads; any failure fails the whole request
        with ThreadPoolExecutor(max_workers=settings.leaderboard_fetch_workers) as pool:
            current_future = pool.submit(self.steps.get_totals, member_ids, current.start_date, current.end_date)
            previous_future = pool.submit(self.steps.get_totals, member_ids, previous.start_date, previous.end_date)
            profiles_future = pool.submit(self.users.get_by_ids, member_ids)
            current_totals = current_future.result()
            previous_totals = previous_future.result()
            profiles = {p.id: p for p in profiles_future.result()}

        # Members missing from the feed walked nothing this period
        members = set(member_ids)
        current_totals = [t for t in current_totals if t.user_id in members]
        seen = {t.user_id for t in current_totals}
        current_totals += [
            StepTotal(user_id=uid) for uid in member_ids if uid not in seen
        ]
        previous_ranks = rank_map(previous_totals, include_zero=False)

        entries = []
        for rank, total in enumerate(rank_totals(current_totals), start=1):
            profile = profiles.get(total.user_id)
            previous_rank = previous_ranks.get(total.user_id)
            entries.append(LeaderboardEntry(
                rank=rank,
                user_id=total.user_id,
                display_name=profile.display_name if profile else "Unknown",
                avatar_url=profile.avatar_url if profile else None,
                total_steps=total.total_steps,
                total_distance_meters=total.total_distance_meters,
                rank_change=previous_rank - rank if previous_rank is not None else 0,
                is_current_user=total.user_id == user_id,
            ))

        logger.debug(
            f"Leaderboard for group {group_id}: {len(entries)} entries, "
            f"{current.start_date}..{current.end_date} vs {previous.start_date}..{previous.end_date}"
        )
        return LeaderboardResponse(
            group_id=group_id,
            period_type=group.period_type,
            period_start=current.start_date,
            period_end=current.end_date,
            entries=entries,
        )
