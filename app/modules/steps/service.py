import logging
from datetime import date
from postgrest.exceptions import APIError
from supabase import Client
from app.config import settings
from app.core.exceptions import UpstreamError, ValidationError
from app.modules.steps.models import STEP_ENTRIES_TABLE
from app.modules.steps.schemas import StepTotal
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class StepService:
    """Aggregates step_entries into per-user totals for a date range."""

    def __init__(self, supabase: Client, page_size: Optional[int] = None):
        self.supabase = supabase
        self.page_size = page_size or settings.step_page_size

    def get_totals(self, user_ids: Iterable[str], start_date: date, end_date: date) -> List[StepTotal]:
        """Sum steps per user over [start_date, end_date]. Users with no entries get a zero total."""
        if end_date < start_date:
            raise ValidationError(
                f"Invalid date range: {start_date.isoformat()} is after {end_date.isoformat()}",
                field="end_date",
            )
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return []

        totals: Dict[str, StepTotal] = {uid: StepTotal(user_id=uid) for uid in user_ids}
        offset = 0
        while True:
            rows = self._fetch_page(user_ids, start_date, end_date, offset)
            for row in rows:
                total = totals.get(row["user_id"])
                if total is None:
                    continue
                total.total_steps += int(row.get("step_count") or 0)
                total.total_distance_meters += float(row.get("distance_meters") or 0.0)
            if len(rows) < self.page_size:
                break
            offset += self.page_size

        logger.debug(
            f"Aggregated steps for {len(user_ids)} users from {start_date} to {end_date}"
        )
        return list(totals.values())

    def _fetch_page(self, user_ids: List[str], start_date: date, end_date: date, offset: int) -> List[dict]:
        try:
            result = self.supabase.table(STEP_ENTRIES_TABLE)\
                .select("user_id, step_count, distance_meters")\
                .in_("user_id", user_ids)\
                .gte("date", start_date.isoformat())\
                .lte("date", end_date.isoformat())\
                .order("id")\
                .range(offset, offset + self.page_size - 1)\
                .execute()
        except APIError as e:
            logger.error(f"Error aggregating steps from {start_date} to {end_date}: {e.message}")
            raise UpstreamError("Failed to load step totals") from e
        return result.data or []
