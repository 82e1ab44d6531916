# studylog/services.py
from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Dict, Iterable, List, Optional, Set

from django.db import transaction
from django.utils import timezone

from .calendar_keys import iso_week_key, local_date, month_key, parse_day
from .conf import app_setting
from .exceptions import InvalidInput, NotAuthenticated, PartialAggregationFailure, StoreUnavailable
from .models import StudySession, Subject
from .store import DailySummaryStore, RecordStore

logger = logging.getLogger(__name__)


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise NotAuthenticated()
    return str(user_id)


def count_streak(active_days: Set[dt.date], reference_day: dt.date, limit: int = 365) -> int:
    """
    Number of consecutive active days walking backward from reference_day.

    Stops at the first day without activity or after `limit` days:
    active {d, d-1, d-3} with reference d -> 2.
    """
    days = 0
    cur = reference_day
    while days < limit and cur in active_days:
        days += 1
        if cur == dt.date.min:
            break
        cur -= dt.timedelta(days=1)
    return days


def _fold(rows: Iterable[Dict], key_func: Callable[[dt.date], str], key_name: str) -> List[Dict]:
    """Group daily rows by a period key and sum their totals, ascending by key."""
    buckets: Dict[str, Dict] = {}
    for row in rows:
        key = key_func(parse_day(row["date"]))
        b = buckets.get(key)
        if b is None:
            b = buckets[key] = {key_name: key, "total_time": 0, "sessions_count": 0, "dates": []}
        b["total_time"] += row["total_time"]
        b["sessions_count"] += row["sessions_count"]
        b["dates"].append(row["date"])
    # "YYYY-Www" / "YYYY-MM" are zero-padded, so lexicographic order is chronological.
    out = [buckets[k] for k in sorted(buckets)]
    for b in out:
        b["dates"] = sorted(set(b["dates"]))
    return out


class AggregationEngine:
    """
    Read side: folds the daily summary store into daily, weekly and monthly
    series and computes streaks. Holds no state besides the injected store.
    """

    def __init__(self, store: Optional[DailySummaryStore] = None):
        self.store = store if store is not None else DailySummaryStore()

    def subjects_with_data(self, user_id: str) -> Set[str]:
        return self.store.subjects_with_data(_require_user(user_id))

    def daily_for_subject(
        self, user_id: str, subject_id: str, start: dt.date, end: dt.date
    ) -> List[Dict]:
        user_id = _require_user(user_id)
        if self.store.get_subject(user_id, subject_id) is None:
            raise InvalidInput("unknown subject.")
        rows = self.store.query_range(user_id, subject_id, start, end)
        return [
            {
                "date": r.study_date.isoformat(),
                "total_time": r.total_study_time,
                "sessions_count": r.study_sessions_count,
            }
            for r in rows
        ]

    def daily_all_subjects(self, user_id: str, start: dt.date, end: dt.date) -> List[Dict]:
        """
        Fan out over every subject with data and merge by day.

        Rules:
          1) Either every subject's rows are included or the call fails;
             a failed subject is never counted as zero.
          2) All subjects failing is StoreUnavailable, some failing is
             PartialAggregationFailure.
        """
        user_id = _require_user(user_id)
        if start > end:
            return []
        subject_ids = self.store.subjects_with_data(user_id)
        if not subject_ids:
            return []

        by_day: Dict[str, Dict] = {}
        failed: List[str] = []
        for subject_id in sorted(subject_ids):
            try:
                rows = self.store.query_range(user_id, subject_id, start, end)
            except StoreUnavailable:
                logger.warning("daily range query failed for user=%s subject=%s", user_id, subject_id)
                failed.append(subject_id)
                continue
            for r in rows:
                key = r.study_date.isoformat()
                b = by_day.setdefault(key, {"date": key, "total_time": 0, "sessions_count": 0})
                b["total_time"] += r.total_study_time
                b["sessions_count"] += r.study_sessions_count

        if failed:
            if len(failed) == len(subject_ids):
                raise StoreUnavailable()
            raise PartialAggregationFailure(failed)
        return [by_day[k] for k in sorted(by_day)]

    def daily_summaries(
        self, user_id: str, start: dt.date, end: dt.date, subject_id: Optional[str] = None
    ) -> List[Dict]:
        if subject_id is None:
            return self.daily_all_subjects(user_id, start, end)
        return self.daily_for_subject(user_id, subject_id, start, end)

    def weekly_summaries(
        self, user_id: str, start: dt.date, end: dt.date, subject_id: Optional[str] = None
    ) -> List[Dict]:
        return _fold(self.daily_summaries(user_id, start, end, subject_id), iso_week_key, "week")

    def monthly_summaries(
        self, user_id: str, start: dt.date, end: dt.date, subject_id: Optional[str] = None
    ) -> List[Dict]:
        return _fold(self.daily_summaries(user_id, start, end, subject_id), month_key, "month")

    def consecutive_day_streak(self, user_id: str, reference_day: Optional[dt.date] = None) -> int:
        user_id = _require_user(user_id)
        if reference_day is None:
            reference_day = local_date(timezone.now())
        limit = int(app_setting("STREAK_LIMIT_DAYS"))
        if limit <= 0:
            return 0
        if (reference_day - dt.date.min).days < limit - 1:
            since = dt.date.min
        else:
            since = reference_day - dt.timedelta(days=limit - 1)
        active = self.store.active_days(user_id, since, reference_day)
        return count_streak(active, reference_day, limit)


def order_subjects(subjects: List[Subject]) -> List[Subject]:
    """
    Subject picker order: the most recently accessed subject, then the most
    accessed one (when different), then the rest by last access, newest first.
    Subjects never accessed sort last; ties keep the input order.
    """
    if not subjects:
        return []
    epoch = dt.datetime.min.replace(tzinfo=dt.timezone.utc)

    def accessed(s: Subject) -> dt.datetime:
        return s.last_accessed_at or epoch

    latest = subjects[0]
    most = subjects[0]
    for s in subjects[1:]:
        if accessed(s) > accessed(latest):
            latest = s
        if (s.access_count or 0) > (most.access_count or 0):
            most = s

    head = [latest] if most.pk == latest.pk else [latest, most]
    head_ids = {s.pk for s in head}
    others = [s for s in subjects if s.pk not in head_ids]
    others.sort(key=accessed, reverse=True)
    return head + others


class SessionRecorder:
    """
    Write side: records study sessions and keeps the daily summary store and
    subject access counters in step with them.
    """

    def __init__(self, store: Optional[RecordStore] = None):
        self.store = store if store is not None else RecordStore()

    def record(
        self,
        user_id: str,
        subject_id: str,
        minutes,
        comment: Optional[str] = None,
        at: Optional[dt.datetime] = None,
    ) -> StudySession:
        """
        Persist one session and apply it to the daily summary.

        Input is validated before any write; the session insert, the summary
        increment and the subject access bump commit together or not at all.
        """
        user_id = _require_user(user_id)
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            raise InvalidInput("time_minutes must be an integer.")
        if minutes <= 0:
            raise InvalidInput("time_minutes must be > 0.")
        if comment is not None:
            comment = comment.strip() or None
        max_len = int(app_setting("MAX_COMMENT_LENGTH"))
        if comment is not None and len(comment) > max_len:
            raise InvalidInput(f"comment must be at most {max_len} characters.")
        if not subject_id or self.store.get_subject(user_id, subject_id) is None:
            raise InvalidInput("unknown subject.")

        now = at or timezone.now()
        if timezone.is_naive(now):
            now = timezone.make_aware(now, dt.timezone.utc)
        day = local_date(now)

        with transaction.atomic():
            session = self.store.insert_session(user_id, subject_id, minutes, comment, now)
            self.store.upsert_add(user_id, subject_id, day, minutes, at=now)
            self.store.touch_subject(user_id, subject_id, at=now)

        logger.info(
            "recorded session user=%s subject=%s minutes=%d day=%s",
            user_id, subject_id, minutes, day.isoformat(),
        )
        return session

    def recent(self, user_id: str, limit: Optional[int] = None) -> List[StudySession]:
        if limit is None:
            limit = int(app_setting("RECENT_SESSIONS_LIMIT"))
        if limit <= 0:
            return []
        return self.store.recent_sessions(_require_user(user_id), limit)

    def subjects(self, user_id: str) -> List[Subject]:
        return order_subjects(self.store.list_subjects(_require_user(user_id)))

    def create_subject(self, user_id: str, name: str) -> Subject:
        user_id = _require_user(user_id)
        name = (name or "").strip()
        if not name:
            raise InvalidInput("name is required.")
        if len(name) > 100:
            raise InvalidInput("name must be at most 100 characters.")
        return self.store.create_subject(user_id, name)
