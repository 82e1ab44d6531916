# studylog/store.py
from __future__ import annotations

import datetime as dt
import functools
import logging
from typing import Dict, List, Optional, Set

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import InvalidInput, StoreUnavailable
from .models import DailySummary, StudySession, Subject

logger = logging.getLogger(__name__)


def _store_call(func):
    """Re-raise database failures (integrity errors included) as StoreUnavailable."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as exc:
            logger.warning("store call %s failed: %s", func.__name__, exc)
            raise StoreUnavailable() from exc
    return wrapper


class DailySummaryStore:
    """
    Persisted per-(user, subject, day) aggregates.

    Every write is a single SQL statement (or a single insert guarded by the
    unique key), so concurrent sessions for the same key never lose updates
    and a row's fields always change together.
    """

    @_store_call
    def upsert_add(
        self,
        user_id: str,
        subject_id: str,
        day: dt.date,
        minutes: int,
        at: Optional[dt.datetime] = None,
    ) -> None:
        """Add one session of `minutes` to the row for (user, subject, day)."""
        now = at or timezone.now()
        if self._increment(user_id, subject_id, day, minutes, now):
            return
        try:
            with transaction.atomic():
                DailySummary.objects.create(
                    user_id=user_id,
                    subject_id=subject_id,
                    study_date=day,
                    total_study_time=minutes,
                    study_sessions_count=1,
                    first_study_time=now,
                    last_study_time=now,
                )
        except IntegrityError:
            # Another writer inserted the row between our update and insert.
            if not self._increment(user_id, subject_id, day, minutes, now):
                raise

    def _increment(self, user_id, subject_id, day, minutes, now) -> int:
        return DailySummary.objects.filter(
            user_id=user_id, subject_id=subject_id, study_date=day,
        ).update(
            total_study_time=F("total_study_time") + minutes,
            study_sessions_count=F("study_sessions_count") + 1,
            last_study_time=now,
            updated_at=timezone.now(),
        )

    @_store_call
    def overwrite(self, user_id: str, subject_id: str, day: dt.date, totals: Dict) -> None:
        """Insert-or-replace the row for the key with precomputed totals."""
        DailySummary.objects.update_or_create(
            user_id=user_id,
            subject_id=subject_id,
            study_date=day,
            defaults={
                "total_study_time": totals["total_time"],
                "study_sessions_count": totals["sessions_count"],
                "first_study_time": totals["first_time"],
                "last_study_time": totals["last_time"],
            },
        )

    @_store_call
    def query_range(
        self, user_id: str, subject_id: str, start: dt.date, end: dt.date
    ) -> List[DailySummary]:
        """Rows of one subject within [start, end], ascending by day."""
        if subject_id is None:
            raise InvalidInput("query_range needs a subject; fan out across subjects_with_data.")
        if start > end:
            return []
        qs = DailySummary.objects.filter(
            user_id=user_id,
            subject_id=subject_id,
            study_date__gte=start,
            study_date__lte=end,
        ).order_by("study_date")
        return list(qs)

    @_store_call
    def subjects_with_data(self, user_id: str) -> Set[str]:
        qs = (
            DailySummary.objects.filter(user_id=user_id)
            .exclude(total_study_time=0)
            .values_list("subject_id", flat=True)
            .distinct()
        )
        return set(qs)

    @_store_call
    def active_days(self, user_id: str, since: dt.date, until: dt.date) -> Set[dt.date]:
        """Days in [since, until] with a non-zero total across all subjects."""
        qs = (
            DailySummary.objects.filter(
                user_id=user_id, study_date__gte=since, study_date__lte=until,
            )
            .exclude(total_study_time=0)
            .values_list("study_date", flat=True)
            .distinct()
        )
        return set(qs)

    @_store_call
    def get_subject(self, user_id: str, subject_id: str) -> Optional[Subject]:
        return Subject.objects.filter(user_id=user_id, pk=subject_id).first()

    @_store_call
    def touch_subject(self, user_id: str, subject_id: str, at: Optional[dt.datetime] = None) -> int:
        """Bump access_count and last_accessed_at in one statement."""
        return Subject.objects.filter(user_id=user_id, pk=subject_id).update(
            access_count=F("access_count") + 1,
            last_accessed_at=at or timezone.now(),
        )


class RecordStore(DailySummaryStore):
    """DailySummaryStore plus the raw sessions and subjects it is derived from."""

    @_store_call
    def insert_session(
        self,
        user_id: str,
        subject_id: str,
        minutes: int,
        comment: Optional[str],
        at: dt.datetime,
    ) -> StudySession:
        return StudySession.objects.create(
            user_id=user_id,
            subject_id=subject_id,
            time_minutes=minutes,
            comment=comment,
            created_at=at,
        )

    @_store_call
    def sessions_for_user(self, user_id: str) -> List[StudySession]:
        """All raw sessions of a user, oldest first."""
        qs = StudySession.objects.filter(user_id=user_id).order_by("created_at", "id")
        return list(qs.only("subject", "time_minutes", "created_at"))

    @_store_call
    def users_with_sessions(self) -> List[str]:
        qs = StudySession.objects.values_list("user_id", flat=True).distinct().order_by("user_id")
        return list(qs)

    @_store_call
    def recent_sessions(self, user_id: str, limit: int) -> List[StudySession]:
        qs = (
            StudySession.objects.filter(user_id=user_id)
            .select_related("subject")
            .order_by("-created_at", "-id")
        )
        return list(qs[:limit])

    @_store_call
    def list_subjects(self, user_id: str) -> List[Subject]:
        return list(Subject.objects.filter(user_id=user_id).order_by("created_at", "id"))

    @_store_call
    def create_subject(self, user_id: str, name: str) -> Subject:
        return Subject.objects.create(user_id=user_id, name=name)
