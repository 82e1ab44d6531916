# studylog/facade.py
from __future__ import annotations

import calendar
import datetime as dt
import itertools
import threading
from typing import Dict, List, Optional, Tuple

from .calendar_keys import KEY_FUNCS, iter_days
from .exceptions import InvalidInput
from .services import AggregationEngine

VIEW_MODES = ("day", "week", "month")


def default_window(view_mode: str, anchor: dt.date) -> Tuple[dt.date, dt.date]:
    """The anchor's month for day/week views, the anchor's year for the month view."""
    if view_mode not in VIEW_MODES:
        raise InvalidInput("view must be day|week|month.")
    if view_mode == "month":
        return dt.date(anchor.year, 1, 1), dt.date(anchor.year, 12, 31)
    last = calendar.monthrange(anchor.year, anchor.month)[1]
    return anchor.replace(day=1), anchor.replace(day=last)


def _window_keys(view_mode: str, start: dt.date, end: dt.date) -> List[str]:
    """Every period key touched by [start, end], in order."""
    key_func = KEY_FUNCS[view_mode]
    keys: List[str] = []
    for d in iter_days(start, end):
        k = key_func(d)
        if not keys or keys[-1] != k:
            keys.append(k)
    return keys


class RequestSequencer:
    """
    Hands out increasing tickets per (user, channel).

    A response is current only if no newer ticket was issued on its channel
    before it completed, so a slow older query never replaces a newer one.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self._latest: Dict[Tuple[str, str], int] = {}

    def issue(self, user_id: str, channel: str) -> int:
        with self._lock:
            ticket = next(self._counter)
            self._latest[(user_id, channel)] = ticket
            return ticket

    def is_current(self, user_id: str, channel: str, ticket: int) -> bool:
        with self._lock:
            return self._latest.get((user_id, channel)) == ticket


class ChartFacade:
    """Routes chart requests to the aggregation engine and shapes the series."""

    def __init__(self, engine: Optional[AggregationEngine] = None, sequencer: Optional[RequestSequencer] = None):
        self.engine = engine if engine is not None else AggregationEngine()
        self.sequencer = sequencer if sequencer is not None else RequestSequencer()

    def get_series(
        self,
        user_id: str,
        view_mode: str,
        start: dt.date,
        end: dt.date,
        subject_id: Optional[str] = None,
        *,
        include_empty: bool = False,
        request_tag: Optional[str] = None,
        channel: str = "chart",
    ) -> Dict:
        if view_mode not in VIEW_MODES:
            raise InvalidInput("view must be day|week|month.")

        ticket = self.sequencer.issue(str(user_id), channel)

        if view_mode == "day":
            rows = self.engine.daily_summaries(user_id, start, end, subject_id)
            key_name = "date"
        elif view_mode == "week":
            rows = self.engine.weekly_summaries(user_id, start, end, subject_id)
            key_name = "week"
        else:
            rows = self.engine.monthly_summaries(user_id, start, end, subject_id)
            key_name = "month"

        series = [{"key": r[key_name], "total_time": r["total_time"]} for r in rows]
        if include_empty:
            totals = {p["key"]: p["total_time"] for p in series}
            series = [{"key": k, "total_time": totals.get(k, 0)} for k in _window_keys(view_mode, start, end)]

        stale = not self.sequencer.is_current(str(user_id), channel, ticket)
        return {
            "view_mode": view_mode,
            "start": start.isoformat(),
            "end": end.isoformat(),
            "subject_id": subject_id,
            "series": [] if stale else series,
            "request_tag": request_tag,
            "stale": stale,
        }
