# studylog/tests/test_facade.py
import datetime as dt

import pytest

from studylog.exceptions import InvalidInput
from studylog.facade import ChartFacade, RequestSequencer, default_window
from studylog.models import Subject
from studylog.services import AggregationEngine
from studylog.store import DailySummaryStore


@pytest.fixture(autouse=True)
def utc_study_days(settings):
    settings.STUDYLOG = {"TIME_ZONE": "UTC"}


class StubEngine:
    """Records which aggregation the facade dispatched to."""

    def __init__(self):
        self.calls = []

    def daily_summaries(self, user_id, start, end, subject_id=None):
        self.calls.append(("day", subject_id))
        return [{"date": "2024-05-02", "total_time": 30, "sessions_count": 1}]

    def weekly_summaries(self, user_id, start, end, subject_id=None):
        self.calls.append(("week", subject_id))
        return [{"week": "2024-W18", "total_time": 30, "sessions_count": 1, "dates": ["2024-05-02"]}]

    def monthly_summaries(self, user_id, start, end, subject_id=None):
        self.calls.append(("month", subject_id))
        return [{"month": "2024-05", "total_time": 30, "sessions_count": 1, "dates": ["2024-05-02"]}]


def test_get_series_dispatches_by_view_mode():
    engine = StubEngine()
    facade = ChartFacade(engine)
    start, end = dt.date(2024, 5, 1), dt.date(2024, 5, 31)

    assert facade.get_series("u", "day", start, end)["series"] == [{"key": "2024-05-02", "total_time": 30}]
    assert facade.get_series("u", "week", start, end, "s1")["series"] == [{"key": "2024-W18", "total_time": 30}]
    assert facade.get_series("u", "month", start, end)["series"] == [{"key": "2024-05", "total_time": 30}]
    assert engine.calls == [("day", None), ("week", "s1"), ("month", None)]


def test_unknown_view_mode_is_invalid_input():
    with pytest.raises(InvalidInput):
        ChartFacade(StubEngine()).get_series("u", "year", dt.date(2024, 1, 1), dt.date(2024, 12, 31))


def test_include_empty_fills_the_window():
    facade = ChartFacade(StubEngine())
    out = facade.get_series("u", "day", dt.date(2024, 5, 1), dt.date(2024, 5, 3), include_empty=True)
    assert out["series"] == [
        {"key": "2024-05-01", "total_time": 0},
        {"key": "2024-05-02", "total_time": 30},
        {"key": "2024-05-03", "total_time": 0},
    ]

    weeks = facade.get_series("u", "week", dt.date(2024, 4, 29), dt.date(2024, 5, 12), include_empty=True)
    assert [p["key"] for p in weeks["series"]] == ["2024-W18", "2024-W19"]

    months = facade.get_series("u", "month", dt.date(2024, 4, 1), dt.date(2024, 6, 30), include_empty=True)
    assert months["series"] == [
        {"key": "2024-04", "total_time": 0},
        {"key": "2024-05", "total_time": 30},
        {"key": "2024-06", "total_time": 0},
    ]


def test_superseded_request_is_marked_stale():
    class SlowEngine(StubEngine):
        started = False
        newer = None

        def daily_summaries(self, user_id, start, end, subject_id=None):
            if not self.started:
                self.started = True
                # A newer request starts and finishes while this one is in flight.
                self.newer = facade.get_series(user_id, "day", start, end, request_tag="second")
            return super().daily_summaries(user_id, start, end, subject_id)

    engine = SlowEngine()
    facade = ChartFacade(engine)
    older = facade.get_series("u", "day", dt.date(2024, 5, 1), dt.date(2024, 5, 31), request_tag="first")

    assert older["stale"] is True
    assert older["series"] == []
    assert older["request_tag"] == "first"
    assert engine.newer["stale"] is False
    assert engine.newer["series"] == [{"key": "2024-05-02", "total_time": 30}]


def test_sequencer_channels_and_users_are_independent():
    seq = RequestSequencer()
    a = seq.issue("u1", "chart")
    b = seq.issue("u2", "chart")
    c = seq.issue("u1", "subject-chart")
    assert seq.is_current("u1", "chart", a)
    assert seq.is_current("u2", "chart", b)
    assert seq.is_current("u1", "subject-chart", c)
    d = seq.issue("u1", "chart")
    assert not seq.is_current("u1", "chart", a)
    assert seq.is_current("u1", "chart", d)


def test_default_window():
    anchor = dt.date(2024, 2, 14)
    assert default_window("day", anchor) == (dt.date(2024, 2, 1), dt.date(2024, 2, 29))
    assert default_window("week", anchor) == (dt.date(2024, 2, 1), dt.date(2024, 2, 29))
    assert default_window("month", anchor) == (dt.date(2024, 1, 1), dt.date(2024, 12, 31))
    with pytest.raises(InvalidInput):
        default_window("hour", anchor)


@pytest.mark.django_db
def test_get_series_against_the_store():
    math = Subject.objects.create(user_id="u-chart", name="Math")
    store = DailySummaryStore()
    store.upsert_add("u-chart", math.pk, dt.date(2024, 1, 15), 30)
    store.upsert_add("u-chart", math.pk, dt.date(2024, 3, 2), 45)
    store.upsert_add("u-chart", math.pk, dt.date(2024, 3, 20), 15)

    facade = ChartFacade(AggregationEngine(store))
    out = facade.get_series("u-chart", "month", *default_window("month", dt.date(2024, 6, 1)))
    assert out["series"] == [{"key": "2024-01", "total_time": 30}, {"key": "2024-03", "total_time": 60}]
    assert out["start"] == "2024-01-01"
    assert out["end"] == "2024-12-31"
    assert out["stale"] is False
