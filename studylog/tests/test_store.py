# studylog/tests/test_store.py
import datetime as dt

import pytest
from django.db import OperationalError

from studylog.exceptions import InvalidInput, StoreUnavailable
from studylog.models import DailySummary, Subject
from studylog.store import DailySummaryStore

DAY = dt.date(2024, 5, 1)


def _subject(user_id, name="Math"):
    return Subject.objects.create(user_id=user_id, name=name)


def _at(hour, minute=0):
    return dt.datetime(2024, 5, 1, hour, minute, tzinfo=dt.timezone.utc)


@pytest.mark.django_db
def test_upsert_add_is_additive():
    subj = _subject("u-add")
    store = DailySummaryStore()
    minutes = [30, 15, 45, 5]
    for i, m in enumerate(minutes):
        store.upsert_add("u-add", subj.pk, DAY, m, at=_at(1 + i))

    row = DailySummary.objects.get(user_id="u-add", subject=subj, study_date=DAY)
    assert row.total_study_time == sum(minutes)
    assert row.study_sessions_count == len(minutes)
    assert row.first_study_time == _at(1)
    assert row.last_study_time == _at(4)


@pytest.mark.django_db
def test_concurrent_insert_race_keeps_both_increments(monkeypatch):
    """Both writers see no row; the one losing the insert must still add its minutes."""
    subj = _subject("u-race")
    store = DailySummaryStore()
    other = DailySummaryStore()
    real_increment = store._increment
    state = {"raced": False}

    def racing_increment(*args):
        updated = real_increment(*args)
        if not state["raced"]:
            state["raced"] = True
            other.upsert_add("u-race", subj.pk, DAY, 20, at=_at(9))
        return updated

    monkeypatch.setattr(store, "_increment", racing_increment)
    store.upsert_add("u-race", subj.pk, DAY, 15, at=_at(10))

    row = DailySummary.objects.get(user_id="u-race", subject=subj, study_date=DAY)
    assert row.total_study_time == 35
    assert row.study_sessions_count == 2
    assert row.first_study_time == _at(9)


@pytest.mark.django_db
def test_stale_reads_do_not_lose_updates():
    """Two handles holding an outdated view of the row still add up."""
    subj = _subject("u-stale")
    a, b = DailySummaryStore(), DailySummaryStore()
    a.upsert_add("u-stale", subj.pk, DAY, 20)
    snapshot = DailySummary.objects.get(user_id="u-stale", study_date=DAY)
    b.upsert_add("u-stale", subj.pk, DAY, 15)
    a.upsert_add("u-stale", subj.pk, DAY, 10)

    snapshot.refresh_from_db()
    assert snapshot.total_study_time == 45
    assert snapshot.study_sessions_count == 3


@pytest.mark.django_db
def test_query_range_is_ordered_scoped_and_inclusive():
    subj = _subject("u-range")
    foreign = _subject("u-other")
    store = DailySummaryStore()
    for day in (dt.date(2024, 5, 3), dt.date(2024, 5, 1), dt.date(2024, 5, 2), dt.date(2024, 5, 6)):
        store.upsert_add("u-range", subj.pk, day, 10)
    store.upsert_add("u-other", foreign.pk, dt.date(2024, 5, 2), 99)

    rows = store.query_range("u-range", subj.pk, dt.date(2024, 5, 1), dt.date(2024, 5, 3))
    assert [r.study_date for r in rows] == [dt.date(2024, 5, 1), dt.date(2024, 5, 2), dt.date(2024, 5, 3)]
    assert store.query_range("u-range", foreign.pk, dt.date(2024, 5, 1), dt.date(2024, 5, 31)) == []
    assert store.query_range("u-range", subj.pk, dt.date(2024, 5, 3), dt.date(2024, 5, 1)) == []


@pytest.mark.django_db
def test_query_range_requires_a_subject():
    with pytest.raises(InvalidInput):
        DailySummaryStore().query_range("u", None, DAY, DAY)


@pytest.mark.django_db
def test_subjects_with_data_skips_zero_totals():
    math = _subject("u-data", "Math")
    art = _subject("u-data", "Art")
    _subject("u-data", "Unused")
    store = DailySummaryStore()
    store.upsert_add("u-data", math.pk, DAY, 30)
    store.overwrite("u-data", art.pk, DAY, {
        "total_time": 0, "sessions_count": 0, "first_time": _at(1), "last_time": _at(1),
    })
    assert store.subjects_with_data("u-data") == {math.pk}
    assert store.subjects_with_data("nobody") == set()


@pytest.mark.django_db
def test_overwrite_replaces_instead_of_adding():
    subj = _subject("u-over")
    store = DailySummaryStore()
    totals = {"total_time": 50, "sessions_count": 2, "first_time": _at(1), "last_time": _at(2)}
    store.overwrite("u-over", subj.pk, DAY, totals)
    store.overwrite("u-over", subj.pk, DAY, totals)
    row = DailySummary.objects.get(user_id="u-over", study_date=DAY)
    assert (row.total_study_time, row.study_sessions_count) == (50, 2)
    assert DailySummary.objects.filter(user_id="u-over").count() == 1


@pytest.mark.django_db
def test_touch_subject_increments_access():
    subj = _subject("u-touch")
    store = DailySummaryStore()
    store.touch_subject("u-touch", subj.pk, at=_at(3))
    store.touch_subject("u-touch", subj.pk, at=_at(5))
    assert store.touch_subject("someone-else", subj.pk) == 0
    subj.refresh_from_db()
    assert subj.access_count == 2
    assert subj.last_accessed_at == _at(5)


@pytest.mark.django_db
def test_database_errors_become_store_unavailable(monkeypatch):
    def boom(*args, **kwargs):
        raise OperationalError("database is locked")

    monkeypatch.setattr(DailySummary.objects, "filter", boom)
    with pytest.raises(StoreUnavailable):
        DailySummaryStore().query_range("u", "s", DAY, DAY)


@pytest.mark.django_db
def test_lost_insert_race_without_row_is_store_unavailable(monkeypatch):
    """Insert hits the unique key but the retried increment still finds nothing."""
    subj = _subject("u-ghost")
    store = DailySummaryStore()
    store.upsert_add("u-ghost", subj.pk, DAY, 10)
    monkeypatch.setattr(store, "_increment", lambda *args: 0)

    with pytest.raises(StoreUnavailable):
        store.upsert_add("u-ghost", subj.pk, DAY, 5)
    row = DailySummary.objects.get(user_id="u-ghost", study_date=DAY)
    assert (row.total_study_time, row.study_sessions_count) == (10, 1)
