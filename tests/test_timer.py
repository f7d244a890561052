from datetime import date, datetime

import pytest
from sqlalchemy.exc import OperationalError

from freelance_tracker.config import MANUAL_ENTRY_HOUR
from freelance_tracker.errors import NotFoundError, StoreUnavailable, ValidationError
from freelance_tracker.utils import to_ms

from .conftest import HOUR, START


def test_start_and_stop(store, timer, clock):
    project = store.create_project("Website", hourly_rate=50)

    active = timer.start(project.id)
    assert (active.project_id, active.start_time) == (project.id, START)

    clock.advance(5_400_000)
    assert timer.elapsed() == 5_400_000
    entry = timer.stop()

    assert entry.project_id == project.id
    assert entry.start_time == START
    assert entry.end_time == START + 5_400_000
    assert entry.duration == 5_400_000
    assert entry.is_manual is False
    assert timer.active() is None
    assert timer.elapsed() == 0


def test_stop_when_idle_is_noop(store, timer):
    store.create_project("Website")
    assert timer.stop() is None
    assert store.list_time_entries() == []


def test_starting_second_timer_stops_the_first(store, timer, clock):
    a = store.create_project("A")
    b = store.create_project("B")

    timer.start(a.id)
    clock.advance(HOUR)
    timer.start(b.id)

    entries = store.list_time_entries()
    assert len(entries) == 1
    assert (entries[0].project_id, entries[0].duration) == (a.id, HOUR)
    active = timer.active()
    assert (active.project_id, active.start_time) == (b.id, START + HOUR)


def test_start_unknown_project(store, timer):
    with pytest.raises(NotFoundError):
        timer.start(42)
    assert timer.active() is None


def test_start_unknown_project_keeps_running_timer(store, timer):
    a = store.create_project("A")
    timer.start(a.id)
    with pytest.raises(NotFoundError):
        timer.start(42)
    assert timer.active().project_id == a.id


def test_clear_discards_without_entry(store, timer, clock):
    project = store.create_project("Website")
    timer.start(project.id)
    clock.advance(HOUR)
    timer.clear()
    assert timer.active() is None
    assert store.list_time_entries() == []


def test_delete_project_with_running_timer(store, timer, clock):
    a = store.create_project("A")
    b = store.create_project("B")
    store.create_entry(b.id, START - HOUR, duration=HOUR)
    timer.start(a.id)
    clock.advance(HOUR)

    timer.delete_project(a.id)

    assert timer.active() is None
    assert [e.project_id for e in store.list_time_entries()] == [b.id]


def test_delete_other_project_keeps_timer(store, timer):
    a = store.create_project("A")
    b = store.create_project("B")
    timer.start(a.id)
    timer.delete_project(b.id)
    assert timer.active().project_id == a.id


def test_manual_entry(store, timer):
    project = store.create_project("Website")
    entry = timer.add_manual_entry(project.id, date(2024, 3, 12), hours=1, minutes=30, description="design")

    assert entry.start_time == to_ms(datetime(2024, 3, 12, MANUAL_ENTRY_HOUR))
    assert entry.duration == 5_400_000
    assert entry.end_time == entry.start_time + 5_400_000
    assert entry.is_manual is True
    assert entry.description == "design"


def test_manual_entry_minutes_only(store, timer):
    project = store.create_project("Website")
    entry = timer.add_manual_entry(project.id, date(2024, 3, 12), minutes=45)
    assert entry.duration == 45 * 60_000


@pytest.mark.parametrize(
    "project_id, hours, minutes",
    [(None, 1, 0), (0, 1, 0), ("valid", None, None), ("valid", 0, 0), ("valid", -1, 0)],
)
def test_manual_entry_validation(store, timer, project_id, hours, minutes):
    project = store.create_project("Website")
    if project_id == "valid":
        project_id = project.id
    with pytest.raises(ValidationError):
        timer.add_manual_entry(project_id, date(2024, 3, 12), hours=hours, minutes=minutes)
    assert store.list_time_entries() == []


def test_failed_stop_keeps_timer_and_records_nothing(store, timer, clock, monkeypatch):
    project = store.create_project("A")
    timer.start(project.id)
    clock.advance(HOUR)

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    with monkeypatch.context() as m:
        m.setattr(store.db, "commit", broken_commit)
        with pytest.raises(StoreUnavailable):
            timer.stop()

    assert store.list_time_entries() == []
    assert timer.active().project_id == project.id

    entry = timer.stop()
    assert entry.duration == HOUR
    assert [(e.project_id, e.duration) for e in store.list_time_entries()] == [(project.id, HOUR)]
    assert timer.active() is None


def test_start_with_explicit_start_time(store, timer, clock):
    project = store.create_project("A")
    active = timer.start(project.id, START - HOUR)
    assert active.start_time == START - HOUR
    assert timer.elapsed() == HOUR
