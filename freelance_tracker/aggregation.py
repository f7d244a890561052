"""Derived totals over the flat log of time entries.

Everything here works on already-fetched projects, entries and the active
timer, and never touches the store. Projects and entries may be ORM
instances or any objects with the same attributes.

Entries whose project no longer exists are skipped silently: they belong
to no total and no week.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from .utils import ms_to_hours, now_ms, to_local, week_start, week_start_date


@dataclass
class ProjectAggregate:
    project_id: int
    name: str
    hourly_rate: float
    duration: int = 0
    earnings: float = 0.0

    @property
    def hours(self) -> float:
        return ms_to_hours(self.duration)


@dataclass
class WeekBucket:
    key: str
    week_start: int
    projects: Dict[int, ProjectAggregate] = field(default_factory=dict)
    total_duration: int = 0
    total_earnings: float = 0.0

    @property
    def total_hours(self) -> float:
        return ms_to_hours(self.total_duration)

    @property
    def start_date(self) -> date:
        return week_start_date(self.week_start)

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=6)


@dataclass
class ProjectSummary:
    project_id: int
    name: str
    hourly_rate: float
    total_duration: int
    earnings: float
    is_running: bool


def _rate(project) -> float:
    return project.hourly_rate or 0


def _timer_elapsed(project_id, timer, now) -> int:
    if timer is None or timer.project_id != project_id:
        return 0
    if now is None:
        now = now_ms()
    return now - timer.start_time


def total_duration(project_id, entries: Iterable, timer=None, now: Optional[int] = None) -> int:
    total = sum(e.duration for e in entries if e.project_id == project_id)
    return total + _timer_elapsed(project_id, timer, now)


def earnings(project, entries: Iterable, timer=None, now: Optional[int] = None) -> float:
    if project is None or not project.hourly_rate:
        return 0
    return ms_to_hours(total_duration(project.id, entries, timer, now)) * project.hourly_rate


def project_summaries(projects: Iterable, entries: Iterable, timer=None, now: Optional[int] = None) -> List[ProjectSummary]:
    entries = list(entries)
    if now is None:
        now = now_ms()
    summaries = []
    for project in projects:
        summaries.append(
            ProjectSummary(
                project_id=project.id,
                name=project.name,
                hourly_rate=_rate(project),
                total_duration=total_duration(project.id, entries, timer, now),
                earnings=earnings(project, entries, timer, now),
                is_running=timer is not None and timer.project_id == project.id,
            )
        )
    return summaries


def build_weekly_report(entries: Iterable, projects: Iterable) -> List[WeekBucket]:
    """Group entries into Sunday-starting weeks, most recent week first.

    Earnings use each project's current rate, so changing a rate changes
    the earnings of every past week the project appears in.
    """
    projects_by_id = {p.id: p for p in projects}
    weeks: Dict[int, WeekBucket] = {}

    for entry in entries:
        project = projects_by_id.get(entry.project_id)
        if project is None:
            continue

        start = week_start(entry.start_time)
        bucket = weeks.get(start)
        if bucket is None:
            bucket = weeks[start] = WeekBucket(key=week_start_date(entry.start_time).isoformat(), week_start=start)

        sub = bucket.projects.get(project.id)
        if sub is None:
            sub = bucket.projects[project.id] = ProjectAggregate(
                project_id=project.id,
                name=project.name,
                hourly_rate=_rate(project),
            )

        amount = ms_to_hours(entry.duration) * _rate(project)
        sub.duration += entry.duration
        sub.earnings += amount
        bucket.total_duration += entry.duration
        bucket.total_earnings += amount

    return sorted(weeks.values(), key=lambda b: b.week_start, reverse=True)


def find_week(report: Iterable[WeekBucket], key: str) -> Optional[WeekBucket]:
    for bucket in report:
        if bucket.key == key:
            return bucket
    return None


def daily_totals(entries: Iterable, projects: Iterable, year: int, month: int) -> Dict[date, int]:
    """Summed duration per local calendar day of one month, days without entries omitted."""
    project_ids = {p.id for p in projects}
    totals: Dict[date, int] = {}
    for entry in entries:
        if entry.project_id not in project_ids:
            continue
        day = to_local(entry.start_time).date()
        if day.year == year and day.month == month:
            totals[day] = totals.get(day, 0) + entry.duration
    return dict(sorted(totals.items()))
