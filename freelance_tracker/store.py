import functools
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from .errors import NotFoundError, StoreUnavailable, ValidationError
from .models import ActiveTimer, Project, TimeEntry
from .utils import now_ms

logger = logging.getLogger(__name__)

ENTRY_FIELDS = {"project_id", "start_time", "end_time", "duration", "description"}


def translate_errors(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except DBAPIError as exc:
            if isinstance(exc, IntegrityError):
                raise
            self.db.rollback()
            logger.exception("Store call %s failed", method.__name__)
            raise StoreUnavailable("Database is not available") from exc

    return wrapper


class Store:
    """Persistence for projects, time entries and the single active timer."""

    def __init__(self, db: Session):
        self.db = db

    # --- projects ---
    @translate_errors
    def list_projects(self) -> List[Project]:
        return self.db.execute(select(Project).order_by(Project.created_at.desc(), Project.id.desc())).scalars().all()

    @translate_errors
    def get_project(self, project_id: int) -> Project:
        project = self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    @translate_errors
    def create_project(
        self,
        name: str,
        hourly_rate: Optional[float] = 0,
        client_name: Optional[str] = None,
        client_email: Optional[str] = None,
        created_at: Optional[int] = None,
    ) -> Project:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name cannot be empty")
        project = Project(
            name=name,
            hourly_rate=_check_rate(hourly_rate),
            client_name=client_name or None,
            client_email=client_email or None,
            created_at=created_at if created_at is not None else now_ms(),
        )
        self.db.add(project)
        self.db.commit()
        self.db.refresh(project)
        logger.info("Created project %s (%r)", project.id, project.name)
        return project

    @translate_errors
    def update_project(self, project_id: int, name: str, hourly_rate: Optional[float]) -> Project:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name cannot be empty")
        project = self.get_project(project_id)
        project.name = name
        project.hourly_rate = _check_rate(hourly_rate)
        self.db.commit()
        self.db.refresh(project)
        return project

    @translate_errors
    def update_project_rate(self, project_id: int, hourly_rate: Optional[float]) -> Project:
        project = self.get_project(project_id)
        project.hourly_rate = _check_rate(hourly_rate)
        self.db.commit()
        self.db.refresh(project)
        logger.info("Project %s rate set to %s", project.id, project.hourly_rate)
        return project

    @translate_errors
    def delete_project(self, project_id: int) -> None:
        """Delete a project together with its entries."""
        project = self.get_project(project_id)
        timer = self.db.get(ActiveTimer, 1)
        if timer is not None and timer.project_id == project_id:
            self.db.delete(timer)
            self.db.flush()
        self.db.delete(project)
        self.db.commit()
        logger.info("Deleted project %s", project_id)

    @translate_errors
    def list_clients(self) -> List[dict]:
        rows = self.db.execute(
            select(Project.client_name, Project.client_email)
            .where(Project.client_name.is_not(None), Project.client_name != "")
            .distinct()
            .order_by(Project.client_name)
        ).all()
        return [{"name": name, "email": email} for name, email in rows]

    # --- entries ---
    @translate_errors
    def list_time_entries(self) -> List[TimeEntry]:
        return self.db.execute(select(TimeEntry).order_by(TimeEntry.start_time.desc(), TimeEntry.id.desc())).scalars().all()

    @translate_errors
    def get_entry(self, entry_id: int) -> TimeEntry:
        entry = self.db.get(TimeEntry, entry_id)
        if entry is None:
            raise NotFoundError("Entry not found")
        return entry

    @translate_errors
    def create_entry(
        self,
        project_id: Optional[int],
        start_time: int,
        end_time: Optional[int] = None,
        duration: Optional[int] = None,
        is_manual: bool = False,
        description: Optional[str] = None,
    ) -> TimeEntry:
        """Store a new entry. Pass either end_time or duration, the other is derived."""
        if project_id is None:
            raise ValidationError("Please select a project")
        self.get_project(project_id)
        if end_time is None:
            if duration is None:
                raise ValidationError("Either end_time or duration is required")
            end_time = start_time + duration
        _check_span(start_time, end_time)

        entry = TimeEntry(
            project_id=project_id,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
            is_manual=bool(is_manual),
            description=description or None,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info("Created %s entry %s for project %s", "manual" if entry.is_manual else "timer", entry.id, project_id)
        return entry

    @translate_errors
    def update_entry(self, entry_id: int, fields: dict) -> TimeEntry:
        """Apply a partial update. duration is re-derived from start and end."""
        unknown = set(fields) - ENTRY_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        entry = self.get_entry(entry_id)

        project_id = entry.project_id
        if "project_id" in fields:
            if fields["project_id"] is None:
                raise ValidationError("Please select a project")
            project_id = self.get_project(fields["project_id"]).id

        start_time = fields.get("start_time")
        if start_time is None:
            start_time = entry.start_time
        if fields.get("end_time") is not None:
            end_time = fields["end_time"]
        elif fields.get("duration") is not None:
            end_time = start_time + fields["duration"]
        else:
            end_time = entry.end_time
        _check_span(start_time, end_time)

        entry.project_id = project_id
        entry.start_time = start_time
        entry.end_time = end_time
        entry.duration = end_time - start_time
        if "description" in fields:
            entry.description = fields["description"] or None
        self.db.commit()
        self.db.refresh(entry)
        return entry

    @translate_errors
    def delete_entry(self, entry_id: int) -> None:
        entry = self.get_entry(entry_id)
        self.db.delete(entry)
        self.db.commit()
        logger.info("Deleted entry %s", entry_id)

    # --- active timer ---
    @translate_errors
    def get_active_timer(self) -> Optional[ActiveTimer]:
        return self.db.get(ActiveTimer, 1)

    @translate_errors
    def set_active_timer(self, project_id: int, start_time: int) -> ActiveTimer:
        self.get_project(project_id)
        timer = self.db.get(ActiveTimer, 1)
        if timer is None:
            timer = ActiveTimer(id=1, project_id=project_id, start_time=start_time)
            self.db.add(timer)
        else:
            timer.project_id = project_id
            timer.start_time = start_time
        self.db.commit()
        self.db.refresh(timer)
        return timer

    @translate_errors
    def clear_active_timer(self) -> bool:
        timer = self.db.get(ActiveTimer, 1)
        if timer is None:
            return False
        self.db.delete(timer)
        self.db.commit()
        return True

    @translate_errors
    def stop_active_timer(self, end_time: int) -> Optional[TimeEntry]:
        """Turn the running timer into a time entry in one commit.

        Returns None when no timer is running.
        """
        timer = self.db.get(ActiveTimer, 1)
        if timer is None:
            return None
        _check_span(timer.start_time, end_time)

        entry = TimeEntry(
            project_id=timer.project_id,
            start_time=timer.start_time,
            end_time=end_time,
            duration=end_time - timer.start_time,
            is_manual=False,
        )
        self.db.add(entry)
        self.db.delete(timer)
        self.db.commit()
        self.db.refresh(entry)
        logger.info("Created timer entry %s for project %s", entry.id, entry.project_id)
        return entry


def _check_rate(hourly_rate) -> float:
    rate = float(hourly_rate or 0)
    if rate < 0:
        raise ValidationError("Hourly rate cannot be negative")
    return rate


def _check_span(start_time: int, end_time: int) -> None:
    if end_time < start_time:
        raise ValidationError("End time cannot be before start time")
