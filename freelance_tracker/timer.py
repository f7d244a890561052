import logging
from datetime import date, datetime
from typing import Callable, Optional

from .config import MANUAL_ENTRY_HOUR
from .errors import ValidationError
from .models import ActiveTimer, TimeEntry
from .store import Store
from .utils import hours_minutes_to_ms, now_ms, to_ms

logger = logging.getLogger(__name__)


class TimerService:
    """Start/stop timer and entry bookkeeping on top of a Store.

    Idle when the store has no active timer, Running otherwise. Starting a
    timer while another one runs stops the running one first, so at most
    one timer exists at a time.
    """

    def __init__(self, store: Store, clock: Callable[[], int] = now_ms):
        self.store = store
        self.clock = clock

    def active(self) -> Optional[ActiveTimer]:
        return self.store.get_active_timer()

    def elapsed(self) -> int:
        timer = self.active()
        if timer is None:
            return 0
        return self.clock() - timer.start_time

    def start(self, project_id: int, start_time: Optional[int] = None) -> ActiveTimer:
        self.store.get_project(project_id)
        if self.active() is not None:
            self.stop()
        if start_time is None:
            start_time = self.clock()
        timer = self.store.set_active_timer(project_id, start_time)
        logger.info("Timer started for project %s", project_id)
        return timer

    def stop(self) -> Optional[TimeEntry]:
        entry = self.store.stop_active_timer(self.clock())
        if entry is not None:
            logger.info("Timer stopped for project %s after %s ms", entry.project_id, entry.duration)
        return entry

    def clear(self) -> None:
        if self.store.clear_active_timer():
            logger.info("Active timer discarded")

    def delete_project(self, project_id: int) -> None:
        self.store.get_project(project_id)
        timer = self.active()
        if timer is not None and timer.project_id == project_id:
            self.stop()
        self.store.delete_project(project_id)

    def add_manual_entry(
        self,
        project_id: Optional[int],
        day: date,
        hours: Optional[float] = None,
        minutes: Optional[float] = None,
        description: Optional[str] = None,
    ) -> TimeEntry:
        if not project_id:
            raise ValidationError("Please select a project and enter hours or minutes")
        duration = hours_minutes_to_ms(hours, minutes)
        if duration <= 0:
            raise ValidationError("Please select a project and enter hours or minutes")
        start_time = to_ms(datetime(day.year, day.month, day.day, MANUAL_ENTRY_HOUR))
        return self.store.create_entry(
            project_id=project_id,
            start_time=start_time,
            duration=duration,
            is_manual=True,
            description=description,
        )
