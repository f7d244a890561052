from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Request models

class ProjectIn(BaseModel):
    name: str
    hourly_rate: Optional[float] = 0
    client_name: Optional[str] = None
    client_email: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: str
    hourly_rate: Optional[float] = 0


class RateIn(BaseModel):
    hourly_rate: Optional[float] = 0


class EntryIn(BaseModel):
    project_id: Optional[int] = None
    start_time: int
    end_time: Optional[int] = None
    duration: Optional[int] = Field(default=None, ge=0)
    is_manual: bool = False
    description: Optional[str] = None


class EntryUpdate(BaseModel):
    project_id: Optional[int] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    duration: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None


class ManualEntryIn(BaseModel):
    project_id: Optional[int] = None
    day: date
    hours: Optional[float] = None
    minutes: Optional[float] = None
    description: Optional[str] = None


class TimerStart(BaseModel):
    project_id: int


class TimerIn(BaseModel):
    project_id: int
    start_time: Optional[int] = None


# Response models

class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    hourly_rate: float
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    created_at: int


class EntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    start_time: int
    end_time: int
    duration: int
    is_manual: bool
    description: Optional[str] = None


class TimerOut(BaseModel):
    project_id: int
    start_time: int
    elapsed: int
    elapsed_display: str


class ProjectSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: int
    name: str
    hourly_rate: float
    total_duration: int
    earnings: float
    is_running: bool


class ProjectAggregateOut(BaseModel):
    project_id: int
    name: str
    hourly_rate: float
    duration: int
    hours: float
    earnings: float


class WeekOut(BaseModel):
    key: str
    week_start: int
    start_date: date
    end_date: date
    total_duration: int
    total_hours: float
    total_earnings: float
    projects: List[ProjectAggregateOut]


class DayTotalOut(BaseModel):
    day: date
    duration: int
    hours: float
