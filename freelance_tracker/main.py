import logging
from datetime import date, datetime, timedelta
from io import BytesIO
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from . import aggregation
from .config import HOST, LOG_LEVEL, PORT
from .database import get_db, init_db
from .errors import TrackerError
from .invoice import ClientMeta, invoice_filename, render_invoice
from .schemas import (
    DayTotalOut,
    EntryIn,
    EntryOut,
    EntryUpdate,
    ManualEntryIn,
    ProjectAggregateOut,
    ProjectIn,
    ProjectOut,
    ProjectSummaryOut,
    ProjectUpdate,
    RateIn,
    TimerIn,
    TimerOut,
    TimerStart,
    WeekOut,
)
from .store import Store
from .timer import TimerService
from .utils import format_date, format_duration, format_money, ms_to_hours, now_ms, to_local, to_ms

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

app = FastAPI(title="Freelance Time Tracker")

init_db()

app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
templates.env.filters["duration"] = format_duration
templates.env.filters["money"] = format_money
templates.env.filters["short_date"] = format_date
templates.env.filters["hours"] = lambda ms: f"{ms_to_hours(ms):.2f}"
templates.env.filters["local_time"] = lambda ms: to_local(ms).strftime("%b %d, %H:%M")


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def get_clock():
    return now_ms


def get_store(db: Session = Depends(get_db)) -> Store:
    return Store(db)


def get_timer(store: Store = Depends(get_store), clock=Depends(get_clock)) -> TimerService:
    return TimerService(store, clock=clock)


def timer_out(timer, now: int) -> Optional[TimerOut]:
    if timer is None:
        return None
    elapsed = now - timer.start_time
    return TimerOut(
        project_id=timer.project_id,
        start_time=timer.start_time,
        elapsed=elapsed,
        elapsed_display=format_duration(max(elapsed, 0)),
    )


def weekly_report_for(store: Store) -> List[aggregation.WeekBucket]:
    # oldest first, so line items keep the order projects were first worked on
    entries = sorted(store.list_time_entries(), key=lambda e: (e.start_time, e.id))
    return aggregation.build_weekly_report(entries, store.list_projects())


def attachment_header(filename: str) -> str:
    """Content-Disposition value that survives latin-1 header encoding.

    Non-ASCII and quoting characters are replaced in the plain filename and
    kept intact in the RFC 5987 filename* parameter.
    """
    fallback = "".join(c if c.isascii() and c.isprintable() and c not in '"\\' else "_" for c in filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def week_out(bucket: aggregation.WeekBucket) -> WeekOut:
    return WeekOut(
        key=bucket.key,
        week_start=bucket.week_start,
        start_date=bucket.start_date,
        end_date=bucket.end_date,
        total_duration=bucket.total_duration,
        total_hours=bucket.total_hours,
        total_earnings=bucket.total_earnings,
        projects=[
            ProjectAggregateOut(
                project_id=sub.project_id,
                name=sub.name,
                hourly_rate=sub.hourly_rate,
                duration=sub.duration,
                hours=sub.hours,
                earnings=sub.earnings,
            )
            for sub in bucket.projects.values()
        ],
    )


@app.get("/health")
def health():
    return {"status": "ok"}


# Clients
@app.get("/api/clients")
def list_clients(store: Store = Depends(get_store)):
    return store.list_clients()


# Projects
@app.get("/api/projects", response_model=List[ProjectOut])
def list_projects(store: Store = Depends(get_store)):
    return store.list_projects()


@app.post("/api/projects", response_model=ProjectOut, status_code=201)
def create_project(payload: ProjectIn, store: Store = Depends(get_store)):
    return store.create_project(**payload.model_dump())


@app.put("/api/projects/{project_id}", response_model=ProjectOut)
def update_project(project_id: int, payload: ProjectUpdate, store: Store = Depends(get_store)):
    return store.update_project(project_id, payload.name, payload.hourly_rate)


@app.patch("/api/projects/{project_id}/rate", response_model=ProjectOut)
def update_project_rate(project_id: int, payload: RateIn, store: Store = Depends(get_store)):
    return store.update_project_rate(project_id, payload.hourly_rate)


@app.delete("/api/projects/{project_id}")
def delete_project(project_id: int, timer: TimerService = Depends(get_timer)):
    timer.delete_project(project_id)
    return {"message": "Project deleted successfully"}


# Time entries
@app.get("/api/entries", response_model=List[EntryOut])
def list_entries(store: Store = Depends(get_store)):
    return store.list_time_entries()


@app.post("/api/entries", response_model=EntryOut, status_code=201)
def create_entry(payload: EntryIn, store: Store = Depends(get_store)):
    return store.create_entry(**payload.model_dump())


@app.post("/api/entries/manual", response_model=EntryOut, status_code=201)
def create_manual_entry(payload: ManualEntryIn, timer: TimerService = Depends(get_timer)):
    return timer.add_manual_entry(
        payload.project_id,
        payload.day,
        hours=payload.hours,
        minutes=payload.minutes,
        description=payload.description,
    )


@app.put("/api/entries/{entry_id}", response_model=EntryOut)
def update_entry(entry_id: int, payload: EntryUpdate, store: Store = Depends(get_store)):
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    return store.update_entry(entry_id, fields)


@app.delete("/api/entries/{entry_id}")
def delete_entry(entry_id: int, store: Store = Depends(get_store)):
    store.delete_entry(entry_id)
    return {"message": "Entry deleted successfully"}


# Active timer
@app.get("/api/timer/active", response_model=Optional[TimerOut])
def get_active_timer(timer: TimerService = Depends(get_timer)):
    return timer_out(timer.active(), timer.clock())


@app.post("/api/timer/active", response_model=TimerOut)
def set_active_timer(payload: TimerIn, timer: TimerService = Depends(get_timer)):
    active = timer.start(payload.project_id, payload.start_time)
    return timer_out(active, timer.clock())


@app.delete("/api/timer/active")
def clear_active_timer(timer: TimerService = Depends(get_timer)):
    timer.clear()
    return {"message": "Active timer cleared"}


@app.post("/api/timer/start", response_model=TimerOut)
def start_timer(payload: TimerStart, timer: TimerService = Depends(get_timer)):
    active = timer.start(payload.project_id)
    return timer_out(active, timer.clock())


@app.post("/api/timer/stop", response_model=Optional[EntryOut])
def stop_timer(timer: TimerService = Depends(get_timer)):
    return timer.stop()


# Reports
@app.get("/api/summary", response_model=List[ProjectSummaryOut])
def project_summary(timer: TimerService = Depends(get_timer)):
    store = timer.store
    return aggregation.project_summaries(
        store.list_projects(), store.list_time_entries(), timer.active(), timer.clock()
    )


@app.get("/api/reports/weekly", response_model=List[WeekOut])
def weekly_report(store: Store = Depends(get_store)):
    report = weekly_report_for(store)
    return [week_out(bucket) for bucket in report]


@app.get("/api/calendar", response_model=List[DayTotalOut])
def calendar_totals(
    year: Optional[int] = None,
    month: Optional[int] = None,
    store: Store = Depends(get_store),
):
    today = date.today()
    if year is None:
        year = today.year
    if month is None:
        month = today.month
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Invalid month")

    totals = aggregation.daily_totals(store.list_time_entries(), store.list_projects(), year, month)
    return [DayTotalOut(day=day, duration=ms, hours=ms_to_hours(ms)) for day, ms in totals.items()]


# Pages
@app.get("/", response_class=HTMLResponse)
async def index(request: Request, timer: TimerService = Depends(get_timer)):
    store = timer.store
    projects = store.list_projects()
    entries = store.list_time_entries()
    active = timer.active()
    now = timer.clock()
    summaries = aggregation.project_summaries(projects, entries, active, now)
    names = {p.id: p.name for p in projects}

    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "summaries": summaries,
            "active": timer_out(active, now),
            "active_name": names.get(active.project_id) if active else None,
            "entries": [e for e in entries if e.project_id in names][:20],
            "names": names,
        },
    )


@app.get("/weekly", response_class=HTMLResponse)
async def weekly_page(request: Request, store: Store = Depends(get_store)):
    report = weekly_report_for(store)
    return templates.TemplateResponse(request, "weekly.html", {"weeks": report})


@app.post("/invoices/{week_key}", response_class=HTMLResponse)
async def download_invoice(
    week_key: str,
    client_name: str = Form(""),
    client_email: str = Form(""),
    invoice_number: str = Form(""),
    notes: str = Form(""),
    store: Store = Depends(get_store),
):
    report = weekly_report_for(store)
    bucket = aggregation.find_week(report, week_key)
    if bucket is None:
        raise HTTPException(status_code=404, detail="Week not found")

    meta = ClientMeta(
        client_name=client_name.strip() or None,
        client_email=client_email.strip() or None,
        invoice_number=invoice_number.strip() or None,
        notes=notes.strip() or None,
    )
    logger.info("Generated invoice %s for week %s", meta.display_number, week_key)
    return HTMLResponse(
        render_invoice(bucket, meta),
        headers={"Content-Disposition": attachment_header(invoice_filename(meta))},
    )


@app.get("/export/excel")
async def export_excel(
    store: Store = Depends(get_store),
    start: Optional[date] = None,
    end: Optional[date] = None,
):
    import openpyxl
    from openpyxl.utils import get_column_letter

    today = date.today()
    if end is None:
        end = today
    if start is None:
        start = end - timedelta(days=30)

    range_start = to_ms(datetime(start.year, start.month, start.day))
    range_end = to_ms(datetime(end.year, end.month, end.day) + timedelta(days=1))
    projects = {p.id: p for p in store.list_projects()}
    entries = [
        e
        for e in reversed(store.list_time_entries())
        if e.project_id in projects and range_start <= e.start_time < range_end
    ]

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Time entries"

    headers = [
        "Date",
        "Project",
        "Start",
        "End",
        "Duration",
        "Hours",
        "Manual",
        "Description",
        "Earnings",
    ]
    ws.append(headers)

    for entry in entries:
        project = projects[entry.project_id]
        started = to_local(entry.start_time)
        hours = ms_to_hours(entry.duration)
        ws.append(
            [
                started.date().isoformat(),
                project.name,
                started.strftime("%H:%M"),
                to_local(entry.end_time).strftime("%H:%M"),
                format_duration(entry.duration),
                round(hours, 2),
                "yes" if entry.is_manual else "no",
                entry.description or "",
                round(hours * (project.hourly_rate or 0), 2),
            ]
        )

    for col in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].auto_size = True

    stream = BytesIO()
    wb.save(stream)
    stream.seek(0)

    filename = f"time_entries_{start.isoformat()}_{end.isoformat()}.xlsx"
    headers_resp = {
        "Content-Disposition": f'attachment; filename="{filename}"'
    }

    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers_resp,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=HOST, port=PORT)
