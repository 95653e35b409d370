import logging
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import (
    BackgroundTasks,
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Query,
    UploadFile,
)
from fastapi.concurrency import run_in_threadpool

from briefbot.calendar.client import (
    CalendarClient,
    CalendarError,
    CalendarEvent,
    event_documents,
    format_brief_summary,
    get_calendar_client,
)
from briefbot.core.config import settings
from briefbot.core.logging_config import configure_logging
from briefbot.generate.generator import BriefGenerator
from briefbot.guardrails.errors import ClientInputError, as_http_400, as_http_500
from briefbot.ingest.extractor import SUPPORTED_EXTENSIONS
from briefbot.jobs.processor import JobProcessor
from briefbot.jobs.store import BaseStore, get_store
from briefbot.jobs.submission import (
    Upload,
    create_pending_job,
    extract_uploads,
    submit_job,
    validate_metadata,
    validate_uploads,
)
from briefbot.models.records import COMPLETED, BriefRecord, MeetingRecord
from briefbot.models.schemas import (
    BriefListResponse,
    BriefResponse,
    BriefSummaryRequest,
    BriefSummaryResponse,
    CalendarBriefResponse,
    CalendarEventResponse,
    CalendarEventsResponse,
    CalendarInfo,
    CalendarListResponse,
    CalendarStatusResponse,
    JobStatusResponse,
    LimitsResponse,
    MeetingResponse,
    SubmitJobResponse,
)
from briefbot.observability.middleware import RequestTimingMiddleware

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


# -------------------------
# Dependencies (overridden in tests)
# -------------------------

_brief_generator: Optional[BriefGenerator] = None


def get_brief_generator() -> BriefGenerator:
    """Return the process-wide brief generator (OpenAI client created lazily on first generation).
    Why available: Lets tests swap in a generator with a fake client through dependency_overrides."""
    global _brief_generator
    if _brief_generator is None:
        _brief_generator = BriefGenerator()
    return _brief_generator


def get_processor(
    store: BaseStore = Depends(get_store),
    generator: BriefGenerator = Depends(get_brief_generator),
) -> JobProcessor:
    return JobProcessor(store, generator)


# -------------------------
# App setup
# -------------------------

def _recover_in_background(processor: JobProcessor) -> None:
    """Fail jobs interrupted by the last shutdown, then run the pending ones one after another."""
    try:
        pending = processor.recover_jobs()
    except Exception:
        logger.exception("job_recovery_failed")
        return
    for job_id in pending:
        processor.trigger(job_id)


def _resolve(app: FastAPI, dependency):
    return app.dependency_overrides.get(dependency, dependency)()


@asynccontextmanager
async def lifespan(app: FastAPI):
    processor = JobProcessor(_resolve(app, get_store), _resolve(app, get_brief_generator))
    app.state.recovery_thread = threading.Thread(
        target=_recover_in_background, args=(processor,), name="job-recovery", daemon=True
    )
    app.state.recovery_thread.start()
    yield


app = FastAPI(title="BriefBot", lifespan=lifespan)
app.add_middleware(RequestTimingMiddleware)


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _meeting_response(meeting: MeetingRecord) -> MeetingResponse:
    return MeetingResponse(
        id=meeting.id,
        title=meeting.title,
        attendees=meeting.attendees,
        meeting_type=meeting.meeting_type,
        audience_level=meeting.audience_level,
        calendar_event_id=meeting.calendar_event_id,
        created_at=_iso(meeting.created_at),
    )


def _brief_response(record: BriefRecord, store: BaseStore, with_meeting: bool = True) -> BriefResponse:
    """Public brief shape for a stored record; the record's created_at is published as generatedAt."""
    meeting = store.get_meeting(record.meeting_id) if with_meeting else None
    return BriefResponse(
        id=record.id,
        goal=record.goal,
        context=record.context,
        options=record.options,
        risks_tradeoffs=record.risks_tradeoffs,
        decisions=record.decisions,
        action_checklist=record.action_checklist,
        sources=record.sources,
        word_count=record.word_count,
        generated_at=_iso(record.created_at),
        meeting=_meeting_response(meeting) if meeting else None,
    )


def _event_response(event: CalendarEvent) -> CalendarEventResponse:
    return CalendarEventResponse(
        id=event.id,
        summary=event.summary,
        description=event.description,
        start=event.start,
        end=event.end,
        attendees=event.attendees,
        html_link=event.html_link,
    )


async def _read_uploads(files: Optional[List[UploadFile]]) -> List[Upload]:
    uploads = []
    for f in files or []:
        uploads.append(Upload(filename=f.filename or "", content_type=f.content_type, data=await f.read()))
    return uploads


def _calendar_unavailable(e: CalendarError) -> HTTPException:
    logger.warning("calendar_unavailable", extra={"error": str(e)})
    return HTTPException(status_code=503, detail=f"Calendar service unavailable: {e}")


# -------------------------
# Root / health
# -------------------------

@app.get("/")
def root():
    """Returns a minimal welcome payload with app name and docs URL.
    Why available: Gives clients and load balancers a simple root endpoint to confirm the API is running."""
    return {"app": "BriefBot", "docs": "/docs"}


@app.get("/health")
def health():
    """Returns 200 OK with status. Used by load balancers and probes to check if the API is up."""
    return {"status": "ok"}


@app.get("/api/health")
def api_health():
    return {"status": "ok"}


# -------------------------
# Limits (for UI / clients)
# -------------------------

@app.get("/limits", response_model=LimitsResponse)
def limits():
    """Returns upload limits (files per request, MB per file, accepted types) and the brief word budget.
    Why available: Lets the UI and clients enforce limits before uploading."""
    return LimitsResponse(
        max_files=settings.max_files,
        max_file_mb=settings.max_file_mb,
        max_brief_words=settings.max_brief_words,
        generation_max_attempts=settings.generation_max_attempts,
        allowed_extensions=list(SUPPORTED_EXTENSIONS),
    )


# -------------------------
# Submission (async job)
# -------------------------

@app.post("/api/generate-brief", response_model=SubmitJobResponse, status_code=202)
async def generate_brief(
    background_tasks: BackgroundTasks,
    files: Optional[List[UploadFile]] = File(None),
    metadata: Optional[str] = Form(None),
    store: BaseStore = Depends(get_store),
    processor: JobProcessor = Depends(get_processor),
):
    """Validates the upload, extracts every file, creates a pending job, and schedules processing. Client polls GET /api/jobs/{job_id}.
    Why available: Generation takes longer than a request should; the job handle comes back immediately."""
    uploads = await _read_uploads(files)
    try:
        job = await run_in_threadpool(submit_job, store, metadata, uploads)
    except ClientInputError as e:
        logger.info("submission_rejected", extra={"reason": e.message})
        raise as_http_400(e)
    except Exception as e:
        raise as_http_500(e)

    background_tasks.add_task(processor.trigger, job.id)
    return SubmitJobResponse(job_id=job.id, status=job.status, progress=job.progress)


# -------------------------
# Job Status
# -------------------------

@app.get("/api/jobs/{job_id}", response_model=JobStatusResponse)
def job_status(job_id: str, store: BaseStore = Depends(get_store)):
    """Returns the job's status and progress, its error once failed, and the full brief once completed.
    Why available: Lets clients poll after POST /api/generate-brief."""
    job = store.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    brief = None
    if job.status == COMPLETED and job.result_brief_id:
        record = store.get_brief(job.result_brief_id)
        if record:
            brief = _brief_response(record, store, with_meeting=False)

    return JobStatusResponse(
        job_id=job.id,
        status=job.status,
        progress=job.progress,
        error=job.error,
        result_brief_id=job.result_brief_id,
        created_at=_iso(job.created_at),
        updated_at=_iso(job.updated_at),
        brief=brief,
    )


# -------------------------
# Briefs
# -------------------------

@app.get("/api/briefs", response_model=BriefListResponse)
def list_briefs(store: BaseStore = Depends(get_store)):
    """All stored briefs, newest first, each joined with its meeting."""
    return BriefListResponse(briefs=[_brief_response(b, store) for b in store.list_briefs()])


@app.get("/api/briefs/{brief_id}", response_model=BriefResponse)
def get_brief(brief_id: str, store: BaseStore = Depends(get_store)):
    record = store.get_brief(brief_id)
    if not record:
        raise HTTPException(status_code=404, detail="Brief not found")
    return _brief_response(record, store)


# -------------------------
# Calendar
# -------------------------

@app.get("/api/calendar/status", response_model=CalendarStatusResponse)
def calendar_status(calendar: CalendarClient = Depends(get_calendar_client)):
    return CalendarStatusResponse(connected=calendar.is_connected())


@app.get("/api/calendar/list", response_model=CalendarListResponse)
def calendar_list(calendar: CalendarClient = Depends(get_calendar_client)):
    try:
        calendars = calendar.list_calendars()
    except CalendarError as e:
        raise _calendar_unavailable(e)
    return CalendarListResponse(calendars=[CalendarInfo(**c) for c in calendars])


@app.get("/api/calendar/events", response_model=CalendarEventsResponse)
def calendar_events(
    calendar_id: str = Query("primary", alias="calendarId"),
    max_results: int = Query(10, alias="maxResults", ge=1, le=50),
    calendar: CalendarClient = Depends(get_calendar_client),
):
    """Events in the next 7 days for one calendar, ordered by start time."""
    try:
        events = calendar.upcoming_events(calendar_id, max_results)
    except CalendarError as e:
        raise _calendar_unavailable(e)
    return CalendarEventsResponse(events=[_event_response(ev) for ev in events])


@app.post("/api/calendar/generate-brief", response_model=CalendarBriefResponse)
async def calendar_generate_brief(
    background_tasks: BackgroundTasks,
    event_id: str = Form(..., alias="eventId"),
    calendar_id: str = Form("primary", alias="calendarId"),
    meeting_type: str = Form("other", alias="meetingType"),
    audience_level: str = Form("exec", alias="audienceLevel"),
    force: bool = Form(False),
    files: Optional[List[UploadFile]] = File(None),
    store: BaseStore = Depends(get_store),
    processor: JobProcessor = Depends(get_processor),
    calendar: CalendarClient = Depends(get_calendar_client),
):
    """Creates a brief job for a calendar event: the event description (or a synthetic event summary) plus any uploaded files.
    If a brief already exists for the event and force is not set, returns its id instead of starting a job.
    Why available: Brief generation straight from the calendar view without re-typing meeting metadata."""
    uploads = await _read_uploads(files)
    try:
        validate_uploads(uploads, allow_empty=True)

        if not force:
            meeting = store.find_meeting_by_event(event_id)
            existing = store.get_brief_by_meeting(meeting.id) if meeting else None
            if existing:
                return CalendarBriefResponse(existing_brief_id=existing.id)

        event = await run_in_threadpool(calendar.get_event, calendar_id, event_id)
        if event is None:
            raise HTTPException(status_code=404, detail="Calendar event not found")

        metadata = validate_metadata({
            "title": event.summary,
            "attendees": ", ".join(event.attendees) or "Not specified",
            "meeting_type": meeting_type,
            "audience_level": audience_level,
        })
        documents, doc_files = await run_in_threadpool(extract_uploads, uploads)
        documents = event_documents(event, has_other_documents=bool(documents)) + documents
        job = create_pending_job(store, metadata, documents, doc_files, calendar_event_id=event.id)
    except HTTPException:
        raise
    except ClientInputError as e:
        raise as_http_400(e)
    except CalendarError as e:
        raise _calendar_unavailable(e)
    except Exception as e:
        raise as_http_500(e)

    background_tasks.add_task(processor.trigger, job.id)
    return CalendarBriefResponse(job_id=job.id, event=_event_response(event))


@app.post("/api/calendar/events/{event_id}/brief-summary", response_model=BriefSummaryResponse)
def calendar_brief_summary(
    event_id: str,
    req: BriefSummaryRequest,
    store: BaseStore = Depends(get_store),
    calendar: CalendarClient = Depends(get_calendar_client),
):
    """Writes a short summary of a stored brief into the event description, replacing any earlier BriefBot summary."""
    record = store.get_brief(req.brief_id)
    if not record:
        raise HTTPException(status_code=404, detail="Brief not found")

    summary = format_brief_summary(_brief_response(record, store, with_meeting=False).model_dump(by_alias=True))
    try:
        updated = calendar.update_event_description(req.calendar_id, event_id, summary)
    except CalendarError as e:
        raise _calendar_unavailable(e)
    if not updated:
        raise HTTPException(status_code=404, detail="Calendar event not found")
    return BriefSummaryResponse(success=True)
