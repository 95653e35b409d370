"""
Job store: durable records for jobs, meetings, briefs, per-document metadata, and analytics stubs.
Every write is a single-record update; there are no cross-record transactions.
"""
import json
import logging
import os
import threading
import time
import uuid
from typing import Any, Dict, List, Optional

from briefbot.core.config import settings
from briefbot.models.records import (
    PENDING,
    AnalyticRecord,
    BriefRecord,
    DocumentRecord,
    Job,
    MeetingRecord,
)

logger = logging.getLogger(__name__)

JOBS = "jobs"
MEETINGS = "meetings"
BRIEFS = "briefs"
DOCUMENTS = "documents"
ANALYTICS = "analytics"
COLLECTIONS = (JOBS, MEETINGS, BRIEFS, DOCUMENTS, ANALYTICS)

# Fields the processor may change on a job; id/inputs/created_at are fixed at creation.
MUTABLE_JOB_FIELDS = {"status", "progress", "result_brief_id", "error"}


class PersistenceError(Exception):
    """A store read or write failed."""


def _new_id() -> str:
    return str(uuid.uuid4())


class BaseStore:
    """Typed store operations on top of three per-collection primitives (_put, _get, _all) that backends implement.
    A single lock serializes writes so a conditional job update cannot interleave with another writer."""

    def __init__(self):
        self._lock = threading.RLock()

    def _put(self, collection: str, record_id: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _all(self, collection: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    # -------------------------
    # Jobs
    # -------------------------

    def create_job(
        self,
        metadata: Dict[str, str],
        document_contents: List[Dict[str, str]],
        document_files: Optional[List[Dict[str, Any]]] = None,
        calendar_event_id: Optional[str] = None,
    ) -> Job:
        """Create a pending job (progress 0). Raises ValueError when document_contents is empty."""
        if not document_contents:
            raise ValueError("A job requires at least one parsed document")
        now = time.time()
        job = Job(
            id=_new_id(),
            status=PENDING,
            progress=0,
            metadata=dict(metadata),
            document_contents=[dict(d) for d in document_contents],
            document_files=[dict(d) for d in (document_files or [])],
            created_at=now,
            updated_at=now,
            calendar_event_id=calendar_event_id,
        )
        with self._lock:
            self._put(JOBS, job.id, job.to_dict())
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        data = self._get(JOBS, job_id)
        return Job.from_dict(data) if data else None

    def update_job(self, job_id: str, expected_status: Optional[str] = None, **fields: Any) -> Optional[Job]:
        """Apply a partial update and stamp updated_at. Returns the updated job, or None when the job does not exist
        or (if expected_status is given) its current status differs."""
        unknown = set(fields) - MUTABLE_JOB_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {sorted(unknown)}")
        with self._lock:
            data = self._get(JOBS, job_id)
            if data is None:
                return None
            if expected_status is not None and data.get("status") != expected_status:
                return None
            data.update(fields)
            data["updated_at"] = time.time()
            self._put(JOBS, job_id, data)
        return Job.from_dict(data)

    def list_jobs(self, status: Optional[str] = None) -> List[Job]:
        jobs = [Job.from_dict(d) for d in self._all(JOBS)]
        if status is not None:
            jobs = [j for j in jobs if j.status == status]
        return sorted(jobs, key=lambda j: j.created_at)

    # -------------------------
    # Meetings
    # -------------------------

    def create_meeting(
        self,
        title: str,
        attendees: str,
        meeting_type: str,
        audience_level: str,
        calendar_event_id: Optional[str] = None,
    ) -> MeetingRecord:
        meeting = MeetingRecord(
            id=_new_id(),
            title=title,
            attendees=attendees,
            meeting_type=meeting_type,
            audience_level=audience_level,
            created_at=time.time(),
            calendar_event_id=calendar_event_id,
        )
        with self._lock:
            self._put(MEETINGS, meeting.id, meeting.to_dict())
        return meeting

    def get_meeting(self, meeting_id: str) -> Optional[MeetingRecord]:
        data = self._get(MEETINGS, meeting_id)
        return MeetingRecord.from_dict(data) if data else None

    def find_meeting_by_event(self, calendar_event_id: str) -> Optional[MeetingRecord]:
        """Most recent meeting created for a calendar event, if any."""
        matches = [
            MeetingRecord.from_dict(d)
            for d in self._all(MEETINGS)
            if d.get("calendar_event_id") == calendar_event_id
        ]
        return max(matches, key=lambda m: m.created_at) if matches else None

    # -------------------------
    # Briefs
    # -------------------------

    def create_brief(self, meeting_id: str, brief: Dict[str, Any]) -> BriefRecord:
        """Persist a generated brief (public camelCase keys, as produced by the generator) for a meeting."""
        record = BriefRecord(
            id=_new_id(),
            meeting_id=meeting_id,
            goal=brief["goal"],
            context=list(brief.get("context") or []),
            options=list(brief.get("options") or []),
            risks_tradeoffs=list(brief.get("risksTradeoffs") or []),
            decisions=list(brief.get("decisions") or []),
            action_checklist=list(brief.get("actionChecklist") or []),
            sources=list(brief.get("sources") or []),
            word_count=int(brief.get("wordCount") or 0),
            created_at=time.time(),
        )
        with self._lock:
            self._put(BRIEFS, record.id, record.to_dict())
        return record

    def get_brief(self, brief_id: str) -> Optional[BriefRecord]:
        data = self._get(BRIEFS, brief_id)
        return BriefRecord.from_dict(data) if data else None

    def get_brief_by_meeting(self, meeting_id: str) -> Optional[BriefRecord]:
        matches = [BriefRecord.from_dict(d) for d in self._all(BRIEFS) if d.get("meeting_id") == meeting_id]
        return max(matches, key=lambda b: b.created_at) if matches else None

    def list_briefs(self) -> List[BriefRecord]:
        """All briefs, newest first."""
        briefs = [BriefRecord.from_dict(d) for d in self._all(BRIEFS)]
        return sorted(briefs, key=lambda b: b.created_at, reverse=True)

    # -------------------------
    # Documents / analytics
    # -------------------------

    def create_document(self, meeting_id: str, filename: str, file_type: str, file_size: int) -> DocumentRecord:
        record = DocumentRecord(
            id=_new_id(),
            meeting_id=meeting_id,
            filename=filename,
            file_type=file_type,
            file_size=int(file_size),
            created_at=time.time(),
        )
        with self._lock:
            self._put(DOCUMENTS, record.id, record.to_dict())
        return record

    def list_documents(self, meeting_id: str) -> List[DocumentRecord]:
        docs = [DocumentRecord.from_dict(d) for d in self._all(DOCUMENTS) if d.get("meeting_id") == meeting_id]
        return sorted(docs, key=lambda d: d.created_at)

    def create_analytic(self, brief_id: str, meeting_id: str) -> AnalyticRecord:
        """Create the zeroed analytics stub for a brief; counters are filled in later by other tools."""
        now = time.time()
        record = AnalyticRecord(id=_new_id(), brief_id=brief_id, meeting_id=meeting_id, created_at=now, updated_at=now)
        with self._lock:
            self._put(ANALYTICS, record.id, record.to_dict())
        return record

    def get_analytic_by_brief(self, brief_id: str) -> Optional[AnalyticRecord]:
        for d in self._all(ANALYTICS):
            if d.get("brief_id") == brief_id:
                return AnalyticRecord.from_dict(d)
        return None


class InMemoryStore(BaseStore):
    """Per-process store (dicts). For tests and single-process demos; nothing survives a restart."""

    def __init__(self):
        super().__init__()
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {c: {} for c in COLLECTIONS}

    def _put(self, collection, record_id, data):
        self._data[collection][record_id] = json.loads(json.dumps(data))

    def _get(self, collection, record_id):
        data = self._data[collection].get(record_id)
        return json.loads(json.dumps(data)) if data is not None else None

    def _all(self, collection):
        return [json.loads(json.dumps(d)) for d in self._data[collection].values()]


class JsonFileStore(BaseStore):
    """One JSON file per record under {root}/{collection}/{id}.json. Writes go to a temp file and are swapped in with os.replace,
    so a reader never sees a half-written record."""

    def __init__(self, root: str):
        super().__init__()
        self.root = root
        for c in COLLECTIONS:
            os.makedirs(os.path.join(root, c), exist_ok=True)

    def _path(self, collection: str, record_id: str) -> str:
        if not record_id or os.path.basename(record_id) != record_id or record_id.startswith("."):
            raise PersistenceError(f"Invalid record id: {record_id!r}")
        return os.path.join(self.root, collection, f"{record_id}.json")

    def _put(self, collection, record_id, data):
        path = self._path(collection, record_id)
        tmp = f"{path}.{uuid.uuid4().hex}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp, path)
        except OSError as e:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise PersistenceError(f"Failed to write {collection} record {record_id}: {e}") from e

    def _get(self, collection, record_id):
        try:
            path = self._path(collection, record_id)
        except PersistenceError:
            return None
        if not os.path.isfile(path):
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read {collection} record {record_id}: {e}") from e

    def _all(self, collection):
        base = os.path.join(self.root, collection)
        out = []
        try:
            names = sorted(os.listdir(base))
        except OSError as e:
            raise PersistenceError(f"Failed to list {collection}: {e}") from e
        for name in names:
            if not name.endswith(".json"):
                continue
            data = self._get(collection, name[: -len(".json")])
            if data is not None:
                out.append(data)
        return out


_store: Optional[BaseStore] = None


def get_store() -> BaseStore:
    """Return the process-wide store selected by settings.store_backend ("json" under {data_root}/store, or "memory").
    Why available: FastAPI dependency shared by the submission, poller, listing, and calendar routes."""
    global _store
    if _store is None:
        if settings.store_backend == "memory":
            _store = InMemoryStore()
        else:
            _store = JsonFileStore(os.path.join(settings.data_root, "store"))
        logger.info("store_ready", extra={"backend": settings.store_backend})
    return _store
