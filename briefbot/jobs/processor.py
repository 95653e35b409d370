"""
Job processor: moves a job pending -> processing -> completed | failed.
Progress checkpoints: 10 (claimed), 30 (documents combined), 70 (brief generated), 85 (brief persisted), 100 (completed).
"""
import logging
from typing import Any, Dict, List, Optional

from briefbot.models.records import COMPLETED, FAILED, PENDING, PROCESSING, Job
from briefbot.jobs.store import BaseStore

logger = logging.getLogger(__name__)

PROGRESS_CLAIMED = 10
PROGRESS_COMBINED = 30
PROGRESS_GENERATED = 70
PROGRESS_PERSISTED = 85
PROGRESS_DONE = 100

INTERRUPTED_ERROR = "processing interrupted by service restart"


def combine_documents(documents: List[Dict[str, str]]) -> str:
    """Concatenate documents as labeled sections ("--- filename ---" then the text), separated by blank lines."""
    return "\n\n".join(f"--- {d['filename']} ---\n{d['text']}" for d in documents)


class JobProcessor:
    """Runs the brief pipeline for one job at a time per call; any number of jobs may run concurrently on different threads.
    generator must provide generate(meeting_title, attendees, meeting_type, audience_level, combined_document_text, filenames)."""

    def __init__(self, store: BaseStore, generator: Any):
        self.store = store
        self.generator = generator

    def _claim(self, job_id: str) -> Optional[Job]:
        """Guard: only a pending job is claimed (pending -> processing, progress 10). Anything else is a no-op."""
        job = self.store.get_job(job_id)
        if job is None:
            logger.warning("job_not_found", extra={"job_id": job_id})
            return None
        if job.status != PENDING:
            logger.info("job_already_claimed", extra={"job_id": job_id, "status": job.status})
            return None
        claimed = self.store.update_job(job_id, expected_status=PENDING, status=PROCESSING, progress=PROGRESS_CLAIMED)
        if claimed is None:
            logger.info("job_claim_lost", extra={"job_id": job_id})
        return claimed

    def _run_pipeline(self, job: Job) -> str:
        """Steps 3-11: combine, generate, persist meeting/brief/documents/analytics. Returns the new brief id."""
        combined = combine_documents(job.document_contents)
        filenames = [d["filename"] for d in job.document_contents]
        self.store.update_job(job.id, expected_status=PROCESSING, progress=PROGRESS_COMBINED)

        meta = job.metadata
        brief = self.generator.generate(
            meta["title"],
            meta["attendees"],
            meta["meeting_type"],
            meta["audience_level"],
            combined,
            filenames,
        )
        self.store.update_job(job.id, expected_status=PROCESSING, progress=PROGRESS_GENERATED)

        meeting = self.store.create_meeting(
            title=meta["title"],
            attendees=meta["attendees"],
            meeting_type=meta["meeting_type"],
            audience_level=meta["audience_level"],
            calendar_event_id=job.calendar_event_id,
        )
        record = self.store.create_brief(meeting.id, brief.model_dump(by_alias=True))
        self.store.update_job(job.id, expected_status=PROCESSING, progress=PROGRESS_PERSISTED)

        for f in job.document_files:
            self.store.create_document(meeting.id, f["filename"], f.get("file_type", ""), f.get("file_size", 0))
        self.store.create_analytic(record.id, meeting.id)
        return record.id

    def _finish(self, job_id: str, **fields) -> Optional[Job]:
        """Terminal write guarded on processing. A job that recovery already failed keeps that state."""
        job = self.store.update_job(job_id, expected_status=PROCESSING, **fields)
        if job is None:
            current = self.store.get_job(job_id)
            logger.warning(
                "job_terminal_write_lost",
                extra={"job_id": job_id, "wanted": fields.get("status"), "status": current.status if current else None},
            )
            return current
        return job

    def process(self, job_id: str) -> Optional[Job]:
        """Run the full pipeline for a pending job and return its terminal state; returns None when the guard makes this call a no-op.
        Failures inside the pipeline never escape: the job is marked failed with the error message."""
        job = self._claim(job_id)
        if job is None:
            return None

        logger.info("job_started", extra={"job_id": job_id, "documents": len(job.document_contents)})
        try:
            brief_id = self._run_pipeline(job)
        except Exception as e:
            logger.error("job_failed", exc_info=True, extra={"job_id": job_id, "error": str(e)})
            return self._finish(job_id, status=FAILED, error=str(e) or type(e).__name__)

        done = self._finish(job_id, status=COMPLETED, progress=PROGRESS_DONE, result_brief_id=brief_id)
        if done is not None and done.status == COMPLETED:
            logger.info("job_completed", extra={"job_id": job_id, "brief_id": brief_id})
        return done

    def trigger(self, job_id: str) -> None:
        """Fire-and-forget entry point for background execution: never raises, logs anything that escapes process().
        Safe to call repeatedly for the same job."""
        try:
            self.process(job_id)
        except Exception:
            logger.exception("job_trigger_failed", extra={"job_id": job_id})

    def recover_jobs(self) -> List[str]:
        """Startup recovery: fail jobs a previous process left in processing, and return the ids of pending jobs that still need a trigger."""
        failed = 0
        for job in self.store.list_jobs(status=PROCESSING):
            if self.store.update_job(job.id, expected_status=PROCESSING, status=FAILED, error=INTERRUPTED_ERROR):
                failed += 1
        pending = [job.id for job in self.store.list_jobs(status=PENDING)]
        if failed or pending:
            logger.info("jobs_recovered", extra={"interrupted": failed, "pending": len(pending)})
        return pending
