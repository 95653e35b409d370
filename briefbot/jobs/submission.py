"""
Submission path: validate the request, extract text from every upload, and create a pending job.
Upload bytes live only in a per-request temporary directory that is removed on every exit path.
"""
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from briefbot.core.config import settings
from briefbot.guardrails.errors import ClientInputError
from briefbot.ingest.extractor import (
    ExtractionError,
    UnsupportedFormatError,
    extract_file,
    resolve_format,
)
from briefbot.jobs.store import BaseStore
from briefbot.models.records import Job
from briefbot.models.schemas import MeetingMetadata

logger = logging.getLogger(__name__)


@dataclass
class Upload:
    """One uploaded file as received by the endpoint."""

    filename: str
    content_type: Optional[str]
    data: bytes


def parse_metadata(raw: Optional[str]) -> MeetingMetadata:
    """Parse and validate the JSON metadata form field. Raises ClientInputError when it is missing, not JSON, or fails the schema."""
    if raw is None or not raw.strip():
        raise ClientInputError("Meeting metadata is required")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        raise ClientInputError("Invalid metadata format")
    return validate_metadata(payload)


def validate_metadata(payload: Any) -> MeetingMetadata:
    try:
        return MeetingMetadata.model_validate(payload)
    except ValidationError as e:
        details = [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()]
        raise ClientInputError("Invalid meeting metadata", details=details)


def validate_uploads(uploads: Sequence[Upload], *, allow_empty: bool = False) -> None:
    """Reject the request when there are no files (unless allow_empty), too many files, an oversized file, or a type outside the allow-list."""
    if not uploads and not allow_empty:
        raise ClientInputError("No files uploaded")
    if len(uploads) > settings.max_files:
        raise ClientInputError(f"Too many files ({len(uploads)}); at most {settings.max_files} allowed")
    for up in uploads:
        if len(up.data) > settings.max_file_bytes:
            raise ClientInputError(f"{up.filename} exceeds {settings.max_file_mb} MB limit")
        try:
            resolve_format(up.content_type, up.filename)
        except UnsupportedFormatError as e:
            raise ClientInputError(str(e))


def extract_uploads(
    uploads: Sequence[Upload],
    upload_root: Optional[str] = None,
) -> Tuple[List[Dict[str, str]], List[Dict[str, Any]]]:
    """Spool each upload to a temporary directory and extract its text. Files that fail extraction are logged and skipped.
    Returns (document_contents, document_files) for the files that parsed. The temporary directory is always removed."""
    root = upload_root or settings.upload_root
    os.makedirs(root, exist_ok=True)

    documents: List[Dict[str, str]] = []
    files: List[Dict[str, Any]] = []
    with tempfile.TemporaryDirectory(prefix="upload-", dir=root) as tmp:
        for i, up in enumerate(uploads):
            filename = up.filename or f"document-{i + 1}"
            path = os.path.join(tmp, f"{i:02d}-{os.path.basename(filename)}")
            with open(path, "wb") as out:
                out.write(up.data)
            try:
                text = extract_file(path, up.content_type, filename)
            except ExtractionError as e:
                logger.warning("document_skipped", extra={"file_name": filename, "error": str(e)})
                continue
            documents.append({"filename": filename, "text": text.strip()})
            files.append({
                "filename": filename,
                "file_type": resolve_format(up.content_type, filename),
                "file_size": len(up.data),
            })
    return documents, files


def create_pending_job(
    store: BaseStore,
    metadata: MeetingMetadata,
    documents: List[Dict[str, str]],
    files: Optional[List[Dict[str, Any]]] = None,
    calendar_event_id: Optional[str] = None,
) -> Job:
    """Create the pending job, or raise ClientInputError when no document survived extraction (no job row is written)."""
    if not documents:
        raise ClientInputError("Failed to parse any documents")
    job = store.create_job(
        metadata=metadata.model_dump(),
        document_contents=documents,
        document_files=files or [],
        calendar_event_id=calendar_event_id,
    )
    logger.info("job_created", extra={"job_id": job.id, "documents": len(documents)})
    return job


def submit_job(
    store: BaseStore,
    raw_metadata: Optional[str],
    uploads: Sequence[Upload],
    upload_root: Optional[str] = None,
) -> Job:
    """Validate uploads and metadata, extract the files, and create a pending job (progress 0).
    Why available: The synchronous half of POST /api/generate-brief; the caller schedules the processor afterwards."""
    validate_uploads(uploads)
    metadata = parse_metadata(raw_metadata)
    documents, files = extract_uploads(uploads, upload_root)
    return create_pending_job(store, metadata, documents, files)
