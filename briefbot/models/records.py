"""Records persisted by the job store: jobs, meetings, briefs, per-document metadata, and analytics stubs."""
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, List, Optional

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"


class _Record:
    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Build a record from stored data, ignoring keys this version does not know about."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Job(_Record):
    """A single brief-generation job. status is pending | processing | completed | failed; progress only moves forward until a terminal state.
    document_contents holds [{filename, text}] extracted at submission time; document_files mirrors it as [{filename, file_type, file_size}]."""

    id: str
    status: str
    progress: int
    metadata: Dict[str, str]
    document_contents: List[Dict[str, str]]
    created_at: float
    updated_at: float
    document_files: List[Dict[str, Any]] = field(default_factory=list)
    result_brief_id: Optional[str] = None
    error: Optional[str] = None
    calendar_event_id: Optional[str] = None


@dataclass
class MeetingRecord(_Record):
    id: str
    title: str
    attendees: str
    meeting_type: str
    audience_level: str
    created_at: float
    calendar_event_id: Optional[str] = None


@dataclass
class BriefRecord(_Record):
    """Stored brief. Field names are snake_case; the API renames created_at to generatedAt."""

    id: str
    meeting_id: str
    goal: str
    context: List[str]
    options: List[Dict[str, Any]]
    risks_tradeoffs: List[str]
    decisions: List[str]
    action_checklist: List[Dict[str, Any]]
    sources: List[Dict[str, Any]]
    word_count: int
    created_at: float


@dataclass
class DocumentRecord(_Record):
    id: str
    meeting_id: str
    filename: str
    file_type: str
    file_size: int
    created_at: float


@dataclass
class AnalyticRecord(_Record):
    # Counters are filled in later by whoever tracks meeting outcomes.
    id: str
    brief_id: str
    meeting_id: str
    created_at: float
    updated_at: float
    decisions_made: int = 0
    decisions_deferred: int = 0
    action_items_completed: int = 0
    outcome: Optional[str] = None
    notes: Optional[str] = None
