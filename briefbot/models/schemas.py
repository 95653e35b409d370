from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional

MeetingType = Literal["decision", "discussion", "planning", "review", "other"]
AudienceLevel = Literal["exec", "ic"]


class ApiModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire (accepts either on input)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MeetingMetadata(ApiModel):
    """Meeting descriptor submitted with the documents. Why available: Validated before any job is created; rejected metadata never reaches the processor."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=1, description="Meeting title")
    attendees: str = Field(..., min_length=1, description="Attendees as free text")
    meeting_type: MeetingType
    audience_level: AudienceLevel


class BriefOption(ApiModel):
    option: str
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)


class ActionItem(ApiModel):
    """One checklist entry. Unknown owner/due date use the "TBD (role)" / "TBD" sentinels, never invented values."""

    owner: str
    task: str
    due_date: str
    source: Optional[str] = None


class Source(ApiModel):
    """Citation record linking the brief to an uploaded file (and optionally a section or page)."""

    label: str
    filename: str
    section: Optional[str] = None


class Brief(ApiModel):
    """Public brief shape. word_count and generated_at are computed locally, never taken from the model."""

    goal: str
    context: List[str] = Field(default_factory=list)
    options: List[BriefOption] = Field(default_factory=list)
    risks_tradeoffs: List[str] = Field(default_factory=list)
    decisions: List[str] = Field(default_factory=list)
    action_checklist: List[ActionItem] = Field(default_factory=list)
    sources: List[Source] = Field(default_factory=list)
    word_count: int = Field(..., ge=0)
    generated_at: str = Field(..., description="ISO-8601 UTC timestamp")


class MeetingResponse(ApiModel):
    id: str
    title: str
    attendees: str
    meeting_type: str
    audience_level: str
    calendar_event_id: Optional[str] = None
    created_at: str


class BriefResponse(Brief):
    """Persisted brief in public shape, with its id and (for listings/detail) the meeting it belongs to."""

    id: str
    meeting: Optional[MeetingResponse] = None


class BriefListResponse(ApiModel):
    success: bool = True
    briefs: List[BriefResponse] = Field(default_factory=list)


class SubmitJobResponse(ApiModel):
    """Response for POST /api/generate-brief: the job handle to poll. Why available: The request returns before generation runs."""

    success: bool = True
    job_id: str
    status: str
    progress: int = Field(..., ge=0, le=100)


class JobStatusResponse(ApiModel):
    """Response for GET /api/jobs/{job_id}. brief is embedded once the job is completed."""

    job_id: str
    status: str
    progress: int = Field(..., ge=0, le=100)
    error: Optional[str] = None
    result_brief_id: Optional[str] = None
    created_at: str
    updated_at: str
    brief: Optional[BriefResponse] = None


class LimitsResponse(ApiModel):
    """Response for GET /limits: upload limits and brief budget. Why available: Lets clients enforce limits before uploading."""

    max_files: int = Field(..., description="Max files per submission")
    max_file_mb: int = Field(..., description="Max size per file in MB")
    max_brief_words: int = Field(..., description="Word budget for generated briefs")
    generation_max_attempts: int = Field(..., description="Attempts per generation call")
    allowed_extensions: List[str] = Field(default_factory=list)


class CalendarStatusResponse(ApiModel):
    success: bool = True
    connected: bool


class CalendarInfo(ApiModel):
    id: str
    summary: str
    primary: bool = False


class CalendarListResponse(ApiModel):
    success: bool = True
    calendars: List[CalendarInfo] = Field(default_factory=list)


class CalendarEventResponse(ApiModel):
    id: str
    summary: str
    description: Optional[str] = None
    start: str
    end: str
    attendees: List[str] = Field(default_factory=list)
    html_link: str = ""


class CalendarEventsResponse(ApiModel):
    success: bool = True
    events: List[CalendarEventResponse] = Field(default_factory=list)


class CalendarBriefResponse(ApiModel):
    """Response for POST /api/calendar/generate-brief: a new job handle, or the existing brief for the event."""

    success: bool = True
    job_id: Optional[str] = None
    existing_brief_id: Optional[str] = None
    event: Optional[CalendarEventResponse] = None


class BriefSummaryRequest(ApiModel):
    calendar_id: str = "primary"
    brief_id: str


class BriefSummaryResponse(ApiModel):
    success: bool
