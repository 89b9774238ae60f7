from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shared.enums import (
    FileStatus,
    JobPhase,
    JobPriority,
    JobStatus,
    JobType,
    SubJobStatus,
    TERMINAL_STATUSES,
)


class CamelModel(BaseModel):
    """Base model serialised with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Request Models
class BulkJobRequest(CamelModel):
    project_id: str = Field(..., description="Smartling project identifier")
    file_paths: list[str] = Field(default_factory=list, description="Source files to translate")
    target_locales: list[str] = Field(default_factory=list, description="Target locale codes")
    priority: JobPriority = Field(default=JobPriority.NORMAL)
    due_date: str | None = Field(None, description="Due date in ISO format")


class BulkJobParams(CamelModel):
    """Immutable snapshot of a bulk translation request."""

    model_config = ConfigDict(frozen=True)

    project_id: str = Field(..., min_length=1)
    file_paths: tuple[str, ...] = Field(..., min_length=1)
    target_locales: tuple[str, ...] = Field(..., min_length=1)
    priority: JobPriority = JobPriority.NORMAL
    due_date: str | None = None

    @field_validator("file_paths", "target_locales")
    @classmethod
    def drop_duplicates(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(item.strip() for item in value if item.strip()))


# Job record
class JobProgress(CamelModel):
    completed: int = 0
    total: int
    current_phase: JobPhase = JobPhase.INITIALIZING

    def advance_to(self, value: int) -> None:
        """Move the counter forward. Never decreases and never exceeds total."""
        self.completed = max(self.completed, min(int(value), self.total))


class UploadedFile(CamelModel):
    original_path: str
    file_uri: str | None = None
    status: FileStatus
    error: str | None = None
    uploaded_at: datetime | None = None


class SubJob(CamelModel):
    locale: str
    remote_job_id: str | None = None
    status: SubJobStatus
    percent_complete: float = 0.0
    error: str | None = None


class QualityResults(CamelModel):
    overall_score: float = Field(..., ge=0.0, le=100.0)
    checks: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    passed_checks: int = 0


class LocaleOutcome(CamelModel):
    locale: str
    status: SubJobStatus
    percent_complete: float
    download_link: str | None = None


class FileOutcome(CamelModel):
    original_path: str
    file_uri: str | None = None
    status: FileStatus
    error: str | None = None
    locales: list[LocaleOutcome] = Field(default_factory=list)


class FileSummary(CamelModel):
    original_path: str
    status: FileStatus
    locales: list[str] = Field(default_factory=list)


class JobResults(CamelModel):
    total_strings: int
    translated_strings: int
    quality_metrics: QualityResults | None = None
    files: list[FileOutcome] = Field(default_factory=list)
    file_summary: list[FileSummary] = Field(default_factory=list)
    final_cost: str
    download_links: list[str] = Field(default_factory=list)


class QueuedState(CamelModel):
    status: Literal[JobStatus.QUEUED] = JobStatus.QUEUED


class ProcessingState(CamelModel):
    status: Literal[JobStatus.PROCESSING] = JobStatus.PROCESSING
    started_at: datetime


class CompletedState(CamelModel):
    status: Literal[JobStatus.COMPLETED] = JobStatus.COMPLETED
    started_at: datetime
    completed_at: datetime
    results: JobResults


class FailedState(CamelModel):
    status: Literal[JobStatus.FAILED] = JobStatus.FAILED
    started_at: datetime | None = None
    failed_at: datetime
    error: str


class CancelledState(CamelModel):
    status: Literal[JobStatus.CANCELLED] = JobStatus.CANCELLED
    started_at: datetime | None = None
    cancelled_at: datetime


JobState = Annotated[
    QueuedState | ProcessingState | CompletedState | FailedState | CancelledState,
    Field(discriminator="status"),
]


class JobRecord(CamelModel):
    """Full mutable state of one job.

    Fields that only make sense in a given lifecycle status (results, error,
    terminal timestamps) live on the ``state`` variant, so a queued job cannot
    carry results and a completed job cannot carry an error.
    """

    id: str
    type: JobType = JobType.BULK_TRANSLATION
    params: BulkJobParams
    created_at: datetime
    estimated_duration_minutes: float
    progress: JobProgress
    state: JobState = Field(default_factory=QueuedState)
    uploaded_files: list[UploadedFile] = Field(default_factory=list)
    sub_jobs: list[SubJob] = Field(default_factory=list)
    quality_results: QualityResults | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def status(self) -> JobStatus:
        return self.state.status

    @property
    def is_terminal(self) -> bool:
        return self.state.status in TERMINAL_STATUSES

    @property
    def started_at(self) -> datetime | None:
        return getattr(self.state, "started_at", None)

    def errors(self) -> list[str]:
        """Collect per-item and pipeline errors as human readable strings."""
        messages = [
            f"File {item.original_path}: {item.error}"
            for item in self.uploaded_files
            if item.status == FileStatus.FAILED
        ]
        messages.extend(
            f"Locale {sub_job.locale}: {sub_job.error}"
            for sub_job in self.sub_jobs
            if sub_job.status == SubJobStatus.FAILED
        )
        if isinstance(self.state, FailedState):
            messages.append(self.state.error)
        return messages


# Response Models
class BulkJobCreated(CamelModel):
    job_id: str
    status: JobStatus
    estimated_completion: str
    cost_estimate: str
    files_count: int
    locales_count: int
    next_step: str


class JobStatusDetails(CamelModel):
    created: datetime
    started: datetime | None = None
    type: JobType
    params: BulkJobParams
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    metrics: dict[str, int] = Field(default_factory=dict)
    uploaded_files: list[UploadedFile] = Field(default_factory=list)
    sub_jobs: list[SubJob] = Field(default_factory=list)
    quality_results: QualityResults | None = None


class JobStatusResponse(CamelModel):
    state: JobStatus
    completed: int
    total: int
    estimated_completion: str
    current_phase: JobPhase
    details: JobStatusDetails | None = None


class JobResultsResponse(CamelModel):
    completion_time: datetime
    total_strings: int
    translated_strings: int
    quality_metrics: QualityResults | None = None
    files: list[FileOutcome] | None = None
    file_summary: list[FileSummary] | None = None
    final_cost: str
    download_links: list[str] = Field(default_factory=list)


class JobSummary(CamelModel):
    id: str
    type: JobType
    status: JobStatus
    created: datetime
    progress: JobProgress
    estimated_completion: str


class ProgressUpdate(CamelModel):
    """Real-time progress update for WebSocket clients."""

    job_id: str
    state: JobStatus
    current_phase: JobPhase
    completed: int
    total: int
    estimated_completion: str
    message: str | None = None
    error: str | None = None
