"""Phase-weighted progress, ETA and cost helpers for bulk jobs."""

import math
from datetime import UTC, datetime

from shared.enums import JobPhase, JobStatus
from shared.models import BulkJobParams, CompletedState, JobRecord

STRINGS_PER_FILE = 100
BASE_DURATION_MINUTES = 10.0
MINUTES_PER_FILE = 2.0
MINUTES_PER_LOCALE = 1.5

# Percentage of progress.total each phase may advance the counter to
PHASE_PROGRESS: dict[JobPhase, int] = {
    JobPhase.INITIALIZING: 5,
    JobPhase.UPLOADING_FILES: 25,
    JobPhase.STARTING_TRANSLATION: 35,
    JobPhase.TRANSLATING: 80,
    JobPhase.QUALITY_CHECK: 95,
    JobPhase.FINALIZING: 100,
    JobPhase.COMPLETED: 100,
}
PHASE_ORDER: list[JobPhase] = list(PHASE_PROGRESS)


def estimate_job_size(params: BulkJobParams, strings_per_file: int = STRINGS_PER_FILE) -> int:
    """Rough number of strings the job will translate across all locales."""
    return len(params.file_paths) * len(params.target_locales) * strings_per_file


def estimate_job_duration(params: BulkJobParams) -> float:
    """Estimated duration in minutes."""
    return max(
        BASE_DURATION_MINUTES,
        len(params.file_paths) * MINUTES_PER_FILE + len(params.target_locales) * MINUTES_PER_LOCALE,
    )


def phase_floor(phase: JobPhase) -> int:
    """Ceiling of the phase preceding ``phase`` (0 for the first one)."""
    index = PHASE_ORDER.index(phase)
    return PHASE_PROGRESS[PHASE_ORDER[index - 1]] if index > 0 else 0


def phase_progress(total: int, phase: JobPhase, fraction: float = 1.0) -> int:
    """Progress value for having done ``fraction`` of ``phase``.

    The result sits between the previous phase's ceiling and this phase's
    ceiling, scaled to ``total``.
    """
    fraction = max(0.0, min(fraction, 1.0))
    floor = phase_floor(phase)
    percent = floor + (PHASE_PROGRESS[phase] - floor) * fraction
    return math.floor(total * percent / 100)


def format_minutes(minutes: float) -> str:
    return f"~{minutes:g} minutes"


def calculate_eta(record: JobRecord, now: datetime | None = None) -> str:
    """Estimate completion for a job.

    Terminal jobs report their completion timestamp (or ``N/A``). Running
    jobs extrapolate linearly from elapsed time and the progress ratio, and
    fall back to the creation-time duration estimate while progress is zero.
    """
    state = record.state
    if isinstance(state, CompletedState):
        return state.completed_at.isoformat()
    if state.status in (JobStatus.FAILED, JobStatus.CANCELLED):
        return "N/A"

    total = record.progress.total
    ratio = record.progress.completed / total if total else 0.0
    if ratio <= 0:
        return format_minutes(record.estimated_duration_minutes)

    now = now or datetime.now(UTC)
    elapsed = max((now - record.created_at).total_seconds(), 0.0)
    remaining = elapsed / ratio - elapsed
    return format_minutes(math.ceil(remaining / 60))


def calculate_final_cost(strings: int, cost_per_string: float) -> str:
    """Format the cost of ``strings`` translated strings as dollars."""
    return f"${strings * cost_per_string:.2f}"
