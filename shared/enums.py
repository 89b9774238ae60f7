"""
Enums and constants used across the application.
"""

from enum import Enum


class JobStatus(str, Enum):
    """Lifecycle status of a bulk job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})


class JobPhase(str, Enum):
    """Pipeline phases, in execution order."""

    INITIALIZING = "initializing"
    UPLOADING_FILES = "uploading_files"
    STARTING_TRANSLATION = "starting_translation"
    TRANSLATING = "translating"
    QUALITY_CHECK = "quality_check"
    FINALIZING = "finalizing"
    COMPLETED = "completed"


class JobType(str, Enum):
    """Kinds of asynchronous operations."""

    BULK_TRANSLATION = "bulk_translation"


class JobPriority(str, Enum):
    """Requested priority. Informational only."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class FileStatus(str, Enum):
    """Upload outcome for a single source file."""

    UPLOADED = "uploaded"
    FAILED = "failed"


class SubJobStatus(str, Enum):
    """State of a per-locale remote translation job."""

    CREATED = "created"
    COMPLETED = "completed"
    FAILED = "failed"
