"""Exceptions raised by the bulk job orchestrator."""


class BulkJobError(Exception):
    """Base class for bulk job errors."""


class JobValidationError(BulkJobError):
    """Request rejected before any job record was created."""


class JobNotFoundError(BulkJobError):
    """No job exists with the given identifier."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class InvalidJobStateError(BulkJobError):
    """Operation not allowed in the job's current status."""

    def __init__(self, job_id: str, status: str, message: str | None = None) -> None:
        super().__init__(message or f"Job {job_id} is not completed. Current status: {status}")
        self.job_id = job_id
        self.status = status
