"""Bulk translation job API endpoints."""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from services.bulk_jobs.errors import InvalidJobStateError, JobNotFoundError, JobValidationError
from services.bulk_jobs.orchestrator import BulkJobOrchestrator
from services.smartling import SmartlingClient
from services.websocket_progress import websocket_manager
from shared.config import config
from shared.enums import JobStatus, JobType
from shared.logging_utils import setup_logging
from shared.models import BulkJobCreated, BulkJobRequest, JobResultsResponse, JobStatusResponse
from shared.response_models import APIResponse

logger = setup_logging("bulk-job-service")

orchestrator = BulkJobOrchestrator(
    SmartlingClient.from_config(),
    progress_publisher=websocket_manager,
)


def get_orchestrator() -> BulkJobOrchestrator:
    return orchestrator


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    await orchestrator.shutdown(cancel_pending=True)


app = FastAPI(
    title="Bulk Translation Job Service",
    description="Asynchronous bulk translation jobs on top of the Smartling API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get("allowed_origins", ["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint for the bulk job service."""
    return APIResponse(message="Bulk Job Service is healthy")


@app.post("/bulk-translate", response_model=BulkJobCreated)
async def bulk_translate(
    request: BulkJobRequest,
    jobs: BulkJobOrchestrator = Depends(get_orchestrator),
) -> BulkJobCreated:
    """Start a bulk translation job.

    The job runs in the background: files are uploaded, one Smartling job is
    created per target locale and their progress is polled until done.
    Returns a job ID for tracking progress.
    """
    try:
        job_id = await jobs.create_bulk_job(
            project_id=request.project_id,
            file_paths=request.file_paths,
            target_locales=request.target_locales,
            priority=request.priority,
            due_date=request.due_date,
        )
        logger.info(f"Started bulk job {job_id} for project {request.project_id}")
        return jobs.creation_receipt(job_id)

    except JobValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Failed to start bulk job: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to start bulk job: {e!s}") from e


@app.get("/status/{job_id}", response_model=JobStatusResponse, response_model_exclude_none=True)
async def get_job_status(
    job_id: str,
    include_details: bool = True,
    jobs: BulkJobOrchestrator = Depends(get_orchestrator),
) -> JobStatusResponse:
    """Get state, phase-weighted progress and ETA of a bulk job."""
    try:
        return jobs.get_job_status(job_id, include_details=include_details)

    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Failed to get job status for {job_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get job status: {e!s}") from e


@app.get("/results/{job_id}", response_model=JobResultsResponse, response_model_exclude_none=True)
async def get_job_results(
    job_id: str,
    include_quality: bool = True,
    include_files: bool = False,
    jobs: BulkJobOrchestrator = Depends(get_orchestrator),
) -> JobResultsResponse:
    """Get the consolidated results of a completed bulk job.

    ``include_files`` switches the lightweight per-file summary for the full
    per-file, per-locale breakdown.
    """
    try:
        return jobs.get_job_results(
            job_id, include_quality=include_quality, include_files=include_files
        )

    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidJobStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Failed to get job results for {job_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get job results: {e!s}") from e


@app.post("/cancel/{job_id}", response_model=dict)
async def cancel_job(
    job_id: str,
    jobs: BulkJobOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Cancel a queued or processing bulk job."""
    try:
        cancelled = await jobs.cancel_job(job_id)

        if not cancelled:
            status = jobs.get_job_status(job_id, include_details=False)
            return {
                "jobId": job_id,
                "cancelled": False,
                "message": f"Job {status.state.value} cannot be cancelled",
            }

        logger.info(f"Cancelled bulk job {job_id}")
        return {"jobId": job_id, "cancelled": True, "message": "Job cancelled successfully"}

    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Failed to cancel job {job_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to cancel job: {e!s}") from e


@app.get("/jobs", response_model=dict)
async def list_jobs(
    status: JobStatus | None = None,
    job_type: JobType | None = Query(None, alias="type"),
    project_id: str | None = None,
    jobs: BulkJobOrchestrator = Depends(get_orchestrator),
) -> dict:
    """List bulk jobs, optionally filtered by status, type or project."""
    try:
        summaries = jobs.list_jobs(status=status, job_type=job_type, project_id=project_id)
        return {
            "jobs": [summary.model_dump(mode="json", by_alias=True) for summary in summaries],
            "total": len(summaries),
        }

    except Exception as e:
        logger.error(f"Failed to list jobs: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list jobs: {e!s}") from e


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8010)
