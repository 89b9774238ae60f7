"""Bulk translation job orchestrator.

Accepts a request to translate a set of files into a set of locales, splits it
into one remote Smartling job per locale and drives it through a fixed
sequence of phases in a background task:

    initializing -> uploading_files -> starting_translation -> translating
    -> quality_check -> finalizing -> completed

Failures of a single file or locale are recorded on that item and never abort
the job. Only an exception escaping a phase moves the job to ``failed``.
"""

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import ValidationError

from services.bulk_jobs.errors import InvalidJobStateError, JobValidationError
from services.bulk_jobs.estimates import (
    calculate_eta,
    calculate_final_cost,
    estimate_job_duration,
    estimate_job_size,
    phase_progress,
)
from services.bulk_jobs.quality import QualityChecker
from services.bulk_jobs.store import JobStore
from shared.config import config
from shared.enums import FileStatus, JobPhase, JobPriority, JobStatus, JobType, SubJobStatus
from shared.logging_utils import setup_logging
from shared.models import (
    BulkJobCreated,
    BulkJobParams,
    CancelledState,
    CompletedState,
    FailedState,
    FileOutcome,
    FileSummary,
    JobProgress,
    JobRecord,
    JobResults,
    JobResultsResponse,
    JobStatusDetails,
    JobStatusResponse,
    JobSummary,
    LocaleOutcome,
    ProcessingState,
    ProgressUpdate,
    SubJob,
    UploadedFile,
)

logger = setup_logging("bulk-job-orchestrator")


class TranslationServiceClient(Protocol):
    """Remote operations the pipeline needs from the translation service."""

    async def upload_file(self, project_id: str, file_path: str) -> str: ...

    async def create_locale_sub_job(
        self,
        project_id: str,
        name: str,
        locale: str,
        description: str | None = None,
        due_date: str | None = None,
    ) -> str: ...

    async def add_files_to_job(
        self,
        project_id: str,
        job_id: str,
        file_uris: list[str],
        locale_ids: list[str] | None = None,
    ) -> None: ...

    async def query_progress(self, project_id: str, job_id: str) -> float: ...

    async def cancel_remote_job(
        self, project_id: str, job_id: str, reason: str | None = None
    ) -> None: ...


class ProgressPublisher(Protocol):
    async def send_progress_update(self, job_id: str, progress_data: dict[str, Any]) -> None: ...


class JobCancelled(Exception):
    """Raised inside a pipeline once it observes a cancellation."""


def _now() -> datetime:
    return datetime.now(UTC)


class BulkJobOrchestrator:
    """Creates bulk jobs, runs their pipelines and answers queries about them."""

    def __init__(
        self,
        client: TranslationServiceClient,
        *,
        store: JobStore | None = None,
        quality_checker: QualityChecker | None = None,
        progress_publisher: ProgressPublisher | None = None,
        poll_interval: float | None = None,
        max_poll_checks: int | None = None,
        cost_per_string: float | None = None,
        strings_per_file: int | None = None,
        download_base_url: str | None = None,
    ) -> None:
        self.client = client
        self.store = store or JobStore()
        self.quality_checker = quality_checker or QualityChecker()
        self.progress_publisher = progress_publisher

        settings = config.bulk_job_settings()
        self.poll_interval = float(
            settings.poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.max_poll_checks = int(
            settings.max_poll_checks if max_poll_checks is None else max_poll_checks
        )
        self.cost_per_string = float(
            settings.cost_per_string if cost_per_string is None else cost_per_string
        )
        self.strings_per_file = int(
            settings.strings_per_file if strings_per_file is None else strings_per_file
        )
        self.download_base_url = (download_base_url or settings.download_base_url).rstrip("/")

        # Remote cancellation requests still in flight
        self._background: set[asyncio.Task] = set()

    # ===== Job creation =====

    async def create_bulk_job(
        self,
        project_id: str,
        file_paths: Iterable[str],
        target_locales: Iterable[str],
        priority: JobPriority | str = JobPriority.NORMAL,
        due_date: str | None = None,
    ) -> str:
        """Register a bulk job and start its pipeline in the background.

        Returns the job id immediately. Pipeline errors never reach the
        caller; they show up in the job's status.
        """
        params = self._build_params(project_id, file_paths, target_locales, priority, due_date)
        job_id = self._generate_job_id()

        record = JobRecord(
            id=job_id,
            type=JobType.BULK_TRANSLATION,
            params=params,
            created_at=_now(),
            estimated_duration_minutes=estimate_job_duration(params),
            progress=JobProgress(total=estimate_job_size(params, self.strings_per_file)),
        )
        self.store.add(record)

        task = asyncio.create_task(self._run_pipeline(job_id), name=f"bulk-job-{job_id}")
        self.store.attach_task(job_id, task)

        logger.info(
            f"Queued bulk job {job_id}: {len(params.file_paths)} files x "
            f"{len(params.target_locales)} locales (priority {params.priority.value})"
        )
        return job_id

    def creation_receipt(self, job_id: str) -> BulkJobCreated:
        """Summary returned to callers right after a job is created."""
        record = self.store.require(job_id)
        return BulkJobCreated(
            job_id=job_id,
            status=record.status,
            estimated_completion=calculate_eta(record),
            cost_estimate=calculate_final_cost(record.progress.total, self.cost_per_string),
            files_count=len(record.params.file_paths),
            locales_count=len(record.params.target_locales),
            next_step=f'Check progress with job_id "{job_id}"',
        )

    @staticmethod
    def _build_params(
        project_id: str,
        file_paths: Iterable[str],
        target_locales: Iterable[str],
        priority: JobPriority | str,
        due_date: str | None,
    ) -> BulkJobParams:
        files = [path.strip() for path in file_paths or [] if path and path.strip()]
        locales = [locale.strip() for locale in target_locales or [] if locale and locale.strip()]
        if not files:
            raise JobValidationError("At least one file path is required")
        if not locales:
            raise JobValidationError("At least one target locale is required")

        try:
            return BulkJobParams(
                project_id=project_id,
                file_paths=files,
                target_locales=locales,
                priority=priority,
                due_date=due_date,
            )
        except ValidationError as exc:
            raise JobValidationError(f"Invalid bulk job request: {exc}") from exc

    def _generate_job_id(self) -> str:
        while True:
            job_id = f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
            if job_id not in self.store:
                return job_id

    # ===== Pipeline =====

    async def _run_pipeline(self, job_id: str) -> None:
        record = self.store.require(job_id)
        lock = self.store.lock(job_id)

        try:
            async with lock:
                if record.is_terminal:
                    # Cancelled before the task got scheduled
                    return
                record.state = ProcessingState(started_at=_now())
                record.progress.current_phase = JobPhase.INITIALIZING
                record.progress.advance_to(
                    phase_progress(record.progress.total, JobPhase.INITIALIZING)
                )
            await self._publish(record, "Job started")

            phases: list[tuple[JobPhase, Callable[[JobRecord], Awaitable[None]]]] = [
                (JobPhase.UPLOADING_FILES, self._upload_files),
                (JobPhase.STARTING_TRANSLATION, self._start_translation_jobs),
                (JobPhase.TRANSLATING, self._monitor_translation_progress),
                (JobPhase.QUALITY_CHECK, self._perform_quality_checks),
                (JobPhase.FINALIZING, self._finalize_job),
            ]
            for phase, run_phase in phases:
                await self._enter_phase(record, phase)
                await run_phase(record)

            logger.info(f"Completed bulk job {job_id}")
            await self._publish(record, "Job completed")

        except JobCancelled:
            logger.info(f"Bulk job {job_id} stopped after cancellation")

        except asyncio.CancelledError:
            async with lock:
                if not record.is_terminal:
                    record.state = CancelledState(
                        started_at=record.started_at, cancelled_at=_now()
                    )
            logger.warning(f"Pipeline task for bulk job {job_id} was interrupted")
            raise

        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"Bulk job {job_id} failed: {error}", exc_info=True)
            async with lock:
                if record.is_terminal:
                    return
                record.state = FailedState(
                    started_at=record.started_at, failed_at=_now(), error=error
                )
            await self._publish(record, "Job failed", error=error)

    @staticmethod
    def _ensure_active(record: JobRecord) -> None:
        if record.status != JobStatus.PROCESSING:
            raise JobCancelled(record.id)

    async def _enter_phase(self, record: JobRecord, phase: JobPhase) -> None:
        async with self.store.lock(record.id):
            self._ensure_active(record)
            record.progress.current_phase = phase
        logger.info(f"Bulk job {record.id} entering phase {phase.value}")
        await self._publish(record, f"Phase {phase.value} started")

    async def _advance(self, record: JobRecord, phase: JobPhase, fraction: float) -> None:
        async with self.store.lock(record.id):
            self._ensure_active(record)
            record.progress.advance_to(phase_progress(record.progress.total, phase, fraction))

    async def _upload_files(self, record: JobRecord) -> None:
        params = record.params
        total = len(params.file_paths)

        for index, file_path in enumerate(params.file_paths, start=1):
            self._ensure_active(record)
            try:
                file_uri = await self.client.upload_file(params.project_id, file_path)
            except Exception as e:
                logger.error(f"Failed to upload file {file_path} for job {record.id}: {e}")
                entry = UploadedFile(original_path=file_path, status=FileStatus.FAILED, error=str(e))
            else:
                entry = UploadedFile(
                    original_path=file_path,
                    file_uri=file_uri,
                    status=FileStatus.UPLOADED,
                    uploaded_at=_now(),
                )

            async with self.store.lock(record.id):
                record.uploaded_files.append(entry)
            await self._advance(record, JobPhase.UPLOADING_FILES, index / total)

    async def _start_translation_jobs(self, record: JobRecord) -> None:
        params = record.params
        total = len(params.target_locales)
        file_uris = [
            item.file_uri
            for item in record.uploaded_files
            if item.status == FileStatus.UPLOADED and item.file_uri
        ]

        for index, locale in enumerate(params.target_locales, start=1):
            self._ensure_active(record)
            sub_job = SubJob(locale=locale, status=SubJobStatus.CREATED)
            try:
                sub_job.remote_job_id = await self.client.create_locale_sub_job(
                    params.project_id,
                    name=f"Bulk Translation - {locale} - {_now().isoformat()}",
                    locale=locale,
                    description=f"Automated bulk translation job {record.id}",
                    due_date=params.due_date,
                )
            except Exception as e:
                logger.error(f"Failed to create translation job for locale {locale}: {e}")
                sub_job.status = SubJobStatus.FAILED
                sub_job.error = str(e)

            if sub_job.remote_job_id and file_uris:
                try:
                    await self.client.add_files_to_job(
                        params.project_id, sub_job.remote_job_id, file_uris, [locale]
                    )
                except Exception as e:
                    logger.error(
                        f"Failed to attach files to translation job {sub_job.remote_job_id} "
                        f"({locale}): {e}"
                    )
                    sub_job.status = SubJobStatus.FAILED
                    sub_job.error = str(e)
                    # The remote job exists but will never get work
                    self._spawn(
                        self._cancel_remote_jobs(
                            params.project_id, record.id, [sub_job.remote_job_id]
                        )
                    )

            async with self.store.lock(record.id):
                record.sub_jobs.append(sub_job)
                orphaned = (
                    record.status == JobStatus.CANCELLED
                    and sub_job.remote_job_id is not None
                    and sub_job.status != SubJobStatus.FAILED
                )
            if orphaned:
                # Created while the cancel request was being handled
                self._spawn(
                    self._cancel_remote_jobs(params.project_id, record.id, [sub_job.remote_job_id])
                )
            await self._advance(record, JobPhase.STARTING_TRANSLATION, index / total)

    async def _monitor_translation_progress(self, record: JobRecord) -> None:
        """Bounded polling loop over the per-locale jobs.

        Runs at most ``max_poll_checks`` passes. When the budget runs out the
        phase ends anyway, leaving unfinished locales in ``created`` state.
        """
        project_id = record.params.project_id
        cancel_event = self.store.cancel_event(record.id)

        for check in range(1, self.max_poll_checks + 1):
            self._ensure_active(record)
            all_completed = True

            for sub_job in record.sub_jobs:
                if sub_job.status != SubJobStatus.CREATED:
                    continue
                self._ensure_active(record)
                try:
                    percent = await self.client.query_progress(project_id, sub_job.remote_job_id)
                except Exception as e:
                    logger.error(
                        f"Failed to check progress for job {sub_job.remote_job_id} "
                        f"({sub_job.locale}): {e}"
                    )
                    async with self.store.lock(record.id):
                        self._ensure_active(record)
                        sub_job.status = SubJobStatus.FAILED
                        sub_job.error = str(e)
                    continue

                async with self.store.lock(record.id):
                    self._ensure_active(record)
                    sub_job.percent_complete = percent
                    if percent >= 100:
                        sub_job.status = SubJobStatus.COMPLETED
                    else:
                        all_completed = False

            observed = [s.percent_complete for s in record.sub_jobs]
            average = sum(observed) / len(observed) if observed else 0.0
            await self._advance(record, JobPhase.TRANSLATING, average / 100)
            await self._publish(record, f"Translation at {average:.0f}% (check {check})")
            logger.debug(f"Bulk job {record.id} poll {check}/{self.max_poll_checks}: {average:.1f}%")

            if all_completed:
                return
            if check < self.max_poll_checks:
                await self._wait_or_cancel(cancel_event, self.poll_interval)

        pending = [s.locale for s in record.sub_jobs if s.status == SubJobStatus.CREATED]
        warning = (
            f"Polling budget of {self.max_poll_checks} checks exhausted; "
            f"locales still in progress: {', '.join(pending)}"
        )
        logger.warning(f"Bulk job {record.id}: {warning}")
        async with self.store.lock(record.id):
            record.warnings.append(warning)

    @staticmethod
    async def _wait_or_cancel(cancel_event: asyncio.Event, seconds: float) -> None:
        """Sleep for ``seconds`` unless the job is cancelled first."""
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _perform_quality_checks(self, record: JobRecord) -> None:
        quality = await self.quality_checker.assess(record)
        async with self.store.lock(record.id):
            self._ensure_active(record)
            record.quality_results = quality
            record.progress.advance_to(
                phase_progress(record.progress.total, JobPhase.QUALITY_CHECK)
            )

    async def _finalize_job(self, record: JobRecord) -> None:
        results = self._build_results(record)
        async with self.store.lock(record.id):
            self._ensure_active(record)
            record.state = CompletedState(
                started_at=record.started_at,
                completed_at=_now(),
                results=results,
            )
            record.progress.advance_to(record.progress.total)
            record.progress.current_phase = JobPhase.COMPLETED

    def _build_results(self, record: JobRecord) -> JobResults:
        params = record.params
        completed = [s for s in record.sub_jobs if s.status == SubJobStatus.COMPLETED]
        uploaded = [f for f in record.uploaded_files if f.status == FileStatus.UPLOADED]
        translated_strings = len(uploaded) * len(completed) * self.strings_per_file

        files: list[FileOutcome] = []
        file_summary: list[FileSummary] = []
        for item in record.uploaded_files:
            is_uploaded = item.status == FileStatus.UPLOADED
            files.append(
                FileOutcome(
                    original_path=item.original_path,
                    file_uri=item.file_uri,
                    status=item.status,
                    error=item.error,
                    locales=[
                        LocaleOutcome(
                            locale=sub_job.locale,
                            status=sub_job.status,
                            percent_complete=sub_job.percent_complete,
                            download_link=(
                                self._download_link(sub_job)
                                if sub_job.status == SubJobStatus.COMPLETED
                                else None
                            ),
                        )
                        for sub_job in record.sub_jobs
                    ]
                    if is_uploaded
                    else [],
                )
            )
            file_summary.append(
                FileSummary(
                    original_path=item.original_path,
                    status=item.status,
                    locales=[sub_job.locale for sub_job in completed] if is_uploaded else [],
                )
            )

        return JobResults(
            total_strings=len(params.file_paths) * len(params.target_locales) * self.strings_per_file,
            translated_strings=translated_strings,
            quality_metrics=record.quality_results,
            files=files,
            file_summary=file_summary,
            final_cost=calculate_final_cost(translated_strings, self.cost_per_string),
            download_links=[self._download_link(sub_job) for sub_job in completed],
        )

    def _download_link(self, sub_job: SubJob) -> str:
        return f"{self.download_base_url}/{sub_job.remote_job_id}/download"

    # ===== Queries =====

    def get_job(self, job_id: str) -> JobRecord:
        """Copy of the full job record."""
        return self.store.snapshot(job_id)

    def get_job_status(self, job_id: str, include_details: bool = True) -> JobStatusResponse:
        record = self.store.snapshot(job_id)

        details = None
        if include_details:
            details = JobStatusDetails(
                created=record.created_at,
                started=record.started_at,
                type=record.type,
                params=record.params,
                errors=record.errors(),
                warnings=record.warnings,
                metrics=self._metrics(record),
                uploaded_files=record.uploaded_files,
                sub_jobs=record.sub_jobs,
                quality_results=record.quality_results,
            )

        return JobStatusResponse(
            state=record.status,
            completed=record.progress.completed,
            total=record.progress.total,
            estimated_completion=calculate_eta(record),
            current_phase=record.progress.current_phase,
            details=details,
        )

    @staticmethod
    def _metrics(record: JobRecord) -> dict[str, int]:
        def count_files(status: FileStatus) -> int:
            return sum(item.status == status for item in record.uploaded_files)

        def count_locales(status: SubJobStatus) -> int:
            return sum(sub_job.status == status for sub_job in record.sub_jobs)

        return {
            "files_uploaded": count_files(FileStatus.UPLOADED),
            "files_failed": count_files(FileStatus.FAILED),
            "locales_completed": count_locales(SubJobStatus.COMPLETED),
            "locales_failed": count_locales(SubJobStatus.FAILED),
            "locales_in_progress": count_locales(SubJobStatus.CREATED),
        }

    def get_job_results(
        self,
        job_id: str,
        include_quality: bool = True,
        include_files: bool = False,
    ) -> JobResultsResponse:
        record = self.store.snapshot(job_id)
        state = record.state
        if not isinstance(state, CompletedState):
            raise InvalidJobStateError(job_id, record.status.value)

        results = state.results
        return JobResultsResponse(
            completion_time=state.completed_at,
            total_strings=results.total_strings,
            translated_strings=results.translated_strings,
            quality_metrics=results.quality_metrics if include_quality else None,
            files=results.files if include_files else None,
            file_summary=None if include_files else results.file_summary,
            final_cost=results.final_cost,
            download_links=results.download_links,
        )

    def list_jobs(
        self,
        status: JobStatus | str | None = None,
        job_type: JobType | str | None = None,
        project_id: str | None = None,
    ) -> list[JobSummary]:
        summaries = []
        for record in self.store.records():
            if status and record.status != status:
                continue
            if job_type and record.type != job_type:
                continue
            if project_id and record.params.project_id != project_id:
                continue
            summaries.append(
                JobSummary(
                    id=record.id,
                    type=record.type,
                    status=record.status,
                    created=record.created_at,
                    progress=record.progress.model_copy(),
                    estimated_completion=calculate_eta(record),
                )
            )
        return summaries

    # ===== Cancellation =====

    async def cancel_job(self, job_id: str) -> bool:
        """Cancel a queued or processing job.

        Returns False for unknown or already finished jobs. Remote Smartling
        jobs are cancelled in the background; their failures are only logged.
        """
        record = self.store.get(job_id)
        if record is None:
            return False

        async with self.store.lock(job_id):
            if record.is_terminal:
                return False
            record.state = CancelledState(started_at=record.started_at, cancelled_at=_now())
            remote_ids = [
                sub_job.remote_job_id
                for sub_job in record.sub_jobs
                if sub_job.remote_job_id and sub_job.status != SubJobStatus.FAILED
            ]
            self.store.cancel_event(job_id).set()

        logger.info(f"Cancelled bulk job {job_id}")
        if remote_ids:
            self._spawn(self._cancel_remote_jobs(record.params.project_id, job_id, remote_ids))
        await self._publish(record, "Job cancelled by user")
        return True

    async def _cancel_remote_jobs(self, project_id: str, job_id: str, remote_ids: list[str]) -> None:
        for remote_id in remote_ids:
            try:
                await self.client.cancel_remote_job(
                    project_id, remote_id, reason=f"Bulk job {job_id} cancelled"
                )
            except Exception as e:
                logger.error(f"Failed to cancel Smartling job {remote_id}: {e}")

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ===== Lifecycle =====

    async def wait_for_job(self, job_id: str, timeout: float | None = None) -> JobRecord:
        """Wait until the job's pipeline task finishes (or ``timeout`` elapses)."""
        self.store.require(job_id)
        task = self.store.task(job_id)
        if task is not None:
            await asyncio.wait({task}, timeout=timeout)
        return self.store.snapshot(job_id)

    async def shutdown(self, cancel_pending: bool = False) -> None:
        """Await (or cancel) outstanding pipelines and remote cancellations."""
        tasks = self.store.pending_tasks() + list(self._background)
        if cancel_pending:
            for task in tasks:
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _publish(self, record: JobRecord, message: str, error: str | None = None) -> None:
        if self.progress_publisher is None:
            return

        update = ProgressUpdate(
            job_id=record.id,
            state=record.status,
            current_phase=record.progress.current_phase,
            completed=record.progress.completed,
            total=record.progress.total,
            estimated_completion=calculate_eta(record),
            message=message,
            error=error,
        )
        try:
            await self.progress_publisher.send_progress_update(
                record.id, update.model_dump(mode="json", by_alias=True)
            )
        except Exception as e:
            logger.warning(f"Failed to publish progress for job {record.id}: {e}")
