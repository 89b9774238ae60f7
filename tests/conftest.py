import sys
from pathlib import Path
from typing import Any

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from services.bulk_jobs.orchestrator import BulkJobOrchestrator
from services.smartling import SmartlingAPIError


class FakeSmartlingClient:
    """In-memory Smartling client with switchable failures."""

    def __init__(self) -> None:
        self.uploaded: list[str] = []
        self.created: list[str] = []
        self.attached: dict[str, list[str]] = {}
        self.cancelled: list[str] = []
        self.progress_calls: list[str] = []
        self.failing_uploads: set[str] = set()
        self.failing_locales: set[str] = set()
        self.failing_attach: set[str] = set()
        self.failing_progress: set[str] = set()
        self.progress_by_locale: dict[str, list[float]] = {}
        self.default_progress = 100.0
        self.fail_cancel = False
        self._locale_by_job: dict[str, str] = {}

    async def upload_file(self, project_id: str, file_path: str) -> str:
        if file_path in self.failing_uploads:
            raise SmartlingAPIError(f"Upload rejected for {file_path}")
        self.uploaded.append(file_path)
        return f"/files/{file_path}"

    async def create_locale_sub_job(
        self,
        project_id: str,
        name: str,
        locale: str,
        description: str | None = None,
        due_date: str | None = None,
    ) -> str:
        if locale in self.failing_locales:
            raise SmartlingAPIError(f"Cannot create job for {locale}")
        job_uid = f"uid-{locale}"
        self.created.append(locale)
        self._locale_by_job[job_uid] = locale
        return job_uid

    async def add_files_to_job(
        self,
        project_id: str,
        job_id: str,
        file_uris: list[str],
        locale_ids: list[str] | None = None,
    ) -> None:
        if job_id in self.failing_attach:
            raise SmartlingAPIError(f"Cannot attach files to {job_id}")
        self.attached[job_id] = list(file_uris)

    async def query_progress(self, project_id: str, job_id: str) -> float:
        locale = self._locale_by_job[job_id]
        self.progress_calls.append(locale)
        if locale in self.failing_progress:
            raise SmartlingAPIError("Progress unavailable")
        values = self.progress_by_locale.get(locale)
        if not values:
            return self.default_progress
        return values.pop(0) if len(values) > 1 else values[0]

    async def cancel_remote_job(
        self, project_id: str, job_id: str, reason: str | None = None
    ) -> None:
        if self.fail_cancel:
            raise SmartlingAPIError("Cancel rejected")
        self.cancelled.append(job_id)


class RecordingPublisher:
    def __init__(self) -> None:
        self.updates: list[tuple[str, dict[str, Any]]] = []

    async def send_progress_update(self, job_id: str, progress_data: dict[str, Any]) -> None:
        self.updates.append((job_id, progress_data))


@pytest.fixture
def smartling() -> FakeSmartlingClient:
    return FakeSmartlingClient()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def orchestrator(smartling: FakeSmartlingClient, publisher: RecordingPublisher) -> BulkJobOrchestrator:
    """Orchestrator that polls without sleeping."""
    return BulkJobOrchestrator(
        smartling,
        progress_publisher=publisher,
        poll_interval=0,
        max_poll_checks=5,
    )


@pytest.fixture
def slow_orchestrator(smartling: FakeSmartlingClient) -> BulkJobOrchestrator:
    """Orchestrator whose remote jobs never finish and that sleeps between polls."""
    smartling.default_progress = 40.0
    return BulkJobOrchestrator(smartling, poll_interval=30, max_poll_checks=30)

