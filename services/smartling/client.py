"""Async client for the Smartling authentication, Files and Jobs APIs."""

import asyncio
import time
from pathlib import Path
from typing import Any

import aiohttp

from shared.config import config
from shared.http_client import AsyncHTTPClient
from shared.logging_utils import setup_logging

logger = setup_logging("smartling-client")

DEFAULT_BASE_URL = "https://api.smartling.com"
TOKEN_REFRESH_MARGIN_SECONDS = 30

FILE_TYPES_BY_EXTENSION = {
    ".json": "json",
    ".xml": "xml",
    ".resx": "resx",
    ".properties": "javaProperties",
    ".po": "gettext",
    ".pot": "gettext",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".strings": "ios",
    ".stringsdict": "stringsdict",
    ".xliff": "xliff",
    ".xlf": "xliff",
    ".csv": "csv",
    ".html": "html",
    ".htm": "html",
    ".md": "markdown",
    ".docx": "docx",
}


class SmartlingAPIError(Exception):
    """Raised when a Smartling API call fails."""


def detect_file_type(file_path: str) -> str:
    """Map a file extension to a Smartling fileType identifier."""
    return FILE_TYPES_BY_EXTENSION.get(Path(file_path).suffix.lower(), "plain_text")


class SmartlingClient:
    """Thin async wrapper around the Smartling REST API.

    Every call authenticates lazily and reuses the bearer token until it is
    close to expiry. Failures surface as ``SmartlingAPIError``.
    """

    def __init__(
        self,
        user_identifier: str | None,
        user_secret: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
    ) -> None:
        self.user_identifier = user_identifier
        self.user_secret = user_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._access_token: str | None = None
        self._token_expiry = 0.0
        self._auth_lock = asyncio.Lock()

    @classmethod
    def from_config(cls) -> "SmartlingClient":
        return cls(
            user_identifier=config.get("smartling_user_identifier"),
            user_secret=config.get("smartling_user_secret"),
            base_url=config.get("smartling_base_url", DEFAULT_BASE_URL),
            timeout=config.get("smartling_timeout", 30),
        )

    def _http(self) -> AsyncHTTPClient:
        headers: dict[str, str] = {}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return AsyncHTTPClient(base_url=self.base_url, timeout=self.timeout, headers=headers)

    @staticmethod
    def _unwrap(payload: dict[str, Any]) -> dict[str, Any]:
        """Extract ``response.data`` from a Smartling envelope."""
        response = payload.get("response") or {}
        code = response.get("code")
        if code not in (None, "SUCCESS", "ACCEPTED"):
            errors = response.get("errors") or []
            messages = "; ".join(str(error.get("message", error)) for error in errors) or code
            raise SmartlingAPIError(f"Smartling returned {code}: {messages}")
        return response.get("data") or {}

    async def authenticate(self) -> None:
        """Obtain a bearer token unless the cached one is still valid."""
        async with self._auth_lock:
            if self._access_token and time.time() < self._token_expiry:
                return

            if not self.user_identifier or not self.user_secret:
                raise SmartlingAPIError("Smartling credentials are not configured")

            try:
                async with AsyncHTTPClient(base_url=self.base_url, timeout=self.timeout) as http:
                    payload = await http.post(
                        "/auth-api/v2/authenticate",
                        data={
                            "userIdentifier": self.user_identifier,
                            "userSecret": self.user_secret,
                        },
                    )
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                raise SmartlingAPIError(f"Authentication failed: {exc}") from exc

            data = self._unwrap(payload)
            token = data.get("accessToken")
            if not token:
                raise SmartlingAPIError("Authentication response did not include an access token")

            self._access_token = token
            expires_in = float(data.get("expiresIn", 0))
            self._token_expiry = time.time() + max(expires_in - TOKEN_REFRESH_MARGIN_SECONDS, 0)
            logger.debug(f"Authenticated with Smartling, token valid for {expires_in:g}s")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        form: aiohttp.FormData | None = None,
    ) -> dict[str, Any]:
        await self.authenticate()
        try:
            async with self._http() as http:
                if method == "GET":
                    payload = await http.get(path, params=params)
                elif form is not None:
                    payload = await http.post_form(path, form)
                else:
                    payload = await http.post(path, data=data)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise SmartlingAPIError(f"{method} {path} failed: {exc}") from exc
        return self._unwrap(payload)

    async def upload_file(
        self,
        project_id: str,
        file_path: str,
        file_uri: str | None = None,
        file_type: str | None = None,
    ) -> str:
        """Upload a local source file and return its Smartling file URI."""
        path = Path(file_path)
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise SmartlingAPIError(f"Cannot read {file_path}: {exc}") from exc

        uri = file_uri or path.as_posix()
        form = aiohttp.FormData()
        form.add_field("file", content, filename=path.name)
        form.add_field("fileUri", uri)
        form.add_field("fileType", file_type or detect_file_type(file_path))

        await self._request("POST", f"/files-api/v2/projects/{project_id}/file", form=form)
        logger.info(f"Uploaded {file_path} to project {project_id} as {uri}")
        return uri

    async def create_locale_sub_job(
        self,
        project_id: str,
        name: str,
        locale: str,
        description: str | None = None,
        due_date: str | None = None,
    ) -> str:
        """Create a translation job scoped to a single locale and return its UID."""
        body: dict[str, Any] = {"jobName": name, "targetLocaleIds": [locale]}
        if description:
            body["description"] = description
        if due_date:
            body["dueDate"] = due_date

        data = await self._request("POST", f"/jobs-api/v3/projects/{project_id}/jobs", data=body)
        job_uid = data.get("translationJobUid")
        if not job_uid:
            raise SmartlingAPIError(f"Job creation for {locale} did not return a translationJobUid")
        return job_uid

    async def add_files_to_job(
        self,
        project_id: str,
        job_id: str,
        file_uris: list[str],
        locale_ids: list[str] | None = None,
    ) -> None:
        """Attach previously uploaded files to a translation job."""
        for file_uri in file_uris:
            body: dict[str, Any] = {"fileUri": file_uri}
            if locale_ids:
                body["targetLocaleIds"] = locale_ids
            await self._request(
                "POST",
                f"/jobs-api/v3/projects/{project_id}/jobs/{job_id}/file/add",
                data=body,
            )

    async def query_progress(self, project_id: str, job_id: str) -> float:
        """Return the completion percentage (0-100) of a translation job."""
        data = await self._request(
            "GET", f"/jobs-api/v3/projects/{project_id}/jobs/{job_id}/progress"
        )
        progress = data.get("progress") or data
        percent = progress.get("percentComplete")
        if percent is None:
            # Smartling reports null progress while no content is authorized
            return 0.0
        return max(0.0, min(float(percent), 100.0))

    async def cancel_remote_job(
        self, project_id: str, job_id: str, reason: str | None = None
    ) -> None:
        """Cancel a translation job."""
        await self._request(
            "POST",
            f"/jobs-api/v3/projects/{project_id}/jobs/{job_id}/cancel",
            data={"reason": reason} if reason else {},
        )
