"""Tests for the Smartling API client."""

from typing import Any
from unittest.mock import patch

import aiohttp
import pytest

from services.smartling import SmartlingAPIError, SmartlingClient, detect_file_type
from shared.http_client import AsyncHTTPClient

AUTH_PATH = "/auth-api/v2/authenticate"


def envelope(data: dict[str, Any], code: str = "SUCCESS") -> dict[str, Any]:
    return {"response": {"code": code, "data": data}}


def auth_payload(token: str = "token-1", expires_in: int = 480) -> dict[str, Any]:
    return envelope({"accessToken": token, "expiresIn": expires_in})


@pytest.fixture
def client() -> SmartlingClient:
    return SmartlingClient("user-id", "user-secret", base_url="https://api.smartling.test")


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_token_is_cached(self, client) -> None:
        auth_headers: list[str | None] = []

        def fake_post(self, url, data=None, headers=None):
            if url == AUTH_PATH:
                assert data == {"userIdentifier": "user-id", "userSecret": "user-secret"}
                return auth_payload()
            auth_headers.append(self.headers.get("Authorization"))
            return envelope({"translationJobUid": "uid-1"})

        with patch.object(AsyncHTTPClient, "post", autospec=True, side_effect=fake_post) as mock_post:
            await client.create_locale_sub_job("proj-1", "Job A", "es-ES")
            await client.create_locale_sub_job("proj-1", "Job B", "fr-FR")

        auth_calls = [c for c in mock_post.call_args_list if c.args[1] == AUTH_PATH]
        assert len(auth_calls) == 1
        assert auth_headers == ["Bearer token-1", "Bearer token-1"]

    @pytest.mark.asyncio
    async def test_token_close_to_expiry_is_refreshed(self, client) -> None:
        def fake_post(self, url, data=None, headers=None):
            if url == AUTH_PATH:
                return auth_payload(expires_in=10)
            return envelope({"translationJobUid": "uid-1"})

        with patch.object(AsyncHTTPClient, "post", autospec=True, side_effect=fake_post) as mock_post:
            await client.create_locale_sub_job("proj-1", "Job A", "es-ES")
            await client.create_locale_sub_job("proj-1", "Job B", "es-ES")

        auth_calls = [c for c in mock_post.call_args_list if c.args[1] == AUTH_PATH]
        assert len(auth_calls) == 2

    @pytest.mark.asyncio
    async def test_missing_credentials(self) -> None:
        client = SmartlingClient(None, None)
        with pytest.raises(SmartlingAPIError, match="credentials are not configured"):
            await client.query_progress("proj-1", "uid-1")

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, client) -> None:
        rejected = {
            "response": {
                "code": "AUTHENTICATION_ERROR",
                "errors": [{"key": "invalid_token", "message": "Invalid user secret"}],
            }
        }
        with patch.object(AsyncHTTPClient, "post", autospec=True, return_value=rejected):
            with pytest.raises(SmartlingAPIError, match="Invalid user secret"):
                await client.authenticate()


class TestJobsApi:
    @pytest.mark.asyncio
    async def test_create_locale_sub_job(self, client) -> None:
        def fake_post(self, url, data=None, headers=None):
            if url == AUTH_PATH:
                return auth_payload()
            return envelope({"translationJobUid": "uid-es"})

        with patch.object(AsyncHTTPClient, "post", autospec=True, side_effect=fake_post) as mock_post:
            job_uid = await client.create_locale_sub_job(
                "proj-1",
                name="Bulk Translation - es-ES",
                locale="es-ES",
                description="Automated bulk translation job job_1",
                due_date="2024-06-01T00:00:00Z",
            )

        assert job_uid == "uid-es"
        create_call = mock_post.call_args_list[-1]
        assert create_call.args[1] == "/jobs-api/v3/projects/proj-1/jobs"
        assert create_call.kwargs["data"] == {
            "jobName": "Bulk Translation - es-ES",
            "targetLocaleIds": ["es-ES"],
            "description": "Automated bulk translation job job_1",
            "dueDate": "2024-06-01T00:00:00Z",
        }

    @pytest.mark.asyncio
    async def test_create_without_uid_fails(self, client) -> None:
        def fake_post(self, url, data=None, headers=None):
            return auth_payload() if url == AUTH_PATH else envelope({})

        with patch.object(AsyncHTTPClient, "post", autospec=True, side_effect=fake_post):
            with pytest.raises(SmartlingAPIError, match="translationJobUid"):
                await client.create_locale_sub_job("proj-1", "Job", "es-ES")

    @pytest.mark.asyncio
    async def test_error_envelope_raises(self, client) -> None:
        def fake_post(self, url, data=None, headers=None):
            if url == AUTH_PATH:
                return auth_payload()
            return {
                "response": {
                    "code": "VALIDATION_ERROR",
                    "errors": [{"message": "Unknown locale xx-XX"}],
                }
            }

        with patch.object(AsyncHTTPClient, "post", autospec=True, side_effect=fake_post):
            with pytest.raises(SmartlingAPIError, match="VALIDATION_ERROR: Unknown locale xx-XX"):
                await client.create_locale_sub_job("proj-1", "Job", "xx-XX")

    @pytest.mark.asyncio
    async def test_transport_errors_are_wrapped(self, client) -> None:
        def fake_post(self, url, data=None, headers=None):
            if url == AUTH_PATH:
                return auth_payload()
            raise aiohttp.ClientConnectionError("connection reset")

        with patch.object(AsyncHTTPClient, "post", autospec=True, side_effect=fake_post):
            with pytest.raises(SmartlingAPIError, match="connection reset"):
                await client.cancel_remote_job("proj-1", "uid-1")

    @pytest.mark.asyncio
    async def test_add_files_to_job(self, client) -> None:
        def fake_post(self, url, data=None, headers=None):
            return auth_payload() if url == AUTH_PATH else envelope({})

        with patch.object(AsyncHTTPClient, "post", autospec=True, side_effect=fake_post) as mock_post:
            await client.add_files_to_job("proj-1", "uid-1", ["a.json", "b.json"], ["es-ES"])

        add_calls = [c for c in mock_post.call_args_list if c.args[1] != AUTH_PATH]
        assert [c.args[1] for c in add_calls] == [
            "/jobs-api/v3/projects/proj-1/jobs/uid-1/file/add",
            "/jobs-api/v3/projects/proj-1/jobs/uid-1/file/add",
        ]
        assert [c.kwargs["data"] for c in add_calls] == [
            {"fileUri": "a.json", "targetLocaleIds": ["es-ES"]},
            {"fileUri": "b.json", "targetLocaleIds": ["es-ES"]},
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data, expected",
        [
            ({"progress": {"percentComplete": 42.5}}, 42.5),
            ({"progress": {"percentComplete": None}}, 0.0),
            ({"progress": None}, 0.0),
            ({"percentComplete": 100}, 100.0),
            ({"progress": {"percentComplete": 130}}, 100.0),
        ],
    )
    async def test_query_progress(self, client, data, expected) -> None:
        with (
            patch.object(AsyncHTTPClient, "post", autospec=True, return_value=auth_payload()),
            patch.object(
                AsyncHTTPClient, "get", autospec=True, return_value=envelope(data)
            ) as mock_get,
        ):
            percent = await client.query_progress("proj-1", "uid-1")

        assert percent == expected
        assert mock_get.call_args.args[1] == "/jobs-api/v3/projects/proj-1/jobs/uid-1/progress"

    @pytest.mark.asyncio
    async def test_cancel_remote_job(self, client) -> None:
        def fake_post(self, url, data=None, headers=None):
            return auth_payload() if url == AUTH_PATH else envelope({})

        with patch.object(AsyncHTTPClient, "post", autospec=True, side_effect=fake_post) as mock_post:
            await client.cancel_remote_job("proj-1", "uid-1", reason="Bulk job job_1 cancelled")

        cancel_call = mock_post.call_args_list[-1]
        assert cancel_call.args[1] == "/jobs-api/v3/projects/proj-1/jobs/uid-1/cancel"
        assert cancel_call.kwargs["data"] == {"reason": "Bulk job job_1 cancelled"}


class TestFilesApi:
    @pytest.mark.asyncio
    async def test_upload_file(self, client, tmp_path) -> None:
        source = tmp_path / "strings.json"
        source.write_text('{"greeting": "Hello"}', encoding="utf-8")

        with (
            patch.object(AsyncHTTPClient, "post", autospec=True, return_value=auth_payload()),
            patch.object(
                AsyncHTTPClient, "post_form", autospec=True, return_value=envelope({})
            ) as mock_post_form,
        ):
            uri = await client.upload_file("proj-1", str(source), file_uri="strings/app.json")

        assert uri == "strings/app.json"
        upload_call = mock_post_form.call_args
        assert upload_call.args[1] == "/files-api/v2/projects/proj-1/file"
        assert isinstance(upload_call.args[2], aiohttp.FormData)

    @pytest.mark.asyncio
    async def test_upload_defaults_uri_to_path(self, client, tmp_path) -> None:
        source = tmp_path / "messages.po"
        source.write_text('msgid "hi"\nmsgstr ""\n', encoding="utf-8")

        with (
            patch.object(AsyncHTTPClient, "post", autospec=True, return_value=auth_payload()),
            patch.object(AsyncHTTPClient, "post_form", autospec=True, return_value=envelope({})),
        ):
            uri = await client.upload_file("proj-1", str(source))

        assert uri == source.as_posix()

    @pytest.mark.asyncio
    async def test_upload_missing_file(self, client, tmp_path) -> None:
        with pytest.raises(SmartlingAPIError, match="Cannot read"):
            await client.upload_file("proj-1", str(tmp_path / "missing.json"))


@pytest.mark.parametrize(
    "path, expected",
    [
        ("strings/app.json", "json"),
        ("Resources/Localizable.strings", "ios"),
        ("locale/messages.PO", "gettext"),
        ("config/app.properties", "javaProperties"),
        ("notes.txt", "plain_text"),
    ],
)
def test_detect_file_type(path: str, expected: str) -> None:
    assert detect_file_type(path) == expected
