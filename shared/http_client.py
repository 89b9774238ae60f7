"""
HTTP client utilities for talking to remote APIs.
"""

import asyncio
from typing import Any

import aiohttp


class AsyncHTTPClient:
    """Async HTTP client bound to a single API base URL."""

    def __init__(
        self,
        base_url: str = "",
        timeout: int = 30,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize HTTP client."""
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.headers: dict[str, str] = dict(headers or {})
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "AsyncHTTPClient":
        """Enter async context manager."""
        self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        if self.session:
            await self.session.close()
            self.session = None

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")) or not self.base_url:
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _merge_headers(self, headers: dict[str, Any] | None) -> dict[str, Any]:
        merged: dict[str, Any] = dict(self.headers)
        if headers:
            merged.update(headers)
        return merged

    def _require_session(self) -> aiohttp.ClientSession:
        if not self.session:
            raise RuntimeError("HTTP client not initialized. Use async context manager.")
        return self.session

    @staticmethod
    async def _prepare_request(coro_or_ctx: Any) -> Any:
        """Normalize aiohttp request result to an async context manager."""
        if asyncio.iscoroutine(coro_or_ctx):
            return await coro_or_ctx
        return coro_or_ctx

    @staticmethod
    async def _ensure_response_ok(response: Any) -> None:
        """Invoke raise_for_status, awaiting when necessary."""
        result = response.raise_for_status()
        if asyncio.iscoroutine(result):
            await result

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Perform GET request."""
        session = self._require_session()
        request_ctx = await self._prepare_request(
            session.get(self._url(url), params=params, headers=self._merge_headers(headers))
        )
        async with request_ctx as response:
            await self._ensure_response_ok(response)
            return await response.json()

    async def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Perform POST request with a JSON body."""
        session = self._require_session()
        request_ctx = await self._prepare_request(
            session.post(self._url(url), json=data, headers=self._merge_headers(headers))
        )
        async with request_ctx as response:
            await self._ensure_response_ok(response)
            return await response.json()

    async def post_form(
        self,
        url: str,
        form: aiohttp.FormData,
        headers: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Perform multipart POST request."""
        session = self._require_session()
        request_ctx = await self._prepare_request(
            session.post(self._url(url), data=form, headers=self._merge_headers(headers))
        )
        async with request_ctx as response:
            await self._ensure_response_ok(response)
            return await response.json()
