"""
Thin JSON-over-HTTP layer shared by the auth, cart and catalog clients.

Every backend answer is funnelled through `ApiClient.request`, which turns
transport errors, non-JSON bodies, HTTP errors and `{"success": false}` bodies
into `RemoteOperationFailed` (or `SessionInvalid` for a 401). Callers only see
a decoded dict or an exception; there is no retry here.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import httpx

from utils.errors import RemoteOperationFailed, SessionInvalid
from utils.logger import get_logger

_logger = get_logger(__name__)

TokenProvider = Callable[[], Optional[str]]


class ApiClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            response = await self._http.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as e:
            _logger.warning(f"{method} {path} failed: {e!r}")
            raise RemoteOperationFailed(f"Network error: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        error_text = data.get("error") if isinstance(data, dict) else None

        if response.status_code == 401:
            _logger.info(f"{method} {path} rejected with 401")
            raise SessionInvalid(error_text)
        if response.is_error:
            _logger.warning(f"{method} {path} returned {response.status_code}")
            raise RemoteOperationFailed(
                error_text or f"Server responded with {response.status_code}",
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            raise RemoteOperationFailed(
                "Malformed response from server", status_code=response.status_code
            )
        if data.get("success") is False:
            raise RemoteOperationFailed(
                error_text or "Request was not successful",
                status_code=response.status_code,
            )
        return data
