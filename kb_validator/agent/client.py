"""HTTP client for a remote analysis agent that speaks the structured response contract."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from kb_validator.analysis.response import ResponseFormatError, StructuredResponse
from kb_validator.errors import UpstreamRejected, UpstreamUnavailable

logger = logging.getLogger(__name__)


class LiveAgentClient:
    """Posts submitted text to a configured agent endpoint.

    The endpoint receives ``{"input": ..., "timestamp": ...}`` with a
    bearer token and must answer with a structured response JSON body.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _client_kwargs(self) -> dict[str, Any]:
        # Leave httpx's own default in place unless a timeout is configured
        if self._timeout is None:
            return {}
        return {"timeout": self._timeout}

    async def _post(self, payload: dict[str, Any]):
        import httpx

        try:
            async with httpx.AsyncClient(**self._client_kwargs()) as client:
                return await client.post(
                    self._endpoint,
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.TimeoutException as exc:
            after = f" after {self._timeout}s" if self._timeout is not None else ""
            raise UpstreamUnavailable(
                f"Agent at {self._endpoint} timed out{after}: {exc}"
            ) from exc
        except httpx.TransportError as exc:
            raise UpstreamUnavailable(
                f"Cannot connect to agent at {self._endpoint}: {exc}"
            ) from exc

    async def analyze(self, text: str) -> StructuredResponse:
        """Send *text* to the agent and return its structured response.

        Raises:
            UpstreamUnavailable: Transport failure, timeout, or a body that
                is not a structured response.
            UpstreamRejected: The agent answered with a non-success status.
        """
        payload = {
            "input": text,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        resp = await self._post(payload)

        if not resp.is_success:
            logger.warning(
                "Agent at %s rejected request: %s %s",
                self._endpoint, resp.status_code, resp.reason_phrase,
            )
            raise UpstreamRejected(resp.status_code, resp.reason_phrase)

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable(f"Agent returned a non-JSON body: {exc}") from exc

        try:
            return StructuredResponse.from_dict(data)
        except ResponseFormatError as exc:
            raise UpstreamUnavailable(f"Agent returned an invalid response: {exc}") from exc

    async def test_connection(self) -> dict[str, Any]:
        """Ping the agent with a test request.  Never raises."""
        try:
            resp = await self._post({"input": "Test connection", "test": True})
        except UpstreamUnavailable as exc:
            return {"ok": False, "message": f"Connection failed: {exc}"}

        if resp.is_success:
            return {"ok": True, "message": "Connection successful!"}
        return {
            "ok": False,
            "message": f"Connection failed: {resp.status_code} {resp.reason_phrase}".rstrip(),
        }
