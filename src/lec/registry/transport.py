"""HTTP transport shared by the downstream registry clients.

Registries are reached with absolute URLs (their hosts come from
configuration), so the transport keeps one httpx.AsyncClient without a base
URL. Whatever path a request takes, callers only ever see a normalized JSON
body or a TransportError carrying the status code and raw text.
"""

from __future__ import annotations

import json as jsonlib
import logging
from typing import Any

import httpx

from lec.errors import TransportError

logger = logging.getLogger(__name__)

# Characters of a response body echoed into debug logs
_LOG_BODY_LIMIT = 500


def _error_message(response: httpx.Response) -> str:
    """Best human-readable message for a failed response."""
    text = response.text
    fallback = f"{response.status_code} {response.reason_phrase}".strip()
    if "application/json" in response.headers.get("content-type", ""):
        try:
            data = jsonlib.loads(text or "{}")
        except ValueError:
            return text or fallback
        if isinstance(data, dict) and (data.get("error") or data.get("message")):
            return str(data.get("error") or data.get("message"))
        return fallback
    return text or fallback


def decode_body(response: httpx.Response) -> Any:
    """Decode a successful response body.

    JSON bodies are parsed; an empty body is {}. A body that looks like JSON
    but lacks the content type is parsed leniently.

    Raises:
        TransportError: If the body is neither empty nor JSON.
    """
    text = response.text
    if "application/json" in response.headers.get("content-type", ""):
        if not text:
            return {}
        try:
            return jsonlib.loads(text)
        except ValueError as e:
            raise TransportError(
                "Invalid JSON response from registry",
                status_code=response.status_code,
                body=text,
            ) from e
    stripped = text.strip()
    if not stripped:
        return {}
    if stripped.startswith(("{", "[")):
        try:
            return jsonlib.loads(stripped)
        except ValueError:
            pass
    raise TransportError(
        "Unexpected non-JSON response from registry",
        status_code=response.status_code,
        body=text,
    )


class RegistryTransport:
    """Async JSON-over-HTTP transport for registry calls."""

    def __init__(
        self,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests inject MockTransport).
        """
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Send a request and return the normalized JSON body.

        Raises:
            TransportError: On network failure, non-2xx status or a body
                that cannot be decoded.
        """
        logger.debug("%s %s", method, url)
        client = self._get_client()
        try:
            response = await client.request(
                method, url, headers=headers, json=json, params=params
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Registry timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Cannot reach registry: {e}") from e

        logger.debug(
            "Response %s from %s: %s",
            response.status_code,
            url,
            response.text[:_LOG_BODY_LIMIT],
        )

        if response.is_error:
            raise TransportError(
                _error_message(response),
                status_code=response.status_code,
                body=response.text,
            )
        return decode_body(response)
