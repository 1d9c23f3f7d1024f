"""Async HTTP transport shared by the lifecycle phases.

Every outbound call goes through ``AsyncHTTPClient``, which applies the
RequestPolicy timeout, optional retries and the mapping of failures onto
the ConnectorError hierarchy. Tests inject an ``httpx.MockTransport``.
"""

import asyncio
import json as json_module
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

import httpx

from .base import (
    AuthenticationError,
    ConnectionError,
    ConnectorError,
    OAuthTokenAuth,
    RateLimitError,
    RequestPolicy,
    ResourceNotFoundError,
    ServiceUnavailableError,
    TimeoutError,
)

logger = logging.getLogger(__name__)


@dataclass
class HTTPResponse:
    """Status, lower-cased headers and raw body of one exchange."""

    status_code: int
    headers: Dict[str, str]
    body: bytes
    elapsed_seconds: float = 0.0

    @classmethod
    def from_httpx(cls, response: httpx.Response, elapsed: float) -> "HTTPResponse":
        return cls(
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=response.content,
            elapsed_seconds=elapsed,
        )

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json_module.loads(self.body)

    @property
    def data(self) -> Any:
        """Decoded body: JSON when parseable, text otherwise, None when empty."""
        if not self.body:
            return None
        try:
            return self.json()
        except ValueError:
            return self.text


_STATUS_ERRORS: Dict[int, Tuple[Type[ConnectorError], str]] = {
    401: (AuthenticationError, "authentication failed"),
    403: (AuthenticationError, "authentication failed"),
    404: (ResourceNotFoundError, "resource not found"),
}


def _decode_error_body(body: bytes) -> Any:
    text = body.decode("utf-8", errors="replace")
    if not text:
        return None
    try:
        return json_module.loads(text)
    except ValueError:
        return text


def map_http_error(
    status_code: int,
    body: bytes,
    headers: Dict[str, str],
    connector_name: str = "agentforce",
) -> ConnectorError:
    """Translate a non-2xx response into the matching ConnectorError.

    The decoded body is kept in ``details["error_data"]`` so phase errors
    can quote the upstream description.
    """
    details = {"status_code": status_code, "error_data": _decode_error_body(body)}

    if status_code == 429:
        retry_after = headers.get("retry-after")
        try:
            retry_seconds = float(retry_after) if retry_after else None
        except ValueError:
            retry_seconds = None
        return RateLimitError(
            "HTTP 429: rate limit exceeded",
            connector_name=connector_name,
            details=details,
            retry_after=retry_seconds,
        )

    if status_code in _STATUS_ERRORS:
        error_type, label = _STATUS_ERRORS[status_code]
    elif status_code >= 500:
        error_type, label = ServiceUnavailableError, "service error"
    else:
        error_type, label = ConnectorError, "request failed"
    return error_type(f"HTTP {status_code}: {label}", connector_name=connector_name, details=details)


class AsyncHTTPClient:
    """httpx wrapper bound to one RequestPolicy and an optional bearer token."""

    def __init__(
        self,
        auth: Optional[OAuthTokenAuth] = None,
        policy: Optional[RequestPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            auth: Bearer token sent with every request, if any
            policy: Timeout, retry and header policy
            transport: httpx transport override (tests)
        """
        self.auth = auth
        self.policy = policy or RequestPolicy()
        self._transport = transport

    def with_auth(self, auth: Optional[OAuthTokenAuth]) -> "AsyncHTTPClient":
        """Same policy and transport, different token."""
        return AsyncHTTPClient(
            auth=auth,
            policy=self.policy,
            transport=self._transport,
        )

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"User-Agent": self.policy.user_agent, **self.policy.default_headers}
        if self.auth is not None:
            headers.update(self.auth.get_headers())
        headers.update(extra or {})
        return headers

    def _backoff(self, attempt: int) -> Optional[float]:
        """Delay before the next attempt, or None once retries are used up."""
        if attempt >= self.policy.max_retries:
            return None
        return self.policy.retry_delay * self.policy.retry_backoff ** attempt

    async def _send(self, method: str, url: str, headers: Dict[str, str], **kwargs: Any) -> HTTPResponse:
        """One attempt; transport failures become ConnectorErrors."""
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.policy.timeout), transport=self._transport
            ) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TimeoutError(
                f"Request timed out after {self.policy.timeout}s",
                timeout_seconds=self.policy.timeout,
            ) from e
        except httpx.ConnectError as e:
            raise ConnectionError(f"Failed to connect to {url}: {e}") from e
        except httpx.HTTPError as e:
            raise ConnectorError(f"HTTP error: {e}") from e

        elapsed = time.monotonic() - started
        logger.debug("%s %s -> %s (%.2fs)", method, url, response.status_code, elapsed)
        return HTTPResponse.from_httpx(response, elapsed)

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Any] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HTTPResponse:
        """Perform a request under the client's policy.

        Args:
            method: HTTP method
            url: Absolute URL
            json: JSON body
            data: Form-encoded body
            headers: Extra headers

        Raises:
            ConnectorError: mapped HTTP status, or a transport failure
                (TimeoutError, ConnectionError)
        """
        request_headers = self._headers(headers)
        attempt = 0

        while True:
            try:
                result = await self._send(method, url, request_headers, json=json, data=data)
            except ConnectorError:
                delay = self._backoff(attempt)
                if delay is None:
                    raise
            else:
                if result.ok or result.status_code not in self.policy.retry_on_status:
                    break
                delay = self._backoff(attempt)
                if delay is None:
                    break

            attempt += 1
            logger.debug("Retrying %s %s in %.2fs (attempt %d)", method, url, delay, attempt + 1)
            await asyncio.sleep(delay)

        if not result.ok:
            raise map_http_error(result.status_code, result.body, result.headers)
        return result

    async def post(self, url: str, **kwargs: Any) -> HTTPResponse:
        return await self.request("POST", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> HTTPResponse:
        return await self.request("DELETE", url, **kwargs)
