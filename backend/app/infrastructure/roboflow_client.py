"""Resilient Roboflow Client — wraps httpx.AsyncClient with retry, backoff, and error mapping.

Invariants:
    - At most max_attempts sequential attempts per infer() call
    - Transient errors (timeout, connection, undecodable body, 5xx, 429): retried with delay
      base_delay_ms * 2**(attempt - 1); no sleep after the final attempt
    - Client errors (4xx except 429) and malformed bodies: immediate failure, no retry
    - All failures mapped to VendorAPIError (core/errors.py); message prefers the
      vendor's own "message" field over the HTTP status line
    - API key never written to logs (masked to its last 4 characters)

Design Decisions:
    - Wrapper over raw client: isolates retry logic from the detection service
    - Fixed multiplicative backoff without jitter: one in-flight request per call,
      no shared rate limit to spread out
    - sleep injectable: tests observe delays without waiting
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from app.core.errors import ErrorContext, VendorAPIError
from app.core.image_payload import DecodedImage, to_data_url
from app.infrastructure.debug_log import DebugLogWriter, mask_api_key

logger = logging.getLogger(__name__)

_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}
_TRUNCATE_CHARS = 50
_TOO_MANY_REQUESTS = 429


def _is_retryable_status(status_code: int) -> bool:
    return status_code == _TOO_MANY_REQUESTS or status_code >= 500


def _status_error_type(status_code: int) -> str:
    if status_code == _TOO_MANY_REQUESTS:
        return "rate_limit"
    if status_code >= 500:
        return "server_error"
    return "client_error"


def _vendor_message(response: httpx.Response) -> str | None:
    """The vendor's own error text, if the body is JSON with a "message" field."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return None


def _response_body_for_log(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:1000]


def _extract_retry_after(response: httpx.Response) -> int | None:
    """Extract Retry-After header (returns milliseconds)."""
    val = response.headers.get("retry-after")
    if val and val.isdigit():
        return int(val) * 1000
    return None


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


class ResilientRoboflowClient:
    """Posts images to a Roboflow workflow endpoint with retry and error mapping."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        max_attempts: int = 3,
        base_delay_ms: int = 1000,
        timeout_seconds: float = 60.0,
        debug_log: DebugLogWriter | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.max_attempts = max(1, max_attempts)
        self.base_delay_ms = base_delay_ms
        self.timeout_seconds = timeout_seconds
        self.debug_log = debug_log or DebugLogWriter(enabled=False)
        self.client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._sleep = sleep

    async def aclose(self) -> None:
        await self.client.aclose()

    async def infer(
        self, image: DecodedImage, context: ErrorContext | None = None,
    ) -> dict:
        """Run the workflow on one image, retrying transient failures."""
        context = context or ErrorContext()
        if not context.request_id:
            context.request_id = new_request_id()
        request_id = context.request_id

        if not self.api_url:
            raise VendorAPIError(
                "ROBOFLOW_API_URL is not configured", "not_configured",
                context=context,
            )

        data_url = to_data_url(image)
        payload = {
            "api_key": self.api_key,
            "inputs": {"image": {"type": "base64", "value": data_url}},
        }
        await self.debug_log.write(
            f"[{request_id}] Sending request to Roboflow API",
            self._describe_request(data_url),
        )

        attempt = 0
        while True:
            attempt += 1
            started = time.monotonic()
            response: httpx.Response | None = None
            try:
                response = await self.client.post(
                    self.api_url, json=payload, headers=_HEADERS,
                    timeout=self.timeout_seconds,
                )
            except httpx.TimeoutException:
                error = VendorAPIError(
                    f"Request timed out after {self.timeout_seconds}s",
                    "timeout", context=context,
                )
            except httpx.RequestError as e:
                # Transport failures and undecodable bodies (DecodingError)
                error = VendorAPIError(
                    str(e) or type(e).__name__, "connection_error",
                    context=context,
                )
            else:
                if response.status_code < 400:
                    elapsed_ms = round((time.monotonic() - started) * 1000)
                    return await self._parse_success(
                        response, request_id, attempt, elapsed_ms, context,
                    )
                error = self._status_error(response, context)

            await self._log_failure(request_id, attempt, error, response)
            retryable = response is None or _is_retryable_status(response.status_code)
            if not retryable or attempt >= self.max_attempts:
                raise error
            await self._wait_before_retry(request_id, attempt, error)

    async def _wait_before_retry(
        self, request_id: str, attempt: int, error: VendorAPIError,
    ) -> None:
        delay = self._backoff(attempt)
        logger.warning(
            f"Transient error, retry after {delay}ms: {error.message}",
            extra={"request_id": request_id, "attempt": attempt},
        )
        await self._sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Delay (ms) after a failed attempt: base, 2*base, 4*base, ..."""
        return self.base_delay_ms * (2 ** (attempt - 1))

    def _status_error(
        self, response: httpx.Response, context: ErrorContext,
    ) -> VendorAPIError:
        status_code = response.status_code
        message = _vendor_message(response) or (
            f"HTTP {status_code}: {response.reason_phrase}"
        )
        return VendorAPIError(
            message,
            _status_error_type(status_code),
            status_code=status_code,
            retry_after_ms=_extract_retry_after(response),
            context=context,
        )

    async def _parse_success(
        self,
        response: httpx.Response,
        request_id: str,
        attempt: int,
        elapsed_ms: int,
        context: ErrorContext,
    ) -> dict:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            error = VendorAPIError(
                "Response body is not a JSON object", "invalid_response",
                status_code=response.status_code, context=context,
            )
            await self._log_failure(request_id, attempt, error, response)
            raise error

        logger.info(
            "Roboflow API success",
            extra={
                "request_id": request_id,
                "attempt": attempt,
                "status_code": response.status_code,
                "elapsed_ms": elapsed_ms,
            },
        )
        await self.debug_log.write(
            f"[{request_id}] Successfully received response from Roboflow API "
            f"({elapsed_ms}ms, Attempt {attempt})",
            {
                "status": response.status_code,
                "statusText": response.reason_phrase,
                "responseSize": f"{len(response.content) / 1024:.2f} KB",
                "headers": dict(response.headers),
            },
        )
        return body

    async def _log_failure(
        self,
        request_id: str,
        attempt: int,
        error: VendorAPIError,
        response: httpx.Response | None = None,
    ) -> None:
        logger.error(
            error.message,
            extra={
                "request_id": request_id,
                "attempt": attempt,
                "status_code": error.status_code,
                "error_code": error.api_error_type,
            },
        )
        await self.debug_log.write(
            f"[{request_id}] Roboflow API Error (Attempt {attempt})",
            {
                "attempt": attempt,
                "message": error.message,
                "type": error.api_error_type,
                "status": error.status_code,
                "statusText": response.reason_phrase if response is not None else None,
                "responseData": (
                    _response_body_for_log(response) if response is not None else None
                ),
            },
        )

    def _describe_request(self, data_url: str) -> dict:
        """Request summary for the debug log: masked key, truncated image."""
        return {
            "url": self.api_url,
            "maxAttempts": self.max_attempts,
            "request": {
                "api_key": mask_api_key(self.api_key),
                "inputs": {
                    "image": {
                        "type": "base64",
                        "value": f"{data_url[:_TRUNCATE_CHARS]}... [truncated]",
                        "size": f"{len(data_url) / 1024:.2f} KB",
                    },
                },
            },
        }
