"""Resilient Roboflow Client — retry, backoff and error mapping against a MockTransport vendor.

Invariants tested:
    - Request body/headers match the workflow contract
    - 5xx, 429, timeouts and connection errors retried up to max_attempts
    - Delays double (1s, 2s, ...) and no sleep follows the last attempt
    - 4xx (except 429) and non-object bodies fail immediately
    - Vendor "message" field preferred in the error text
    - Missing API URL fails without a network call
    - Undecodable bodies surface as VendorAPIError, never as raw httpx errors
    - Retries logged at WARNING, success at INFO, both with request_id/attempt
"""

import logging

import httpx
import pytest

from app.core.errors import ErrorContext, VendorAPIError
from tests.fake_roboflow import (
    API_KEY,
    API_URL,
    DATA_URL,
    IMAGE,
    FakeRoboflow,
    corrupt_gzip,
    crop_response,
    make_client,
    ok,
    status,
)


# --- Happy path ---------------------------------------------------------------

async def test_posts_workflow_payload():
    fake = FakeRoboflow([ok(crop_response("AAA"))])
    client, _ = make_client(fake)

    body = await client.infer(IMAGE)

    assert body == crop_response("AAA")
    assert fake.calls == 1
    request = fake.requests[0]
    assert str(request.url) == API_URL
    assert request.method == "POST"
    assert request.headers["content-type"] == "application/json"
    assert request.headers["accept"] == "application/json"
    assert fake.json_bodies()[0] == {
        "api_key": API_KEY,
        "inputs": {"image": {"type": "base64", "value": DATA_URL}},
    }


async def test_assigns_request_id_to_context():
    fake = FakeRoboflow([ok({})])
    client, _ = make_client(fake)
    context = ErrorContext()
    await client.infer(IMAGE, context)
    assert context.request_id


async def test_keeps_existing_request_id():
    fake = FakeRoboflow([ok({})])
    client, _ = make_client(fake)
    context = ErrorContext(request_id="abc123")
    await client.infer(IMAGE, context)
    assert context.request_id == "abc123"


# --- Retry --------------------------------------------------------------------

async def test_retries_server_error_then_succeeds():
    fake = FakeRoboflow([status(503), status(500), ok({"outputs": []})])
    client, sleeps = make_client(fake)

    body = await client.infer(IMAGE)

    assert body == {"outputs": []}
    assert fake.calls == 3
    assert sleeps == [1.0, 2.0]


async def test_gives_up_after_max_attempts():
    fake = FakeRoboflow([status(500)])
    client, sleeps = make_client(fake)

    with pytest.raises(VendorAPIError) as exc:
        await client.infer(IMAGE)

    assert fake.calls == 3
    assert sleeps == [1.0, 2.0]  # no sleep after the final attempt
    assert exc.value.api_error_type == "server_error"
    assert exc.value.status_code == 500
    assert exc.value.message == "Roboflow API Error: HTTP 500: Internal Server Error"


async def test_backoff_scales_with_base_delay():
    fake = FakeRoboflow([status(502)])
    client, sleeps = make_client(fake, max_attempts=4, base_delay_ms=250)
    with pytest.raises(VendorAPIError):
        await client.infer(IMAGE)
    assert sleeps == [0.25, 0.5, 1.0]


async def test_rate_limit_is_retried():
    fake = FakeRoboflow([
        status(429, {"message": "Too many requests"}, headers={"Retry-After": "3"}),
        ok({}),
    ])
    client, sleeps = make_client(fake)
    assert await client.infer(IMAGE) == {}
    assert fake.calls == 2
    assert sleeps == [1.0]


async def test_rate_limit_exhausted_reports_retry_after():
    fake = FakeRoboflow([status(429, headers={"Retry-After": "3"})])
    client, _ = make_client(fake, max_attempts=2)
    with pytest.raises(VendorAPIError) as exc:
        await client.infer(IMAGE)
    assert exc.value.api_error_type == "rate_limit"
    assert exc.value.context.retry_after_ms == 3000


async def test_connection_error_is_retried():
    fake = FakeRoboflow([httpx.ConnectError("connection refused"), ok({})])
    client, sleeps = make_client(fake)
    assert await client.infer(IMAGE) == {}
    assert sleeps == [1.0]


async def test_timeout_exhausted():
    fake = FakeRoboflow([httpx.ReadTimeout("timed out")])
    client, _ = make_client(fake, max_attempts=2)
    with pytest.raises(VendorAPIError) as exc:
        await client.infer(IMAGE)
    assert fake.calls == 2
    assert exc.value.api_error_type == "timeout"
    assert "timed out" in exc.value.message


async def test_undecodable_body_retried_then_mapped():
    fake = FakeRoboflow([corrupt_gzip()])
    client, sleeps = make_client(fake)

    with pytest.raises(VendorAPIError) as exc:
        await client.infer(IMAGE)

    assert fake.calls == 3
    assert sleeps == [1.0, 2.0]
    assert exc.value.api_error_type == "connection_error"


async def test_undecodable_body_then_success():
    fake = FakeRoboflow([corrupt_gzip(), ok({"outputs": []})])
    client, _ = make_client(fake)
    assert await client.infer(IMAGE) == {"outputs": []}
    assert fake.calls == 2


async def test_single_attempt_never_sleeps():
    fake = FakeRoboflow([status(500)])
    client, sleeps = make_client(fake, max_attempts=1)
    with pytest.raises(VendorAPIError):
        await client.infer(IMAGE)
    assert fake.calls == 1
    assert sleeps == []


# --- Non-retryable ------------------------------------------------------------

@pytest.mark.parametrize("code", [400, 401, 403, 404, 422])
async def test_client_errors_not_retried(code):
    fake = FakeRoboflow([status(code)])
    client, sleeps = make_client(fake)
    with pytest.raises(VendorAPIError) as exc:
        await client.infer(IMAGE)
    assert fake.calls == 1
    assert sleeps == []
    assert exc.value.api_error_type == "client_error"
    assert exc.value.status_code == code


async def test_vendor_message_preferred():
    fake = FakeRoboflow([status(401, {"message": "Unauthorized api_key"})])
    client, _ = make_client(fake)
    with pytest.raises(VendorAPIError) as exc:
        await client.infer(IMAGE)
    assert exc.value.message == "Roboflow API Error: Unauthorized api_key"


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>gateway</html>"),
    httpx.Response(200, json=[1, 2, 3]),
])
async def test_non_object_body_not_retried(response):
    fake = FakeRoboflow([response])
    client, sleeps = make_client(fake)
    with pytest.raises(VendorAPIError) as exc:
        await client.infer(IMAGE)
    assert fake.calls == 1
    assert exc.value.api_error_type == "invalid_response"


async def test_missing_url_fails_without_request():
    fake = FakeRoboflow([ok({})])
    client, _ = make_client(fake, api_url="")
    with pytest.raises(VendorAPIError) as exc:
        await client.infer(IMAGE)
    assert fake.calls == 0
    assert exc.value.api_error_type == "not_configured"


# --- Logging ------------------------------------------------------------------

CLIENT_LOGGER = "app.infrastructure.roboflow_client"


def _client_records(caplog, level):
    return [
        r for r in caplog.records
        if r.name == CLIENT_LOGGER and r.levelno == level
    ]


async def test_logs_retry_warning_and_success_info(caplog):
    caplog.set_level(logging.INFO, logger=CLIENT_LOGGER)
    fake = FakeRoboflow([status(503), ok({})])
    client, _ = make_client(fake)

    await client.infer(IMAGE, ErrorContext(request_id="req-42"))

    [retry] = _client_records(caplog, logging.WARNING)
    assert retry.request_id == "req-42"
    assert retry.attempt == 1
    assert "retry after 1000ms" in retry.getMessage()

    [success] = _client_records(caplog, logging.INFO)
    assert success.getMessage() == "Roboflow API success"
    assert success.request_id == "req-42"
    assert success.attempt == 2
    assert success.status_code == 200
    assert isinstance(success.elapsed_ms, int)


async def test_every_failed_attempt_logged(caplog):
    caplog.set_level(logging.INFO, logger=CLIENT_LOGGER)
    fake = FakeRoboflow([status(500)])
    client, _ = make_client(fake)

    with pytest.raises(VendorAPIError):
        await client.infer(IMAGE, ErrorContext(request_id="req-7"))

    failures = _client_records(caplog, logging.ERROR)
    assert [r.attempt for r in failures] == [1, 2, 3]
    assert all(r.status_code == 500 for r in failures)
    assert all(r.request_id == "req-7" for r in failures)
    assert len(_client_records(caplog, logging.WARNING)) == 2
