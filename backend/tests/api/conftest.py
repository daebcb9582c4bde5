"""API test fixtures — FastAPI app with the detection service wired to a fake vendor.

Invariants:
    - get_detection_service overridden: no lifespan, no real httpx pool
    - fake_vendor script defaults to a single-crop success; tests replace .script
"""

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.dependencies import get_detection_service
from app.main import app
from app.services.dog_detection import DogDetectionService
from tests.fake_roboflow import FakeRoboflow, crop_response, make_client, ok


@pytest.fixture
def fake_vendor():
    return FakeRoboflow([ok(crop_response("Q1JPUA=="))])


@pytest.fixture
async def client(fake_vendor):
    """FastAPI test client with the detection service overridden."""
    roboflow_client, _ = make_client(fake_vendor)
    service = DogDetectionService(roboflow_client)
    app.dependency_overrides[get_detection_service] = lambda: service

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    await roboflow_client.aclose()
