"""Root conftest — shared test configuration."""

import os

# Ensure tests never reach the real Roboflow endpoint
os.environ.setdefault("ROBOFLOW_API_KEY", "rf-test-fake-key-1234")
os.environ.setdefault(
    "ROBOFLOW_API_URL",
    "https://detect.roboflow.test/infer/workflows/test/dog-crops",
)
os.environ.setdefault("DEBUG_MODE", "false")
os.environ.setdefault("LOG_FORMAT", "text")
