"""Debug Log Writer — optional append-only file of raw vendor traffic.

Invariants:
    - Disabled writer does nothing (no directory created, no file touched)
    - Entry format: "[<ISO timestamp>] <message>\\n<indented JSON>\\n\\n"
    - Write failures are logged, never raised (debug output is best-effort)

Design Decisions:
    - File IO in a worker thread (asyncio.to_thread): keeps the event loop free
    - asyncio.Lock serializes appends so concurrent requests never interleave entries
    - default=str in json.dumps: headers/datetimes serialize without custom encoders
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEBUG_LOG_FILENAME = "roboflow-debug.log"


def mask_api_key(api_key: str | None) -> str:
    """Only the last 4 characters survive: ***abcd***."""
    return "***" + (api_key[-4:] if api_key else "") + "***"


def format_entry(message: str, data: Any = None, now: datetime | None = None) -> str:
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    body = f"\n{json.dumps(data, indent=2, default=str)}" if data is not None else ""
    return f"[{timestamp}] {message}{body}\n\n"


class DebugLogWriter:
    """Appends debug entries to <log_dir>/roboflow-debug.log when enabled."""

    def __init__(self, enabled: bool, log_dir: str | Path = "logs"):
        self.enabled = enabled
        self.path = Path(log_dir) / DEBUG_LOG_FILENAME
        self._lock = asyncio.Lock()

    async def write(self, message: str, data: Any = None) -> None:
        if not self.enabled:
            return
        entry = format_entry(message, data)
        async with self._lock:
            try:
                await asyncio.to_thread(self._append, entry)
            except OSError as e:
                logger.error(f"Error writing to debug log {self.path}: {e}")

    def _append(self, entry: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(entry)
