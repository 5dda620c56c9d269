"""
Crawl Progress Service

Per-session event queues feeding the SSE stream of GET /knowledge-base/stream.

Every event is an envelope {type, timestamp, data}. Events for sessions that are
not registered (no client attached, or the client went away) are dropped.
"""

import asyncio
import logging
import traceback
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

TERMINAL_EVENTS = {"complete", "error"}


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ProgressEvent:
    """One progress event for a crawl session."""

    type: str  # started, action, reasoning, screenshot, curl_progress, embedding_progress, complete, error
    data: Dict[str, Any]
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        return asdict(self)


class ProgressEmitter:
    """Routes progress events to per-session asyncio queues."""

    def __init__(self, include_stack: bool = True):
        self.include_stack = include_stack
        self._queues: Dict[str, asyncio.Queue] = {}

    def register(self, session_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues[session_id] = queue
        logger.debug(f"[Progress] Session registered: {session_id}")
        return queue

    def unregister(self, session_id: str) -> None:
        if self._queues.pop(session_id, None) is not None:
            logger.debug(f"[Progress] Session unregistered: {session_id}")

    def has_session(self, session_id: Optional[str]) -> bool:
        return session_id is not None and session_id in self._queues

    def emit(self, session_id: Optional[str], event_type: str, data: Dict[str, Any]) -> None:
        """Queue an event; never blocks."""
        if session_id is None:
            return
        queue = self._queues.get(session_id)
        if queue is None:
            logger.debug(f"[Progress] Dropping {event_type} for inactive session {session_id}")
            return
        queue.put_nowait(ProgressEvent(type=event_type, data=data))

    # Convenience senders

    def send_started(self, session_id: Optional[str], url: str) -> None:
        self.emit(session_id, "started", {"url": url})

    def send_action(self, session_id: Optional[str], action: Dict[str, Any], count: int) -> None:
        self.emit(session_id, "action", {"action": action, "count": count})

    def send_reasoning(self, session_id: Optional[str], summary: Any) -> None:
        self.emit(session_id, "reasoning", {"summary": summary})

    def send_screenshot(self, session_id: Optional[str], image_url: str) -> None:
        self.emit(session_id, "screenshot", {"image": image_url})

    def send_curl_progress(self, session_id: Optional[str], status: str, job_index: int, **extra: Any) -> None:
        self.emit(session_id, "curl_progress", {"status": status, "jobIndex": job_index, **extra})

    def send_embedding_progress(self, session_id: Optional[str], status: str, **extra: Any) -> None:
        self.emit(session_id, "embedding_progress", {"status": status, **extra})

    def send_complete(self, session_id: Optional[str], result: Dict[str, Any]) -> None:
        self.emit(session_id, "complete", result)

    def send_error(self, session_id: Optional[str], error: BaseException) -> None:
        data: Dict[str, Any] = {"message": getattr(error, "message", None) or str(error)}
        if self.include_stack:
            data["stack"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        self.emit(session_id, "error", data)


# Global emitter instance
_emitter: Optional[ProgressEmitter] = None


def get_progress_emitter() -> ProgressEmitter:
    """Get the process-wide progress emitter."""
    global _emitter
    if _emitter is None:
        from docgen.core.config import get_settings

        _emitter = ProgressEmitter(include_stack=not get_settings().is_production)
    return _emitter
