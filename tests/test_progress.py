"""
Unit tests for per-session progress events.

Tests docgen/core/progress.py.
"""

import pytest

from docgen.core.exceptions import BrowserError
from docgen.core.progress import ProgressEmitter, ProgressEvent


@pytest.mark.asyncio
async def test_registered_session_receives_envelope():
    emitter = ProgressEmitter()
    queue = emitter.register("s1")

    emitter.send_action("s1", {"type": "click", "x": 1, "y": 2}, 3)
    event = queue.get_nowait()

    assert isinstance(event, ProgressEvent)
    envelope = event.to_dict()
    assert envelope["type"] == "action"
    assert envelope["data"] == {"action": {"type": "click", "x": 1, "y": 2}, "count": 3}
    assert envelope["timestamp"].endswith("Z")
    assert not event.is_terminal


@pytest.mark.asyncio
async def test_events_for_unknown_sessions_are_dropped():
    emitter = ProgressEmitter()
    emitter.send_started("missing", "https://x.io")
    emitter.send_started(None, "https://x.io")
    assert not emitter.has_session("missing")


@pytest.mark.asyncio
async def test_unregister_stops_delivery():
    emitter = ProgressEmitter()
    queue = emitter.register("s1")
    emitter.unregister("s1")
    emitter.send_reasoning("s1", "thinking")
    assert queue.empty()
    assert not emitter.has_session("s1")


@pytest.mark.asyncio
async def test_progress_payloads():
    emitter = ProgressEmitter()
    queue = emitter.register("s1")

    emitter.send_screenshot("s1", "data:image/jpeg;base64,AAA")
    emitter.send_curl_progress("s1", "queued", 2, jobId="curl-s1-2")
    emitter.send_embedding_progress("s1", "start", count=4)
    emitter.send_complete("s1", {"url": "https://x.io", "data": []})

    events = [queue.get_nowait() for _ in range(4)]
    assert [e.type for e in events] == ["screenshot", "curl_progress", "embedding_progress", "complete"]
    assert events[0].data == {"image": "data:image/jpeg;base64,AAA"}
    assert events[1].data == {"status": "queued", "jobIndex": 2, "jobId": "curl-s1-2"}
    assert events[2].data == {"status": "start", "count": 4}
    assert events[3].is_terminal


@pytest.mark.asyncio
async def test_error_stack_only_when_enabled():
    error = BrowserError("page crashed")

    verbose = ProgressEmitter(include_stack=True)
    q1 = verbose.register("s")
    verbose.send_error("s", error)
    data = q1.get_nowait().data
    assert data["message"] == "Browser automation failed: page crashed"
    assert "stack" in data

    quiet = ProgressEmitter(include_stack=False)
    q2 = quiet.register("s")
    quiet.send_error("s", error)
    event = q2.get_nowait()
    assert event.data == {"message": "Browser automation failed: page crashed"}
    assert event.is_terminal
