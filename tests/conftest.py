"""
Shared fixtures for docgen tests.

Nothing here touches the network or a real browser:
    - HashingEmbedder: deterministic bag-of-words vectors
    - FakeLLMClient: scripted Responses API replies per model
    - FakePage: records mouse/keyboard calls and returns canned screenshots
"""

import hashlib
import json
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import numpy as np
import pytest
import pytest_asyncio

from docgen.browser.session import BrowserSession
from docgen.core.config import CrawlSettings, QueueSettings, Settings, StageConfig
from docgen.core.exceptions import ExternalAPIError
from docgen.core.progress import ProgressEmitter
from docgen.jobs.queue import JobQueue
from docgen.jobs.stages import register_stages
from docgen.knowledge.store import KnowledgeStore
from docgen.llm.client import CompletionResponse

_TOKEN = re.compile(r"[a-z0-9]+")


# =============================================================================
# Embeddings
# =============================================================================


class HashingEmbedder:
    """Token counts hashed into a fixed number of buckets."""

    def __init__(self, dims: int = 512):
        self.dims = dims
        self.calls: List[List[str]] = []

    def vector(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dims, dtype=np.float32)
        for token in _TOKEN.findall(text.lower()):
            bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % self.dims
            vec[bucket] += 1.0
        return vec

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        self.calls.append(list(texts))
        return [self.vector(text) for text in texts]


class FailingEmbedder:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error or RuntimeError("model unavailable")
        self.calls = 0

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        self.calls += 1
        raise self.error


# =============================================================================
# LLM
# =============================================================================


def completion(
    response_id: str,
    output: Optional[List[Dict[str, Any]]] = None,
    text: str = "",
) -> CompletionResponse:
    return CompletionResponse(id=response_id, output=output or [], output_text=text)


def computer_call(call_id: str, action: Dict[str, Any], safety_checks: Optional[list] = None) -> Dict[str, Any]:
    return {
        "type": "computer_call",
        "call_id": call_id,
        "action": action,
        "pending_safety_checks": safety_checks or [],
    }


def curl_docs_reply(response_id: str, docs: List[Dict[str, Any]]) -> CompletionResponse:
    return completion(response_id, text=json.dumps({"curl_docs": docs}))


class FakeLLMClient:
    """
    Scripted stand-in for LLMClient.

    Replies are queued per model; the last reply for a model repeats. A reply
    that is an exception instance is raised instead of returned.
    """

    def __init__(self, replies: Optional[Dict[str, list]] = None):
        self.replies: Dict[str, list] = {model: list(items) for model, items in (replies or {}).items()}
        self.calls: List[Dict[str, Any]] = []

    def script(self, model: str, *items: Any) -> None:
        self.replies.setdefault(model, []).extend(items)

    def calls_for(self, model: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["model"] == model]

    async def request_completion(
        self,
        model: str,
        tools: list,
        input: list,
        schema: Optional[dict] = None,
        reasoning: Optional[dict] = None,
        previous_response_id: Optional[str] = None,
    ) -> CompletionResponse:
        self.calls.append(
            {
                "model": model,
                "tools": tools,
                "input": input,
                "schema": schema,
                "reasoning": reasoning,
                "previous_response_id": previous_response_id,
            }
        )
        queue = self.replies.get(model)
        if not queue:
            raise ExternalAPIError("OpenAI", f"no scripted reply for {model}")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def close(self):
        pass


# =============================================================================
# Browser
# =============================================================================


class FakeMouse:
    def __init__(self, events: list, fail_on: Optional[str] = None):
        self.events = events
        self.fail_on = fail_on

    def _record(self, *event):
        if self.fail_on == event[0]:
            raise RuntimeError(f"{event[0]} failed")
        self.events.append(event)

    async def move(self, x, y, steps: int = 1):
        self._record("move", x, y, steps)

    async def click(self, x, y, button: str = "left", click_count: int = 1):
        self._record("click", x, y, button, click_count)

    async def down(self, button: str = "left"):
        self._record("down")

    async def up(self, button: str = "left"):
        self._record("up")

    async def wheel(self, delta_x, delta_y):
        self._record("wheel", delta_x, delta_y)


class FakeKeyboard:
    def __init__(self, events: list):
        self.events = events

    async def type(self, text: str):
        self.events.append(("type", text))

    async def press(self, key: str):
        self.events.append(("press", key))

    async def down(self, key: str):
        self.events.append(("key_down", key))


class FakePage:
    def __init__(self, width: int = 1024, height: int = 768, fail_on: Optional[str] = None):
        self.events: list = []
        self.mouse = FakeMouse(self.events, fail_on=fail_on)
        self.keyboard = FakeKeyboard(self.events)
        self.viewport_size = {"width": width, "height": height}
        self.screenshot_calls: List[Dict[str, Any]] = []
        self.closed = False

    async def screenshot(self, **kwargs) -> bytes:
        self.screenshot_calls.append(kwargs)
        return b"fake-jpeg-%d" % len(self.screenshot_calls)

    async def wait_for_timeout(self, ms: int):
        self.events.append(("wait", ms))

    def is_closed(self) -> bool:
        return self.closed

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with instant retries and no action delays."""
    settings = Settings()
    settings.environment = "development"
    fast = dict(max_per_second=0, attempts=2, backoff_seconds=0.01)
    settings.queue = QueueSettings(
        curl=StageConfig(concurrency=2, **fast),
        embeddings=StageConfig(concurrency=2, **fast),
    )
    settings.crawl = CrawlSettings(
        fast_delay_ms=0,
        input_delay_ms=0,
        scroll_delay_ms=0,
        click_delay_ms=0,
        default_delay_ms=0,
    )
    settings.crawl.max_steps = 0
    return settings


@pytest.fixture
def store(tmp_path):
    store = KnowledgeStore(tmp_path / "kb.db")
    yield store
    store.close()


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def progress() -> ProgressEmitter:
    return ProgressEmitter(include_stack=False)


@pytest_asyncio.fixture
async def queue(settings, llm, store, embedder, progress):
    queue = JobQueue(settings.queue)
    register_stages(queue, llm, store, embedder, settings=settings, progress=progress)
    yield queue
    await queue.close()


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def browser_factory(fake_page):
    """Async context manager factory yielding a session around `fake_page`."""
    opened: List[str] = []

    @asynccontextmanager
    async def factory(url):
        opened.append(url)
        session = BrowserSession(page=fake_page, browser=FakeBrowser())
        try:
            yield session
        finally:
            await session.close()

    factory.opened = opened
    return factory
