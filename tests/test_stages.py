"""
Tests for the queue stage handlers and the Responses API client.

Covers docgen/jobs/stages.py and docgen/llm/client.py (over an httpx mock
transport).
"""

import json

import httpx
import pytest

from docgen.core.config import OpenAISettings
from docgen.core.exceptions import ExternalAPIError, JobFailedError
from docgen.jobs.queue import Job
from docgen.jobs.stages import CURL_STAGE, EMBEDDINGS_STAGE, make_curl_handler, make_embeddings_handler
from docgen.knowledge.writer import KnowledgeBaseWriter
from docgen.llm.client import CompletionResponse, LLMClient, is_reasoning_model
from docgen.llm.schemas import CURL_DOCS_SCHEMA

from tests.conftest import FailingEmbedder, curl_docs_reply

DOC = {"curl": "curl https://api.x.com/a", "description": "# A", "tags": "A", "parameters": []}


def curl_job(**payload):
    base = {"screenshot": "data:image/jpeg;base64,AAA", "job_index": 1, "total_jobs": 1, "url": "https://x.io"}
    base.update(payload)
    return Job(id="curl-test-1", stage=CURL_STAGE, payload=base, max_attempts=3)


class TestCurlStage:
    @pytest.mark.asyncio
    async def test_success(self, llm, progress):
        llm.script("o4-mini", curl_docs_reply("ext-1", [DOC]))
        progress.register("s")
        handler = make_curl_handler(llm, "o4-mini", progress)

        result = await handler(curl_job(session_id="s", previous_response_id="ext-0"))

        assert result == {
            "success": True,
            "response_id": "ext-1",
            "curl_obj": {"curl_docs": [DOC], "url": "https://x.io"},
        }
        call = llm.calls[0]
        assert call["schema"] == CURL_DOCS_SCHEMA
        assert call["previous_response_id"] == "ext-0"
        assert call["input"][0]["content"][1] == {"type": "input_image", "image_url": "data:image/jpeg;base64,AAA"}

        statuses = []
        q = progress._queues["s"]
        while not q.empty():
            statuses.append(q.get_nowait().data["status"])
        assert statuses == ["processing", "completed"]

    @pytest.mark.asyncio
    async def test_llm_failure_degrades(self, llm, progress):
        llm.script("o4-mini", ExternalAPIError("OpenAI", "HTTP 429"))
        handler = make_curl_handler(llm, "o4-mini", progress)

        result = await handler(curl_job(previous_response_id="ext-0"))

        assert result["success"] is False
        assert "HTTP 429" in result["error"]
        assert result["response_id"] == "ext-0"
        assert result["curl_obj"] == {"curl_docs": [], "url": "https://x.io"}

    @pytest.mark.asyncio
    async def test_invalid_json_degrades(self, llm, progress):
        llm.script("o4-mini", CompletionResponse(id="ext-1", output_text="not json"))
        handler = make_curl_handler(llm, "o4-mini", progress)
        result = await handler(curl_job())
        assert result["success"] is False


class TestEmbeddingsStage:
    @pytest.mark.asyncio
    async def test_stores_embeddings(self, store, embedder):
        [resource] = KnowledgeBaseWriter(store, embedder).create_resources_without_embeddings(
            [{"content": "One. Two. Three.", "url": "https://x.io"}]
        )
        handler = make_embeddings_handler(store, embedder)
        job = Job(
            id=f"embeddings-{resource.id}",
            stage=EMBEDDINGS_STAGE,
            payload={"resource_id": resource.id, "content": resource.content},
            max_attempts=3,
        )
        result = await handler(job)
        assert result == {"success": True, "resource_id": resource.id, "embeddings_count": 3}

    @pytest.mark.asyncio
    async def test_failures_are_retried_then_fail(self, settings, llm, store, progress):
        from docgen.jobs.queue import JobQueue
        from docgen.jobs.stages import register_stages

        embedder = FailingEmbedder()
        queue = JobQueue(settings.queue)
        register_stages(queue, llm, store, embedder, settings=settings, progress=progress)
        try:
            job = queue.enqueue(EMBEDDINGS_STAGE, {"resource_id": "r1", "content": "Some text."})
            with pytest.raises(JobFailedError):
                await queue.wait_for(job)
            assert embedder.calls == settings.queue.embeddings.attempts
        finally:
            await queue.close()


def mock_client(handler) -> LLMClient:
    client = LLMClient(OpenAISettings())
    client._client = httpx.AsyncClient(base_url="https://api.test/v1", transport=httpx.MockTransport(handler))
    return client


class TestLLMClient:
    def test_reasoning_models(self):
        assert is_reasoning_model("o4-mini")
        assert is_reasoning_model("computer-use-preview")
        assert not is_reasoning_model("gpt-4o-mini")

    @pytest.mark.asyncio
    async def test_request_payload_and_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "id": "resp_1",
                    "output": [
                        {"type": "reasoning", "summary": []},
                        {"type": "message", "content": [{"type": "output_text", "text": "{\"curl_docs\": []}"}]},
                    ],
                },
            )

        client = mock_client(handler)
        try:
            response = await client.request_completion(
                "o4-mini", [], [{"role": "user", "content": "hi"}], schema=CURL_DOCS_SCHEMA,
                previous_response_id="resp_0",
            )
        finally:
            await client.close()

        assert seen["path"] == "/v1/responses"
        body = seen["body"]
        assert body["truncation"] == "auto"
        assert body["previous_response_id"] == "resp_0"
        assert body["reasoning"] == {"summary": "concise"}
        assert body["text"]["format"]["name"] == CURL_DOCS_SCHEMA["name"]
        assert response.id == "resp_1"
        assert response.output_text == "{\"curl_docs\": []}"
        assert len(response.items_of_type("reasoning")) == 1

    @pytest.mark.asyncio
    async def test_no_reasoning_for_chat_models(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "r", "output": [], "output_text": "hello"})

        client = mock_client(handler)
        try:
            response = await client.request_completion("gpt-4o-mini", [], [], reasoning={"summary": "detailed"})
        finally:
            await client.close()

        assert "reasoning" not in seen["body"]
        assert "previous_response_id" not in seen["body"]
        assert response.output_text == "hello"

    @pytest.mark.asyncio
    async def test_http_error_raises_external_api_error(self):
        client = mock_client(lambda request: httpx.Response(500, text="upstream broke"))
        try:
            with pytest.raises(ExternalAPIError) as exc_info:
                await client.request_completion("gpt-4o-mini", [], [])
        finally:
            await client.close()

        assert exc_info.value.status_code == 502
        assert "HTTP 500" in exc_info.value.message
