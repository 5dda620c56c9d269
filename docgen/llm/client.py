"""OpenAI Responses API client for docgen."""

import logging
import time
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from docgen.core.config import OpenAISettings, get_settings
from docgen.core.exceptions import ExternalAPIError

logger = logging.getLogger(__name__)

DEFAULT_REASONING = {"summary": "concise"}


class CompletionResponse(BaseModel):
    """Subset of a Responses API response the pipeline consumes."""

    id: Optional[str] = None
    output: list[dict[str, Any]] = Field(default_factory=list)
    output_text: str = ""

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "CompletionResponse":
        output = data.get("output") or []
        text = data.get("output_text")
        if text is None:
            # The raw HTTP payload has no aggregate; join the message text parts
            text = "".join(
                part.get("text", "")
                for item in output
                if item.get("type") == "message"
                for part in item.get("content") or []
                if part.get("type") == "output_text"
            )
        return cls(id=data.get("id"), output=output, output_text=text)

    def items_of_type(self, item_type: str) -> list[dict[str, Any]]:
        return [item for item in self.output if item.get("type") == item_type]


def is_reasoning_model(model: str) -> bool:
    """Only o1/o4 series and computer-use models accept the reasoning block."""
    return model.startswith("o1") or model.startswith("o4") or "computer-use" in model


class LLMClient:
    """Async HTTP client for the Responses API."""

    def __init__(self, settings: Optional[OpenAISettings] = None):
        self.settings = settings or get_settings().openai
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.settings.api_key}"}
            if self.settings.organization:
                headers["OpenAI-Organization"] = self.settings.organization
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                timeout=httpx.Timeout(self.settings.timeout, connect=10.0),
                headers=headers,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request_completion(
        self,
        model: str,
        tools: list[dict[str, Any]],
        input: list[dict[str, Any]],
        schema: Optional[dict[str, Any]] = None,
        reasoning: Optional[dict[str, Any]] = None,
        previous_response_id: Optional[str] = None,
    ) -> CompletionResponse:
        """
        Send one request to the Responses API.

        Args:
            model: Model identifier
            tools: Tool definitions (empty list for plain completions)
            input: Input items / messages
            schema: Optional structured output schema {name, type, schema}
            reasoning: Reasoning config, sent only for reasoning models
            previous_response_id: Continuation token from a prior response

        Returns:
            CompletionResponse

        Raises:
            ExternalAPIError: On HTTP or transport errors
        """
        payload: dict[str, Any] = {
            "model": model,
            "tools": tools,
            "input": input,
            "truncation": "auto",
        }
        if previous_response_id:
            payload["previous_response_id"] = previous_response_id
        if schema:
            payload["text"] = {
                "format": {
                    "name": schema["name"],
                    "type": schema["type"],
                    "schema": schema["schema"],
                }
            }
        if is_reasoning_model(model):
            payload["reasoning"] = reasoning or DEFAULT_REASONING

        client = self._get_client()
        start = time.time()
        try:
            response = await client.post("/responses", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"[LLMClient] Request failed: model={model} status={e.response.status_code} "
                f"body={e.response.text[:500]}"
            )
            raise ExternalAPIError("OpenAI", f"HTTP {e.response.status_code}: {e.response.text}", e) from e
        except httpx.RequestError as e:
            logger.error(f"[LLMClient] Request error: model={model} error={e}")
            raise ExternalAPIError("OpenAI", f"Request error: {e}", e) from e

        elapsed_ms = (time.time() - start) * 1000
        result = CompletionResponse.from_payload(data)
        logger.debug(f"[LLMClient] {model} -> {result.id} ({elapsed_ms:.0f}ms, {len(result.output)} items)")
        return result


# Global client instance
_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get global LLM client instance."""
    global _client
    if _client is None:
        _client = LLMClient()
    return _client


async def close_llm_client():
    """Close global LLM client."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None
