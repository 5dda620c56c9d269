"""LLM-backed generators for Postman collections and OpenAPI definitions."""

import json
import logging
import re
from typing import Any, Dict, List, Sequence

from docgen.core.exceptions import ExternalAPIError
from docgen.llm.client import LLMClient
from docgen.llm.prompts import OPENAPI_GEN_PROMPT, POSTMAN_GEN_PROMPT

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _parse_json_output(text: str, what: str) -> Any:
    cleaned = _CODE_FENCE.sub("", text.strip())
    try:
        return json.loads(cleaned)
    except ValueError as e:
        logger.error(f"[Generators] Model returned invalid JSON for {what}: {e}")
        raise ExternalAPIError("OpenAI", f"AI generated invalid JSON for {what}", e) from e


async def generate_postman_with_ai(
    llm: LLMClient,
    model: str,
    structured_docs: Sequence[Dict[str, Any]],
    site_url: str,
) -> Dict[str, Any]:
    """Ask the generator model for a whole Postman v2.1 collection."""
    formatted = [
        {
            "tags": doc.get("tags"),
            "description": doc.get("description"),
            "curlCommand": doc.get("curl"),
            "parameters": doc.get("parameters"),
        }
        for doc in structured_docs
    ]
    context = [
        {"role": "system", "content": POSTMAN_GEN_PROMPT},
        {
            "role": "user",
            "content": (
                f"Generate a Postman Collection v2.1 for the following API documentation from {site_url}. "
                "Each endpoint has structured data with tags, description, curl command, and parameters:\n\n"
                + json.dumps(formatted, indent=2)
            ),
        },
    ]
    logger.info(f"[Generators] Generating Postman collection with AI ({len(formatted)} docs)")
    response = await llm.request_completion(model, [], context, reasoning={"summary": "detailed"})
    return _parse_json_output(response.output_text, "collection")


async def generate_openapi_definition(
    llm: LLMClient,
    model: str,
    contents: List[str],
) -> Dict[str, Any]:
    """Ask the generator model for an OpenAPI definition of the given resource texts."""
    context = [
        {"role": "system", "content": OPENAPI_GEN_PROMPT},
        {
            "role": "user",
            "content": "Generate an OpenAPI definition for the following curl documentation: "
            + json.dumps(contents),
        },
    ]
    logger.info(f"[Generators] Generating OpenAPI definition ({len(contents)} resources)")
    response = await llm.request_completion(model, [], context, reasoning={"summary": "detailed"})
    return _parse_json_output(response.output_text, "OpenAPI definition")
