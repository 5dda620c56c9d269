"""LLM client and prompt assets."""

from docgen.llm.client import CompletionResponse, LLMClient, get_llm_client

__all__ = ["CompletionResponse", "LLMClient", "get_llm_client"]
