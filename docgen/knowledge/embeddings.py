"""
Embedding providers and chunking.

Resource content is split on periods into chunks; each non-empty chunk gets one
vector. Two providers are available:

- local:  sentence-transformers all-MiniLM-L6-v2 (384 dims, CPU, no API cost)
- openai: the /embeddings endpoint (text-embedding-3-small by default)
"""

import asyncio
import logging
import os
from typing import List, Optional, Protocol, Tuple

import httpx
import numpy as np

from docgen.core.config import Settings, get_settings
from docgen.core.exceptions import EmbeddingError

logger = logging.getLogger(__name__)


def generate_chunks(text: str) -> List[str]:
    """Split on periods, dropping empty pieces. Whitespace inside chunks is kept."""
    return [chunk for chunk in text.strip().split(".") if chunk != ""]


class Embedder(Protocol):
    async def embed_many(self, texts: List[str]) -> List[np.ndarray]: ...


class LocalEmbedder:
    """
    CPU sentence-transformers embedder.

    Model is loaded once per process and shared across instances.
    """

    _models: dict = {}

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2", batch_size: int = 8):
        self.model_name = model_name
        self.batch_size = batch_size

    def _get_model(self):
        model = LocalEmbedder._models.get(self.model_name)
        if model is None:
            # Keep the model off the GPU
            os.environ.setdefault("CUDA_VISIBLE_DEVICES", "")
            from sentence_transformers import SentenceTransformer

            logger.info(f"[Embeddings] Loading {self.model_name} (CPU)...")
            model = SentenceTransformer(self.model_name, device="cpu")
            LocalEmbedder._models[self.model_name] = model
            logger.info("[Embeddings] Model loaded")
        return model

    def _encode(self, texts: List[str]) -> List[np.ndarray]:
        vectors = self._get_model().encode(
            texts,
            batch_size=self.batch_size,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        return [np.asarray(v, dtype=np.float32) for v in vectors]

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        return await asyncio.to_thread(self._encode, texts)


class OpenAIEmbedder:
    """Embeddings via the OpenAI /embeddings endpoint."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.model = settings.openai.embedding_model
        self._client = httpx.AsyncClient(
            base_url=settings.openai.base_url,
            timeout=httpx.Timeout(settings.openai.timeout, connect=10.0),
            headers={"Authorization": f"Bearer {settings.openai.api_key}"},
        )

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        try:
            response = await self._client.post("/embeddings", json={"model": self.model, "input": texts})
            response.raise_for_status()
            data = response.json()["data"]
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(f"HTTP {e.response.status_code}: {e.response.text}", e) from e
        except httpx.RequestError as e:
            raise EmbeddingError(f"Request error: {e}", e) from e

        data = sorted(data, key=lambda item: item["index"])
        return [np.asarray(item["embedding"], dtype=np.float32) for item in data]

    async def close(self):
        await self._client.aclose()


async def generate_embeddings(embedder: Embedder, value: str) -> List[Tuple[str, np.ndarray]]:
    """Chunk `value` and embed every chunk. Returns (chunk, vector) pairs."""
    chunks = generate_chunks(value)
    if not chunks:
        logger.warning(f"[Embeddings] No chunks generated from input (length={len(value)})")
        return []

    try:
        vectors = await embedder.embed_many(chunks)
    except EmbeddingError:
        raise
    except Exception as e:
        logger.error(f"[Embeddings] Failed to generate embeddings: {e}")
        raise EmbeddingError("Could not generate embeddings for content", e) from e

    if len(vectors) != len(chunks):
        raise EmbeddingError(f"expected {len(chunks)} vectors, got {len(vectors)}")
    return list(zip(chunks, vectors))


async def generate_query_embedding(embedder: Embedder, query: str) -> np.ndarray:
    """Embed a search query; literal backslash-n sequences become spaces."""
    text = query.replace("\\n", " ")
    try:
        vectors = await embedder.embed_many([text])
    except EmbeddingError:
        raise
    except Exception as e:
        logger.error(f"[Embeddings] Failed to embed query: {e}")
        raise EmbeddingError("Could not generate embedding for query", e) from e
    return vectors[0]


# Global embedder instance
_embedder: Optional[Embedder] = None


def get_embedder() -> Embedder:
    """Get the configured embedder (EMBEDDING_PROVIDER=local|openai)."""
    global _embedder
    if _embedder is None:
        settings = get_settings()
        provider = settings.embeddings.provider.lower()
        if provider == "openai":
            _embedder = OpenAIEmbedder(settings)
        elif provider == "local":
            _embedder = LocalEmbedder(settings.embeddings.local_model)
        else:
            raise ValueError(f"Unknown EMBEDDING_PROVIDER: {settings.embeddings.provider}")
        logger.info(f"[Embeddings] Using {provider} embedder")
    return _embedder


async def close_embedder() -> None:
    """Release the global embedder; the OpenAI provider holds an HTTP client."""
    global _embedder
    if isinstance(_embedder, OpenAIEmbedder):
        await _embedder.close()
    _embedder = None
