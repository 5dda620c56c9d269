"""
Tests for chunking, embeddings and similarity search.

Covers docgen/knowledge/embeddings.py and docgen/knowledge/search.py.
"""

import numpy as np
import pytest

from docgen.core.exceptions import EmbeddingError
from docgen.knowledge.embeddings import generate_chunks, generate_embeddings, generate_query_embedding
from docgen.knowledge.search import find_relevant_content
from docgen.knowledge.writer import KnowledgeBaseWriter

from tests.conftest import FailingEmbedder

SOUP_SITE = "https://food.example.com"
AUTH_SITE = "https://auth.example.com"


class TestChunks:
    def test_split_on_periods(self):
        assert generate_chunks("A sentence. Another one.") == ["A sentence", " Another one"]

    def test_empty_pieces_dropped(self):
        assert generate_chunks("One..Two.") == ["One", "Two"]

    def test_no_period(self):
        assert generate_chunks("  single chunk  ") == ["single chunk"]

    def test_blank(self):
        assert generate_chunks("   ") == []


class TestEmbeddings:
    @pytest.mark.asyncio
    async def test_pairs_chunks_with_vectors(self, embedder):
        pairs = await generate_embeddings(embedder, "First. Second.")
        assert [chunk for chunk, _ in pairs] == ["First", " Second"]
        assert all(vector.shape == (embedder.dims,) for _, vector in pairs)

    @pytest.mark.asyncio
    async def test_no_chunks_skips_provider(self, embedder):
        assert await generate_embeddings(embedder, "...") == []
        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_provider_failure_wrapped(self):
        with pytest.raises(EmbeddingError) as exc_info:
            await generate_embeddings(FailingEmbedder(), "Some text.")
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_query_literal_newlines_become_spaces(self, embedder):
        vector = await generate_query_embedding(embedder, "list\\nusers")
        assert embedder.calls == [["list users"]]
        assert np.array_equal(vector, embedder.vector("list users"))


async def seed(store, embedder):
    writer = KnowledgeBaseWriter(store, embedder)
    soup = await writer.create_resource(
        {"content": "I love to eat egusi soup", "url": SOUP_SITE, "tags": "Food", "description": "Soup"}
    )
    auth = await writer.create_resource(
        {"content": "Authentication uses bearer tokens", "url": AUTH_SITE, "tags": "Auth"}
    )
    return soup, auth


class TestSearch:
    @pytest.mark.asyncio
    async def test_soup_is_found_first(self, store, embedder):
        soup, _ = await seed(store, embedder)
        results = await find_relevant_content(store, embedder, "love to eat soup")

        assert results[0].resource_id == soup.id
        assert results[0].similarity > 0.5
        assert results[0].url == SOUP_SITE
        assert results[0].website_name == "food.example.com"

    @pytest.mark.asyncio
    async def test_floor_excludes_unrelated(self, store, embedder):
        await seed(store, embedder)
        results = await find_relevant_content(store, embedder, "love to eat soup")
        assert [r.tags for r in results] == ["Food"]

    @pytest.mark.asyncio
    async def test_url_filter(self, store, embedder):
        await seed(store, embedder)
        assert await find_relevant_content(store, embedder, "love to eat soup", url=AUTH_SITE) == []

    @pytest.mark.asyncio
    async def test_one_hit_per_resource(self, store, embedder):
        writer = KnowledgeBaseWriter(store, embedder)
        await writer.create_resource(
            {"content": "Soup is great. I love soup. Soup every day.", "url": SOUP_SITE}
        )
        results = await find_relevant_content(store, embedder, "soup")
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_limit(self, store, embedder):
        writer = KnowledgeBaseWriter(store, embedder)
        for i in range(6):
            await writer.create_resource({"content": f"Pagination cursor {i}", "url": SOUP_SITE})
        results = await find_relevant_content(store, embedder, "pagination cursor", limit=3)
        assert len(results) == 3
        assert results == sorted(results, key=lambda r: r.similarity, reverse=True)

    @pytest.mark.asyncio
    async def test_empty_store(self, store, embedder):
        assert await find_relevant_content(store, embedder, "anything") == []

    @pytest.mark.asyncio
    async def test_result_dict_shape(self, store, embedder):
        await seed(store, embedder)
        [result] = await find_relevant_content(store, embedder, "love to eat soup")
        assert set(result.to_dict()) == {
            "content", "tags", "description", "curlCommand", "parameters",
            "similarity", "url", "websiteName",
        }
