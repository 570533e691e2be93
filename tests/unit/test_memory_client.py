"""
Unit tests for ConversationMemory (ChromaDB-backed long-term memory).

The ChromaDB client and the embedder are mocked; chunking is tested directly.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from clients.memory_client import ConversationMemory, MemoryHit, chunk_text, split_sentences
from lurch.exceptions import MemoryIngestError

TRANSCRIPT = (
    "user: What is the gateway?\n"
    "assistant: An API gateway routes requests. It also enforces quotas!\n"
    "user: Thanks.\n"
)


@pytest.fixture
def collection() -> MagicMock:
    collection = MagicMock()
    collection.count.return_value = 0
    return collection


@pytest.fixture
def embedder() -> AsyncMock:
    embedder = AsyncMock()
    embedder.embed_batch = AsyncMock(side_effect=lambda texts: [[0.1, 0.2]] * len(texts))
    embedder.embed_text = AsyncMock(return_value=[0.1, 0.2])
    return embedder


@pytest.fixture
def memory(collection, embedder) -> ConversationMemory:
    client = MagicMock()
    client.get_or_create_collection.return_value = collection
    return ConversationMemory(embedder, client=client, chunk_size=2)


@pytest.mark.unit
class TestChunking:
    def test_split_sentences(self):
        assert split_sentences(TRANSCRIPT) == [
            "user: What is the gateway?",
            "assistant: An API gateway routes requests.",
            "It also enforces quotas!",
            "user: Thanks.",
        ]

    def test_sentence_mode_groups_sentences(self):
        chunks = chunk_text(TRANSCRIPT, sentence_mode=True, chunk_size=3)
        assert len(chunks) == 2
        assert chunks[1] == "user: Thanks."

    def test_word_mode_groups_words(self):
        chunks = chunk_text("one two three four five", sentence_mode=False, chunk_words=2)
        assert chunks == ["one two", "three four", "five"]

    def test_empty_text_has_no_chunks(self):
        assert chunk_text("  \n ") == []


@pytest.mark.unit
class TestConversationMemory:
    @pytest.mark.asyncio
    async def test_ingest_stores_chunks_with_label(self, memory, collection, embedder):
        count = await memory.ingest(TRANSCRIPT, "conversation with U1", sentence_mode=True)

        assert count == 2
        embedder.embed_batch.assert_awaited_once()
        kwargs = collection.add.call_args.kwargs
        assert len(kwargs["ids"]) == 2
        assert len(set(kwargs["ids"])) == 2
        assert [m["label"] for m in kwargs["metadatas"]] == ["conversation with U1"] * 2
        assert kwargs["documents"][0].startswith("user: What is the gateway?")

    @pytest.mark.asyncio
    async def test_ingest_nothing(self, memory, collection):
        assert await memory.ingest("", "conversation with U1") == 0
        collection.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_embedding_failure_raises_ingest_error(self, memory, embedder):
        embedder.embed_batch = AsyncMock(side_effect=ConnectionError("ollama down"))

        with pytest.raises(MemoryIngestError) as exc_info:
            await memory.ingest(TRANSCRIPT, "conversation with U1")

        assert "ollama down" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_storage_failure_raises_ingest_error(self, memory, collection):
        collection.add.side_effect = ValueError("dimension mismatch")

        with pytest.raises(MemoryIngestError):
            await memory.ingest(TRANSCRIPT, "conversation with U1")

    @pytest.mark.asyncio
    async def test_search_empty_collection(self, memory, embedder):
        assert await memory.search("gateway") == []
        embedder.embed_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_search_returns_hits(self, memory, collection):
        collection.count.return_value = 5
        collection.query.return_value = {
            "documents": [["The gateway runs on port 8080."]],
            "metadatas": [[{"label": "conversation with U1", "chunk_index": 0}]],
            "distances": [[0.12]],
        }

        hits = await memory.search("which port?", top_k=3)

        assert hits == [
            MemoryHit(title="conversation with U1", text="The gateway runs on port 8080.", score=0.12)
        ]
        assert collection.query.call_args.kwargs["n_results"] == 3

    @pytest.mark.asyncio
    async def test_search_limits_results_to_collection_size(self, memory, collection):
        collection.count.return_value = 1
        collection.query.return_value = {"documents": [[]], "metadatas": [[]], "distances": [[]]}

        assert await memory.search("anything", top_k=10) == []
        assert collection.query.call_args.kwargs["n_results"] == 1
