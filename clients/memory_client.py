"""
Memory Client - Long-term conversation memory backed by ChromaDB

Learned conversations are split into chunks, embedded through Ollama and
stored in a ChromaDB collection. The same collection is queried to give
the chat model relevant context from earlier conversations.
"""

import asyncio
import hashlib
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import chromadb
from chromadb.config import Settings

from clients.embedder import OllamaEmbedder
from lurch.exceptions import MemoryIngestError

logger = logging.getLogger(__name__)

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+|\n+")


@dataclass
class MemoryHit:
    """A stored chunk returned by a memory search"""

    title: str
    text: str
    score: float


def split_sentences(text: str) -> List[str]:
    """Split text on sentence punctuation and line breaks."""
    return [s.strip() for s in SENTENCE_BOUNDARY.split(text) if s and s.strip()]


def chunk_text(
    text: str, sentence_mode: bool = True, chunk_size: int = 20, chunk_words: int = 200
) -> List[str]:
    """
    Split a transcript into storable chunks.

    Args:
        text: Transcript to split
        sentence_mode: Group whole sentences (True) or fixed word counts (False)
        chunk_size: Sentences per chunk in sentence mode
        chunk_words: Words per chunk otherwise

    Returns:
        Non-empty chunks in original order
    """
    if sentence_mode:
        units = split_sentences(text)
        size = chunk_size
    else:
        units = text.split()
        size = chunk_words

    return [" ".join(units[i : i + size]) for i in range(0, len(units), size)]


class ConversationMemory:
    """ChromaDB collection of learned conversations."""

    def __init__(
        self,
        embedder: OllamaEmbedder,
        persist_directory: Optional[str] = None,
        collection_name: str = "lurch_memory",
        chunk_size: int = 20,
        client=None,
    ):
        """
        Initialize the memory store.

        Args:
            embedder: Embedding client for chunks and queries
            persist_directory: Where ChromaDB keeps its data (in-memory if None)
            collection_name: Collection holding the learned chunks
            chunk_size: Sentences per stored chunk
            client: Pre-built ChromaDB client (tests)
        """
        self.embedder = embedder
        self.chunk_size = chunk_size

        if client is None:
            settings = Settings(anonymized_telemetry=False)
            if persist_directory:
                client = chromadb.PersistentClient(path=persist_directory, settings=settings)
            else:
                client = chromadb.EphemeralClient(settings=settings)
        self.client = client

        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"description": "Conversations the bot was asked to learn"},
        )

    @staticmethod
    def _chunk_id(label: str, index: int, stamp: str) -> str:
        return hashlib.md5(f"{label}:{stamp}:{index}".encode()).hexdigest()

    async def ingest(self, text: str, label: str, sentence_mode: bool = True) -> int:
        """
        Store a transcript.

        Args:
            text: Transcript text
            label: Human-readable source label, returned as hit title
            sentence_mode: Chunk by sentences instead of word counts

        Returns:
            Number of chunks stored

        Raises:
            MemoryIngestError: If embedding or storage fails
        """
        chunks = chunk_text(text, sentence_mode=sentence_mode, chunk_size=self.chunk_size)
        if not chunks:
            logger.info(f"Nothing to learn for '{label}'")
            return 0

        try:
            embeddings = await self.embedder.embed_batch(chunks)
        except Exception as e:
            raise MemoryIngestError(f"failed to embed transcript: {e}")

        stamp = datetime.now(timezone.utc).isoformat()
        ids = [self._chunk_id(label, i, stamp) for i in range(len(chunks))]
        metadatas = [
            {"label": label, "chunk_index": i, "learned_at": stamp}
            for i in range(len(chunks))
        ]

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                lambda: self.collection.add(
                    ids=ids, embeddings=embeddings, documents=chunks, metadatas=metadatas
                ),
            )
        except Exception as e:
            raise MemoryIngestError(f"failed to store transcript: {e}")

        logger.info(f"Learned {len(chunks)} chunks from '{label}'")
        return len(chunks)

    async def search(self, query: str, top_k: int = 3) -> List[MemoryHit]:
        """
        Find stored chunks similar to a query.

        Returns:
            Hits ordered by similarity; empty when nothing is stored
        """
        loop = asyncio.get_running_loop()
        count = await loop.run_in_executor(None, self.collection.count)
        if count == 0 or not query.strip():
            return []

        embedding = await self.embedder.embed_text(query)
        results = await loop.run_in_executor(
            None,
            lambda: self.collection.query(
                query_embeddings=[embedding], n_results=min(top_k, count)
            ),
        )

        hits = []
        if results["documents"] and results["documents"][0]:
            for i, doc in enumerate(results["documents"][0]):
                metadata = results["metadatas"][0][i] or {}
                hits.append(
                    MemoryHit(
                        title=metadata.get("label", ""),
                        text=doc,
                        score=results["distances"][0][i],
                    )
                )
        return hits

    async def close(self):
        await self.embedder.close()
