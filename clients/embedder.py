"""Embeddings for long-term memory chunks, computed by Ollama."""
import asyncio
import logging
from typing import List, Optional

import aiohttp

logger = logging.getLogger(__name__)


class OllamaEmbedder:
    """Turns transcript chunks into vectors via Ollama's embeddings API."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 30,
        max_concurrency: int = 4,
    ):
        """
        Args:
            base_url: Base URL for Ollama API
            model: Embedding model to use
            timeout: Total seconds allowed per embedding request
            max_concurrency: Requests in flight at once during a batch
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_concurrency = max(1, max_concurrency)
        self.session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self):
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def embed_text(self, text: str) -> List[float]:
        """Embed one chunk.

        Raises:
            aiohttp.ClientError: If the request fails
            ValueError: If the response carries no embedding
        """
        await self._ensure_session()

        payload = {"model": self.model, "prompt": text}
        async with self.session.post(f"{self.base_url}/api/embeddings", json=payload) as response:
            response.raise_for_status()
            data = await response.json()

        embedding = data.get("embedding")
        if not embedding:
            raise ValueError(f"Ollama returned no embedding for model {self.model}")
        return embedding

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed chunks concurrently, preserving their order."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(text: str) -> List[float]:
            async with semaphore:
                return await self.embed_text(text)

        logger.debug(f"Embedding {len(texts)} chunks with {self.model}")
        return list(await asyncio.gather(*(bounded(text) for text in texts)))
