"""
Ollama Client - Chat completion backend for the bot

Sends the rendered instructions, the rolling conversation history and the
(possibly link-augmented) user message to Ollama's /api/chat endpoint.
When long-term memory is attached and enabled in the settings, relevant
memory entries are retrieved first and rendered into the system prompt.
"""

import httpx
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional

from clients.conversation_manager import ConversationTurn
from lurch.exceptions import CompletionError
from lurch.rendering import PromptRenderer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionSettings:
    """Per-call tuning for a completion"""

    model: str = "llama3.2"
    temperature: float = 0.7
    max_tokens: int = 1000
    memory_enabled: bool = True
    memory_top_k: int = 3
    timeout: float = 60

    def without_memory(self) -> "CompletionSettings":
        """Copy of these settings with memory retrieval switched off."""
        return replace(self, memory_enabled=False)


@dataclass
class CompletionResult:
    """Completion text plus the memory context that shaped it"""

    text: str
    context_titles: List[str] = field(default_factory=list)
    contexts: List[str] = field(default_factory=list)


class OllamaClient:
    """Async client for the Ollama chat API"""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        memory=None,
        renderer: Optional[PromptRenderer] = None,
        timeout: float = 60,
    ):
        self.base_url = base_url.rstrip("/")
        self.memory = memory
        self.renderer = renderer or PromptRenderer()
        self.timeout = httpx.Timeout(timeout)
        self.client = None

    async def __aenter__(self):
        self.client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_client(self):
        """Ensure async client is initialized"""
        if not self.client:
            self.client = httpx.AsyncClient(timeout=self.timeout)

    async def _retrieve_context(self, query: str, settings: CompletionSettings):
        """Look up long-term memory entries relevant to the query."""
        if not settings.memory_enabled or self.memory is None:
            return []

        try:
            return await self.memory.search(query, top_k=settings.memory_top_k)
        except Exception as e:
            logger.warning(f"Memory retrieval failed, continuing without context: {e}")
            return []

    async def complete(
        self,
        instructions: str,
        history: Iterable[ConversationTurn],
        body: str,
        settings: CompletionSettings,
    ) -> CompletionResult:
        """
        Chat-style completion with conversation history

        Args:
            instructions: Persona / system instructions
            history: Prior turns, oldest first
            body: Current user message
            settings: Model and retrieval tuning

        Returns:
            CompletionResult with the assistant text and context metadata

        Raises:
            CompletionError: If the backend is unreachable or answers badly
        """
        await self._ensure_client()

        hits = await self._retrieve_context(body, settings)
        contexts = [hit.text for hit in hits]
        system_prompt = self.renderer.render_system_prompt(instructions, contexts)

        msg_list = [{"role": "system", "content": system_prompt}]
        for turn in history:
            msg_list.append({"role": turn.role.value, "content": turn.content})
        msg_list.append({"role": "user", "content": body})

        url = f"{self.base_url}/api/chat"
        payload = {
            "model": settings.model,
            "messages": msg_list,
            "stream": False,
            "options": {
                "temperature": settings.temperature,
                "num_predict": settings.max_tokens,
            },
        }

        try:
            response = await self.client.post(
                url, json=payload, timeout=httpx.Timeout(settings.timeout)
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Ollama chat error: {e}")
            raise CompletionError(f"completion backend failed: {e}")
        except ValueError as e:
            logger.error(f"Ollama returned invalid JSON: {e}")
            raise CompletionError(f"completion backend returned invalid JSON: {e}")

        result = data.get("message", {}).get("content", "")
        if not result:
            raise CompletionError("completion backend returned an empty response")

        logger.info(
            f"Chat completion with {settings.model} returned {len(result)} chars "
            f"(history: {len(msg_list) - 2}, contexts: {len(contexts)})"
        )
        return CompletionResult(
            text=result,
            context_titles=[hit.title for hit in hits if hit.title],
            contexts=contexts,
        )

    async def health_check(self) -> bool:
        """Check if Ollama is reachable"""
        await self._ensure_client()

        try:
            response = await self.client.get(f"{self.base_url}")
            return response.status_code == 200
        except Exception as e:
            logger.error(f"Ollama health check failed: {e}")
            return False

    async def close(self):
        """Close the async client"""
        if self.client:
            await self.client.aclose()
            self.client = None
