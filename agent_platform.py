"""
Agent Platform - Shared clients, logging and service runner for bot agents

The platform builds every client once from BotSettings and wires them into a
ConversationOrchestrator. Front-ends (Slack, console) are Agents that only
translate their transport into `orchestrator.chat(key, message)` calls.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from clients.conversation_manager import ConversationStore
from clients.embedder import OllamaEmbedder
from clients.llm_client import OllamaClient
from clients.memory_client import ConversationMemory
from clients.page_fetcher import PageFetcher
from lurch.expansion import ExpansionPipeline
from lurch.orchestrator import ConversationOrchestrator
from lurch.rendering import PromptRenderer
from lurch.settings import BotSettings

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s: %(message)s"
LOG_FILE = "lurch.log"

logger = logging.getLogger(__name__)


def configure_logging(log_dir: Optional[Path] = None, level: int = logging.INFO) -> None:
    """Log to stderr and, when a directory is given, to lurch.log inside it."""
    handlers = [logging.StreamHandler()]
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / LOG_FILE))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


@dataclass(frozen=True)
class RestartPolicy:
    """How often and how patiently a crashed service agent is restarted"""

    max_attempts: int = 5
    base_delay: float = 5

    def delay(self, attempt: int) -> float:
        return self.base_delay * attempt


class Agent:
    """A front-end running on top of the platform"""

    def __init__(self, name: str, platform: "AgentPlatform"):
        self.name = name
        self.platform = platform
        self.logger = logging.getLogger(self.name)

    async def run(self) -> bool:
        """
        Serve until the transport closes. Override in subclass.

        Returns:
            True when the agent stopped cleanly
        """
        raise NotImplementedError("Subclass must implement run()")


class AgentPlatform:
    """Owns the bot's clients and runs agents on top of them"""

    def __init__(
        self,
        settings: BotSettings,
        fetcher: Optional[PageFetcher] = None,
        llm: Optional[OllamaClient] = None,
        memory: Optional[ConversationMemory] = None,
        restart_policy: Optional[RestartPolicy] = None,
    ):
        self.settings = settings
        self.restart_policy = restart_policy or RestartPolicy()
        self.renderer = PromptRenderer.from_directory(settings.bot_dir)

        if memory is None and settings.memory_enabled:
            memory = ConversationMemory(
                OllamaEmbedder(settings.ollama_url, settings.embedding_model),
                persist_directory=settings.chroma_path,
                collection_name=settings.memory_collection,
            )
        self.memory = memory

        self.fetcher = fetcher or PageFetcher(timeout=settings.fetch_timeout)
        self.llm = llm or OllamaClient(
            base_url=settings.ollama_url,
            memory=self.memory,
            renderer=self.renderer,
            timeout=settings.completion_timeout,
        )
        self.store = ConversationStore(settings.history_capacity)
        self.pipeline = ExpansionPipeline(
            fetcher=self.fetcher,
            completion=self.llm,
            settings=settings.completion_settings(),
            budget=settings.expansion_budget(),
            tokenizer_model=settings.tokenizer_model,
        )
        self.orchestrator = ConversationOrchestrator(
            settings=settings,
            store=self.store,
            pipeline=self.pipeline,
            completion=self.llm,
            memory=self.memory,
            renderer=self.renderer,
        )

    async def start_service(self, agent: Agent) -> None:
        """
        Run a long-lived agent, restarting it after crashes.

        A clean return from `agent.run()` ends the service. Crashes are
        retried with a linearly growing delay; the last crash is re-raised
        once the restart policy is exhausted.
        """
        policy = self.restart_policy
        logger.info(f"Starting service agent: {agent.name}")

        for attempt in range(1, policy.max_attempts + 1):
            try:
                await agent.run()
            except Exception as e:
                logger.error(
                    f"Service agent {agent.name} crashed ({attempt}/{policy.max_attempts}): {e}",
                    exc_info=True,
                )
                if attempt == policy.max_attempts:
                    logger.error(f"Service agent {agent.name} exceeded max restarts, giving up")
                    raise
                delay = policy.delay(attempt)
                logger.info(f"Restarting {agent.name} in {delay} seconds...")
                await asyncio.sleep(delay)
            else:
                logger.info(f"Service agent {agent.name} stopped")
                return

    async def health_check(self) -> Dict[str, bool]:
        """Reachability of the completion backend and the bot directory"""
        health = {
            "ollama": await self.llm.health_check(),
            "bot_dir": self.settings.bot_dir.is_dir(),
        }
        logger.info(f"Health check: {health}")
        return health

    async def close(self):
        await self.fetcher.close()
        await self.llm.close()
        if self.memory is not None:
            await self.memory.close()
