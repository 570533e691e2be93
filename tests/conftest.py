"""
Core pytest fixtures and configuration for the test suite.

Provides a temporary bot directory, mocked external services (page fetcher,
completion backend, long-term memory) and realistic Slack events, so unit and
integration tests never touch the network.
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import agents and clients modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from unittest.mock import AsyncMock, MagicMock
from typing import Any, Dict, List

from clients.conversation_manager import ConversationStore, ConversationTurn, Role
from clients.llm_client import CompletionResult, CompletionSettings
from lurch.expansion import ExpansionBudget, ExpansionPipeline
from lurch.orchestrator import ConversationOrchestrator
from lurch.settings import BotSettings

SAMPLE_PAGE = b"""<html>
<head><title>Release notes</title><style>body { color: red; }</style></head>
<body>
  <h1>Release 2.0</h1>
  <p>The   gateway   now supports   streaming.</p>


  <p>Upgrade <a href="/docs">instructions</a> are in the docs.</p>
  <script>console.log("tracking");</script>
</body>
</html>"""


def char_tokens(text: str, model_id: str) -> int:
    """One simulated token per character."""
    return len(text)


# ============================================================================
# File System Fixtures
# ============================================================================


@pytest.fixture
def test_bot_dir(tmp_path) -> Path:
    """
    Temporary bot directory with a realistic configuration.

    Contains lurch.yaml, file-backed instructions and help text.

    Returns:
        Path: Bot directory
    """
    bot_dir = tmp_path / "bots" / "tyk"
    bot_dir.mkdir(parents=True)
    (bot_dir / "instructions.md").write_text("You are Lurch, the team's butler.\n")
    (bot_dir / "help_response.md").write_text("Mention me with a question or a link.\n")
    (bot_dir / "lurch.yaml").write_text(
        "model: llama3.2\n"
        "tokenizer_model: gpt-3.5-turbo\n"
        "token_limit: 4096\n"
        "history_capacity: 4\n"
        "instructions: file://instructions.md\n"
        "help: file://help_response.md\n"
        "learn_dir: learn\n"
    )
    return bot_dir


@pytest.fixture
def bot_settings(test_bot_dir) -> BotSettings:
    """Settings loaded from the temporary bot directory."""
    return BotSettings.from_directory(test_bot_dir, env={})


# ============================================================================
# External Service Mocks
# ============================================================================


@pytest.fixture
def mock_completion() -> AsyncMock:
    """
    Completion backend returning a fixed answer.

    Returns:
        AsyncMock: Object whose `complete` coroutine returns a CompletionResult
    """
    completion = AsyncMock()
    completion.complete = AsyncMock(
        return_value=CompletionResult(text="Indeed, sir.", context_titles=[], contexts=[])
    )
    return completion


@pytest.fixture
def mock_fetcher() -> AsyncMock:
    """Page fetcher serving SAMPLE_PAGE for every URL."""
    fetcher = AsyncMock()
    fetcher.fetch = AsyncMock(return_value=SAMPLE_PAGE)
    return fetcher


@pytest.fixture
def mock_memory() -> AsyncMock:
    """Long-term memory that stores everything as 3 chunks."""
    memory = AsyncMock()
    memory.ingest = AsyncMock(return_value=3)
    memory.search = AsyncMock(return_value=[])
    return memory


@pytest.fixture
def completion_settings() -> CompletionSettings:
    return CompletionSettings(model="llama3.2")


@pytest.fixture
def pipeline(mock_fetcher, mock_completion, completion_settings) -> ExpansionPipeline:
    """Expansion pipeline with character-count tokens and a 4000 cutoff."""
    return ExpansionPipeline(
        fetcher=mock_fetcher,
        completion=mock_completion,
        settings=completion_settings,
        budget=ExpansionBudget(summarization_token_cutoff=4000, shrink_factor=0.7),
        tokenizer_model="gpt-3.5-turbo",
        token_counter=char_tokens,
    )


@pytest.fixture
def orchestrator(bot_settings, pipeline, mock_completion, mock_memory) -> ConversationOrchestrator:
    """Orchestrator wired to mocked services."""
    return ConversationOrchestrator(
        settings=bot_settings,
        store=ConversationStore(bot_settings.history_capacity),
        pipeline=pipeline,
        completion=mock_completion,
        memory=mock_memory,
    )


# ============================================================================
# Slack Event Fixtures
# ============================================================================


@pytest.fixture
def sample_slack_event() -> Dict[str, Any]:
    """
    Realistic Slack app_mention event.

    Returns:
        Dict[str, Any]: Dict matching Slack event structure
    """
    return {
        "type": "app_mention",
        "user": "U01TEST123",
        "text": "<@U0BOT42> what's new in the gateway?",
        "ts": "1234567890.123456",
        "channel": "C01TEST",
    }


@pytest.fixture
def mock_slack_client() -> MagicMock:
    """Slack web client recording posted messages."""
    client = MagicMock()
    client.chat_postMessage = AsyncMock(return_value={"ok": True, "ts": "1234567890.999999"})
    return client


@pytest.fixture
def sample_conversation() -> List[ConversationTurn]:
    """Multi-turn conversation for window and transcript tests."""
    return [
        ConversationTurn(Role.USER, "What is the gateway?"),
        ConversationTurn(Role.ASSISTANT, "An API gateway routes requests to services."),
        ConversationTurn(Role.USER, "Does it support streaming?"),
        ConversationTurn(Role.ASSISTANT, "Yes, since release 2.0."),
    ]
