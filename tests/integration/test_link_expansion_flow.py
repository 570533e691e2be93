"""
Integration tests for the full chat flow.

Runs AgentPlatform with a real PageFetcher and OllamaClient whose HTTP traffic
is served by httpx.MockTransport: one fake web server and one fake Ollama.
Long-term memory is mocked.

Tests verify:
- A linked page is fetched, summarized and appended to the chat body
- The summary call runs without memory retrieval
- A dead link leaves the chat body untouched
- learn this: moves the window into memory and archives it
"""

import json

import httpx
import pytest
import pytest_asyncio

from agent_platform import AgentPlatform
from clients.llm_client import OllamaClient
from clients.page_fetcher import PageFetcher
from lurch.expansion import SUMMARY_INSTRUCTIONS
from lurch.learning import transcript_path
from lurch.orchestrator import LINK_CONTENT_NOTE

USER = "U01TEST123"
RELEASE_PAGE = (
    b"<html><head><title>Release 2.0</title><script>track()</script></head>"
    b"<body><h1>Release 2.0</h1><p>The gateway now supports streaming.</p></body></html>"
)


def char_tokens(text, model_id):
    return len(text)


class FakeServices:
    """Serves web pages and the Ollama chat API, recording chat requests"""

    def __init__(self):
        self.chat_requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "docs.example.test":
            if request.url.path == "/release":
                return httpx.Response(200, content=RELEASE_PAGE)
            return httpx.Response(404, text="not found")

        if request.url.path == "/api/chat":
            payload = json.loads(request.content)
            self.chat_requests.append(payload)
            system = payload["messages"][0]["content"]
            if system == SUMMARY_INSTRUCTIONS:
                content = "Release 2.0 adds streaming to the gateway."
            else:
                content = "Yes, streaming arrived in 2.0."
            return httpx.Response(
                200, json={"message": {"role": "assistant", "content": content}, "done": True}
            )

        return httpx.Response(200, text="Ollama is running")


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()


@pytest_asyncio.fixture
async def platform(bot_settings, services, mock_memory):
    transport = httpx.MockTransport(services.handler)

    fetcher = PageFetcher(client=httpx.AsyncClient(transport=transport, follow_redirects=True))
    llm = OllamaClient(base_url=bot_settings.ollama_url, memory=mock_memory)
    llm.client = httpx.AsyncClient(transport=transport)

    platform = AgentPlatform(bot_settings, fetcher=fetcher, llm=llm, memory=mock_memory)
    platform.pipeline.token_counter = char_tokens
    yield platform
    await platform.close()


@pytest.mark.integration
class TestLinkExpansionFlow:
    """Integration tests for link expansion through the orchestrator"""

    @pytest.mark.asyncio
    async def test_link_summary_appended_to_chat(self, platform, services, mock_memory):
        message = "does the gateway stream now? https://docs.example.test/release"

        reply = await platform.orchestrator.chat(USER, message)

        assert reply.ok
        assert f"<@{USER}> Yes, streaming arrived in 2.0." in reply.text

        summary_request, chat_request = services.chat_requests
        summary_body = summary_request["messages"][-1]["content"]
        assert summary_body.startswith("Summarize the following content:\n")
        assert "The gateway now supports streaming." in summary_body
        assert "track()" not in summary_body

        chat_body = chat_request["messages"][-1]["content"]
        assert chat_body == (
            f"{message}\n{LINK_CONTENT_NOTE}\nRelease 2.0 adds streaming to the gateway.\n"
        )
        # Memory is consulted for the chat but not for the summary
        mock_memory.search.assert_awaited_once()
        assert mock_memory.search.call_args.args[0] == chat_body

    @pytest.mark.asyncio
    async def test_dead_link_sends_original_message(self, platform, services):
        message = "what about https://docs.example.test/missing"

        reply = await platform.orchestrator.chat(USER, message)

        assert reply.ok
        assert len(services.chat_requests) == 1
        assert services.chat_requests[0]["messages"][-1]["content"] == message

    @pytest.mark.asyncio
    async def test_history_carries_across_messages(self, platform, services):
        await platform.orchestrator.chat(USER, "hello")
        await platform.orchestrator.chat(USER, "still there?")

        messages = services.chat_requests[-1]["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user", "user"]
        assert messages[1]["content"] == "hello"

    @pytest.mark.asyncio
    async def test_learn_then_chat_starts_fresh(self, platform, services, mock_memory, bot_settings):
        await platform.orchestrator.chat(USER, "the staging gateway is on port 8080")

        reply = await platform.orchestrator.chat(USER, "learn this:")

        assert reply.text.startswith("Saved 3 items")
        assert transcript_path(bot_settings.learn_path, USER).exists()
        assert platform.store.snapshot(USER) == []

        await platform.orchestrator.chat(USER, "which port?")
        messages = services.chat_requests[-1]["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "user"]
