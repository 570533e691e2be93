"""
Slack Agent - Answers @mentions through the conversation orchestrator

Connects to Slack via Socket Mode. Every app_mention is handled as its own
task; the orchestrator serializes messages from the same user. Replies go
into the thread of the mention with link unfurling disabled.
"""

import os
from typing import Dict, Optional

from slack_bolt.async_app import AsyncApp
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_sdk.errors import SlackApiError

from agent_platform import Agent, AgentPlatform
from lurch.message_processor import strip_mention


class SlackAgent(Agent):
    """Slack front-end for the bot"""

    def __init__(
        self,
        platform: AgentPlatform,
        bot_token: Optional[str] = None,
        app_token: Optional[str] = None,
        app: Optional[AsyncApp] = None,
    ):
        super().__init__("slack_agent", platform)

        self.bot_token = bot_token or os.getenv("SLACK_BOT_TOKEN")
        self.app_token = app_token or os.getenv("SLACK_APP_TOKEN")

        if not self.bot_token or not self.app_token:
            raise ValueError(
                "Missing Slack tokens. Set SLACK_BOT_TOKEN and SLACK_APP_TOKEN in environment."
            )

        self.app = app or AsyncApp(token=self.bot_token)
        self.socket_handler = None
        self.orchestrator = platform.orchestrator

        self._register_handlers()

    def _register_handlers(self):
        """Register Slack event handlers"""

        @self.app.event("app_mention")
        async def handle_mention(event, client):
            """Handle @mentions"""
            await self.handle_mention(event, client)

    async def handle_mention(self, event: Dict, client) -> None:
        """
        Answer one app_mention event.

        Args:
            event: Slack event payload
            client: Slack web client used to post the reply
        """
        user_id = event.get("user", "")
        channel_id = event.get("channel")
        message = strip_mention(event.get("text", ""))

        self.logger.info(f"Mention from {user_id} in {channel_id}")

        reply = await self.orchestrator.chat(user_id, message)
        if reply.error is not None:
            self.logger.error(f"Chat with {user_id} failed: {reply.error}")

        try:
            await client.chat_postMessage(
                channel=channel_id,
                text=reply.text,
                thread_ts=event.get("ts"),
                unfurl_links=False,
                unfurl_media=False,
            )
        except SlackApiError as e:
            self.logger.error(f"Failed posting reply to {channel_id}: {e}")

    async def run(self):
        """
        Main agent loop - starts Socket Mode handler (blocks indefinitely)
        """
        self.logger.info("Starting Slack agent with Socket Mode...")

        await self._health_check()

        self.socket_handler = AsyncSocketModeHandler(self.app, self.app_token)
        self.logger.info("✅ Slack agent connected and ready")

        await self.socket_handler.start_async()
        return True

    async def shutdown(self):
        """Mark the bot away and close the socket connection"""
        self.logger.info("Marking bot as offline")
        try:
            await self.app.client.users_setPresence(presence="away")
        except SlackApiError as e:
            self.logger.warning(f"Failed to set presence: {e}")

        if self.socket_handler:
            await self.socket_handler.close_async()

    async def _health_check(self):
        """Check if all dependencies are available"""
        health = await self.platform.health_check()
        if not health.get("ollama"):
            self.logger.error("❌ Ollama unavailable")
            raise RuntimeError("Health check failed: Ollama unavailable")

        try:
            auth_test = await self.app.client.auth_test()
            bot_name = auth_test.get("user", "Unknown")
            self.logger.info(f"✅ Slack auth OK (bot: {bot_name})")
        except SlackApiError as e:
            self.logger.error(f"❌ Slack auth failed: {e}")
            raise RuntimeError(f"Health check failed: Slack auth failed: {e}")
