"""
Conversation orchestrator - turns one inbound message into one reply.

Every message is first recorded in the sender's rolling window. Control
directives (reset / help / learn this:) short-circuit; anything else is
link-expanded, sent to the completion backend with the window as history,
and the assistant's answer is recorded and rendered.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from clients.conversation_manager import ConversationStore, Role
from lurch.exceptions import MemoryIngestError
from lurch.expansion import ExpansionPipeline
from lurch.learning import append_transcript, render_transcript, transcript_path
from lurch.message_processor import Directive, parse_directive
from lurch.rendering import PromptRenderer
from lurch.settings import BotSettings

logger = logging.getLogger(__name__)

RESET_REPLY = "OK, I've wiped all history of our conversation"
MISSING_HELP_REPLY = "hmm, I can't find my help response!"
LEARNED_REPLY = "Saved {count} items, I'll now wipe this exchange from my short term memory"
LEARN_FAILED_REPLY = "something went wrong with my brain: {error}"
ERROR_REPLY = "I've encountered an error: {error}"
LINK_CONTENT_NOTE = "The link mentioned earlier contains the following content:"


@dataclass
class ChatReply:
    """Text for the user plus the error behind it, if any"""

    text: str
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def augment_message(message: str, content: str) -> str:
    """Append expanded link content to the user's message."""
    return f"{message}\n{LINK_CONTENT_NOTE}\n{content}\n"


class ConversationOrchestrator:
    """Per-conversation chat flow"""

    def __init__(
        self,
        settings: BotSettings,
        store: ConversationStore,
        pipeline: ExpansionPipeline,
        completion,
        memory=None,
        renderer: Optional[PromptRenderer] = None,
    ):
        """
        Args:
            settings: Bot settings (instructions, help, learn directory)
            store: Conversation windows by key
            pipeline: Link expansion pipeline
            completion: Object with `async complete(instructions, history, body, settings)`
            memory: Object with `async ingest(text, label, sentence_mode)`, optional
            renderer: Response renderer
        """
        self.settings = settings
        self.store = store
        self.pipeline = pipeline
        self.completion = completion
        self.memory = memory
        self.renderer = renderer or PromptRenderer()
        self.completion_settings = settings.completion_settings()

    async def chat(self, key: str, message: str) -> ChatReply:
        """
        Handle one message from a conversation.

        Messages of the same key are processed one at a time.

        Args:
            key: Conversation key (Slack user ID)
            message: Message text with the bot mention removed

        Returns:
            ChatReply with the response text and any error
        """
        async with self.store.lock(key):
            return await self._chat(key, message)

    async def _chat(self, key: str, message: str) -> ChatReply:
        self.store.append(key, Role.USER, message)

        directive = parse_directive(message)
        if directive is Directive.RESET:
            self.store.reset(key)
            return ChatReply(RESET_REPLY)
        if directive is Directive.HELP:
            return ChatReply(self.settings.help_text() or MISSING_HELP_REPLY)
        if directive is Directive.LEARN:
            return await self._learn(key)

        return await self._respond(key, message)

    async def _learn(self, key: str) -> ChatReply:
        """Move the current window into long-term memory."""
        transcript = render_transcript(self.store.snapshot(key))

        try:
            if self.memory is None:
                raise MemoryIngestError("long-term memory is not configured")
            count = await self.memory.ingest(
                transcript, f"conversation with {key}", sentence_mode=True
            )
        except Exception as e:
            logger.error(f"Learning conversation with {key} failed: {e}")
            return ChatReply(LEARN_FAILED_REPLY.format(error=e), error=e)

        try:
            append_transcript(transcript_path(self.settings.learn_path, key), transcript)
        except OSError as e:
            logger.warning(f"Learned conversation with {key} but could not archive it: {e}")

        self.store.reset(key)
        logger.info(f"Learned {count} items from conversation with {key}")
        return ChatReply(LEARNED_REPLY.format(count=count))

    async def _respond(self, key: str, message: str) -> ChatReply:
        try:
            expansion = await self.pipeline.expand(message)
            link, content = expansion.as_pair()
        except Exception as e:
            logger.warning(f"Link expansion for {key} failed, sending message as is: {e}")
            link, content = "", ""

        body = message
        if link and content:
            body = augment_message(message, content)

        history = self.store.snapshot(key)
        try:
            result = await self.completion.complete(
                self.settings.instructions, history, body, self.completion_settings
            )
        except Exception as e:
            logger.error(f"Completion for {key} failed: {e}")
            return ChatReply(ERROR_REPLY.format(error=e), error=e)

        self.store.append(key, Role.ASSISTANT, result.text)

        try:
            text = self.renderer.render_response(
                user=key,
                response=result.text,
                titles=result.context_titles,
                contexts=len(result.contexts),
                history=len(history),
            )
        except Exception as e:
            logger.error(f"Rendering response for {key} failed: {e}")
            return ChatReply(ERROR_REPLY.format(error=e), error=e)

        return ChatReply(text)
