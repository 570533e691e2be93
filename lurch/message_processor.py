"""
Message processor for cleaning inbound Slack text and detecting directives.
"""

import re
from enum import Enum

# Slack renders mentions as <@U012ABCDEF>
MENTION_PATTERN = re.compile(r"<@([A-Z0-9]+)>")

LEARN_PREFIX = "learn this:"


class Directive(Enum):
    """Control commands a user can send instead of a chat message."""

    NONE = "none"
    RESET = "reset"
    HELP = "help"
    LEARN = "learn"


def strip_mention(text: str) -> str:
    """
    Remove the bot mention from an app_mention message.

    Only the first mention is removed (every occurrence of it), so other
    users referenced in the message stay intact.

    Args:
        text: Raw event text from Slack

    Returns:
        Message text with the mention removed and surrounding spaces trimmed
    """
    match = MENTION_PATTERN.search(text)
    if match:
        text = text.replace(match.group(0), "")
    return text.strip(" ")


def parse_directive(message: str) -> Directive:
    """
    Classify a message as a control directive or plain chat.

    `reset` and `help` must be the whole message; `learn this:` is a prefix.
    Matching ignores case and surrounding whitespace.
    """
    normalized = message.strip().lower()
    if normalized == "reset":
        return Directive.RESET
    if normalized == "help":
        return Directive.HELP
    if normalized.startswith(LEARN_PREFIX):
        return Directive.LEARN
    return Directive.NONE
