"""
Transcripts of learned conversations.

A transcript is one `role: content` line per turn. Every learned transcript is
also appended to `<learn_dir>/conversation-with-<key>`, each block preceded by
a `===` separator line.
"""

import logging
from pathlib import Path
from typing import Iterable

from clients.conversation_manager import ConversationTurn

logger = logging.getLogger(__name__)

SEPARATOR = "===\n"


def render_transcript(turns: Iterable[ConversationTurn]) -> str:
    """Format turns as `role: content` lines, oldest first."""
    return "".join(f"{turn.role.value}: {turn.content}\n" for turn in turns)


def transcript_path(learn_dir: Path, key: str) -> Path:
    """Archive file for a conversation key."""
    safe_key = key.replace("/", "_").replace("\\", "_")
    return Path(learn_dir) / f"conversation-with-{safe_key}"


def append_transcript(path: Path, text: str) -> None:
    """
    Append a transcript block to an archive file, creating it if needed.

    Raises:
        OSError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(SEPARATOR + text)
    logger.info(f"Archived transcript to {path}")
