"""
Conversation Manager - Rolling per-user conversation history for the Slack bot

Each conversation key (Slack user or channel) owns a fixed-capacity
RollingWindow. When a window is full, the oldest turn is overwritten.
The ConversationStore maps keys to windows and hands out one asyncio.Lock
per key so messages of the same conversation are processed one at a time.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5


class Role(str, Enum):
    """Who produced a turn"""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationTurn:
    """A single message in a conversation"""

    role: Role
    content: str


def normalize_capacity(capacity: Optional[int]) -> int:
    """Return a usable capacity, falling back to DEFAULT_CAPACITY.

    Anything but a positive int (None, zero, a quoted YAML "5") is invalid.
    """
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
        logger.warning(
            f"Invalid history capacity {capacity!r}, using default of {DEFAULT_CAPACITY}"
        )
        return DEFAULT_CAPACITY
    return capacity


class RollingWindow:
    """Fixed-capacity circular buffer of conversation turns.

    `cursor` always points at the next slot to overwrite, which is also
    the oldest surviving turn once the window has wrapped.
    """

    def __init__(self, capacity: Optional[int] = DEFAULT_CAPACITY):
        self.capacity = normalize_capacity(capacity)
        self.slots: List[Optional[ConversationTurn]] = [None] * self.capacity
        self.cursor = 0

    def append(self, turn: ConversationTurn) -> None:
        """Store a turn, evicting the oldest one when full."""
        self.slots[self.cursor] = turn
        self.cursor = (self.cursor + 1) % self.capacity

    def snapshot(self) -> "WindowSnapshot":
        """Chronological view of the held turns (oldest first)."""
        return WindowSnapshot(self)

    def reset(self, capacity: Optional[int] = None) -> "RollingWindow":
        """Return an empty window, keeping the capacity unless one is given."""
        return RollingWindow(self.capacity if capacity is None else capacity)

    def __len__(self) -> int:
        return sum(1 for slot in self.slots if slot is not None)

    def __repr__(self) -> str:
        return f"RollingWindow(capacity={self.capacity}, turns={len(self)})"


class WindowSnapshot:
    """Restartable iterable over a window's turns.

    Iteration reads the window lazily, so every pass reflects the window's
    state at the moment iteration starts.
    """

    def __init__(self, window: RollingWindow):
        self._window = window

    def __iter__(self) -> Iterator[ConversationTurn]:
        window = self._window
        start = window.cursor
        for offset in range(window.capacity):
            turn = window.slots[(start + offset) % window.capacity]
            if turn is not None:
                yield turn

    def __len__(self) -> int:
        return len(self._window)


class ConversationStore:
    """Maps conversation keys to their rolling windows.

    Windows are created lazily on first contact and replaced (never removed)
    by reset.
    """

    def __init__(self, capacity: Optional[int] = DEFAULT_CAPACITY):
        self.capacity = normalize_capacity(capacity)
        self._windows: Dict[str, RollingWindow] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def window(self, key: str) -> RollingWindow:
        """Get the window for a key, creating an empty one if needed."""
        window = self._windows.get(key)
        if window is None:
            window = RollingWindow(self.capacity)
            self._windows[key] = window
            logger.debug(f"Created conversation window for {key}")
        return window

    def append(self, key: str, role: Role, content: str) -> None:
        """Record a turn in the key's window."""
        self.window(key).append(ConversationTurn(role=role, content=content))

    def snapshot(self, key: str) -> List[ConversationTurn]:
        """Materialized chronological history for a key."""
        return list(self.window(key).snapshot())

    def reset(self, key: str) -> None:
        """Discard all turns for a key."""
        self._windows[key] = self.window(key).reset()
        logger.info(f"Reset conversation history for {key}")

    def lock(self, key: str) -> asyncio.Lock:
        """Per-key lock serializing messages of one conversation."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __contains__(self, key: str) -> bool:
        return key in self._windows
