"""
Link expansion - fold the content of a linked page into the conversation.

Pipeline for a message:

1. find the first http(s) link (none: nothing to do, no network call)
2. download the page and strip it to text
3. normalize whitespace
4. shrink the text geometrically until its token count fits the
   summarization cutoff, or give up with a fixed fallback message
5. summarize the text with memory retrieval disabled

Download, extraction and tokenizer failures are absorbed: the caller gets a
FAILED result and sends the original message unchanged. A summarization
failure keeps the link and turns the content into an apology the chat model
can relay.
"""

import asyncio
import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, Optional, Tuple

from clients.llm_client import CompletionSettings
from lurch.exceptions import (
    LurchError,
    SummarizationError,
    UnfittableTextError,
)
from lurch.text_extractor import extract_text
from lurch.tokens import count_tokens

logger = logging.getLogger(__name__)

LINK_PATTERN = re.compile(r"\bhttps?://\S+\b")

TOO_LARGE_MESSAGE = (
    "The website content was too large to process, "
    "tell the user that you couldn't summarize the page"
)

SUMMARY_INSTRUCTIONS = (
    "you are an AI copywriting assistant, you help summarize content "
    "into a maximum of 500 words."
)

_BLANK_LINES = re.compile(r"\n\s*\n+")
_INNER_SPACES = re.compile(r"[ \t\f\v\u00a0]+")


class ExpansionStatus(Enum):
    NO_LINK = "no_link"
    FAILED = "failed"
    EXPANDED = "expanded"


@dataclass(frozen=True)
class ExpansionResult:
    """Outcome of expanding one message."""

    status: ExpansionStatus
    link: str = ""
    content: str = ""
    reason: str = ""

    @property
    def was_expanded(self) -> bool:
        return self.status is ExpansionStatus.EXPANDED

    def as_pair(self) -> Tuple[str, str]:
        """(link, content), both empty unless the link was expanded."""
        if not self.was_expanded:
            return "", ""
        return self.link, self.content


@dataclass(frozen=True)
class ExpansionBudget:
    """Process-wide limits for page text handed to summarization."""

    summarization_token_cutoff: int
    shrink_factor: float = 0.7
    minimum_viable_length: int = 1

    def __post_init__(self):
        if not 0 < self.shrink_factor < 1:
            raise ValueError(f"shrink_factor must be in (0, 1), got {self.shrink_factor}")
        if self.summarization_token_cutoff < 0:
            raise ValueError("summarization_token_cutoff must not be negative")


def find_link(message: str) -> Optional[str]:
    """First http(s) URL in a message, or None."""
    match = LINK_PATTERN.search(message)
    return match.group(0) if match else None


def normalize_whitespace(text: str) -> str:
    """Collapse repeated spaces and blank lines for summarization input."""
    lines = [_INNER_SPACES.sub(" ", line).strip() for line in text.splitlines()]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def shrink_until_fits(
    text: str,
    fits: Callable[[str], bool],
    factor: float,
    min_length: int = 1,
) -> str:
    """
    Truncate text by `factor` until `fits` accepts it.

    Truncation is by characters, so the number of rounds only approximates
    the token reduction needed.

    Args:
        text: Candidate text
        fits: Predicate deciding whether a candidate is small enough
        factor: Fraction of the length kept each round, in (0, 1)
        min_length: Shortest candidate worth trying

    Returns:
        The longest prefix tried that fits

    Raises:
        UnfittableTextError: If the next candidate would be shorter than min_length
    """
    if not 0 < factor < 1:
        raise ValueError(f"factor must be in (0, 1), got {factor}")

    candidate = text
    rounds = 0
    while not fits(candidate):
        new_length = math.floor(len(candidate) * factor)
        if new_length < min_length:
            raise UnfittableTextError(len(candidate))
        candidate = candidate[:new_length]
        rounds += 1
        logger.debug(f"Shrink round {rounds}: {new_length} chars")

    if rounds:
        logger.info(f"Shrunk page text from {len(text)} to {len(candidate)} chars in {rounds} rounds")
    return candidate


class ExpansionPipeline:
    """Expands links in user messages into summarized page content."""

    def __init__(
        self,
        fetcher,
        completion,
        settings: CompletionSettings,
        budget: ExpansionBudget,
        tokenizer_model: str,
        token_counter: Callable[[str, str], int] = count_tokens,
    ):
        """
        Args:
            fetcher: Object with `async fetch(url) -> bytes`
            completion: Object with `async complete(instructions, history, body, settings)`
            settings: Caller's completion settings (memory is disabled for summaries)
            budget: Cutoff and shrink parameters
            tokenizer_model: Model whose tokenizer measures the page text
            token_counter: Token counting function (text, model) -> int
        """
        self.fetcher = fetcher
        self.completion = completion
        self.settings = settings
        self.budget = budget
        self.tokenizer_model = tokenizer_model
        self.token_counter = token_counter

    def _fits(self, candidate: str) -> bool:
        tokens = self.token_counter(candidate, self.tokenizer_model)
        logger.debug(
            f"Page text tokens: {tokens}, cutoff: {self.budget.summarization_token_cutoff}"
        )
        return tokens <= self.budget.summarization_token_cutoff

    def fit_to_budget(self, text: str) -> str:
        """Shrink text under the summarization cutoff (blocking)."""
        return shrink_until_fits(
            text,
            self._fits,
            self.budget.shrink_factor,
            self.budget.minimum_viable_length,
        )

    async def summarize(self, text: str) -> str:
        """
        Condense page text with the summarization persona.

        Raises:
            SummarizationError: If the completion call fails
        """
        try:
            result = await self.completion.complete(
                SUMMARY_INSTRUCTIONS,
                [],
                f"Summarize the following content:\n{text}",
                self.settings.without_memory(),
            )
        except Exception as e:
            raise SummarizationError(str(e))
        return result.text

    async def expand(self, message: str) -> ExpansionResult:
        """Expand the first link in a message."""
        link = find_link(message)
        if link is None:
            return ExpansionResult(ExpansionStatus.NO_LINK)

        try:
            raw = await self.fetcher.fetch(link)
            text = normalize_whitespace(extract_text(raw))
        except LurchError as e:
            logger.warning(f"[expand] could not read {link}: {e}")
            return ExpansionResult(ExpansionStatus.FAILED, link=link, reason=str(e))

        if not text:
            logger.warning(f"[expand] {link} has no readable text")
            return ExpansionResult(
                ExpansionStatus.FAILED, link=link, reason="page has no readable text"
            )

        loop = asyncio.get_running_loop()
        try:
            candidate = await loop.run_in_executor(None, partial(self.fit_to_budget, text))
        except UnfittableTextError:
            logger.warning(f"[expand] {link} too large to summarize")
            return ExpansionResult(ExpansionStatus.EXPANDED, link=link, content=TOO_LARGE_MESSAGE)
        except Exception as e:
            logger.warning(f"[expand] cannot measure {link}: {e}")
            return ExpansionResult(ExpansionStatus.FAILED, link=link, reason=str(e))

        try:
            summary = await self.summarize(candidate)
        except SummarizationError as e:
            logger.warning(f"[expand] summarizing {link} failed: {e}")
            return ExpansionResult(
                ExpansionStatus.EXPANDED,
                link=link,
                content=f"couldn't summarize page: {e}",
                reason=str(e),
            )

        logger.info(f"[expand] summarized {link} into {len(summary)} chars")
        return ExpansionResult(ExpansionStatus.EXPANDED, link=link, content=summary)
