"""
Convert downloaded HTML into plain text for summarization.
"""

import logging

from bs4 import BeautifulSoup

from lurch.exceptions import TextExtractionError

logger = logging.getLogger(__name__)

# Elements that never carry readable page content
NON_CONTENT_TAGS = ["script", "style", "noscript", "head", "template", "svg", "iframe"]


def decode_markup(raw: bytes) -> str:
    """Decode page bytes, preferring UTF-8."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def extract_text(raw: bytes) -> str:
    """
    Strip markup from a page, keeping only human-readable text.

    Block elements end up on their own lines; links and images are reduced to
    their visible text.

    Args:
        raw: Page content as bytes

    Returns:
        Extracted text (whitespace not yet normalized)

    Raises:
        TextExtractionError: If the content cannot be parsed at all
    """
    if not isinstance(raw, (bytes, bytearray)):
        raise TextExtractionError(f"Expected bytes, got {type(raw).__name__}")

    try:
        soup = BeautifulSoup(decode_markup(bytes(raw)), "html.parser")
        for tag in soup.find_all(NON_CONTENT_TAGS):
            tag.extract()
        text = soup.get_text(separator="\n")
    except Exception as e:
        raise TextExtractionError(f"Failed to extract text from page: {e}")

    logger.debug(f"Extracted {len(text)} chars from {len(raw)} bytes of markup")
    return text
