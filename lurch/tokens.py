"""
Token counting with the tokenizer that matches a given model.
"""

import logging
from functools import lru_cache

import tiktoken

from lurch.exceptions import ModelUnsupportedError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=16)
def get_encoding(model_id: str) -> "tiktoken.Encoding":
    """
    Resolve the tokenizer for a model.

    Accepts OpenAI model names (gpt-3.5-turbo, gpt-4o-mini, ...) and raw
    encoding names (cl100k_base, o200k_base, ...).

    Raises:
        ModelUnsupportedError: If neither lookup knows the identifier
    """
    try:
        return tiktoken.encoding_for_model(model_id)
    except KeyError:
        pass

    try:
        return tiktoken.get_encoding(model_id)
    except ValueError:
        raise ModelUnsupportedError(model_id)


def count_tokens(text: str, model_id: str) -> int:
    """Number of tokens `text` occupies for `model_id`."""
    encoding = get_encoding(model_id)
    return len(encoding.encode(text, disallowed_special=()))
