"""
Exceptions raised across the link-expansion and conversation pipeline.
"""


class LurchError(Exception):
    """Base class for all bot errors."""

    pass


class PageFetchError(LurchError):
    """Raised when a linked page cannot be downloaded."""

    pass


class TextExtractionError(LurchError):
    """Raised when downloaded markup cannot be turned into text."""

    pass


class ModelUnsupportedError(LurchError):
    """Raised when no tokenizer is known for a model."""

    def __init__(self, model_id: str):
        super().__init__(f"no tokenizer known for model '{model_id}'")
        self.model_id = model_id


class UnfittableTextError(LurchError):
    """Raised when text cannot be shrunk under its budget."""

    def __init__(self, length: int):
        super().__init__(f"text cannot be shrunk to fit (stopped at {length} chars)")
        self.length = length


class SummarizationError(LurchError):
    """Raised when the summarization call fails."""

    pass


class CompletionError(LurchError):
    """Raised when the chat completion call fails."""

    pass


class MemoryIngestError(LurchError):
    """Raised when long-term memory refuses a transcript."""

    pass


class SettingsError(LurchError):
    """Raised when the bot configuration cannot be loaded."""

    pass
