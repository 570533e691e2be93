"""
Bot settings - load a bot directory (lurch.yaml plus optional templates).

Example lurch.yaml:

    model: llama3.2
    tokenizer_model: gpt-3.5-turbo
    token_limit: 4096
    history_capacity: 5
    instructions: file://instructions.md
    help: file://help_response.md
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from clients.llm_client import CompletionSettings
from lurch.exceptions import SettingsError
from lurch.expansion import ExpansionBudget

logger = logging.getLogger(__name__)

CONFIG_FILE = "lurch.yaml"
FILE_PREFIX = "file://"
DEFAULT_INSTRUCTIONS = "You are a helpful assistant chatting with a team in Slack."
CUTOFF_RATIO = 0.8


@dataclass
class BotSettings:
    """Everything the bot needs to know about one deployment"""

    bot_dir: Path = field(default_factory=Path.cwd)
    model: str = "llama3.2"
    tokenizer_model: str = "gpt-3.5-turbo"
    token_limit: int = 4096
    summarization_token_cutoff: Optional[int] = None
    shrink_factor: float = 0.7
    minimum_viable_length: int = 1
    history_capacity: int = 5
    instructions: str = DEFAULT_INSTRUCTIONS
    help: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1000
    memory_enabled: bool = True
    memory_top_k: int = 3
    fetch_timeout: float = 15
    completion_timeout: float = 60
    learn_dir: str = "learn"
    ollama_url: str = "http://localhost:11434"
    embedding_model: str = "nomic-embed-text"
    chroma_path: Optional[str] = None
    memory_collection: str = "lurch_memory"

    def __post_init__(self):
        self.bot_dir = Path(self.bot_dir)
        if self.summarization_token_cutoff is None:
            self.summarization_token_cutoff = int(self.token_limit * CUTOFF_RATIO)

    @classmethod
    def from_directory(cls, bot_dir, env: Optional[Dict[str, str]] = None) -> "BotSettings":
        """
        Load settings from `<bot_dir>/lurch.yaml`.

        Environment variables OLLAMA_URL, LURCH_MODEL and CHROMA_PATH
        override the file.

        Raises:
            SettingsError: If the directory or config is missing or invalid
        """
        bot_dir = Path(bot_dir)
        env = os.environ if env is None else env
        config_path = bot_dir / CONFIG_FILE

        if not config_path.exists():
            raise SettingsError(f"Config file not found: {config_path}")

        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise SettingsError(f"Invalid YAML in {config_path}: {e}")

        if not isinstance(raw, dict):
            raise SettingsError(f"{config_path} must contain a mapping")

        overrides = {
            "ollama_url": env.get("OLLAMA_URL"),
            "model": env.get("LURCH_MODEL"),
            "chroma_path": env.get("CHROMA_PATH"),
        }
        raw.update({k: v for k, v in overrides.items() if v})

        settings = cls._from_mapping(bot_dir, raw)
        settings.instructions = settings.resolve_reference(settings.instructions)
        logger.info(f"Loaded bot settings from {config_path} (model: {settings.model})")
        return settings

    @classmethod
    def _from_mapping(cls, bot_dir: Path, raw: Dict[str, Any]) -> "BotSettings":
        known = {f.name for f in fields(cls)} - {"bot_dir"}
        unknown = sorted(set(raw) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")

        values = {k: v for k, v in raw.items() if k in known}
        try:
            return cls(bot_dir=bot_dir, **values)
        except TypeError as e:
            raise SettingsError(f"Invalid settings: {e}")

    def resolve_path(self, name: str) -> Path:
        """Resolve a path relative to the bot directory."""
        path = Path(name).expanduser()
        return path if path.is_absolute() else self.bot_dir / path

    def resolve_reference(self, value: str) -> str:
        """
        Dereference a `file://` value into the file's contents.

        Raises:
            SettingsError: If the referenced file cannot be read
        """
        if not value or not value.startswith(FILE_PREFIX):
            return value

        path = self.resolve_path(value[len(FILE_PREFIX):])
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise SettingsError(f"Cannot read {path}: {e}")

    def help_text(self) -> Optional[str]:
        """Configured help text, or None when unset or unreadable."""
        if not self.help:
            return None
        try:
            return self.resolve_reference(self.help)
        except SettingsError as e:
            logger.warning(f"Help text unavailable: {e}")
            return None

    @property
    def learn_path(self) -> Path:
        return self.resolve_path(self.learn_dir)

    def completion_settings(self) -> CompletionSettings:
        return CompletionSettings(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            memory_enabled=self.memory_enabled,
            memory_top_k=self.memory_top_k,
            timeout=self.completion_timeout,
        )

    def expansion_budget(self) -> ExpansionBudget:
        return ExpansionBudget(
            summarization_token_cutoff=self.summarization_token_cutoff,
            shrink_factor=self.shrink_factor,
            minimum_viable_length=self.minimum_viable_length,
        )
