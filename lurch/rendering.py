""" Prompt and Response Templates """
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from jinja2 import Template

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_TEMPLATE = """{{ instructions }}
{% if contexts %}Use the following context to help with your response:
{% for context in contexts %}
{{ context }}
{% endfor %}{% endif %}"""

RESPONSE_TEMPLATE = """
<@{{ user }}> {{ response }}

{% if titles %}*References:*
{% for title in titles %}> {{ title }}
{% endfor %}{% endif %}> (contexts: {{ contexts }}, history: {{ history }})
"""


def load_template(path: Optional[Path], default: str) -> Template:
    """Load a Jinja2 template file, falling back to the built-in source."""
    if path is not None and path.exists():
        logger.info(f"Using template {path}")
        return Template(path.read_text(encoding="utf-8"))
    return Template(default)


class PromptRenderer:
    """Renders the system prompt and the final chat response."""

    def __init__(
        self,
        system_template: Optional[Template] = None,
        response_template: Optional[Template] = None,
    ):
        self.system_template = system_template or Template(SYSTEM_PROMPT_TEMPLATE)
        self.response_template = response_template or Template(RESPONSE_TEMPLATE)

    @classmethod
    def from_directory(cls, bot_dir: Path) -> "PromptRenderer":
        """Pick up prompt.j2 / response.j2 overrides from a bot directory."""
        return cls(
            system_template=load_template(bot_dir / "prompt.j2", SYSTEM_PROMPT_TEMPLATE),
            response_template=load_template(bot_dir / "response.j2", RESPONSE_TEMPLATE),
        )

    def render_system_prompt(self, instructions: str, contexts: Sequence[str]) -> str:
        return self.system_template.render(
            instructions=instructions, contexts=list(contexts)
        ).strip()

    def render_response(
        self,
        user: str,
        response: str,
        titles: List[str],
        contexts: int,
        history: int,
    ) -> str:
        return self.response_template.render(
            user=user,
            response=response,
            titles=titles,
            contexts=contexts,
            history=history,
        )
