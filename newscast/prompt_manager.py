import logging
import os
import textwrap
from string import Template
from typing import Iterable

from newscast.config import Config
from newscast.errors import ValidationError
from newscast.services.interfaces import SourceItem

logger = logging.getLogger(__name__)

SOURCE_SEPARATOR = "\n\n---\n\n"


def format_sources(items: Iterable[SourceItem]) -> str:
    """
    Render source items as numbered blocks separated by '---' lines.
    """
    blocks = []
    for index, item in enumerate(items, start=1):
        lines = [f"{index}. {item.title}"]
        if item.body and item.body != item.title:
            lines.append(item.body)
        if item.source_url:
            lines.append(f"Source: {item.source_url}")
        if item.timestamp:
            lines.append(f"Published: {item.timestamp.strftime('%Y-%m-%d %H:%M')}")
        blocks.append("\n".join(lines))
    return SOURCE_SEPARATOR.join(blocks)


class PromptManager:
    def __init__(self, config: Config, print_results=False):
        # Directory containing .txt prompt files
        self.prompts_dir = config.PROMPTS_DIR
        self.print_results = print_results
        self._templates = {}
        self._load_prompts()

    def _load_prompts(self):
        """
        Loads all .txt files in self.prompts_dir as Template objects
        and stores them in self._templates keyed by filename (minus extension).
        """
        if not os.path.isdir(self.prompts_dir):
            logger.warning(f"Prompts directory not found: {self.prompts_dir}")
            return

        for filename in sorted(os.listdir(self.prompts_dir)):
            if filename.endswith(".txt"):
                filepath = os.path.join(self.prompts_dir, filename)
                with open(filepath, "r", encoding="utf-8") as f:
                    content = textwrap.dedent(f.read())
                template_key = os.path.splitext(filename)[0]
                self._templates[template_key] = Template(content)
                logger.debug(f"Loaded prompt template: {filename}")

    @property
    def template_names(self):
        return sorted(self._templates)

    def build_prompt(self, prompt_name, **kwargs):
        """
        Substitutes the given kwargs into the specified prompt template.

        Raises:
            ValidationError: If no template with that name was loaded, or a
                placeholder in the template has no value.
        """
        if prompt_name not in self._templates:
            raise ValidationError(f"No template named '{prompt_name}' found in {self.prompts_dir}")

        template = self._templates[prompt_name]
        try:
            prompt = template.substitute(**kwargs)
        except KeyError as e:
            raise ValidationError(f"Prompt '{prompt_name}' is missing a value for {e}")
        if self.print_results:
            logger.info(f"Built prompt '{prompt_name}': {prompt}")
        return prompt
