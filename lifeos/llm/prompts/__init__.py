"""
Prompt Management Module

Loads LLM prompt templates from the .txt files next to this module.
Templates use str.format placeholders; literal braces are doubled.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

PROMPTS_DIR = Path(__file__).parent


class PromptLoader:
    """Load and cache prompt templates from files"""

    def __init__(self, prompts_dir: Path = PROMPTS_DIR):
        self.prompts_dir = prompts_dir
        self._cache: dict[str, str] = {}

    def load_prompt(self, prompt_name: str) -> str:
        """
        Load a prompt template from file.

        Args:
            prompt_name: Name of the prompt file (without .txt extension)

        Returns:
            Prompt template string
        """
        if prompt_name not in self._cache:
            prompt_path = self.prompts_dir / f"{prompt_name}.txt"

            if not prompt_path.exists():
                raise FileNotFoundError(f"Prompt file not found: {prompt_path}")

            with open(prompt_path, encoding="utf-8") as f:
                self._cache[prompt_name] = f.read()

        return self._cache[prompt_name]

    def render(self, prompt_name: str, **kwargs) -> str:
        """Load ``prompt_name`` and fill its placeholders."""
        return self.load_prompt(prompt_name).format(**kwargs)

    def clear_cache(self):
        """Clear prompt cache (useful for testing/development)"""
        self._cache.clear()


@lru_cache(maxsize=1)
def get_prompt_loader() -> PromptLoader:
    return PromptLoader()


def render_prompt(prompt_name: str, **kwargs) -> str:
    return get_prompt_loader().render(prompt_name, **kwargs)
