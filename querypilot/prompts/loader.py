"""Prompt loading and rendering utilities."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound


@dataclass(frozen=True)
class PromptEntry:
    """Loaded prompt content and front-matter metadata."""

    content: str
    metadata: dict[str, Any]


def split_front_matter(source: str) -> tuple[dict[str, Any], str]:
    """Separate YAML front matter from the template body."""
    if source.startswith("---"):
        parts = source.split("---", 2)
        if len(parts) == 3:
            return yaml.safe_load(parts[1]) or {}, parts[2].lstrip()
    return {}, source


class FrontMatterLoader(FileSystemLoader):
    """Jinja2 loader that strips YAML front matter."""

    def get_source(self, environment: Environment, template: str):  # type: ignore[override]
        source, filename, uptodate = super().get_source(environment, template)
        _, body = split_front_matter(source)
        return body, filename, uptodate


class PromptLoader:
    """
    Load and render the pipeline prompt templates.

    Templates are Markdown files with optional YAML front matter, rendered with
    Jinja2. Undefined variables raise instead of rendering as empty text.

    Example:
        loader = PromptLoader()
        prompt = loader.render(
            "pipeline/sql_generation.md",
            parsed_query=intent_json,
            schema=schema_json,
            dialect="postgresql",
            previous_summary=None,
            failed_attempts=[],
        )
    """

    def __init__(self, prompts_dir: str | Path = "prompts") -> None:
        root = Path(__file__).resolve().parents[2]
        path = Path(prompts_dir)
        self.prompts_dir = path if path.is_absolute() else root / path
        self.cache: dict[str, PromptEntry] = {}
        self._env = Environment(
            loader=FrontMatterLoader(str(self.prompts_dir)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def load(self, prompt_path: str) -> str:
        """
        Load a prompt's raw template body.

        Args:
            prompt_path: Path relative to the prompts directory
                (e.g., "pipeline/query_parsing.md")

        Returns:
            Template body without front matter
        """
        return self._entry(prompt_path).content

    def render(self, prompt_path: str, **variables: Any) -> str:
        """Render a prompt with Jinja2."""
        try:
            template = self._env.get_template(prompt_path)
        except TemplateNotFound as exc:
            raise FileNotFoundError(f"Prompt not found: {self.prompts_dir / prompt_path}") from exc
        return template.render(**variables).strip()

    def get_metadata(self, prompt_path: str) -> dict[str, Any]:
        """Return front-matter metadata for a prompt (loads if needed)."""
        return self._entry(prompt_path).metadata

    def _entry(self, prompt_path: str) -> PromptEntry:
        if prompt_path in self.cache:
            return self.cache[prompt_path]

        file_path = self.prompts_dir / prompt_path
        if not file_path.exists():
            raise FileNotFoundError(f"Prompt not found: {file_path}")

        metadata, content = split_front_matter(file_path.read_text(encoding="utf-8"))
        entry = PromptEntry(content=content, metadata=metadata)
        self.cache[prompt_path] = entry
        return entry
