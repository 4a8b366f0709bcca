"""Prompt templates for the pipeline stages."""

from querypilot.prompts.loader import PromptEntry, PromptLoader

__all__ = ["PromptEntry", "PromptLoader"]
