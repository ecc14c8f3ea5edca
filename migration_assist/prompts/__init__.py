"""Prompt templates and the placeholder renderer."""

from migration_assist.prompts.renderer import placeholders, render_prompt

__all__ = ["render_prompt", "placeholders"]
