"""Prompt Optimizer - rewrite, test and iterate on LLM prompts."""

__version__ = "0.1.0"
