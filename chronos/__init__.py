"""Chronos: Gemini chat backend with local conversation history and a forum."""

__version__ = "1.0.0"
