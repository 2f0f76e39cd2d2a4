"""Omi AI relay: wake-phrase webhook that answers with an LLM via Omi notifications."""

__version__ = "0.1.0"
