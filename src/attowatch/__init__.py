"""Attowatch: live activity tracking for coding-agent transcripts."""

__version__ = "0.1.0"
