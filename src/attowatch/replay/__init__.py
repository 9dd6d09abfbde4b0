"""Offline transcript replay."""

from attowatch.replay.transcript import replay_transcript

__all__ = ["replay_transcript"]
