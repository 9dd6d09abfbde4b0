"""Transcript tailing: byte offsets, partial lines and wake-up sources."""
