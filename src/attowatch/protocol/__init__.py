"""Transcript records, activity models and filesystem helpers."""
