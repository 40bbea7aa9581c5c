"""Parallel LLM benchmark runner with write-ahead run persistence."""

__version__ = "0.1.0"
