"""Exception types shared across the benchmark core."""

from __future__ import annotations

from pathlib import Path


class AIBenchError(Exception):
    """Base class for ai-bench errors."""


class ConfigurationError(AIBenchError):
    """Raised before scheduling when the run cannot be configured."""


class ExecutionError(AIBenchError):
    """A model or judge call produced an unusable response."""


class PersistenceError(AIBenchError):
    """A run result could not be written durably."""

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.path = path
