"""Write-ahead persistence of run results.

Layout::

    {output_dir}/{benchmark}-{run_timestamp}/{model}/{timestamp}-{test}-run{index}.json

Each file is written to a unique temporary sibling, fsynced, then linked
into place, so a reader sees either no file or a complete one.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from ai_bench.benchmark.base import RunResult
from ai_bench.errors import PersistenceError

MAX_SEGMENT_LENGTH = 100


def sanitize_for_filename(value: str) -> str:
    """Make `value` safe as a single path segment."""
    cleaned = re.sub(r"[^a-zA-Z0-9_-]", "-", value)
    cleaned = re.sub(r"-+", "-", cleaned)
    return cleaned[:MAX_SEGMENT_LENGTH] or "-"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-01-01T00:00:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def make_run_timestamp(now: datetime | None = None) -> str:
    """Session timestamp used in run directory names, e.g. 2025-01-01T00-00-00-000Z."""
    now = now or datetime.now(timezone.utc)
    iso = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return re.sub(r"[:.]", "-", iso.replace("+00:00", "Z"))


def run_dir_for(output_dir: str | Path, benchmark_name: str, run_timestamp: str) -> Path:
    return Path(output_dir) / f"{sanitize_for_filename(benchmark_name)}-{run_timestamp}"


def write_json_atomic(path: Path, data: str | dict[str, Any]) -> Path:
    """Write JSON text to `path` via temp file + rename.

    Raises PersistenceError on any OS failure; the temp file is removed.
    """
    text = data if isinstance(data, str) else json.dumps(data, indent=2, default=str)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp",
        )
    except OSError as e:
        raise PersistenceError(f"Cannot prepare {path}: {e}", path=path) from e

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise PersistenceError(f"Failed to write {path}: {e}", path=path) from e
    return path


def write_json_exclusive(path: Path, text: str) -> Path:
    """Write JSON text under `path`, or the first free `-N` sibling of it.

    The complete temp file is hard-linked into place, so the name is
    claimed atomically: an existing file is never replaced, even by a
    concurrent writer choosing the same name. Returns the path written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp",
        )
    except OSError as e:
        raise PersistenceError(f"Cannot prepare {path}: {e}", path=path) from e

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        for candidate in _candidates(path):
            try:
                os.link(tmp_path, candidate)
            except FileExistsError:
                continue
            return candidate
    except OSError as e:
        raise PersistenceError(f"Failed to write {path}: {e}", path=path) from e
    finally:
        tmp_path.unlink(missing_ok=True)


class ResultStore:
    """Durable, append-only store of RunResults under one run directory."""

    def __init__(self, run_dir: str | Path):
        self.run_dir = Path(run_dir)

    def path_for(self, result: RunResult) -> Path:
        model_dir = self.run_dir / sanitize_for_filename(result.model_name)
        filename = (
            f"{sanitize_for_filename(result.timestamp)}-"
            f"{sanitize_for_filename(result.test_name)}-run{result.run_index}.json"
        )
        return model_dir / filename

    def write(self, result: RunResult) -> Path:
        """Persist `result` synchronously; never overwrites an existing file."""
        path = self.path_for(result)
        try:
            text = result.to_json()
        except ValueError as e:
            raise PersistenceError(f"Cannot serialize result for {path}: {e}", path=path) from e
        return write_json_exclusive(path, text)

    async def persist(self, result: RunResult) -> Path:
        """Persist `result` without blocking the event loop."""
        return await asyncio.to_thread(self.write, result)


def _candidates(path: Path) -> Iterator[Path]:
    yield path
    for counter in itertools.count(1):
        yield path.with_name(f"{path.stem}-{counter}{path.suffix}")
