#!/usr/bin/env python3
"""Empty the run and/or results directories, keeping the directories themselves."""

from __future__ import annotations

import argparse
import shutil
from pathlib import Path

from ai_bench.config import RESULTS_DIRECTORY, RUNS_DIRECTORY


def clean_directory(path: Path) -> int:
    """Remove everything inside `path`; returns the number of entries removed."""
    if not path.is_dir():
        path.mkdir(parents=True, exist_ok=True)
        return 0
    removed = 0
    for entry in path.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    return removed


def main() -> None:
    parser = argparse.ArgumentParser(description="Clean benchmark output directories")
    parser.add_argument("--remove-runs", action="store_true", help=f"Empty {RUNS_DIRECTORY}/")
    parser.add_argument("--remove-results", action="store_true", help=f"Empty {RESULTS_DIRECTORY}/")
    parser.add_argument("--runs-dir", default=RUNS_DIRECTORY)
    parser.add_argument("--results-dir", default=RESULTS_DIRECTORY)
    args = parser.parse_args()

    if not (args.remove_runs or args.remove_results):
        parser.error("specify --remove-runs and/or --remove-results")

    if args.remove_runs:
        count = clean_directory(Path(args.runs_dir))
        print(f"Removed {count} entries from {args.runs_dir}")
    if args.remove_results:
        count = clean_directory(Path(args.results_dir))
        print(f"Removed {count} entries from {args.results_dir}")


if __name__ == "__main__":
    main()
