#!/usr/bin/env python3
"""Combine the most recent benchmark run directory into a summary file."""

from __future__ import annotations

import argparse
import logging

from ai_bench.combiner import combine_latest
from ai_bench.config import RESULTS_DIRECTORY, RUNS_DIRECTORY


def main() -> None:
    parser = argparse.ArgumentParser(description="Combine benchmark run files into a summary")
    parser.add_argument("runs_dir", nargs="?", default=RUNS_DIRECTORY,
                        help=f"Directory holding run directories (default: {RUNS_DIRECTORY})")
    parser.add_argument("output_name", nargs="?", help="Summary file name (without -summary.json)")
    parser.add_argument("--results-dir", default=RESULTS_DIRECTORY,
                        help=f"Where to write the summary (default: {RESULTS_DIRECTORY})")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    summary = combine_latest(args.runs_dir, args.output_name, args.results_dir)
    print(f"Combined {summary.total_runs} runs across {summary.total_models} model(s) "
          f"and {summary.total_tests} test(s)")
    print(f"Success rate: {summary.overall_success_rate:.1f}% | Tokens: {summary.total_tokens:,}")


if __name__ == "__main__":
    main()
