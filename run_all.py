#!/usr/bin/env python3
"""
Orchestrator: runs the term-statistics pipeline end-to-end.

Steps:
  1. Term Statistics (per-term frequency, document frequency, tf-idf)
  2. Corpus Comparison (overrepresentation and chi-squared between two groups)

Usage:
    python run_all.py --corpus data/corpus.jsonl --group-key collection \
        --group-x indiaraj --group-y africa
    python run_all.py --steps 1                  # Run only specific steps
    python run_all.py --dry-run                  # Validate all dependencies
"""

import argparse
import os
import subprocess
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).parent
DATA_DIR = PROJECT_ROOT / "data"
RESULTS_DIR = Path(os.getenv("TERMSTATS_RESULTS_DIR", PROJECT_ROOT / "results"))


def build_steps(args) -> dict:
    """Step table; arguments depend on the corpus and grouping given."""
    common = ["--corpus", args.corpus, "--output", str(RESULTS_DIR),
              "--text-field", args.text_field]
    if args.stopwords:
        common.append("--stopwords")
    if args.stem:
        common.append("--stem")

    comparison_args = common + [
        "--group-key", str(args.group_key),
        "--group-x", str(args.group_x),
        "--group-y", str(args.group_y),
    ]
    if args.smoothing is not None:
        comparison_args += ["--smoothing", str(args.smoothing)]

    return {
        1: {
            "name": "Term Statistics",
            "script": "experiments/term_statistics.py",
            "args": common,
            "description": "Per-term frequency, document frequency and tf-idf.",
        },
        2: {
            "name": "Corpus Comparison",
            "script": "experiments/compare_corpora.py",
            "args": comparison_args,
            "description": "Word overrepresentation and chi-squared between two groups.",
        },
    }


def run_step(step_num: int, step: dict, dry_run: bool = False) -> bool:
    """Run a single pipeline step."""
    print(f"\n{'═'*60}")
    print(f"  Step {step_num}: {step['name']}")
    print(f"  {step['description']}")
    print(f"{'═'*60}\n")

    script_path = PROJECT_ROOT / step["script"]
    if not script_path.exists():
        print(f"  ✗ Script not found: {script_path}")
        return False

    cmd = [sys.executable, str(script_path)]

    if dry_run:
        cmd.append("--dry-run")
    else:
        cmd.extend(step["args"])

    print(f"  Running: {' '.join(cmd)}\n")

    start_time = time.time()

    try:
        result = subprocess.run(
            cmd,
            cwd=str(PROJECT_ROOT),
            capture_output=False,
            text=True,
        )
    except OSError as e:
        print(f"\n  ✗ Step {step_num} error: {e}")
        return False

    elapsed = time.time() - start_time

    if result.returncode == 0:
        print(f"\n  ✓ Step {step_num} completed in {elapsed:.1f}s")
        return True
    print(f"\n  ✗ Step {step_num} failed (exit code {result.returncode})")
    return False


def print_summary(results: dict, steps: dict, elapsed: float) -> bool:
    """Print per-step outcomes; True when every step that ran succeeded."""
    print(f"\n{'═'*60}")
    print(f"  Pipeline finished in {elapsed:.0f}s")
    print(f"{'═'*60}")
    for step_num, ok in results.items():
        print(f"  {'✓' if ok else '✗'} {step_num}. {steps[step_num]['name']}")

    failed = [s for s, ok in results.items() if not ok]
    if failed:
        print(f"\n  Failed steps: {', '.join(map(str, failed))}")
        return False

    print(f"\n  Results: {RESULTS_DIR}")
    print(f"  Figures: {RESULTS_DIR / 'figures'}")
    return True


def main():
    parser = argparse.ArgumentParser(
        description="Term Statistics Pipeline Orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Steps:
  1: Term Statistics
  2: Corpus Comparison (needs --group-key, --group-x, --group-y)
        """,
    )
    parser.add_argument("--corpus", type=str, default=str(DATA_DIR / "corpus.jsonl"))
    parser.add_argument("--text-field", type=str, default="text")
    parser.add_argument("--group-key", type=str, default=None)
    parser.add_argument("--group-x", type=str, default=None)
    parser.add_argument("--group-y", type=str, default=None)
    parser.add_argument("--smoothing", type=float, default=None)
    parser.add_argument("--stopwords", action="store_true")
    parser.add_argument("--stem", action="store_true")
    parser.add_argument(
        "--from-step", type=int, default=1,
        help="Start from this step (default: 1)",
    )
    parser.add_argument(
        "--steps", type=int, nargs="+", default=None,
        help="Run only these specific steps",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Validate dependencies without running anything",
    )
    parser.add_argument(
        "--stop-on-error", action=argparse.BooleanOptionalAction, default=True,
        help="Stop pipeline on first error (default: True)",
    )
    args = parser.parse_args()

    print("╔════════════════════════════════════════════════════════════╗")
    print("║  Term Statistics & Corpus Comparison Pipeline              ║")
    print("╚════════════════════════════════════════════════════════════╝")

    steps = build_steps(args)

    if args.steps:
        steps_to_run = args.steps
    else:
        steps_to_run = [s for s in sorted(steps.keys()) if s >= args.from_step]

    grouping = (args.group_key, args.group_x, args.group_y)
    if 2 in steps_to_run and not args.dry_run and not all(grouping):
        print("\n  ⚠ Skipping step 2: --group-key, --group-x and --group-y are required")
        steps_to_run = [s for s in steps_to_run if s != 2]

    print(f"\nSteps to run: {steps_to_run}")
    if args.dry_run:
        print("Mode: DRY RUN (dependency validation only)")

    results = {}
    total_start = time.time()

    for step_num in steps_to_run:
        if step_num not in steps:
            print(f"\n  ⚠ Unknown step: {step_num}")
            continue

        success = run_step(step_num, steps[step_num], dry_run=args.dry_run)
        results[step_num] = success

        if not success and args.stop_on_error:
            print(f"\n⚠ Pipeline stopped at step {step_num}. Fix the error and resume with:")
            print(f"  python run_all.py --from-step {step_num}")
            break

    if not print_summary(results, steps, time.time() - total_start):
        sys.exit(1)


if __name__ == "__main__":
    main()
