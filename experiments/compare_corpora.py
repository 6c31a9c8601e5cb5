"""
Corpus Comparison: which words are overrepresented in one corpus vs another.

Builds one document-term matrix per corpus, joins their term frequencies and
scores every term with a smoothed overrepresentation ratio and a 2x2
chi-squared statistic. Reports the terms most characteristic of each side.

Corpora come either from two files, or from one file split on a field:

Usage:
    python experiments/compare_corpora.py --corpus-x data/a.jsonl --corpus-y data/b.jsonl
    python experiments/compare_corpora.py --corpus data/corpus.jsonl \
        --group-key collection --group-x indiaraj --group-y africa
    python experiments/compare_corpora.py --corpus data/reviews.csv --text-field review \
        --group-key rating --group-x 5 --group-y 1 --stopwords --smoothing 0.0005
"""

from __future__ import annotations

import argparse
import json
import math
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

from termstats.compare import (
    DEFAULT_SMOOTHING, characteristic_terms, compare_corpora, top_terms,
)
from termstats.corpus_io import load_corpus, texts_of, group_records
from termstats.dtm import build_dtm
from termstats.term_stats import to_records

load_dotenv()

RESULTS_DIR = os.getenv("TERMSTATS_RESULTS_DIR", "results")


# ═══════════════════════════════════════════════════════
# Analysis
# ═══════════════════════════════════════════════════════

def run_comparison(docs_x: list[dict], docs_y: list[dict], text_field: str = "text",
                   stopwords: bool = False, stem: bool = False, min_length: int = 1,
                   smoothing: float = DEFAULT_SMOOTHING, top_n: int = 25) -> dict:
    """Compare two lists of records and collect the ranked term tables."""
    dtms = {}
    for side, docs in (("x", docs_x), ("y", docs_y)):
        dtm = build_dtm(texts_of(docs, text_field), stopwords=stopwords or None,
                        stem=stem, min_length=min_length, progress=True)
        print(f"  Corpus {side.upper()}: {dtm.n_docs:,} documents, {dtm.n_terms:,} terms, "
              f"{int(dtm.col_sums().sum()):,} tokens")
        dtms[side] = dtm

    print(f"\nComparing corpora (smoothing={smoothing})...")
    rows = compare_corpora(dtms["x"], dtms["y"], smoothing=smoothing)
    only_x = sum(1 for r in rows if r.freq_y == 0)
    only_y = sum(1 for r in rows if r.freq_x == 0)
    print(f"  {len(rows):,} terms in union ({only_x:,} only in X, {only_y:,} only in Y)")

    return {
        "smoothing": smoothing,
        "corpus_x": {"n_documents": dtms["x"].n_docs, "n_terms": dtms["x"].n_terms,
                     "total_tokens": float(dtms["x"].col_sums().sum())},
        "corpus_y": {"n_documents": dtms["y"].n_docs, "n_terms": dtms["y"].n_terms,
                     "total_tokens": float(dtms["y"].col_sums().sum())},
        "n_terms": len(rows),
        "only_in_x": only_x,
        "only_in_y": only_y,
        "overrepresented_in_x": to_records(top_terms(rows, top_n, descending=True)),
        "overrepresented_in_y": to_records(top_terms(rows, top_n, descending=False)),
        "characteristic_of_x": to_records(characteristic_terms(rows, "x", top_n)),
        "characteristic_of_y": to_records(characteristic_terms(rows, "y", top_n)),
        "terms": to_records(rows),
    }


# ═══════════════════════════════════════════════════════
# Figure Generation
# ═══════════════════════════════════════════════════════

def generate_figures(results: dict, output_dir: Path, labels: tuple[str, str] = ("X", "Y")):
    """Diverging bar chart of the most characteristic terms on each side."""
    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError:
        print("  ⚠ matplotlib not available, skipping figures")
        return

    rows_x = results["characteristic_of_x"][:15]
    rows_y = results["characteristic_of_y"][:15]
    if not rows_x and not rows_y:
        print("  ⚠ No characteristic terms to plot")
        return

    fig_dir = output_dir / "figures"
    fig_dir.mkdir(parents=True, exist_ok=True)

    rows = rows_y[::-1] + rows_x
    log_over = [math.log2(r["overrepresentation"]) for r in rows]
    colors = ["#C44E52" if v < 0 else "#4C72B0" for v in log_over]

    fig, ax = plt.subplots(figsize=(8, max(4, 0.3 * len(rows))))
    ax.barh([r["term"] for r in rows], log_over, color=colors, alpha=0.8, edgecolor="white")
    ax.axvline(x=0, color="black", linewidth=0.8)
    ax.set_xlabel(f"log2 overrepresentation ({labels[0]} vs {labels[1]})")
    ax.set_title(f"Characteristic terms: {labels[0]} (blue) vs {labels[1]} (red)")
    ax.grid(axis="x", alpha=0.3)

    plt.tight_layout()
    plt.savefig(fig_dir / "corpus_comparison.png", bbox_inches="tight")
    plt.close()
    print(f"  ✓ Saved corpus_comparison.png")


def print_table(title: str, rows: list[dict], limit: int = 10):
    print(f"\n{title}")
    print(f"  {'Term':<20} {'freq X':>8} {'freq Y':>8} {'over':>10} {'chi2':>10}")
    print(f"  {'-'*60}")
    for r in rows[:limit]:
        print(f"  {r['term']:<20} {r['freq_x']:>8.0f} {r['freq_y']:>8.0f} "
              f"{r['overrepresentation']:>10.3f} {r['chi2']:>10.2f}")


# ═══════════════════════════════════════════════════════
# Main
# ═══════════════════════════════════════════════════════

def _select_corpora(args) -> tuple[list[dict], list[dict], tuple[str, str]]:
    if args.corpus_x and args.corpus_y:
        paths = [Path(args.corpus_x), Path(args.corpus_y)]
        for p in paths:
            if not p.exists():
                print(f"⚠ Corpus file not found: {p}")
                sys.exit(1)
        return load_corpus(paths[0]), load_corpus(paths[1]), (paths[0].stem, paths[1].stem)

    if not (args.corpus and args.group_key and args.group_x and args.group_y):
        print("⚠ Give --corpus-x/--corpus-y, or --corpus with --group-key, --group-x and --group-y")
        sys.exit(2)

    corpus_path = Path(args.corpus)
    if not corpus_path.exists():
        print(f"⚠ Corpus file not found: {corpus_path}")
        sys.exit(1)

    groups = group_records(load_corpus(corpus_path), args.group_key)
    for name in (args.group_x, args.group_y):
        if name not in groups:
            print(f"⚠ Group '{name}' not found for key '{args.group_key}'. "
                  f"Available: {', '.join(groups)}")
            sys.exit(1)
    return groups[args.group_x], groups[args.group_y], (args.group_x, args.group_y)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Corpus Comparison by word overrepresentation")
    parser.add_argument("--corpus-x", type=str, default=None)
    parser.add_argument("--corpus-y", type=str, default=None)
    parser.add_argument("--corpus", type=str, default=None)
    parser.add_argument("--group-key", type=str, default=None)
    parser.add_argument("--group-x", type=str, default=None)
    parser.add_argument("--group-y", type=str, default=None)
    parser.add_argument("--output", type=str, default=RESULTS_DIR)
    parser.add_argument("--text-field", type=str, default="text")
    parser.add_argument("--stopwords", action="store_true")
    parser.add_argument("--stem", action="store_true")
    parser.add_argument("--min-length", type=int, default=1)
    parser.add_argument("--smoothing", type=float,
                        default=os.getenv("TERMSTATS_SMOOTHING", str(DEFAULT_SMOOTHING)),
                        help="Added to relative frequencies (default: $TERMSTATS_SMOOTHING or %(default)s)")
    parser.add_argument("--top-n", type=int, default=25)
    parser.add_argument("--no-figures", action="store_true")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    if args.dry_run:
        from experiments.term_statistics import dry_run
        if not dry_run():
            sys.exit(1)
        return

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("Loading corpora...")
    docs_x, docs_y, labels = _select_corpora(args)
    print(f"  X = {labels[0]}: {len(docs_x)} documents")
    print(f"  Y = {labels[1]}: {len(docs_y)} documents")

    print("\nBuilding document-term matrices...")
    results = run_comparison(
        docs_x, docs_y, text_field=args.text_field, stopwords=args.stopwords,
        stem=args.stem, min_length=args.min_length, smoothing=args.smoothing,
        top_n=args.top_n,
    )
    results["labels"] = {"x": labels[0], "y": labels[1]}

    print_table(f"Most characteristic of X ({labels[0]}):", results["characteristic_of_x"])
    print_table(f"Most characteristic of Y ({labels[1]}):", results["characteristic_of_y"])

    output_file = output_dir / "corpus_comparison_results.json"
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2, ensure_ascii=False)
    print(f"\n✓ Results saved to {output_file}")

    if not args.no_figures:
        print("\nGenerating figures...")
        generate_figures(results, output_dir, labels)

    print("\n" + "=" * 60)
    print("Corpus Comparison Complete")
    print("=" * 60)


if __name__ == "__main__":
    main()
