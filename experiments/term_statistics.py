"""
Term Statistics: per-term frequency, document frequency and tf-idf.

Builds a sparse document-term matrix from a JSONL or CSV corpus, computes
per-term statistics, prunes the vocabulary with document-frequency bounds
and reports the most frequent and highest tf-idf terms.

Usage:
    python experiments/term_statistics.py --corpus data/corpus.jsonl --output results/
    python experiments/term_statistics.py --corpus data/reviews.csv --text-field review \
        --stopwords --stem --docfreq-above 10 --reldocfreq-below 0.1
    python experiments/term_statistics.py --dry-run
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

from termstats.corpus_io import load_corpus, texts_of, ids_of
from termstats.dtm import build_dtm, frequent_terms, remove_sparse_terms, term_associations
from termstats.term_stats import term_statistics, filter_terms, sort_terms, to_records

load_dotenv()

RESULTS_DIR = os.getenv("TERMSTATS_RESULTS_DIR", "results")


# ═══════════════════════════════════════════════════════
# Analysis
# ═══════════════════════════════════════════════════════

def run_term_statistics(docs: list[dict], text_field: str = "text",
                        stopwords: bool = False, stem: bool = False,
                        min_length: int = 1, sparse: float | None = None,
                        bounds: dict | None = None, top_n: int = 25,
                        assoc_terms: list[str] | None = None,
                        corlimit: float = 0.5,
                        lowfreq: float | None = None) -> dict:
    """Build the DTM for `docs` and collect all term-level results."""
    print("\nBuilding document-term matrix...")
    dtm = build_dtm(
        texts_of(docs, text_field), doc_ids=ids_of(docs),
        stopwords=stopwords or None, stem=stem, min_length=min_length,
        progress=True,
    )
    print(f"  {dtm.n_docs:,} documents x {dtm.n_terms:,} terms, "
          f"{dtm.matrix.nnz:,} non-zero cells")

    if sparse is not None:
        dtm = remove_sparse_terms(dtm.drop_empty(), sparse)
        print(f"  After removing sparse terms (sparse={sparse}): {dtm.n_terms:,} terms")

    print("\nComputing term statistics...")
    stats = term_statistics(dtm)
    print(f"  {len(stats):,} terms with non-zero frequency")

    kept = filter_terms(stats, **(bounds or {}))
    if bounds:
        print(f"  {len(kept):,} terms after filtering {bounds}")

    by_freq = sort_terms(kept, by="termfreq", descending=True)[:top_n]
    by_tfidf = sort_terms(kept, by="tfidf", descending=True)[:top_n]

    associations = {}
    for term in assoc_terms or []:
        try:
            pairs = term_associations(dtm, term, corlimit)
        except KeyError:
            print(f"  ⚠ '{term}' not in vocabulary, skipping associations")
            continue
        associations[term] = [{"term": t, "correlation": round(r, 4)} for t, r in pairs]

    return {
        "n_documents": dtm.n_docs,
        "n_terms": dtm.n_terms,
        "n_nonzero": int(dtm.matrix.nnz),
        "n_terms_kept": len(kept),
        "filters": bounds or {},
        "frequent_terms": frequent_terms(dtm, low=lowfreq) if lowfreq is not None else [],
        "top_by_termfreq": to_records(by_freq),
        "top_by_tfidf": to_records(by_tfidf),
        "associations": associations,
        "terms": to_records(kept),
    }


# ═══════════════════════════════════════════════════════
# Figure Generation
# ═══════════════════════════════════════════════════════

def generate_figures(results: dict, output_dir: Path):
    """Bar charts of the top terms by frequency and by tf-idf."""
    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError:
        print("  ⚠ matplotlib not available, skipping figures")
        return

    fig_dir = output_dir / "figures"
    fig_dir.mkdir(parents=True, exist_ok=True)

    panels = [
        ("top_by_termfreq", "termfreq", "(a) Most frequent terms", "#4C72B0"),
        ("top_by_tfidf", "tfidf", "(b) Highest tf-idf terms", "#55A868"),
    ]
    fig, axes = plt.subplots(1, 2, figsize=(12, 6))
    for ax, (key, metric, title, color) in zip(axes, panels):
        rows = results[key]
        ax.barh([r["term"] for r in rows][::-1], [r[metric] for r in rows][::-1],
                color=color, alpha=0.8, edgecolor="white")
        ax.set_title(title)
        ax.set_xlabel(metric)

    plt.tight_layout()
    plt.savefig(fig_dir / "term_statistics.png", bbox_inches="tight")
    plt.close()
    print(f"  ✓ Saved term_statistics.png")


def dry_run() -> bool:
    """Validate setup without running."""
    print("Term Statistics: Dry Run Validation")
    print("=" * 60)

    checks = []
    for module, package in [("numpy", "numpy"), ("scipy", "scipy"),
                            ("nltk", "nltk"), ("tqdm", "tqdm"),
                            ("matplotlib", "matplotlib")]:
        try:
            __import__(module)
            checks.append((module, "✓"))
        except ImportError:
            checks.append((module, f"✗ pip install {package}"))

    for name, status in checks:
        print(f"  {name}: {status}")

    failed = [c for c in checks if "✗" in c[1]]
    if failed:
        print(f"\n⚠ Install missing dependencies:")
        print(f"  pip install {' '.join(c[1].split('pip install ')[1] for c in failed)}")
        return False

    print("\n✓ All dependencies available")
    return True


# ═══════════════════════════════════════════════════════
# Main
# ═══════════════════════════════════════════════════════

def main(argv=None):
    parser = argparse.ArgumentParser(description="Term Statistics over a document-term matrix")
    parser.add_argument("--corpus", type=str, default="data/corpus.jsonl")
    parser.add_argument("--output", type=str, default=RESULTS_DIR)
    parser.add_argument("--text-field", type=str, default="text")
    parser.add_argument("--stopwords", action="store_true",
                        help="Remove built-in English stop-words")
    parser.add_argument("--stem", action="store_true", help="Apply Snowball stemming")
    parser.add_argument("--min-length", type=int, default=1)
    parser.add_argument("--sparse", type=float, default=None,
                        help="Drop terms absent from more than this share of documents")
    parser.add_argument("--docfreq-above", type=float, default=None)
    parser.add_argument("--docfreq-below", type=float, default=None)
    parser.add_argument("--reldocfreq-above", type=float, default=None)
    parser.add_argument("--reldocfreq-below", type=float, default=None)
    parser.add_argument("--top-n", type=int, default=25)
    parser.add_argument("--assoc", type=str, nargs="*", default=None,
                        help="Terms to report correlated terms for")
    parser.add_argument("--corlimit", type=float, default=0.5)
    parser.add_argument("--lowfreq", type=float, default=None,
                        help="List all terms occurring at least this often")
    parser.add_argument("--no-figures", action="store_true")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    if args.dry_run:
        if not dry_run():
            sys.exit(1)
        return

    corpus_path = Path(args.corpus)
    if not corpus_path.exists():
        print(f"⚠ Corpus file not found: {corpus_path}")
        sys.exit(1)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("Loading corpus...")
    docs = load_corpus(corpus_path)
    print(f"  {len(docs)} documents loaded")

    bounds = {
        name: value for name, value in [
            ("docfreq_above", args.docfreq_above),
            ("docfreq_below", args.docfreq_below),
            ("reldocfreq_above", args.reldocfreq_above),
            ("reldocfreq_below", args.reldocfreq_below),
        ] if value is not None
    }

    results = run_term_statistics(
        docs, text_field=args.text_field, stopwords=args.stopwords,
        stem=args.stem, min_length=args.min_length, sparse=args.sparse,
        bounds=bounds, top_n=args.top_n, assoc_terms=args.assoc,
        corlimit=args.corlimit, lowfreq=args.lowfreq,
    )

    print(f"\nTop {min(10, len(results['top_by_tfidf']))} terms by tf-idf:")
    for r in results["top_by_tfidf"][:10]:
        print(f"  {r['term']:<20} tfidf={r['tfidf']:.4f}  docfreq={r['docfreq']}")

    output_file = output_dir / "term_statistics_results.json"
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2, ensure_ascii=False)
    print(f"\n✓ Results saved to {output_file}")

    if not args.no_figures:
        print("\nGenerating figures...")
        generate_figures(results, output_dir)

    print("\n" + "=" * 60)
    print("Term Statistics Complete")
    print("=" * 60)


if __name__ == "__main__":
    main()
