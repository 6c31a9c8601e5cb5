"""
Compare two corpora by word overrepresentation.

Each term seen in either corpus gets its absolute and relative frequency in
both, a smoothed overrepresentation ratio (X relative to Y) and a 2x2
chi-squared statistic measuring how surprising its split between the two
corpora is.

Usage:
    from termstats.compare import compare_corpora, characteristic_terms

    rows = compare_corpora(dtm_x, dtm_y, smoothing=0.001)
    for row in characteristic_terms(rows, corpus="y", n=10):
        print(row.term, row.overrepresentation, row.chi2)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields

import numpy as np

from termstats.dtm import DocumentTermMatrix, InvalidMatrix
from termstats.term_stats import TermStats

DEFAULT_SMOOTHING = 0.001


@dataclass
class ComparisonRow:
    """One term's standing in corpus X versus corpus Y."""
    term: str
    freq_x: float
    freq_y: float
    relfreq_x: float
    relfreq_y: float
    overrepresentation: float
    chi2: float


SORT_FIELDS = tuple(f.name for f in fields(ComparisonRow))


def term_frequencies(corpus) -> dict:
    """Reduce a DTM, a list of TermStats or a mapping to {term: frequency}."""
    if isinstance(corpus, DocumentTermMatrix):
        freqs = corpus.term_frequencies()
    elif isinstance(corpus, Mapping):
        freqs = {str(t): float(f) for t, f in corpus.items()}
    else:
        freqs = {}
        for row in corpus:
            if not isinstance(row, TermStats):
                raise TypeError(f"Expected TermStats rows, got {type(row).__name__}")
            freqs[row.term] = freqs.get(row.term, 0.0) + row.termfreq

    for term, f in freqs.items():
        if not np.isfinite(f) or f < 0:
            raise InvalidMatrix(f"invalid frequency {f!r} for term {term!r}")
    return freqs


def chi_squared(a, b, c, d) -> np.ndarray:
    """Pearson chi-squared of the 2x2 table [[a, b], [c, d]], vectorised.

    Expected counts are row total * column total / grand total. Cells whose
    expected count is zero contribute nothing.
    """
    a, b, c, d = (np.asarray(v, dtype=np.float64) for v in (a, b, c, d))
    total = a + b + c + d

    def cell(observed, row_total, col_total):
        with np.errstate(divide="ignore", invalid="ignore"):
            expected = row_total * col_total / total
            term = (observed - expected) ** 2 / expected
        return np.where(expected > 0, term, 0.0)

    return (cell(a, a + b, a + c) + cell(b, a + b, b + d)
            + cell(c, c + d, a + c) + cell(d, c + d, b + d))


def compare_corpora(x, y, smoothing: float = DEFAULT_SMOOTHING) -> list[ComparisonRow]:
    """Outer-join the term frequencies of X and Y and score each term.

    Args:
        x, y: DocumentTermMatrix, list of TermStats, or {term: frequency}
        smoothing: Added to both relative frequencies before taking the
            ratio; keeps it finite for terms absent from Y and damps
            extreme ratios for rare terms

    Returns:
        ComparisonRow per term in either corpus, ordered by term. A term
        missing from one corpus has frequency 0 there; terms with zero
        frequency in both are left out.
    """
    if not smoothing > 0:
        raise ValueError(f"smoothing must be positive, got {smoothing}")

    freqs_x = term_frequencies(x)
    freqs_y = term_frequencies(y)
    terms = sorted(t for t in set(freqs_x) | set(freqs_y)
                   if freqs_x.get(t, 0) > 0 or freqs_y.get(t, 0) > 0)
    if not terms:
        return []

    fx = np.array([freqs_x.get(t, 0.0) for t in terms], dtype=np.float64)
    fy = np.array([freqs_y.get(t, 0.0) for t in terms], dtype=np.float64)
    total_x = fx.sum()
    total_y = fy.sum()

    rel_x = fx / total_x if total_x > 0 else np.zeros_like(fx)
    rel_y = fy / total_y if total_y > 0 else np.zeros_like(fy)
    over = (rel_x + smoothing) / (rel_y + smoothing)
    chi = chi_squared(fx, fy, total_x - fx, total_y - fy)

    return [
        ComparisonRow(
            term=t,
            freq_x=float(fx[k]),
            freq_y=float(fy[k]),
            relfreq_x=float(rel_x[k]),
            relfreq_y=float(rel_y[k]),
            overrepresentation=float(over[k]),
            chi2=float(chi[k]),
        )
        for k, t in enumerate(terms)
    ]


def sort_comparison(rows: list[ComparisonRow], by: str = "overrepresentation",
                    descending: bool = False) -> list[ComparisonRow]:
    """Sort by a ComparisonRow field, ties broken by term ascending.

    Ascending overrepresentation puts Y-dominant terms first, descending
    puts X-dominant terms first.
    """
    if by not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field {by!r}, expected one of {SORT_FIELDS}")
    ordered = sorted(rows, key=lambda r: r.term)
    return sorted(ordered, key=lambda r: getattr(r, by), reverse=descending)


def top_terms(rows: list[ComparisonRow], n: int = 10, by: str = "overrepresentation",
              descending: bool = False) -> list[ComparisonRow]:
    return sort_comparison(rows, by=by, descending=descending)[:n]


def characteristic_terms(rows: list[ComparisonRow], corpus: str = "y",
                         n: int | None = None) -> list[ComparisonRow]:
    """Terms most distinctive of one corpus.

    For "y": overrepresentation < 1, for "x": overrepresentation > 1; then
    by descending chi2.
    """
    if corpus == "y":
        kept = [r for r in rows if r.overrepresentation < 1]
    elif corpus == "x":
        kept = [r for r in rows if r.overrepresentation > 1]
    else:
        raise ValueError(f"corpus must be 'x' or 'y', got {corpus!r}")
    ranked = sort_comparison(kept, by="chi2", descending=True)
    return ranked if n is None else ranked[:n]
