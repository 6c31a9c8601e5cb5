"""
Per-term statistics over a document-term matrix.

For every term that occurs at least once, reports its shape (length, digits,
non-alphanumeric characters), how often and in how many documents it occurs,
and a tf-idf weight. Typical use is pruning a vocabulary before modelling:
drop terms that are too rare, too common, or look like OCR/tokenizer noise.

Usage:
    from termstats.dtm import build_dtm
    from termstats.term_stats import term_statistics, filter_terms, sort_terms

    stats = term_statistics(build_dtm(texts))
    keep = filter_terms(stats, docfreq_above=10, reldocfreq_below=0.1)
    top = sort_terms(keep, by="tfidf", descending=True)[:20]
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, fields
from typing import Optional

import numpy as np
from scipy import sparse

from termstats.dtm import DocumentTermMatrix


@dataclass
class TermStats:
    """Metrics for one vocabulary term."""
    term: str
    characters: int
    has_digit: bool
    has_nonalnum: bool
    termfreq: float
    docfreq: int
    reldocfreq: float
    tfidf: float


SORT_FIELDS = tuple(f.name for f in fields(TermStats))


def term_statistics(dtm: DocumentTermMatrix) -> list[TermStats]:
    """Compute one TermStats row per term, in vocabulary order.

    Empty documents and never-occurring terms are dropped first, so the
    document count used for reldocfreq and idf is the number of non-empty
    documents.

    tf-idf is the mean, over documents containing the term, of the term's
    share of that document's tokens, multiplied by log2(n_docs / docfreq).
    """
    dtm = dtm.drop_empty()
    if dtm.n_docs == 0 or dtm.n_terms == 0:
        return []

    n_docs = dtm.n_docs
    termfreq = dtm.col_sums()
    docfreq = dtm.doc_freqs()

    # Scale each row by its token total: entries become within-document shares
    row_totals = dtm.row_sums()
    shares = sparse.diags(1.0 / row_totals) @ dtm.matrix
    mean_share = np.asarray(shares.sum(axis=0)).ravel() / docfreq
    tfidf = mean_share * np.log2(n_docs / docfreq)

    rows = []
    for j, term in enumerate(dtm.vocabulary):
        rows.append(TermStats(
            term=term,
            characters=len(term),
            has_digit=any(c.isdigit() for c in term),
            has_nonalnum=not term.isalnum(),
            termfreq=float(termfreq[j]),
            docfreq=int(docfreq[j]),
            reldocfreq=float(docfreq[j] / n_docs),
            tfidf=float(tfidf[j]),
        ))
    return rows


def filter_terms(rows: list[TermStats],
                 docfreq_above: Optional[float] = None,
                 docfreq_below: Optional[float] = None,
                 reldocfreq_above: Optional[float] = None,
                 reldocfreq_below: Optional[float] = None,
                 termfreq_above: Optional[float] = None,
                 min_characters: Optional[int] = None,
                 allow_digits: bool = True,
                 allow_nonalnum: bool = True) -> list[TermStats]:
    """Keep rows satisfying every given bound. `*_above`/`*_below` are strict."""
    def keep(r: TermStats) -> bool:
        if docfreq_above is not None and not r.docfreq > docfreq_above:
            return False
        if docfreq_below is not None and not r.docfreq < docfreq_below:
            return False
        if reldocfreq_above is not None and not r.reldocfreq > reldocfreq_above:
            return False
        if reldocfreq_below is not None and not r.reldocfreq < reldocfreq_below:
            return False
        if termfreq_above is not None and not r.termfreq > termfreq_above:
            return False
        if min_characters is not None and r.characters < min_characters:
            return False
        if not allow_digits and r.has_digit:
            return False
        if not allow_nonalnum and r.has_nonalnum:
            return False
        return True

    return [r for r in rows if keep(r)]


def sort_terms(rows: list[TermStats], by: str = "termfreq",
               descending: bool = True) -> list[TermStats]:
    """Sort by a TermStats field; ties always fall back to term ascending."""
    if by not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field {by!r}, expected one of {SORT_FIELDS}")
    ordered = sorted(rows, key=lambda r: r.term)
    return sorted(ordered, key=lambda r: getattr(r, by), reverse=descending)


def to_records(rows) -> list[dict]:
    """Rows as plain dicts, ready for json.dump."""
    return [asdict(r) for r in rows]
