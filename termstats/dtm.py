"""
Sparse document-term matrix (DTM) container and builder.

Rows are documents, columns are vocabulary terms, values are raw counts.
Only non-zero counts are stored (scipy CSR), so corpora with hundreds of
thousands of documents and terms stay cheap to hold in memory.

Usage:
    from termstats.dtm import build_dtm, DocumentTermMatrix

    dtm = build_dtm(["Chickens are birds", "The bird eats"])
    dtm.n_docs, dtm.n_terms          # (2, 6)

    # From (document_index, term_index, frequency) triples
    dtm = DocumentTermMatrix.from_triples(
        [(0, 0, 2), (1, 1, 1)], vocabulary=["good", "service"], n_docs=2,
    )
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np
from scipy import sparse
from tqdm import tqdm


class InvalidMatrix(ValueError):
    """Raised when a document-term matrix violates its invariants."""


# Minimal English stop-word list, applied only when asked for.
ENGLISH_STOPWORDS = frozenset({
    "a", "about", "above", "after", "again", "against", "all", "am", "an",
    "and", "any", "are", "as", "at", "be", "because", "been", "before",
    "being", "below", "between", "both", "but", "by", "can", "could", "did",
    "do", "does", "doing", "down", "during", "each", "few", "for", "from",
    "further", "had", "has", "have", "having", "he", "her", "here", "hers",
    "herself", "him", "himself", "his", "how", "i", "if", "in", "into", "is",
    "it", "its", "itself", "just", "me", "more", "most", "my", "myself",
    "no", "nor", "not", "now", "of", "off", "on", "once", "only", "or",
    "other", "our", "ours", "ourselves", "out", "over", "own", "same", "she",
    "should", "so", "some", "such", "than", "that", "the", "their", "theirs",
    "them", "themselves", "then", "there", "these", "they", "this", "those",
    "through", "to", "too", "under", "until", "up", "very", "was", "we",
    "were", "what", "when", "where", "which", "while", "who", "whom", "why",
    "will", "with", "would", "you", "your", "yours", "yourself", "yourselves",
})


def _is_index(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))


@dataclass(eq=False)
class DocumentTermMatrix:
    """Sparse counts matrix with an ordered vocabulary."""
    matrix: sparse.csr_matrix
    vocabulary: tuple = ()
    doc_ids: Optional[tuple] = None
    _index: dict = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if not sparse.issparse(self.matrix):
            try:
                dense = np.asarray(self.matrix, dtype=np.float64)
            except (TypeError, ValueError) as e:
                raise InvalidMatrix(f"matrix is not a numeric 2-D array: {e}") from e
            if dense.ndim != 2:
                raise InvalidMatrix(f"matrix must be 2-D, got {dense.ndim}-D")
            self.matrix = dense
        self.matrix = sparse.csr_matrix(self.matrix, dtype=np.float64, copy=True)
        self.matrix.sum_duplicates()
        self.matrix.sort_indices()
        self.matrix.eliminate_zeros()
        self.vocabulary = tuple(self.vocabulary)
        if self.doc_ids is not None:
            self.doc_ids = tuple(self.doc_ids)
        self._validate()
        self._index = {term: j for j, term in enumerate(self.vocabulary)}

    def _validate(self):
        n_docs, n_terms = self.matrix.shape
        if len(self.vocabulary) != n_terms:
            raise InvalidMatrix(
                f"vocabulary has {len(self.vocabulary)} terms but matrix has {n_terms} columns"
            )
        if len(set(self.vocabulary)) != len(self.vocabulary):
            dupes = [t for t, c in Counter(self.vocabulary).items() if c > 1]
            raise InvalidMatrix(f"duplicate terms in vocabulary: {dupes[:5]}")
        if self.doc_ids is not None and len(self.doc_ids) != n_docs:
            raise InvalidMatrix(
                f"{len(self.doc_ids)} doc ids given for {n_docs} documents"
            )
        data = self.matrix.data
        if data.size:
            if not np.all(np.isfinite(data)):
                raise InvalidMatrix("matrix contains non-finite frequencies")
            if data.min() < 0:
                raise InvalidMatrix("matrix contains negative frequencies")

    @classmethod
    def from_triples(cls, triples: Iterable[tuple], vocabulary,
                     n_docs: int, doc_ids=None) -> "DocumentTermMatrix":
        """Build from (document_index, term_index, frequency) triples.

        Repeated (document, term) cells are summed.
        """
        vocabulary = tuple(vocabulary)
        n_terms = len(vocabulary)
        rows, cols, vals = [], [], []
        for i, j, v in triples:
            if not (_is_index(i) and _is_index(j)):
                raise InvalidMatrix(f"triple ({i}, {j}, {v}) has a non-integer index")
            if not (0 <= i < n_docs) or not (0 <= j < n_terms):
                raise InvalidMatrix(
                    f"triple ({i}, {j}, {v}) out of bounds for {n_docs}x{n_terms} matrix"
                )
            if v < 0:
                raise InvalidMatrix(f"negative frequency {v} at ({i}, {j})")
            rows.append(i)
            cols.append(j)
            vals.append(v)
        coo = sparse.coo_matrix(
            (np.asarray(vals, dtype=np.float64), (np.asarray(rows, dtype=np.int64),
                                                  np.asarray(cols, dtype=np.int64))),
            shape=(n_docs, n_terms),
        )
        return cls(coo.tocsr(), vocabulary, doc_ids)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def n_docs(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_terms(self) -> int:
        return self.matrix.shape[1]

    @property
    def shape(self) -> tuple:
        return self.matrix.shape

    def row_sums(self) -> np.ndarray:
        """Total token count per document."""
        return np.asarray(self.matrix.sum(axis=1)).ravel()

    def col_sums(self) -> np.ndarray:
        """Total frequency per term."""
        return np.asarray(self.matrix.sum(axis=0)).ravel()

    def doc_freqs(self) -> np.ndarray:
        """Number of documents containing each term."""
        return np.diff(self.matrix.tocsc().indptr)

    def triples(self) -> list[tuple]:
        """Non-zero (document_index, term_index, frequency) triples, row-major."""
        coo = self.matrix.tocoo()
        return [(int(i), int(j), float(v)) for i, j, v in zip(coo.row, coo.col, coo.data)]

    def term_index(self, term: str) -> int:
        return self._index[term]

    def column(self, term: str) -> np.ndarray:
        """Dense count vector of one term over all documents."""
        j = self.term_index(term)
        return self.matrix[:, j].toarray().ravel()

    def term_frequencies(self) -> dict:
        """Mapping term -> total frequency (terms with zero frequency included)."""
        return dict(zip(self.vocabulary, self.col_sums().tolist()))

    def drop_empty(self) -> "DocumentTermMatrix":
        """Copy without zero-sum documents and zero-sum terms."""
        keep_rows = np.flatnonzero(self.row_sums() > 0)
        keep_cols = np.flatnonzero(self.col_sums() > 0)
        return self._subset(keep_rows, keep_cols)

    def select_terms(self, columns) -> "DocumentTermMatrix":
        return self._subset(np.arange(self.n_docs), np.asarray(columns, dtype=np.int64))

    def _subset(self, rows: np.ndarray, cols: np.ndarray) -> "DocumentTermMatrix":
        sub = self.matrix[rows][:, cols]
        vocab = tuple(self.vocabulary[j] for j in cols)
        ids = None
        if self.doc_ids is not None:
            ids = tuple(self.doc_ids[i] for i in rows)
        return DocumentTermMatrix(sub, vocab, ids)


# ---------------------------------------------------------------------------
# Building from raw text
# ---------------------------------------------------------------------------

_WORD_RE = re.compile(r"\w+(?:'\w+)*")


def tokenize(text: str, remove_punctuation: bool = True) -> list[str]:
    """Lowercase and split a text into tokens.

    With remove_punctuation, tokens are runs of word characters (inner
    apostrophes kept). Without it, the text is split on whitespace and
    punctuation stays attached to its token.
    """
    text = text.lower()
    if remove_punctuation:
        return _WORD_RE.findall(text)
    return text.split()


def _resolve_stopwords(stopwords) -> frozenset:
    if stopwords is None or stopwords is False:
        return frozenset()
    if stopwords is True:
        return ENGLISH_STOPWORDS
    return frozenset(w.lower() for w in stopwords)


def build_dtm(texts: Iterable[str], doc_ids=None, stopwords=None,
              stem: bool = False, language: str = "english",
              remove_punctuation: bool = True, min_length: int = 1,
              progress: bool = False) -> DocumentTermMatrix:
    """Count terms per document and return a sparse DTM.

    Args:
        texts: Document texts, one per row
        doc_ids: Optional identifiers, one per text
        stopwords: None/False for none, True for the built-in English list,
            or an iterable of words to drop
        stem: Reduce tokens with NLTK's Snowball stemmer for `language`
        remove_punctuation: See `tokenize`
        min_length: Drop tokens shorter than this many characters
        progress: Show a tqdm progress bar

    Returns:
        DocumentTermMatrix with an alphabetically sorted vocabulary
    """
    texts = list(texts)
    drop = _resolve_stopwords(stopwords)

    stemmer = None
    if stem:
        from nltk.stem.snowball import SnowballStemmer
        stemmer = SnowballStemmer(language)

    doc_counts = []
    for text in tqdm(texts, desc="Counting terms", disable=not progress):
        tokens = [t for t in tokenize(text or "", remove_punctuation)
                  if len(t) >= min_length and t not in drop]
        if stemmer is not None:
            tokens = [stemmer.stem(t) for t in tokens]
        doc_counts.append(Counter(tokens))

    vocabulary = sorted(set().union(*doc_counts)) if doc_counts else []
    index = {term: j for j, term in enumerate(vocabulary)}

    rows, cols, vals = [], [], []
    for i, counts in enumerate(doc_counts):
        for term, count in counts.items():
            rows.append(i)
            cols.append(index[term])
            vals.append(count)

    matrix = sparse.csr_matrix(
        (np.asarray(vals, dtype=np.float64), (np.asarray(rows, dtype=np.int64),
                                              np.asarray(cols, dtype=np.int64))),
        shape=(len(texts), len(vocabulary)),
    )
    return DocumentTermMatrix(matrix, vocabulary, doc_ids)


# ---------------------------------------------------------------------------
# Vocabulary inspection
# ---------------------------------------------------------------------------

def frequent_terms(dtm: DocumentTermMatrix, low: float = 0,
                   high: float = math.inf) -> list[str]:
    """Terms whose total frequency lies in [low, high], in vocabulary order."""
    freqs = dtm.col_sums()
    mask = (freqs >= low) & (freqs <= high)
    return [dtm.vocabulary[j] for j in np.flatnonzero(mask)]


def remove_sparse_terms(dtm: DocumentTermMatrix, sparse_share: float) -> DocumentTermMatrix:
    """Drop terms missing from more than `sparse_share` of the documents.

    A term is kept when its document frequency exceeds
    n_docs * (1 - sparse_share). E.g. 0.99 keeps terms present in more than
    1% of documents.
    """
    if not 0 < sparse_share < 1:
        raise ValueError(f"sparse_share must be in (0, 1), got {sparse_share}")
    keep = np.flatnonzero(dtm.doc_freqs() > dtm.n_docs * (1 - sparse_share))
    return dtm.select_terms(keep)


def term_associations(dtm: DocumentTermMatrix, term: str,
                      corlimit: float = 0.0) -> list[tuple[str, float]]:
    """Terms whose document counts correlate with `term`'s at >= corlimit.

    Pearson correlation over documents. Returns (term, r) pairs sorted by
    descending r, ties by term. Columns with zero variance are skipped.
    """
    j = dtm.term_index(term)
    n = dtm.n_docs
    if n < 2:
        return []

    m = dtm.matrix.tocsc()
    x = m[:, j].toarray().ravel()
    x_mean = x.mean()
    x_ss = float(((x - x_mean) ** 2).sum())
    if x_ss == 0:
        return []

    col_means = dtm.col_sums() / n
    col_sq = np.asarray(m.multiply(m).sum(axis=0)).ravel()
    col_ss = col_sq - n * col_means ** 2
    cross = np.asarray(m.T @ x).ravel() - n * col_means * x_mean

    with np.errstate(divide="ignore", invalid="ignore"):
        r = cross / np.sqrt(col_ss * x_ss)

    pairs = []
    for k in np.flatnonzero(col_ss > 1e-12):
        if k == j:
            continue
        value = float(np.clip(r[k], -1.0, 1.0))
        if value >= corlimit:
            pairs.append((dtm.vocabulary[k], value))
    pairs.sort(key=lambda p: (-p[1], p[0]))
    return pairs
