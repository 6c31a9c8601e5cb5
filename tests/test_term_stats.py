"""Tests for per-term statistics."""

import math
from pathlib import Path

import numpy as np
import pytest
import sys
from scipy import sparse

sys.path.insert(0, str(Path(__file__).parent.parent))

from termstats.dtm import DocumentTermMatrix, build_dtm
from termstats.term_stats import (
    TermStats, term_statistics, filter_terms, sort_terms, to_records,
)


def _by_term(rows):
    return {r.term: r for r in rows}


@pytest.fixture
def small_dtm():
    # doc0: a a b | doc1: a c c c | doc2: a | doc3: (empty) ; 'z' never occurs
    return DocumentTermMatrix.from_triples(
        [(0, 0, 2), (0, 1, 1), (1, 0, 1), (1, 2, 3), (2, 0, 1)],
        vocabulary=["a", "b", "c", "z"],
        n_docs=4,
    )


@pytest.fixture
def random_dtm():
    rng = np.random.default_rng(7)
    dense = rng.poisson(0.4, size=(60, 40))
    return DocumentTermMatrix(sparse.csr_matrix(dense), [f"t{j}" for j in range(40)])


class TestTermStatistics:
    """Tests for the metrics of each term."""

    def test_drops_empty_documents_and_terms(self, small_dtm):
        rows = term_statistics(small_dtm)

        assert [r.term for r in rows] == ["a", "b", "c"]
        # empty doc3 does not count towards the document total
        assert _by_term(rows)["b"].reldocfreq == pytest.approx(1 / 3)

    def test_frequencies(self, small_dtm):
        stats = _by_term(term_statistics(small_dtm))

        assert stats["a"].termfreq == 4
        assert stats["a"].docfreq == 3
        assert stats["c"].termfreq == 3
        assert stats["c"].docfreq == 1

    def test_tfidf_averages_document_shares(self, small_dtm):
        stats = _by_term(term_statistics(small_dtm))

        # b: 1 of 3 tokens in doc0, in 1 of 3 documents
        assert stats["b"].tfidf == pytest.approx((1 / 3) * math.log2(3))
        # c: 3 of 4 tokens in doc1
        assert stats["c"].tfidf == pytest.approx((3 / 4) * math.log2(3))

    def test_tfidf_zero_for_term_in_every_document(self, small_dtm):
        stats = _by_term(term_statistics(small_dtm))
        assert stats["a"].reldocfreq == 1.0
        assert stats["a"].tfidf == 0.0

    def test_tfidf_mean_over_several_documents(self):
        # x: 1/2 of doc0 and 1/4 of doc1; present in 2 of 4 documents
        dtm = DocumentTermMatrix(
            np.array([[1, 1], [1, 3], [0, 1], [0, 1]]), ["x", "y"],
        )
        stats = _by_term(term_statistics(dtm))
        assert stats["x"].tfidf == pytest.approx((0.5 + 0.25) / 2 * math.log2(2))

    def test_term_shape_flags(self):
        dtm = build_dtm(["abc1 it's word"])
        stats = _by_term(term_statistics(dtm))

        assert stats["abc1"].has_digit is True
        assert stats["abc1"].has_nonalnum is False
        assert stats["it's"].has_nonalnum is True
        assert stats["it's"].has_digit is False
        assert stats["word"].characters == 4

    def test_empty_matrix(self):
        assert term_statistics(DocumentTermMatrix(sparse.csr_matrix((0, 0)), [])) == []

    def test_all_zero_matrix(self):
        dtm = DocumentTermMatrix(np.zeros((3, 2)), ["a", "b"])
        assert term_statistics(dtm) == []

    def test_invariants_on_random_matrix(self, random_dtm):
        rows = term_statistics(random_dtm)
        col_sums = dict(zip(random_dtm.vocabulary, random_dtm.col_sums()))
        n_docs = random_dtm.drop_empty().n_docs

        assert rows
        for r in rows:
            assert r.termfreq == col_sums[r.term]
            assert 1 <= r.docfreq <= n_docs
            assert 0 <= r.reldocfreq <= 1
            assert r.tfidf >= 0
            if r.docfreq == n_docs:
                assert r.tfidf == 0

    def test_input_is_not_modified(self, small_dtm):
        before = small_dtm.matrix.toarray().copy()
        term_statistics(small_dtm)
        assert (small_dtm.matrix.toarray() == before).all()
        assert small_dtm.vocabulary == ("a", "b", "c", "z")


class TestFilterTerms:
    """Tests for vocabulary pruning by bounds."""

    @pytest.fixture
    def stats(self):
        # 200 documents; term j occurs in the first 3*j documents, 'all' in every one
        n_docs = 200
        triples = [(i, 0, 1) for i in range(n_docs)]
        vocabulary = ["all"] + [f"w{j:02d}" for j in range(1, 11)]
        for j in range(1, 11):
            triples += [(i, j, 1) for i in range(3 * j)]
        return term_statistics(DocumentTermMatrix.from_triples(triples, vocabulary, n_docs))

    def test_docfreq_and_reldocfreq_bounds(self, stats):
        kept = filter_terms(stats, docfreq_above=10, reldocfreq_below=0.1)

        assert [r.term for r in kept] == ["w04", "w05", "w06"]
        for r in kept:
            assert r.docfreq > 10
            assert r.reldocfreq < 0.1

    def test_bounds_are_strict(self, stats):
        kept = filter_terms(stats, docfreq_above=12, docfreq_below=18)
        assert [r.docfreq for r in kept] == [15]

    def test_no_bounds_keeps_everything(self, stats):
        assert filter_terms(stats) == stats

    def test_shape_filters(self):
        stats = term_statistics(build_dtm(["abc1 it's word a"]))

        kept = filter_terms(stats, min_characters=2, allow_digits=False, allow_nonalnum=False)
        assert [r.term for r in kept] == ["word"]

    def test_termfreq_and_reldocfreq_above(self, stats):
        kept = filter_terms(stats, termfreq_above=27, reldocfreq_above=0.1)
        assert [r.term for r in kept] == ["all", "w10"]


class TestSortTerms:
    """Tests for deterministic ordering."""

    def test_ties_broken_by_term(self):
        rows = [
            TermStats("b", 1, False, False, 2, 1, 0.5, 0.1),
            TermStats("c", 1, False, False, 5, 2, 1.0, 0.0),
            TermStats("a", 1, False, False, 2, 1, 0.5, 0.1),
        ]

        assert [r.term for r in sort_terms(rows, by="termfreq")] == ["c", "a", "b"]
        assert [r.term for r in sort_terms(rows, by="tfidf", descending=False)] == ["c", "a", "b"]

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            sort_terms([], by="frequency")

    def test_to_records(self, small_dtm):
        records = to_records(term_statistics(small_dtm))

        assert records[0]["term"] == "a"
        assert set(records[0]) == {
            "term", "characters", "has_digit", "has_nonalnum",
            "termfreq", "docfreq", "reldocfreq", "tfidf",
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
