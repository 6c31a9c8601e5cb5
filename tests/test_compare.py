"""Tests for corpus comparison by overrepresentation and chi-squared."""

import math
import random
from pathlib import Path

import numpy as np
import pytest
import sys
from scipy import sparse
from scipy.stats import chi2_contingency

sys.path.insert(0, str(Path(__file__).parent.parent))

from termstats.compare import (
    DEFAULT_SMOOTHING, characteristic_terms, chi_squared, compare_corpora,
    sort_comparison, term_frequencies, top_terms,
)
from termstats.dtm import DocumentTermMatrix, InvalidMatrix, build_dtm
from termstats.term_stats import term_statistics


def _by_term(rows):
    return {r.term: r for r in rows}


@pytest.fixture
def service_corpora():
    x = build_dtm(["good service", "good service"])
    y = build_dtm(["bad service"])
    return x, y


class TestCompareCorpora:
    """Tests for the joined comparison table."""

    def test_outer_join_fills_zero(self, service_corpora):
        rows = compare_corpora(*service_corpora)

        assert [r.term for r in rows] == ["bad", "good", "service"]
        stats = _by_term(rows)
        assert stats["good"].freq_x == 2
        assert stats["good"].freq_y == 0
        assert stats["bad"].freq_x == 0
        assert stats["bad"].freq_y == 1

    def test_relative_frequencies(self, service_corpora):
        stats = _by_term(compare_corpora(*service_corpora))

        assert stats["service"].relfreq_x == pytest.approx(0.5)
        assert stats["service"].relfreq_y == pytest.approx(0.5)
        assert stats["good"].relfreq_x == pytest.approx(0.5)
        assert stats["good"].relfreq_y == 0

    def test_absent_term_has_large_finite_overrepresentation(self, service_corpora):
        good = _by_term(compare_corpora(*service_corpora))["good"]

        assert math.isfinite(good.overrepresentation)
        assert good.overrepresentation == pytest.approx((0.5 + 0.001) / 0.001)

    def test_smoothing_is_a_parameter(self, service_corpora):
        good = _by_term(compare_corpora(*service_corpora, smoothing=0.5))["good"]
        assert good.overrepresentation == pytest.approx(1.0 / 0.5)

    def test_default_smoothing(self):
        assert DEFAULT_SMOOTHING == 0.001

    def test_chi_squared_value(self, service_corpora):
        good = _by_term(compare_corpora(*service_corpora))["good"]
        # table [[2, 0], [2, 2]]
        assert good.chi2 == pytest.approx(1.5)

    def test_chi_squared_matches_scipy(self):
        rng = np.random.default_rng(3)
        x = DocumentTermMatrix(sparse.csr_matrix(rng.poisson(1.0, (20, 15))),
                               [f"t{j}" for j in range(15)])
        y = DocumentTermMatrix(sparse.csr_matrix(rng.poisson(1.5, (10, 15))),
                               [f"t{j}" for j in range(15)])
        rows = compare_corpora(x, y)
        total_x = sum(r.freq_x for r in rows)
        total_y = sum(r.freq_y for r in rows)

        for r in rows:
            if r.freq_x == 0 or r.freq_y == 0:
                continue
            table = [[r.freq_x, r.freq_y], [total_x - r.freq_x, total_y - r.freq_y]]
            expected = chi2_contingency(table, correction=False)[0]
            assert r.chi2 == pytest.approx(expected)

    def test_self_comparison_is_neutral(self):
        rng = np.random.default_rng(11)
        dtm = DocumentTermMatrix(sparse.csr_matrix(rng.poisson(0.7, (30, 25))),
                                 [f"t{j}" for j in range(25)])

        for r in compare_corpora(dtm, dtm):
            assert r.overrepresentation == pytest.approx(1.0)
            assert r.chi2 == pytest.approx(0.0, abs=1e-9)

    def test_disjoint_vocabularies(self):
        rows = compare_corpora({"apple": 3, "pear": 1}, {"kiwi": 2})

        assert [r.term for r in rows] == ["apple", "kiwi", "pear"]
        stats = _by_term(rows)
        assert stats["apple"].freq_y == 0
        assert stats["kiwi"].freq_x == 0
        assert all(math.isfinite(r.overrepresentation) for r in rows)
        assert all(math.isfinite(r.chi2) for r in rows)

    def test_accepts_term_statistics_and_mappings(self, service_corpora):
        x, y = service_corpora
        from_dtms = compare_corpora(x, y)
        from_stats = compare_corpora(term_statistics(x), term_statistics(y))
        from_mappings = compare_corpora({"good": 2, "service": 2}, {"bad": 1, "service": 1})

        assert from_stats == from_dtms
        assert from_mappings == from_dtms

    def test_terms_unused_in_both_are_left_out(self):
        x = DocumentTermMatrix(np.array([[1, 0]]), ["a", "unused"])
        rows = compare_corpora(x, {"a": 1})
        assert [r.term for r in rows] == ["a"]

    def test_empty_corpus(self):
        rows = compare_corpora({}, {"a": 2})

        assert len(rows) == 1
        assert rows[0].relfreq_x == 0
        assert rows[0].chi2 == 0
        assert compare_corpora({}, {}) == []

    @pytest.mark.parametrize("smoothing", [0, -0.1])
    def test_smoothing_must_be_positive(self, service_corpora, smoothing):
        with pytest.raises(ValueError):
            compare_corpora(*service_corpora, smoothing=smoothing)

    def test_negative_frequency(self):
        with pytest.raises(InvalidMatrix):
            compare_corpora({"a": -1}, {"a": 1})

    def test_rejects_other_rows(self):
        with pytest.raises(TypeError):
            term_frequencies([("a", 1)])


class TestChiSquared:
    """Tests for the vectorised 2x2 statistic."""

    def test_zero_expected_cells_contribute_nothing(self):
        assert chi_squared([0], [0], [3], [5]).tolist() == [0.0]

    def test_vectorised(self):
        result = chi_squared([2, 1], [0, 1], [2, 3], [2, 0])
        assert result[0] == pytest.approx(1.5)
        assert result.shape == (2,)


class TestOrdering:
    """Tests for sorting and selecting characteristic terms."""

    @pytest.fixture
    def rows(self):
        x = {"a": 1, "b": 1, "c": 1, "d": 5, "e": 2, "f": 9}
        y = {"a": 1, "b": 1, "c": 1, "d": 1, "g": 4, "f": 2}
        return compare_corpora(x, y)

    def test_ascending_surfaces_y_terms(self, rows):
        ordered = sort_comparison(rows)
        assert ordered[0].term == "g"
        assert ordered[-1].term in {"d", "e", "f"}

    def test_descending_surfaces_x_terms(self, rows):
        ordered = sort_comparison(rows, descending=True)
        assert ordered[0].overrepresentation == max(r.overrepresentation for r in rows)
        assert ordered[0].term != "g"

    def test_top_n_independent_of_input_order(self, rows):
        expected = [r.term for r in top_terms(rows, n=4)]
        rng = random.Random(5)
        for _ in range(10):
            shuffled = rows[:]
            rng.shuffle(shuffled)
            assert [r.term for r in top_terms(shuffled, n=4)] == expected

    def test_ties_broken_by_term(self, rows):
        tied = [r.term for r in sort_comparison(rows) if r.term in {"a", "b", "c"}]
        assert tied == ["a", "b", "c"]

    def test_characteristic_of_y(self, rows):
        result = characteristic_terms(rows, corpus="y")

        assert result
        assert all(r.overrepresentation < 1 for r in result)
        chis = [r.chi2 for r in result]
        assert chis == sorted(chis, reverse=True)
        assert "g" in {r.term for r in result}

    def test_characteristic_of_x(self, rows):
        result = characteristic_terms(rows, corpus="x", n=2)

        assert len(result) <= 2
        assert all(r.overrepresentation > 1 for r in result)

    def test_unknown_side(self, rows):
        with pytest.raises(ValueError):
            characteristic_terms(rows, corpus="z")

    def test_unknown_sort_field(self, rows):
        with pytest.raises(ValueError):
            sort_comparison(rows, by="ratio")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
