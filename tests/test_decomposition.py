"""Test admission-cause decomposition."""

import numpy as np
import pytest

from fairscore.core.cohort import Cohort
from fairscore.core.exceptions import DimensionMismatchError
from fairscore.fairness.decomposition import build_decomposition, quantile_bins
from fairscore.fairness.summarize import cause_breakdown


def _tiny():
    return Cohort.from_arrays(
        score=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8],
        target=[1, 1, 1, 1, 1, 0, 1, 1],
        covariates={"admission_cause": ["a", "b", "a", "a", "b", "a", "b", "c"]},
        group=[True, True, True, True, False, False, False, False],
    )


class TestQuantileBins:

    def test_equal_counts(self):
        bins = quantile_bins(np.array([0.9, 0.1, 0.5, 0.3, 0.7]), 2)
        # Ranked: 0.1, 0.3, 0.5 | 0.7, 0.9
        np.testing.assert_array_equal(bins, [1, 0, 0, 0, 1])

    def test_more_bins_than_scores(self):
        bins = quantile_bins(np.array([0.4, 0.2]), 4)
        np.testing.assert_array_equal(bins, [1, 0])


class TestDecomposition:

    def test_tiny_cohort(self):
        cohort = _tiny()
        urban, rural = build_decomposition(
            cohort, cohort.group(True), cohort.group(False), n_quantiles=2
        )
        assert list(urban.columns) == ["a", "b", "c"]
        assert urban.index.name == "bin"
        # Urban admissions by score: a, b | a, a
        np.testing.assert_array_equal(urban.values, [[1, 1, 0], [2, 0, 0]])
        # Rural admissions (row 5 not admitted): b, b | c
        np.testing.assert_array_equal(rural.values, [[0, 2, 0], [0, 0, 1]])

    def test_totals_match_admissions(self, cohort):
        urban, rural = build_decomposition(cohort, cohort.group(True), cohort.group(False))
        admitted = cohort.target == 1
        urban_mask = cohort.covariate("urban").astype(bool)
        assert urban.shape[0] == 10
        assert urban.values.sum() == np.sum(admitted & urban_mask)
        assert rural.values.sum() == np.sum(admitted & ~urban_mask)
        row_totals = urban.sum(axis=1)
        assert row_totals.max() - row_totals.min() <= 1
        assert list(urban.columns) == list(rural.columns)

    def test_empty_bins_are_zero_rows(self):
        cohort = _tiny()
        urban, _ = build_decomposition(cohort, cohort.group(True), cohort.group(False), n_quantiles=6)
        assert urban.shape == (6, 3)
        assert urban.values.sum() == 4
        assert (urban.sum(axis=1) == 0).sum() == 2

    def test_categories(self):
        cohort = _tiny()
        urban, _ = build_decomposition(
            cohort, cohort.group(True), cohort.group(False), n_quantiles=1,
            categories=["c", "b", "a", "d"],
        )
        assert list(urban.columns) == ["c", "b", "a", "d"]
        np.testing.assert_array_equal(urban.values, [[0, 1, 3, 0]])
        with pytest.raises(ValueError):
            build_decomposition(
                cohort, cohort.group(True), cohort.group(False), categories=["a", "b"]
            )

    def test_score_override(self):
        cohort = _tiny()
        reversed_score = 1 - cohort.score
        urban, _ = build_decomposition(
            cohort, cohort.group(True), cohort.group(False), n_quantiles=2, score=reversed_score
        )
        np.testing.assert_array_equal(urban.values, [[2, 0, 0], [1, 1, 0]])
        with pytest.raises(DimensionMismatchError):
            build_decomposition(cohort, cohort.group(True), cohort.group(False), score=[0.5, 0.5])

    def test_invalid_quantiles(self):
        cohort = _tiny()
        with pytest.raises(ValueError):
            build_decomposition(cohort, cohort.group(True), cohort.group(False), n_quantiles=0)

    def test_missing_causes_counted(self):
        """Rows still sum to the admitted count when causes are missing."""
        cohort = Cohort.from_arrays(
            score=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6],
            target=[1, 1, 1, 1, 1, 1],
            covariates={"admission_cause": ["a", None, "b", np.nan, "a", "b"]},
            group=[True, True, True, True, False, False],
        )
        urban, rural = build_decomposition(
            cohort, cohort.group(True), cohort.group(False), n_quantiles=2
        )
        assert list(urban.columns) == ["a", "b", "missing"]
        np.testing.assert_array_equal(urban.values, [[1, 0, 1], [0, 1, 1]])
        np.testing.assert_array_equal(urban.sum(axis=1), [2, 2])
        assert rural["missing"].sum() == 0

        urban, _ = build_decomposition(
            cohort, cohort.group(True), cohort.group(False), n_quantiles=1,
            categories=["b", "a"],
        )
        assert list(urban.columns) == ["b", "a", "missing"]
        np.testing.assert_array_equal(urban.values, [[1, 1, 2]])


class TestCauseBreakdown:

    def test_shares(self):
        cohort = _tiny()
        urban, _ = build_decomposition(cohort, cohort.group(True), cohort.group(False), n_quantiles=2)
        table = cause_breakdown(urban, low_bins=1)
        assert table.loc["b", "low"] == pytest.approx(0.5)
        assert table.loc["b", "all"] == pytest.approx(0.25)
        assert table.loc["b", "ratio"] == pytest.approx(2.0)
        assert table.loc["c", "ratio"] == 0.0
        with pytest.raises(ValueError):
            cause_breakdown(urban, low_bins=3)