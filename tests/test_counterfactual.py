"""Test counterfactual resampling."""

from collections import Counter

import numpy as np
import pytest

from fairscore.core.cohort import Cohort
from fairscore.core.exceptions import EmptyDonorPoolError, EmptyGroupError
from fairscore.fairness.counterfactual import build_counterfactual
from fairscore.fairness.metrics import demographic_parity


def _histogram(cohort, rows, covariates):
    frame = cohort.frame.iloc[rows]
    return Counter(zip(*(frame[c].tolist() for c in covariates)))


class TestCounterfactual:

    def test_coarse_covariates_match_source_distribution(self, cohort):
        """Every source individual finds a donor; histograms match exactly."""
        preserve = ["age_band", "sex"]
        cf = build_counterfactual(cohort, preserve, ["id", "score", "target"], False, True, seed=0)
        rural = cohort.group(False)

        assert cf.n_dropped == 0
        assert len(cf) == len(rural)
        assert _histogram(cohort, cf.indices, preserve) == _histogram(cohort, rural.positions, preserve)
        assert cohort.covariate("urban")[cf.indices].all()

    def test_fine_covariates_may_drop(self, cohort):
        """Output never exceeds the source group; kept rows are matched exactly."""
        preserve = ["age", "sex"]
        cf = build_counterfactual(cohort, preserve, [], False, True, seed=3)
        rural = cohort.group(False)

        assert len(cf) <= len(rural)
        assert len(cf) + cf.n_dropped == len(rural)
        assert _histogram(cohort, cf.indices, preserve) == _histogram(cohort, cf.source_indices, preserve)
        np.testing.assert_array_equal(
            cohort.covariate("age")[cf.indices], cohort.covariate("age")[cf.source_indices]
        )

    def test_deterministic_given_seed(self, small_cohort):
        a = build_counterfactual(small_cohort, ["age_band", "sex"], [], False, True, seed=7)
        b = build_counterfactual(small_cohort, ["age_band", "sex"], [], False, True, seed=7)
        np.testing.assert_array_equal(a.indices, b.indices)

    def test_unmatched_dropped_or_strict(self):
        cohort = Cohort.from_arrays(
            score=[0.1, 0.2, 0.3, 0.4, 0.5],
            target=[0, 0, 1, 0, 1],
            covariates={"sex": ["F", "M", "F", "F", "M"]},
            group=[True, True, False, False, False],
        )
        # Source rows 2, 3 are F (donor 0); row 4 is M (donor 1)
        cf = build_counterfactual(cohort, ["sex"], [], False, True, seed=0)
        np.testing.assert_array_equal(cf.indices, [0, 0, 1])

        cohort = Cohort.from_arrays(
            score=[0.1, 0.2, 0.3],
            target=[0, 0, 1],
            covariates={"sex": ["F", "F", "M"]},
            group=[True, False, False],
        )
        cf = build_counterfactual(cohort, ["sex"], [], False, True, seed=0)
        np.testing.assert_array_equal(cf.indices, [0])
        np.testing.assert_array_equal(cf.source_indices, [1])
        np.testing.assert_array_equal(cf.dropped_source_indices, [2])
        assert cf.n_dropped == 1
        assert cf.n_source == 2

        with pytest.raises(EmptyDonorPoolError):
            build_counterfactual(cohort, ["sex"], [], False, True, strict=True)

    def test_float_covariates_binned_by_integer(self):
        cohort = Cohort.from_arrays(
            score=[0.1, 0.2, 0.3],
            target=[0, 1, 0],
            covariates={"age": [30.5, 30.2, 30.9]},
            group=[True, False, False],
        )
        cf = build_counterfactual(cohort, ["age"], [], False, True)
        np.testing.assert_array_equal(cf.indices, [0, 0])

    def test_forbidden_keys(self, small_cohort):
        with pytest.raises(ValueError):
            build_counterfactual(small_cohort, ["score"], [], False, True)
        with pytest.raises(ValueError):
            build_counterfactual(small_cohort, ["age"], ["age"], False, True)
        with pytest.raises(ValueError):
            build_counterfactual(small_cohort, ["urban"], [], False, True)
        with pytest.raises(ValueError):
            build_counterfactual(small_cohort, ["height"], [], False, True)

    def test_empty_pools(self):
        cohort = Cohort.from_arrays(
            score=[0.1, 0.2], target=[0, 1], covariates={"sex": ["F", "M"]}, group=[False, False]
        )
        with pytest.raises(EmptyDonorPoolError):
            build_counterfactual(cohort, ["sex"], [], False, True)
        with pytest.raises(EmptyGroupError):
            build_counterfactual(cohort, ["sex"], [], True, False)

    def test_feeds_demographic_parity(self, cohort):
        """The resampled cohort is a valid input to demographic parity."""
        cf = build_counterfactual(cohort, ["age_band", "sex"], [], False, True, seed=1)
        group = cf.as_group()
        assert len(group) == len(cf)

        series = demographic_parity(cohort.score, cohort.group(False), group, cutoffs=[0.0, 0.5])
        np.testing.assert_array_equal(series.estimate[:, 0], [1.0, 1.0])
        assert series.n[1, 0] == len(cf)
        np.testing.assert_array_equal(cf.take(cohort.score), cohort.score[cf.indices])
