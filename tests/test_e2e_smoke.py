"""End-to-end smoke test."""

import json
import logging
import tempfile
from pathlib import Path

import numpy as np
import pytest

from fairscore.config import AnalysisConfig
from fairscore.core.analysis import run_analysis
from fairscore.core.cohort import Cohort
from fairscore.core.exceptions import EmptyGroupError


def _small_config(logdir=None):
    config = AnalysisConfig()
    config.name = "smoke_test"
    config.logdir = logdir
    config.seed = 42

    # Small scale for testing
    config.metrics.n_cutoffs = 11
    config.curves.n_points = 20
    config.counterfactual.preserve_covariates = ["age_band", "sex"]
    config.bootstrap.n_bootstrap = 10
    config.decomposition.n_quantiles = 4
    return config


class TestEndToEnd:

    def test_smoke_full_analysis(self, cohort_factory):
        """Every component runs and writes its artifacts."""
        cohort = cohort_factory(n=600, seed=2)
        with tempfile.TemporaryDirectory() as tmpdir:
            results = run_analysis(cohort, _small_config(tmpdir))

            # Check results structure
            assert set(results) >= {"config", "rates", "curves", "counterfactual", "adjusted",
                                    "decomposition"}
            assert set(results["rates"]) == {"FOR", "FDR", "TPR", "FPR", "demographic_parity"}
            assert results["rates"]["FOR"].groups == ("urban", "rural")
            assert results["rates"]["FOR"].estimate.shape == (2, 11)
            assert len(results["curves"]["roc"]["urban"]) == 20
            cf = results["counterfactual"]
            assert len(cf["index_set"]) + cf["n_dropped"] == len(cohort.group(False))
            assert set(results["adjusted"]) == {"FOR", "FDR"}
            assert results["adjusted"]["FOR"].replicates.shape == (10, 2, 11)
            assert set(results["decomposition"]) == {"urban", "rural"}

            # Check files created
            log_path = Path(tmpdir)
            assert (log_path / "config.json").exists()
            assert (log_path / "metrics.jsonl").exists()
            assert (log_path / "console.txt").exists()
            with open(log_path / "results.json") as f:
                saved = json.load(f)
            assert len(saved["rates"]) == 5 * 2 * 11
            assert saved["config"]["seed"] == 42

    def test_reproducible(self, cohort_factory):
        cohort = cohort_factory(n=400, seed=3)
        r1 = run_analysis(cohort, _small_config())
        r2 = run_analysis(cohort, _small_config())
        np.testing.assert_array_equal(
            r1["counterfactual"]["index_set"].indices, r2["counterfactual"]["index_set"].indices
        )
        np.testing.assert_array_equal(
            r1["adjusted"]["FDR"].series.se, r2["adjusted"]["FDR"].series.se
        )

    def test_four_individual_cohort(self):
        """Perfect separation at cutoff 0.5 across the pipeline."""
        cohort = Cohort.from_arrays(
            score=[0.1, 0.4, 0.6, 0.9],
            target=[0, 0, 1, 1],
            covariates={"age": [30, 40, 30, 40], "sex": ["F", "M", "F", "M"]},
            group=[True, True, False, False],
        )
        config = AnalysisConfig()
        config.metrics.specs = ["FOR", "TPR", "FPR"]
        config.counterfactual.enabled = False
        config.bootstrap.enabled = False
        config.decomposition.enabled = False

        results = run_analysis(cohort, config)
        rates = results["rates"]
        mid = 50
        assert rates["FOR"].cutoffs[mid] == pytest.approx(0.5)
        # Urban holds the two negatives, rural the two positives
        assert rates["FPR"].estimate[0, mid] == 0.0
        assert rates["TPR"].estimate[1, mid] == 1.0
        assert not rates["FOR"].valid[1, mid]
        assert rates["FOR"].estimate[0, mid] == 0.0
        # Each group holds a single class, so no ROC or PR curves
        assert results["curves"]["roc"] == {}
        assert len(results["curves"]["calibration"]["urban"]) == 2

    def test_single_class_group_keeps_other_curves(self, cohort_factory):
        """A group with one outcome class does not drop the other group's curves."""
        frame = cohort_factory(n=400, seed=5).frame.copy()
        frame.loc[frame["urban"], "target"] = 0
        config = _small_config()
        config.counterfactual.enabled = False
        config.bootstrap.enabled = False
        config.decomposition.enabled = False

        results = run_analysis(Cohort.from_frame(frame), config)
        for kind in ("roc", "pr"):
            assert set(results["curves"][kind]) == {"rural"}
            assert len(results["curves"][kind]["rural"]) == 20
        assert set(results["curves"]["calibration"]) == {"urban", "rural"}

    def test_logger_closed_on_failure(self, cohort_factory):
        cohort = cohort_factory(n=200, seed=6)
        with tempfile.TemporaryDirectory() as tmpdir:
            config = _small_config(tmpdir)
            config.name = "failing_run"
            config.counterfactual.preserve_covariates = ["height"]
            with pytest.raises(ValueError):
                run_analysis(cohort, config)
            assert logging.getLogger("fairscore.run.failing_run").handlers == []

    def test_missing_group(self, cohort_factory):
        cohort = cohort_factory(n=100, seed=4)
        frame = cohort.frame.copy()
        frame["urban"] = True
        with pytest.raises(EmptyGroupError):
            run_analysis(Cohort.from_frame(frame), _small_config())
