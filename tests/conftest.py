"""Shared synthetic cohorts."""

import numpy as np
import pytest

from fairscore.core.cohort import Cohort

CAUSES = ["cardiac", "respiratory", "injury", "other"]


def make_cohort(n: int = 2000, seed: int = 0) -> Cohort:
    """Urban/rural cohort whose admission risk depends on age and sex."""
    rng = np.random.default_rng(seed)
    urban = rng.random(n) < 0.6
    age = rng.integers(18, 90, n)
    sex = rng.choice(["F", "M"], n)
    age_band = np.array([f"{(a // 20) * 20}s" for a in age])
    logits = -1.5 + 0.03 * (age - 50) + 0.3 * (sex == "M") - 0.4 * urban + rng.normal(0, 1, n)
    score = 1 / (1 + np.exp(-logits))
    target = (rng.random(n) < score).astype(int)
    cause = rng.choice(CAUSES, n)
    return Cohort.from_arrays(
        score=score,
        target=target,
        covariates={
            "age": age,
            "sex": sex,
            "age_band": age_band,
            "admission_cause": cause,
        },
        group=urban,
        group_column="urban",
    )


@pytest.fixture
def cohort():
    return make_cohort()


@pytest.fixture
def small_cohort():
    return make_cohort(n=300, seed=1)


@pytest.fixture
def cohort_factory():
    return make_cohort
