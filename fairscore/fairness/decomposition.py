"""Admission-cause frequencies by score quantile."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from fairscore.core.cohort import Cohort, GroupLike, _to_np, as_group_index, as_scores, check_aligned

logger = logging.getLogger(__name__)

MISSING_CAUSE = "missing"


def _vocabulary(causes: np.ndarray, categories: Optional[Sequence]) -> List:
    """Column labels; a trailing ``MISSING_CAUSE`` column when any cause is missing."""
    absent = pd.isna(causes)
    present = pd.unique(causes[~absent]).tolist()
    if categories is None:
        vocab = sorted(present)
    else:
        vocab = list(categories)
        unknown = set(present) - set(vocab)
        if unknown:
            raise ValueError(f"causes not in the category vocabulary: {sorted(map(str, unknown))}")
    if absent.any() and MISSING_CAUSE not in vocab:
        vocab.append(MISSING_CAUSE)
    return vocab


def quantile_bins(scores: np.ndarray, n_quantiles: int) -> np.ndarray:
    """Bin number (0 = lowest scores) for each score, equal-count by rank."""
    bins = np.empty(scores.size, dtype=np.int64)
    order = np.argsort(scores, kind="stable")
    for b, chunk in enumerate(np.array_split(order, n_quantiles)):
        bins[chunk] = b
    return bins


def _group_matrix(
    s: np.ndarray, t: np.ndarray, causes: np.ndarray, group, n_quantiles: int, vocab: List
) -> pd.DataFrame:
    admitted = group.positions[t[group.positions] == 1]
    bins = quantile_bins(s[admitted], n_quantiles)
    codes = pd.Categorical(causes[admitted], categories=vocab).codes
    counts = np.zeros((n_quantiles, len(vocab)), dtype=np.int64)
    np.add.at(counts, (bins, codes), 1)
    return pd.DataFrame(counts, index=pd.RangeIndex(n_quantiles, name="bin"), columns=vocab)


def build_decomposition(
    cohort: Cohort,
    group_a: GroupLike,
    group_b: GroupLike,
    n_quantiles: int = 10,
    cause_covariate: str = "admission_cause",
    categories: Optional[Sequence] = None,
    score=None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Count admission causes per score-quantile bin for each group.

    Admitted individuals (target = 1) of each group are ranked by score and
    split into ``n_quantiles`` bins whose sizes differ by at most one. Rows
    run from the lowest-score bin (0) to the highest; columns follow the
    shared cause vocabulary (``categories`` or every cause in the cohort).
    A bin with no admissions is a row of zeros. Admissions with a missing
    cause are counted in a trailing ``"missing"`` column, so each row sums to
    the bin's admitted count.
    """
    if n_quantiles < 1:
        raise ValueError("n_quantiles must be positive")
    n = len(cohort)
    s = cohort.score if score is None else as_scores(score)
    check_aligned(cohort=cohort.target, score=s)
    t = cohort.target
    causes = np.asarray(_to_np(cohort.covariate(cause_covariate)), dtype=object)
    vocab = _vocabulary(causes, categories)
    causes = np.where(pd.isna(causes), MISSING_CAUSE, causes)

    out = []
    for group in (as_group_index(group_a, n), as_group_index(group_b, n)):
        matrix = _group_matrix(s, t, causes, group, n_quantiles, vocab)
        logger.debug("Decomposition: %d admissions over %d bins", int(matrix.values.sum()), n_quantiles)
        out.append(matrix)
    return out[0], out[1]
