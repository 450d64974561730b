"""Confounder-adjusted error rates with stratified bootstrap standard errors.

Group rates are standardized to a common stratum mix: each group's rate is
the weighted average of its within-stratum rates, using weights from the
pooled stratum sizes of both groups. Differences in the confounder
distribution between groups then no longer drive the rate difference.

Standard errors come from resampling individuals with replacement inside
every (group, stratum) cell. Replicate ``b`` draws from its own generator,
spawned from ``SeedSequence(seed)``, so results do not depend on the order
in which replicates are computed. With few replicates (e.g. 10) the standard
error is itself very noisy; use several hundred for reported intervals.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from fairscore.core.cohort import (
    GroupLike,
    _to_np,
    as_group_index,
    as_scores,
    as_targets,
    check_aligned,
    make_cutoffs,
    validate_cutoffs,
)
from fairscore.core.exceptions import InvalidSpecError
from fairscore.fairness.metrics import (
    ZERO_DENOMINATOR_POLICIES,
    MetricSeries,
    cell_counts,
    ratio_with_se,
    spec_counts,
)
from fairscore.fairness.spec import REGISTRY, ConfusionSpec

logger = logging.getLogger(__name__)

ADJUSTABLE = ("FOR", "FDR")


@dataclass(frozen=True, eq=False)
class AdjustedRate:
    """Stratum-standardized rates for two groups.

    ``incomplete_strata[g, c]`` counts strata that contributed a rate of 0
    for group ``g`` at cutoff ``c`` because their denominator was empty
    (including strata absent from the group, listed in ``missing_strata``).
    """

    series: MetricSeries
    difference: np.ndarray
    difference_se: np.ndarray
    strata: np.ndarray
    weights: np.ndarray
    incomplete_strata: np.ndarray
    missing_strata: Tuple[Tuple, ...]
    replicates: np.ndarray
    n_bootstrap: int
    seed: int

    def to_frame(self, alpha: float = 0.05) -> pd.DataFrame:
        df = self.series.to_frame(alpha)
        df["incomplete_strata"] = self.incomplete_strata.reshape(-1)
        return df

    def difference_frame(self, alpha: float = 0.05) -> pd.DataFrame:
        z = stats.norm.ppf(1 - alpha / 2)
        return pd.DataFrame(
            {
                "cutoff": self.series.cutoffs,
                "difference": self.difference,
                "se": self.difference_se,
                "lower": self.difference - z * self.difference_se,
                "upper": self.difference + z * self.difference_se,
            }
        )


def _standardized(
    spec: ConfusionSpec,
    members: List[np.ndarray],
    weights: np.ndarray,
    s: np.ndarray,
    t: np.ndarray,
    cutoffs: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Weighted rate, incomplete-stratum count, validity and denominator per cutoff."""
    rate = np.zeros(cutoffs.size)
    incomplete = np.zeros(cutoffs.size, dtype=np.int64)
    any_valid = np.zeros(cutoffs.size, dtype=bool)
    total_den = np.zeros(cutoffs.size, dtype=np.int64)
    for w, idx in zip(weights, members):
        if idx.size == 0:
            incomplete += 1
            continue
        num, den = spec_counts(spec, cell_counts(s[idx], t[idx], cutoffs))
        p, _, valid = ratio_with_se(num, den)
        rate += w * p
        incomplete += ~valid
        any_valid |= valid
        total_den += den
    return rate, incomplete, any_valid, total_den


def adjusted_rate(
    kind: str,
    scores,
    targets,
    strata_labels,
    group_a: GroupLike,
    group_b: GroupLike,
    cutoffs=None,
    n_bootstrap: int = 200,
    seed: int = 0,
    zero_denominator: str = "zero",
    group_names: Optional[Sequence[str]] = None,
) -> AdjustedRate:
    """Confounder-adjusted false omission ("FOR") or false discovery ("FDR") rate.

    Args:
        kind: "FOR" or "FDR"
        scores: Risk scores aligned to the cohort
        targets: Binary outcomes aligned to the cohort
        strata_labels: Confounder category per individual (e.g. age band x sex)
        group_a: First group
        group_b: Second group
        cutoffs: Cutoff grid; 101 points by default
        n_bootstrap: Number of bootstrap replicates (>= 2)
        seed: Base seed for the replicate generators
        zero_denominator: "zero" or "nan" for cutoffs where no stratum has a
            denominator

    Returns:
        ``AdjustedRate`` with per-group series, a - b difference and flags
    """
    key = str(kind).upper()
    if key not in ADJUSTABLE:
        raise InvalidSpecError(f"adjusted rates support {list(ADJUSTABLE)}, got {kind!r}")
    if n_bootstrap < 2:
        raise ValueError("n_bootstrap must be at least 2")
    if zero_denominator not in ZERO_DENOMINATOR_POLICIES:
        raise ValueError(f"Unknown zero-denominator policy: {zero_denominator}")
    spec = REGISTRY[key]

    s = as_scores(scores)
    t = as_targets(targets)
    labels = np.asarray(_to_np(strata_labels)).ravel()
    n = check_aligned(scores=s, targets=t, strata_labels=labels)
    cutoffs = validate_cutoffs(make_cutoffs() if cutoffs is None else cutoffs)
    groups = [as_group_index(group_a, n), as_group_index(group_b, n)]
    names = tuple(group_names) if group_names is not None else tuple(
        g.name if g.name is not None else f"group_{i}" for i, g in enumerate(groups)
    )

    pooled = np.concatenate([g.positions for g in groups])
    codes, strata = pd.factorize(
        pd.Series(labels[pooled], dtype=object), sort=True, use_na_sentinel=False
    )
    strata = np.asarray(strata)
    weights = np.bincount(codes, minlength=strata.size) / max(pooled.size, 1)

    members: List[List[np.ndarray]] = []
    missing: List[Tuple] = []
    offset = 0
    for g in groups:
        g_codes = codes[offset:offset + len(g)]
        offset += len(g)
        cells = [g.positions[g_codes == k] for k in range(strata.size)]
        members.append(cells)
        missing.append(tuple(strata[k] for k, c in enumerate(cells) if c.size == 0))
    for name, absent in zip(names, missing):
        if absent:
            logger.warning("Strata absent from %s contribute a rate of 0: %s", name, list(absent))

    estimate, incomplete, valid, den = [], [], [], []
    for cells in members:
        r, inc, v, d = _standardized(spec, cells, weights, s, t, cutoffs)
        estimate.append(r)
        incomplete.append(inc)
        valid.append(v)
        den.append(d)
    estimate = np.vstack(estimate)
    valid = np.vstack(valid)

    replicates = np.empty((n_bootstrap, len(groups), cutoffs.size))
    for b, child in enumerate(np.random.SeedSequence(seed).spawn(n_bootstrap)):
        rng = np.random.default_rng(child)
        for gi, cells in enumerate(members):
            resampled = [
                rng.choice(c, size=c.size, replace=True) if c.size else c for c in cells
            ]
            replicates[b, gi] = _standardized(spec, resampled, weights, s, t, cutoffs)[0]
    se = replicates.std(axis=0, ddof=1)
    diff_reps = replicates[:, 0, :] - replicates[:, 1, :]
    difference = estimate[0] - estimate[1]
    difference_se = diff_reps.std(axis=0, ddof=1)
    logger.debug("%s adjusted over %d strata with %d replicates", key, strata.size, n_bootstrap)

    if zero_denominator == "nan":
        estimate = np.where(valid, estimate, np.nan)
        se = np.where(valid, se, np.nan)
        both = valid[0] & valid[1]
        difference = np.where(both, difference, np.nan)
        difference_se = np.where(both, difference_se, np.nan)

    series = MetricSeries(
        metric=f"adjusted_{key}",
        cutoffs=cutoffs,
        groups=names,
        estimate=estimate,
        se=se,
        n=np.vstack(den),
        valid=valid,
        zero_denominator=zero_denominator,
    )
    return AdjustedRate(
        series=series,
        difference=difference,
        difference_se=difference_se,
        strata=strata,
        weights=weights,
        incomplete_strata=np.vstack(incomplete),
        missing_strata=tuple(missing),
        replicates=replicates,
        n_bootstrap=n_bootstrap,
        seed=seed,
    )
