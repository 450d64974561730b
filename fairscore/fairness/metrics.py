"""Cutoff-indexed group fairness metrics."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from fairscore.core.cohort import (
    GroupIndex,
    GroupLike,
    _to_np,
    as_group_index,
    as_scores,
    as_targets,
    check_aligned,
    make_cutoffs,
    validate_cutoffs,
)
from fairscore.fairness.spec import Cell, ConfusionSpec, SpecLike, as_spec

logger = logging.getLogger(__name__)

ZERO_DENOMINATOR_POLICIES = ("zero", "nan")


# ── Helpers ──────────────────────────────────────────────────────────────────
def cell_counts(scores: np.ndarray, targets: np.ndarray, cutoffs: np.ndarray) -> Dict[Cell, np.ndarray]:
    """Confusion cell counts at every cutoff.

    Keys are ``(score > cutoff, target == 1)``. Counting is done on sorted
    scores so the cost is O(n log n + C log n).
    """
    pos = np.sort(scores[targets == 1])
    neg = np.sort(scores[targets == 0])
    le_pos = np.searchsorted(pos, cutoffs, side="right")
    le_neg = np.searchsorted(neg, cutoffs, side="right")
    return {
        (False, False): le_neg,
        (False, True): le_pos,
        (True, False): neg.size - le_neg,
        (True, True): pos.size - le_pos,
    }


def spec_counts(spec: ConfusionSpec, counts: Dict[Cell, np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
    """Numerator and denominator counts of ``spec`` from cell counts."""
    size = len(next(iter(counts.values())))
    num = np.zeros(size, dtype=np.int64)
    den = np.zeros(size, dtype=np.int64)
    for cell in spec.denominator_cells():
        den += counts[cell]
    for cell in spec.numerator_cells():
        num += counts[cell]
    return num, den


def ratio_with_se(
    num: np.ndarray, den: np.ndarray, zero_denominator: str = "zero"
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Proportion, binomial standard error and validity mask."""
    if zero_denominator not in ZERO_DENOMINATOR_POLICIES:
        raise ValueError(
            f"Unknown zero-denominator policy: {zero_denominator}. "
            f"Available: {list(ZERO_DENOMINATOR_POLICIES)}"
        )
    num = np.asarray(num, dtype=np.float64)
    den = np.asarray(den, dtype=np.float64)
    valid = den > 0
    safe = np.where(valid, den, 1.0)
    p = np.where(valid, num / safe, 0.0)
    se = np.where(valid, np.sqrt(p * (1.0 - p) / safe), 0.0)
    if zero_denominator == "nan":
        p = np.where(valid, p, np.nan)
        se = np.where(valid, se, np.nan)
    return p, se, valid


def _group_arrays(
    size: int, group_a: GroupLike, group_b: Optional[GroupLike], group_names: Optional[Sequence[str]]
) -> List[GroupIndex]:
    groups = [as_group_index(group_a, size)]
    if group_b is not None:
        groups.append(as_group_index(group_b, size))
    if group_names is not None and len(group_names) != len(groups):
        raise ValueError(f"expected {len(groups)} group names, got {len(group_names)}")
    return groups


def _names(groups: List[GroupIndex], group_names: Optional[Sequence[str]]) -> Tuple[str, ...]:
    if group_names is not None:
        return tuple(str(n) for n in group_names)
    return tuple(g.name if g.name is not None else f"group_{i}" for i, g in enumerate(groups))


# ── Series container ──────────────────────────────────────────────────────────
@dataclass(frozen=True, eq=False)
class MetricSeries:
    """Cutoff-indexed estimates for one or two groups.

    ``estimate``, ``se``, ``n`` and ``valid`` have shape (groups, cutoffs).
    ``n`` is the denominator count. Points with ``valid`` False had a zero
    denominator; their estimate is 0.0 or NaN according to
    ``zero_denominator``.
    """

    metric: str
    cutoffs: np.ndarray
    groups: Tuple[str, ...]
    estimate: np.ndarray
    se: np.ndarray
    n: np.ndarray
    valid: np.ndarray
    zero_denominator: str = "zero"

    @property
    def n_groups(self) -> int:
        return len(self.groups)

    def group(self, key) -> Dict[str, np.ndarray]:
        i = self.groups.index(key) if isinstance(key, str) else int(key)
        return {
            "estimate": self.estimate[i],
            "se": self.se[i],
            "n": self.n[i],
            "valid": self.valid[i],
        }

    def as_matrix(self) -> np.ndarray:
        """Rows ``estimate, se`` per group, groups concatenated in order."""
        rows = []
        for i in range(self.n_groups):
            rows.append(self.estimate[i])
            rows.append(self.se[i])
        return np.vstack(rows)

    def ci(self, alpha: float = 0.05) -> Tuple[np.ndarray, np.ndarray]:
        """Normal-approximation interval, clipped to [0, 1]."""
        z = stats.norm.ppf(1 - alpha / 2)
        lower = np.clip(self.estimate - z * self.se, 0.0, 1.0)
        upper = np.clip(self.estimate + z * self.se, 0.0, 1.0)
        return lower, upper

    def difference(self) -> Tuple[np.ndarray, np.ndarray]:
        """Group a minus group b, with independent-groups standard error."""
        if self.n_groups != 2:
            raise ValueError("difference needs exactly two groups")
        diff = self.estimate[0] - self.estimate[1]
        se = np.sqrt(self.se[0] ** 2 + self.se[1] ** 2)
        return diff, se

    def to_frame(self, alpha: float = 0.05) -> pd.DataFrame:
        """Long table: one row per (group, cutoff)."""
        lower, upper = self.ci(alpha)
        frames = []
        for i, name in enumerate(self.groups):
            frames.append(
                pd.DataFrame(
                    {
                        "group": name,
                        "cutoff": self.cutoffs,
                        "value": self.estimate[i],
                        "se": self.se[i],
                        "lower": lower[i],
                        "upper": upper[i],
                        "n": self.n[i],
                        "valid": self.valid[i],
                    }
                )
            )
        return pd.concat(frames, ignore_index=True)


# ── Core metrics ──────────────────────────────────────────────────────────────
def group_fairness(
    spec: SpecLike,
    scores,
    targets,
    group_a: GroupLike,
    group_b: Optional[GroupLike] = None,
    cutoffs=None,
    zero_denominator: str = "zero",
    group_names: Optional[Sequence[str]] = None,
) -> MetricSeries:
    """Evaluate a confusion ratio at every cutoff for one or two groups.

    Args:
        spec: ``ConfusionSpec``, 6-slot vector or registered name ("FOR", ...)
        scores: Risk scores aligned to the cohort
        targets: Binary outcomes aligned to the cohort
        group_a: First group (mask, positions or ``GroupIndex``)
        group_b: Optional second group
        cutoffs: Strictly increasing grid in [0, 1]; 101 points by default
        zero_denominator: "zero" or "nan" for points with no denominator
        group_names: Optional display names for the groups

    Returns:
        ``MetricSeries`` with estimate, standard error and validity mask
    """
    spec = as_spec(spec)
    s = as_scores(scores)
    t = as_targets(targets)
    n = check_aligned(scores=s, targets=t)
    cutoffs = validate_cutoffs(make_cutoffs() if cutoffs is None else cutoffs)
    groups = _group_arrays(n, group_a, group_b, group_names)

    est, se, den, valid = [], [], [], []
    for g in groups:
        counts = cell_counts(g.take(s), g.take(t), cutoffs)
        num_g, den_g = spec_counts(spec, counts)
        p, e, v = ratio_with_se(num_g, den_g, zero_denominator)
        est.append(p)
        se.append(e)
        den.append(den_g)
        valid.append(v)
        logger.debug(
            "%s: group of %d, %d/%d valid cutoffs",
            spec.name or "spec", len(g), int(v.sum()), v.size,
        )

    return MetricSeries(
        metric=spec.name or "custom",
        cutoffs=cutoffs,
        groups=_names(groups, group_names),
        estimate=np.vstack(est),
        se=np.vstack(se),
        n=np.vstack(den),
        valid=np.vstack(valid),
        zero_denominator=zero_denominator,
    )


def demographic_parity(
    scores,
    group_a: GroupLike,
    group_b: Optional[GroupLike] = None,
    cutoffs=None,
    zero_denominator: str = "zero",
    group_names: Optional[Sequence[str]] = None,
) -> MetricSeries:
    """P(score >= cutoff) per group, with binomial standard error.

    No outcome is involved, so this applies equally to resampled
    (counterfactual) cohorts. The denominator is the group size, so an empty
    group gives invalid points.
    """
    s = as_scores(scores)
    cutoffs = validate_cutoffs(make_cutoffs() if cutoffs is None else cutoffs)
    groups = _group_arrays(s.size, group_a, group_b, group_names)

    est, se, den, valid = [], [], [], []
    for g in groups:
        sg = np.sort(g.take(s))
        at_or_above = sg.size - np.searchsorted(sg, cutoffs, side="left")
        size = np.full(cutoffs.size, sg.size, dtype=np.int64)
        p, e, v = ratio_with_se(at_or_above, size, zero_denominator)
        est.append(p)
        se.append(e)
        den.append(size)
        valid.append(v)

    return MetricSeries(
        metric="demographic_parity",
        cutoffs=cutoffs,
        groups=_names(groups, group_names),
        estimate=np.vstack(est),
        se=np.vstack(se),
        n=np.vstack(den),
        valid=np.vstack(valid),
        zero_denominator=zero_denominator,
    )


def group_confusion_counts(
    scores,
    targets,
    sensitive,
    cutoff: float = 0.5,
    group_names: Optional[Dict[Hashable, str]] = None,
) -> Dict[str, Dict[str, int]]:
    """Per-group confusion counts at a single cutoff (predicted positive: score > cutoff)."""
    s = as_scores(scores)
    t = as_targets(targets)
    a = np.asarray(_to_np(sensitive)).ravel()
    check_aligned(scores=s, targets=t, sensitive=a)
    cutoff_arr = validate_cutoffs([cutoff])

    out: Dict[str, Dict[str, int]] = {}
    for idx, val in enumerate(pd.unique(a)):
        name = group_names.get(val, f"group_{idx}") if group_names else str(val)
        m = a == val
        c = cell_counts(s[m], t[m], cutoff_arr)
        out[name] = {
            "TP": int(c[(True, True)][0]),
            "FP": int(c[(True, False)][0]),
            "FN": int(c[(False, True)][0]),
            "TN": int(c[(False, False)][0]),
            "N": int(m.sum()),
        }
    return out
