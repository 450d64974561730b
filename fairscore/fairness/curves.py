"""Fixed-cardinality ROC, precision-recall and calibration curves.

Raw threshold sweeps have one vertex per distinct score, so their length
grows with the cohort. Every curve here is resampled to a fixed number of
points so downstream consumers can rely on a constant output shape.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn import metrics as skm

from fairscore.core.cohort import GroupLike, as_group_index, as_scores, as_targets, check_aligned
from fairscore.core.exceptions import DegenerateLabelError, EmptyGroupError

logger = logging.getLogger(__name__)

DEFAULT_N_POINTS = 100


@dataclass(frozen=True, eq=False)
class Curve:
    """A resampled curve; ``x`` and ``y`` always have ``len(x)`` == n_points."""

    kind: str
    x: np.ndarray
    y: np.ndarray
    auc: float
    n_positive: int
    n_negative: int
    group: Optional[str] = None

    def __len__(self) -> int:
        return int(self.x.size)

    def to_frame(self) -> pd.DataFrame:
        x_name, y_name = ("fpr", "tpr") if self.kind == "roc" else ("recall", "precision")
        return pd.DataFrame({"group": self.group, x_name: self.x, y_name: self.y})


@dataclass(frozen=True, eq=False)
class CalibrationCurve:
    """Per-bin mean prediction against observed rate; empty bins are omitted."""

    mean_predicted: np.ndarray
    observed_rate: np.ndarray
    counts: np.ndarray
    bin_lower: np.ndarray
    bin_upper: np.ndarray
    n_bins: int
    group: Optional[str] = None

    def __len__(self) -> int:
        return int(self.counts.size)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "group": self.group,
                "mean_predicted": self.mean_predicted,
                "observed_rate": self.observed_rate,
                "count": self.counts,
                "bin_lower": self.bin_lower,
                "bin_upper": self.bin_upper,
            }
        )


# ── Step-function resampling ──────────────────────────────────────────────────
def resample_step_function(
    x, y, n_points: int = DEFAULT_N_POINTS
) -> Tuple[np.ndarray, np.ndarray]:
    """Resample a swept curve to ``n_points`` evenly spaced x positions.

    ``x``/``y`` are the sweep vertices in order, with ``x`` non-decreasing.
    Consecutive vertices are joined by straight lines. Where several
    vertices share an x (a vertical jump), a grid point landing exactly on
    it takes the largest y; points inside a segment interpolate from the
    last vertex at the segment start to the first vertex at its end. The
    first and last output points are the first and last vertices.
    """
    x = np.asarray(x, dtype=np.float64).ravel()
    y = np.asarray(y, dtype=np.float64).ravel()
    if x.size != y.size:
        raise ValueError(f"x and y differ in length ({x.size} vs {y.size})")
    if x.size < 2:
        raise ValueError("need at least two vertices to resample")
    if n_points < 2:
        raise ValueError("n_points must be at least 2")
    if np.any(np.diff(x) < 0):
        raise ValueError("x must be non-decreasing")

    grid = np.linspace(x[0], x[-1], n_points)
    ux, first = np.unique(x, return_index=True)
    last = np.r_[first[1:] - 1, x.size - 1]
    y_top = np.maximum.reduceat(y, first)

    pos = np.clip(np.searchsorted(ux, grid, side="right") - 1, 0, ux.size - 1)
    nxt = np.minimum(pos + 1, ux.size - 1)
    span = ux[nxt] - ux[pos]
    frac = np.where(span > 0, (grid - ux[pos]) / np.where(span > 0, span, 1.0), 0.0)
    start = y[last[pos]]
    out = start + frac * (y[first[nxt]] - start)
    out = np.where(grid == ux[pos], y_top[pos], out)

    out[0] = y[0]
    out[-1] = y[-1]
    return grid, out


# ── Helpers ──────────────────────────────────────────────────────────────────
def _select(scores, targets, group: Optional[GroupLike]) -> Tuple[np.ndarray, np.ndarray, Optional[str]]:
    s = as_scores(scores)
    t = as_targets(targets)
    n = check_aligned(scores=s, targets=t)
    name = None
    if group is not None:
        g = as_group_index(group, n)
        s, t, name = g.take(s), g.take(t), g.name
    if s.size == 0:
        raise EmptyGroupError("cannot build a curve over an empty group")
    return s, t, name


def _require_both_classes(t: np.ndarray, kind: str) -> Tuple[int, int]:
    n_pos = int(t.sum())
    n_neg = int(t.size - n_pos)
    if n_pos == 0 or n_neg == 0:
        raise DegenerateLabelError(
            f"{kind} curve needs both outcome classes "
            f"(positives={n_pos}, negatives={n_neg})",
            n_positive=n_pos,
            n_negative=n_neg,
        )
    return n_pos, n_neg


# ── Curves ───────────────────────────────────────────────────────────────────
def roc_curve(scores, targets, group: Optional[GroupLike] = None, n_points: int = DEFAULT_N_POINTS) -> Curve:
    """ROC resampled along the false-positive-rate axis.

    Tied scores enter the sweep together, so a tie between classes is a
    diagonal segment. Passes through (0, 0) and (1, 1).
    """
    s, t, name = _select(scores, targets, group)
    n_pos, n_neg = _require_both_classes(t, "ROC")
    fpr, tpr, _ = skm.roc_curve(t, s, drop_intermediate=False)
    x, y = resample_step_function(fpr, tpr, n_points)
    logger.debug("ROC over %d individuals: %d sweep vertices", s.size, fpr.size)
    return Curve(
        kind="roc",
        x=x,
        y=y,
        auc=float(skm.auc(fpr, tpr)),
        n_positive=n_pos,
        n_negative=n_neg,
        group=name,
    )


def precision_recall_curve(
    scores, targets, group: Optional[GroupLike] = None, n_points: int = DEFAULT_N_POINTS
) -> Curve:
    """Precision against recall, resampled along the recall axis.

    Precision is undefined before any individual is predicted positive; the
    curve uses precision = 1 at recall 0 there.
    """
    s, t, name = _select(scores, targets, group)
    n_pos, n_neg = _require_both_classes(t, "precision-recall")
    precision, recall, _ = skm.precision_recall_curve(t, s)
    # sklearn orders by decreasing recall and appends (recall=0, precision=1)
    recall, precision = recall[::-1], precision[::-1]
    x, y = resample_step_function(recall, precision, n_points)
    return Curve(
        kind="pr",
        x=x,
        y=y,
        auc=float(skm.auc(recall, precision)),
        n_positive=n_pos,
        n_negative=n_neg,
        group=name,
    )


def calibration_curve(scores, targets, group: Optional[GroupLike] = None, n_bins: int = 10) -> CalibrationCurve:
    """Equal-count score bins with mean prediction and observed positive rate.

    Bins are cut by score rank, so bin sizes differ by at most one; when the
    group has fewer members than bins the empty bins are left out.
    """
    if n_bins < 1:
        raise ValueError("n_bins must be positive")
    s, t, name = _select(scores, targets, group)
    order = np.argsort(s, kind="stable")
    chunks = [c for c in np.array_split(order, n_bins) if c.size > 0]
    return CalibrationCurve(
        mean_predicted=np.array([s[c].mean() for c in chunks]),
        observed_rate=np.array([t[c].mean() for c in chunks]),
        counts=np.array([c.size for c in chunks], dtype=np.int64),
        bin_lower=np.array([s[c].min() for c in chunks]),
        bin_upper=np.array([s[c].max() for c in chunks]),
        n_bins=n_bins,
        group=name,
    )


CURVES = {
    "roc": roc_curve,
    "pr": precision_recall_curve,
    "calibration": calibration_curve,
}


def group_curves(
    kind: str,
    scores,
    targets,
    group_a: GroupLike,
    group_b: Optional[GroupLike] = None,
    **kwargs,
) -> Dict[str, object]:
    """One curve per group, keyed by group name (``group_0``/``group_1`` when unnamed)."""
    if kind not in CURVES:
        raise ValueError(f"Unknown curve: {kind}. Available: {list(CURVES.keys())}")
    fn = CURVES[kind]
    out = {}
    for i, g in enumerate(x for x in (group_a, group_b) if x is not None):
        curve = fn(scores, targets, group=g, **kwargs)
        key = curve.group if curve.group is not None else f"group_{i}"
        out[key] = curve
    return out
