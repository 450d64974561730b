"""Tabular summaries and export utilities."""

import json
from pathlib import Path
from typing import Dict, Iterable, Mapping

import numpy as np
import pandas as pd

from fairscore.fairness.metrics import MetricSeries


def series_table(series: Mapping[str, MetricSeries], alpha: float = 0.05) -> pd.DataFrame:
    """
    Stack metric series into the persisted long format.

    Args:
        series: Mapping of metric name to ``MetricSeries``
        alpha: Significance level of the interval columns

    Returns:
        DataFrame with columns metric, group, cutoff, value, se, lower, upper, n, valid
    """
    frames = []
    for name, s in series.items():
        df = s.to_frame(alpha)
        df.insert(0, "metric", name)
        frames.append(df)
    if not frames:
        return pd.DataFrame(
            columns=["metric", "group", "cutoff", "value", "se", "lower", "upper", "n", "valid"]
        )
    return pd.concat(frames, ignore_index=True)


def curve_table(curves: Iterable) -> pd.DataFrame:
    """Long table of curve points, one block per curve."""
    frames = [c.to_frame() for c in curves]
    return pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()


def cause_breakdown(matrix: pd.DataFrame, low_bins: int = 1) -> pd.DataFrame:
    """
    Share of each admission cause among low-score bins vs. all bins.

    Args:
        matrix: Decomposition matrix (rows ordered lowest score first)
        low_bins: Number of lowest bins treated as "unexpected" admissions

    Returns:
        DataFrame indexed by cause with columns low, all, ratio
    """
    if low_bins < 1 or low_bins > len(matrix):
        raise ValueError(f"low_bins must be in [1, {len(matrix)}]")
    low = matrix.iloc[:low_bins].sum(axis=0)
    total = matrix.sum(axis=0)
    low_share = low / low.sum() if low.sum() > 0 else low * 0.0
    all_share = total / total.sum() if total.sum() > 0 else total * 0.0
    ratio = np.where(all_share > 0, low_share / all_share.where(all_share > 0, 1.0), 0.0)
    return pd.DataFrame({"low": low_share, "all": all_share, "ratio": ratio})


def _json_default(obj):
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, pd.DataFrame):
        return obj.to_dict(orient="records")
    return str(obj)


def export_results_json(
    results: Dict,
    output_path: str
) -> None:
    """Export results to JSON."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        json.dump(results, f, indent=2, default=_json_default)
