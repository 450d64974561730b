# fairscore/fairness/__init__.py
"""
Public API for the fairness computations.
"""

from .spec import CellCondition, ConfusionSpec, REGISTRY as SPEC_REGISTRY, get_spec
from .metrics import (
    MetricSeries,
    cell_counts,
    demographic_parity,
    group_confusion_counts,
    group_fairness,
)
from .curves import (
    CalibrationCurve,
    Curve,
    calibration_curve,
    group_curves,
    precision_recall_curve,
    resample_step_function,
    roc_curve,
)
from .counterfactual import CounterfactualIndexSet, build_counterfactual
from .adjustment import AdjustedRate, adjusted_rate
from .decomposition import build_decomposition

__all__ = [
    "CellCondition",
    "ConfusionSpec",
    "SPEC_REGISTRY",
    "get_spec",
    "MetricSeries",
    "cell_counts",
    "demographic_parity",
    "group_confusion_counts",
    "group_fairness",
    "CalibrationCurve",
    "Curve",
    "calibration_curve",
    "group_curves",
    "precision_recall_curve",
    "resample_step_function",
    "roc_curve",
    "CounterfactualIndexSet",
    "build_counterfactual",
    "AdjustedRate",
    "adjusted_rate",
    "build_decomposition",
]
