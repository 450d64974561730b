"""FairScore: group fairness analysis for clinical risk scores."""

__version__ = "1.0.0"

from fairscore.core.cohort import Cohort, GroupIndex, make_cutoffs
from fairscore.core.exceptions import (
    DegenerateLabelError,
    DimensionMismatchError,
    EmptyDonorPoolError,
    EmptyGroupError,
    FairScoreError,
    InvalidSpecError,
)
from fairscore.fairness.spec import ConfusionSpec, get_spec
from fairscore.fairness.metrics import MetricSeries, demographic_parity, group_fairness
from fairscore.fairness.curves import calibration_curve, precision_recall_curve, roc_curve
from fairscore.fairness.counterfactual import build_counterfactual
from fairscore.fairness.adjustment import adjusted_rate
from fairscore.fairness.decomposition import build_decomposition
from fairscore.config import AnalysisConfig
from fairscore.core.analysis import run_analysis

__all__ = [
    "Cohort",
    "GroupIndex",
    "make_cutoffs",
    "FairScoreError",
    "DimensionMismatchError",
    "InvalidSpecError",
    "EmptyGroupError",
    "EmptyDonorPoolError",
    "DegenerateLabelError",
    "ConfusionSpec",
    "get_spec",
    "MetricSeries",
    "group_fairness",
    "demographic_parity",
    "roc_curve",
    "precision_recall_curve",
    "calibration_curve",
    "build_counterfactual",
    "adjusted_rate",
    "build_decomposition",
    "AnalysisConfig",
    "run_analysis",
]
