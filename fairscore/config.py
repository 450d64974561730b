"""Configuration management for fairness analyses."""
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field, asdict
import yaml


@dataclass
class CohortConfig:
    """Which columns define groups, strata and admission causes."""
    group_covariate: str = "urban"
    group_a: Any = True
    group_b: Any = False
    group_a_name: str = "urban"
    group_b_name: str = "rural"
    id_column: str = "id"
    strata_covariates: List[str] = field(default_factory=lambda: ["age_band", "sex"])
    cause_covariate: str = "admission_cause"


@dataclass
class MetricConfig:
    """Cutoff-indexed rate metrics."""
    n_cutoffs: int = 101
    specs: List[str] = field(default_factory=lambda: ["FOR", "FDR", "TPR", "FPR"])
    zero_denominator: str = "zero"   # "zero" or "nan"
    alpha: float = 0.05


@dataclass
class CurveConfig:
    """ROC / PR / calibration curves."""
    n_points: int = 100
    calibration_bins: int = 10


@dataclass
class CounterfactualConfig:
    """Matched resampling of the donor group."""
    enabled: bool = True
    preserve_covariates: List[str] = field(default_factory=lambda: ["age", "sex"])
    exclude_covariates: List[str] = field(default_factory=lambda: ["id", "score", "target"])
    strict: bool = False


@dataclass
class BootstrapConfig:
    """Stratified bootstrap for adjusted rates.

    Small replicate counts (e.g. 10) are for quick iteration only; the
    standard errors they give are unstable.
    """
    enabled: bool = True
    n_bootstrap: int = 200
    kinds: List[str] = field(default_factory=lambda: ["FOR", "FDR"])


@dataclass
class DecompositionConfig:
    """Admission-cause decomposition by score quantile."""
    enabled: bool = True
    n_quantiles: int = 10
    categories: Optional[List[str]] = None


@dataclass
class AnalysisConfig:
    """Complete analysis configuration."""
    name: str = "urban_rural"
    seed: int = 42
    logdir: Optional[str] = None
    cohort: CohortConfig = field(default_factory=CohortConfig)
    metrics: MetricConfig = field(default_factory=MetricConfig)
    curves: CurveConfig = field(default_factory=CurveConfig)
    counterfactual: CounterfactualConfig = field(default_factory=CounterfactualConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    decomposition: DecompositionConfig = field(default_factory=DecompositionConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_yaml(cls, path: str) -> "AnalysisConfig":
        """Load from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        """Create from dictionary."""
        config = cls()

        # Update nested configs
        if "cohort" in data:
            config.cohort = CohortConfig(**data["cohort"])
        if "metrics" in data:
            config.metrics = MetricConfig(**data["metrics"])
        if "curves" in data:
            config.curves = CurveConfig(**data["curves"])
        if "counterfactual" in data:
            config.counterfactual = CounterfactualConfig(**data["counterfactual"])
        if "bootstrap" in data:
            config.bootstrap = BootstrapConfig(**data["bootstrap"])
        if "decomposition" in data:
            config.decomposition = DecompositionConfig(**data["decomposition"])

        # Update top-level fields
        for key in ["name", "seed", "logdir"]:
            if key in data:
                setattr(config, key, data[key])

        return config
