"""End-to-end urban/rural fairness analysis."""
from typing import Any, Dict, Optional

from pathlib import Path

import numpy as np

from fairscore.config import AnalysisConfig
from fairscore.core.cohort import Cohort, make_cutoffs
from fairscore.core.exceptions import DegenerateLabelError, EmptyGroupError
from fairscore.core.utils import Logger, derive_seed
from fairscore.fairness.adjustment import adjusted_rate
from fairscore.fairness.counterfactual import build_counterfactual
from fairscore.fairness.curves import group_curves
from fairscore.fairness.decomposition import build_decomposition
from fairscore.fairness.metrics import demographic_parity, group_fairness
from fairscore.fairness.summarize import curve_table, export_results_json, series_table


def _strata_labels(cohort: Cohort, covariates) -> np.ndarray:
    frame = cohort.frame[list(covariates)].astype(str)
    return frame.agg("|".join, axis=1).to_numpy()


def run_analysis(
    cohort: Cohort,
    config: Optional[AnalysisConfig] = None,
    logger: Optional[Logger] = None,
) -> Dict[str, Any]:
    """Run every configured fairness computation on one cohort."""
    config = config or AnalysisConfig()
    own_logger = logger is None
    logger = logger or Logger(config.logdir, config.name)
    try:
        return _analyze(cohort, config, logger)
    finally:
        if own_logger:
            logger.close()


def _analyze(cohort: Cohort, config: AnalysisConfig, logger: Logger) -> Dict[str, Any]:
    logger.info(f"Starting fairness analysis: {config.name} ({len(cohort)} individuals)")
    logger.log_config(config.to_dict())

    cc = config.cohort
    mc = config.metrics
    cutoffs = make_cutoffs(mc.n_cutoffs)
    group_a = cohort.group(cc.group_a, name=cc.group_a_name)
    group_b = cohort.group(cc.group_b, name=cc.group_b_name)
    for g in (group_a, group_b):
        if len(g) == 0:
            raise EmptyGroupError(f"group '{g.name}' has no members")
    logger.info(f"Groups: {cc.group_a_name}={len(group_a)}, {cc.group_b_name}={len(group_b)}")

    results: Dict[str, Any] = {"config": config.to_dict()}

    # Cutoff-indexed rates
    rates = {}
    for name in mc.specs:
        rates[name] = group_fairness(
            name, cohort.score, cohort.target, group_a, group_b,
            cutoffs=cutoffs, zero_denominator=mc.zero_denominator,
        )
        logger.log_metrics(
            {"metric": name, "valid_points": int(rates[name].valid.sum())}, step="rates"
        )
    dp = demographic_parity(
        cohort.score, group_a, group_b, cutoffs=cutoffs, zero_denominator=mc.zero_denominator
    )
    rates["demographic_parity"] = dp
    results["rates"] = rates

    # Curves
    curves: Dict[str, Dict[str, Any]] = {}
    cv = config.curves
    for kind, kwargs in (
        ("roc", {"n_points": cv.n_points}),
        ("pr", {"n_points": cv.n_points}),
        ("calibration", {"n_bins": cv.calibration_bins}),
    ):
        curves[kind] = {}
        for g in (group_a, group_b):
            try:
                curves[kind].update(
                    group_curves(kind, cohort.score, cohort.target, g, **kwargs)
                )
            except DegenerateLabelError as e:
                logger.warning(f"Skipping {kind} curve for {g.name}: {e}")
    for name, curve in curves.get("roc", {}).items():
        logger.log_metrics({"group": name, "auc": curve.auc}, step="roc")
    results["curves"] = curves

    # Counterfactual: donors from group a standing in for group b
    cf = config.counterfactual
    if cf.enabled:
        index_set = build_counterfactual(
            cohort,
            preserve_covariates=cf.preserve_covariates,
            exclude_covariates=cf.exclude_covariates,
            source_group_value=cc.group_b,
            target_group_value=cc.group_a,
            seed=derive_seed(config.seed, 1),
            strict=cf.strict,
        )
        cf_name = f"{cc.group_a_name}_as_{cc.group_b_name}"
        results["counterfactual"] = {
            "index_set": index_set,
            "n_dropped": index_set.n_dropped,
            "demographic_parity": demographic_parity(
                cohort.score, group_b, index_set.as_group(cf_name),
                cutoffs=cutoffs, zero_denominator=mc.zero_denominator,
            ),
        }
        logger.log_metrics(
            {"matched": len(index_set), "dropped": index_set.n_dropped}, step="counterfactual"
        )

    # Confounder-adjusted FOR / FDR
    bc = config.bootstrap
    if bc.enabled:
        missing = [c for c in cc.strata_covariates if c not in cohort.frame.columns]
        if missing:
            logger.warning(f"Skipping adjusted rates, missing strata covariates: {missing}")
        else:
            labels = _strata_labels(cohort, cc.strata_covariates)
            adjusted = {}
            for i, kind in enumerate(bc.kinds):
                adjusted[kind] = adjusted_rate(
                    kind, cohort.score, cohort.target, labels, group_a, group_b,
                    cutoffs=cutoffs, n_bootstrap=bc.n_bootstrap,
                    seed=derive_seed(config.seed, 2, i),
                    zero_denominator=mc.zero_denominator,
                )
                logger.info(
                    f"Adjusted {kind}: {adjusted[kind].strata.size} strata, "
                    f"{bc.n_bootstrap} bootstrap replicates"
                )
            results["adjusted"] = adjusted

    # Admission-cause decomposition
    dc = config.decomposition
    if dc.enabled:
        if cc.cause_covariate not in cohort.frame.columns:
            logger.warning(f"Skipping decomposition, no '{cc.cause_covariate}' column")
        else:
            results["decomposition"] = dict(zip(
                (cc.group_a_name, cc.group_b_name),
                build_decomposition(
                    cohort, group_a, group_b,
                    n_quantiles=dc.n_quantiles,
                    cause_covariate=cc.cause_covariate,
                    categories=dc.categories,
                ),
            ))

    if config.logdir:
        export_results_json(_serializable(results, mc.alpha), str(Path(config.logdir) / "results.json"))
    logger.info("Analysis complete")
    return results


def _serializable(results: Dict[str, Any], alpha: float) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "config": results["config"],
        "rates": series_table(results["rates"], alpha),
        "curves": {
            kind: curve_table(c.values())
            for kind, c in results["curves"].items()
        },
    }
    if "counterfactual" in results:
        cf = results["counterfactual"]
        out["counterfactual"] = {
            "indices": cf["index_set"].indices,
            "n_dropped": cf["n_dropped"],
            "demographic_parity": cf["demographic_parity"].to_frame(alpha),
        }
    if "adjusted" in results:
        out["adjusted"] = {
            kind: {"rates": a.to_frame(alpha), "difference": a.difference_frame(alpha)}
            for kind, a in results["adjusted"].items()
        }
    if "decomposition" in results:
        out["decomposition"] = {
            name: m.reset_index().to_dict(orient="records")
            for name, m in results["decomposition"].items()
        }
    return out
