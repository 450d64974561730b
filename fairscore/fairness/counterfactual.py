"""Counterfactual cohorts by covariate-matched resampling.

A counterfactual cohort answers "what would the source group look like if
its members belonged to the other group but kept their preserved
covariates?". Each source individual is replaced by a randomly chosen donor
from the other group with identical preserved covariates; everything else
(including the score) comes from the donor.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from fairscore.core.cohort import Cohort, GroupIndex, _to_np
from fairscore.core.exceptions import DimensionMismatchError, EmptyDonorPoolError, EmptyGroupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class CounterfactualIndexSet:
    """Donor positions drawn to stand in for source individuals.

    ``indices[i]`` is the donor chosen for ``source_indices[i]``. Source
    individuals whose covariate combination has no donor are listed in
    ``dropped_source_indices`` and have no entry in ``indices``.
    """

    indices: np.ndarray
    source_indices: np.ndarray
    dropped_source_indices: np.ndarray
    cohort_size: int
    preserve_covariates: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return int(self.indices.size)

    @property
    def n_dropped(self) -> int:
        return int(self.dropped_source_indices.size)

    @property
    def n_source(self) -> int:
        return len(self) + self.n_dropped

    def as_group(self, name: Optional[str] = "counterfactual") -> GroupIndex:
        """Donor positions as a ``GroupIndex`` that keeps repeats."""
        return GroupIndex.from_indices(self.indices, self.cohort_size, name=name, allow_repeats=True)

    def take(self, values) -> np.ndarray:
        arr = _to_np(values)
        if len(arr) != self.cohort_size:
            raise DimensionMismatchError(
                f"array of length {len(arr)} does not match cohort size {self.cohort_size}",
                expected=self.cohort_size,
                actual=len(arr),
            )
        return arr[self.indices]


def _match_keys(frame: pd.DataFrame, covariates: Sequence[str]) -> List[Tuple[Hashable, ...]]:
    """Hashable match key per row; float covariates are binned by integer value."""
    cols = {}
    for cov in covariates:
        col = frame[cov]
        if pd.api.types.is_float_dtype(col):
            col = np.floor(col)
        cols[cov] = col
    keys = pd.DataFrame(cols).astype(object)
    keys = keys.where(keys.notna(), None)
    return list(keys.itertuples(index=False, name=None))


def build_counterfactual(
    cohort: Cohort,
    preserve_covariates: Sequence[str],
    exclude_covariates: Sequence[str] = (),
    source_group_value: Any = False,
    target_group_value: Any = True,
    seed: int = 0,
    strict: bool = False,
    group_covariate: Optional[str] = None,
) -> CounterfactualIndexSet:
    """Resample the target group to match the source group's preserved covariates.

    Args:
        cohort: Source cohort
        preserve_covariates: Covariates whose joint distribution is kept from
            the source group (exact match after integer binning of floats)
        exclude_covariates: Fields that may never be used for matching
        source_group_value: Group covariate value of the population to mimic
        target_group_value: Group covariate value of the donor population
        seed: Seed for the donor draws
        strict: Raise instead of dropping unmatched source individuals
        group_covariate: Group column; defaults to the cohort's group column

    Returns:
        ``CounterfactualIndexSet`` in source order
    """
    group_col = group_covariate or cohort.group_column
    if group_col is None:
        raise ValueError("cohort has no group covariate")
    preserve = list(preserve_covariates)
    if not preserve:
        raise ValueError("at least one covariate must be preserved")
    missing = [c for c in preserve if c not in cohort.frame.columns]
    if missing:
        raise ValueError(f"unknown covariates: {missing}")
    forbidden = set(exclude_covariates) | {group_col} | set(cohort.reserved_columns)
    clash = sorted(set(preserve) & forbidden)
    if clash:
        raise ValueError(f"covariates {clash} cannot be used as matching keys")

    groups = cohort.frame[group_col].to_numpy()
    source_pos = np.flatnonzero(groups == source_group_value)
    donor_pos = np.flatnonzero(groups == target_group_value)
    if source_pos.size == 0:
        raise EmptyGroupError(f"no individuals with {group_col} == {source_group_value!r}")
    if donor_pos.size == 0:
        raise EmptyDonorPoolError(f"no donors with {group_col} == {target_group_value!r}")

    keys = _match_keys(cohort.frame, preserve)
    donors: Dict[Hashable, List[int]] = {}
    for p in donor_pos:
        donors.setdefault(keys[p], []).append(int(p))
    sources: Dict[Hashable, List[int]] = {}
    for p in source_pos:
        sources.setdefault(keys[p], []).append(int(p))

    rng = np.random.default_rng(seed)
    assigned: Dict[int, int] = {}
    dropped: List[int] = []
    for key, members in sources.items():
        pool = donors.get(key)
        if pool is None:
            dropped.extend(members)
            continue
        draws = rng.choice(np.asarray(pool), size=len(members), replace=True)
        assigned.update(zip(members, draws.tolist()))

    if dropped and strict:
        raise EmptyDonorPoolError(
            f"{len(dropped)} of {source_pos.size} source individuals have no donor "
            f"matching on {preserve}"
        )

    kept = [p for p in source_pos.tolist() if p in assigned]
    logger.info(
        "Counterfactual on %s: %d matched, %d dropped (%d donors)",
        preserve, len(kept), len(dropped), donor_pos.size,
    )
    return CounterfactualIndexSet(
        indices=np.array([assigned[p] for p in kept], dtype=np.int64),
        source_indices=np.array(kept, dtype=np.int64),
        dropped_source_indices=np.array(sorted(dropped), dtype=np.int64),
        cohort_size=len(cohort),
        preserve_covariates=tuple(preserve),
    )
