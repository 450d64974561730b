"""Cohort container, group membership and cutoff grids."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from fairscore.core.exceptions import DimensionMismatchError


# ── Helpers ──────────────────────────────────────────────────────────────────
def _to_np(x) -> Optional[np.ndarray]:
    if x is None:
        return None
    if isinstance(x, np.ndarray):
        return x
    if isinstance(x, (pd.Series, pd.Index)):
        return x.to_numpy()
    return np.asarray(x)


def as_scores(scores) -> np.ndarray:
    """Flatten scores to a float64 vector, rejecting NaN and values outside [0,1]."""
    out = np.asarray(_to_np(scores), dtype=np.float64).ravel()
    if out.size and (np.any(~np.isfinite(out)) or out.min() < 0 or out.max() > 1):
        raise ValueError("scores must be finite and lie in [0, 1]")
    return out


def as_targets(targets) -> np.ndarray:
    """Flatten binary targets to an int vector, rejecting values outside {0,1}."""
    arr = np.asarray(_to_np(targets)).ravel()
    if arr.dtype == bool:
        return arr.astype(np.int64)
    if arr.size and not np.all(np.isin(arr, (0, 1))):
        raise ValueError("targets must be binary (0/1)")
    return arr.astype(np.int64)


def check_aligned(**arrays: Any) -> int:
    """Return the shared length of ``arrays``; raise if any differ."""
    n = None
    first = None
    for name, arr in arrays.items():
        if arr is None:
            continue
        length = len(arr)
        if n is None:
            n, first = length, name
        elif length != n:
            raise DimensionMismatchError(
                f"'{name}' has length {length} but '{first}' has length {n}",
                expected=n,
                actual=length,
            )
    return 0 if n is None else n


# ── Group membership ──────────────────────────────────────────────────────────
@dataclass(frozen=True, eq=False)
class GroupIndex:
    """Validated positions into a cohort of ``size`` individuals.

    Positions are sorted and unique unless the index was built with
    ``allow_repeats=True``, in which case order and repeats are kept (a
    resampled cohort is a multiset of the source rows).
    """

    positions: np.ndarray
    size: int
    name: Optional[str] = None

    def __post_init__(self):
        self.positions.setflags(write=False)

    @classmethod
    def from_indices(
        cls,
        indices: Iterable[int],
        size: int,
        name: Optional[str] = None,
        allow_repeats: bool = False,
    ) -> "GroupIndex":
        idx = np.asarray(_to_np(list(indices) if not hasattr(indices, "__len__") else indices))
        idx = idx.ravel()
        if idx.size == 0:
            idx = idx.astype(np.int64)
        if idx.dtype == bool:
            return cls.from_mask(idx, name=name)
        if idx.dtype.kind not in ("i", "u"):
            if idx.dtype.kind == "f" and np.all(np.mod(idx, 1) == 0):
                idx = idx.astype(np.int64)
            else:
                raise TypeError("group indices must be integers or a boolean mask")
        idx = idx.astype(np.int64)
        if idx.size and (idx.min() < 0 or idx.max() >= size):
            raise DimensionMismatchError(
                f"group index out of range for cohort of size {size}",
                expected=size,
                actual=int(idx.max() if idx.max() >= size else idx.min()),
            )
        if not allow_repeats:
            idx = np.unique(idx)
        return cls(positions=idx.copy(), size=int(size), name=name)

    @classmethod
    def from_mask(cls, mask, name: Optional[str] = None) -> "GroupIndex":
        m = np.asarray(_to_np(mask)).ravel().astype(bool)
        return cls(positions=np.flatnonzero(m).astype(np.int64), size=int(m.size), name=name)

    def __len__(self) -> int:
        return int(self.positions.size)

    def __iter__(self):
        return iter(self.positions.tolist())

    def mask(self) -> np.ndarray:
        """Boolean membership mask (repeats collapse)."""
        m = np.zeros(self.size, dtype=bool)
        m[self.positions] = True
        return m

    def take(self, values) -> np.ndarray:
        arr = _to_np(values)
        if len(arr) != self.size:
            raise DimensionMismatchError(
                f"array of length {len(arr)} does not match cohort size {self.size}",
                expected=self.size,
                actual=len(arr),
            )
        return arr[self.positions]


GroupLike = Union[GroupIndex, np.ndarray, Sequence[int], Sequence[bool]]


def as_group_index(group: GroupLike, size: int, name: Optional[str] = None) -> GroupIndex:
    """Coerce a mask, position array or ``GroupIndex`` to a checked ``GroupIndex``."""
    if isinstance(group, GroupIndex):
        if group.size != size:
            raise DimensionMismatchError(
                f"group was built for a cohort of size {group.size}, not {size}",
                expected=size,
                actual=group.size,
            )
        return group
    arr = np.asarray(_to_np(group)).ravel()
    if arr.dtype == bool:
        if arr.size != size:
            raise DimensionMismatchError(
                f"group mask has length {arr.size} but cohort has {size} rows",
                expected=size,
                actual=arr.size,
            )
        return GroupIndex.from_mask(arr, name=name)
    return GroupIndex.from_indices(arr, size, name=name)


# ── Cutoff grids ──────────────────────────────────────────────────────────────
def make_cutoffs(n: int = 101) -> np.ndarray:
    """Evenly spaced cutoffs on [0, 1]."""
    if n < 1:
        raise ValueError("n must be positive")
    if n == 1:
        return np.array([0.5])
    return np.linspace(0.0, 1.0, n)


def validate_cutoffs(cutoffs) -> np.ndarray:
    c = np.asarray(_to_np(cutoffs), dtype=np.float64).ravel()
    if c.size == 0:
        raise ValueError("cutoff grid is empty")
    if np.any(~np.isfinite(c)) or c.min() < 0.0 or c.max() > 1.0:
        raise ValueError("cutoffs must lie in [0, 1]")
    if c.size > 1 and np.any(np.diff(c) <= 0):
        raise ValueError("cutoffs must be strictly increasing")
    return c


# ── Cohort ───────────────────────────────────────────────────────────────────
@dataclass(frozen=True, eq=False)
class Cohort:
    """Scored individuals with outcome, covariates and a group covariate.

    Rows are aligned by position. ``frame`` holds every column; the score,
    target, identifier and group covariate are named by the ``*_column``
    fields.
    """

    frame: pd.DataFrame
    score_column: str = "score"
    target_column: str = "target"
    id_column: str = "id"
    group_column: Optional[str] = "urban"
    _cache: Dict[str, np.ndarray] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        for col in (self.score_column, self.target_column):
            if col not in self.frame.columns:
                raise ValueError(f"cohort frame has no '{col}' column")
        self._cache["score"] = as_scores(self.frame[self.score_column])
        self._cache["target"] = as_targets(self.frame[self.target_column])
        if self.id_column in self.frame.columns and not self.frame[self.id_column].is_unique:
            raise ValueError(f"identifier column '{self.id_column}' is not unique")

    @classmethod
    def from_arrays(
        cls,
        score,
        target,
        covariates: Optional[Mapping[str, Any]] = None,
        ids=None,
        group=None,
        group_column: str = "urban",
    ) -> "Cohort":
        """Build a cohort from columnar arrays aligned by position."""
        covariates = dict(covariates or {})
        n = check_aligned(score=score, target=target, ids=ids, group=group, **covariates)
        data: Dict[str, Any] = {
            "id": _to_np(ids) if ids is not None else np.arange(n),
            "score": as_scores(score),
            "target": as_targets(target),
        }
        for name, values in covariates.items():
            data[name] = _to_np(values)
        if group is not None:
            data[group_column] = _to_np(group)
        elif group_column not in covariates:
            group_column = None
        return cls(frame=pd.DataFrame(data), group_column=group_column)

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        score_column: str = "score",
        target_column: str = "target",
        id_column: str = "id",
        group_column: Optional[str] = "urban",
    ) -> "Cohort":
        return cls(
            frame=frame.reset_index(drop=True),
            score_column=score_column,
            target_column=target_column,
            id_column=id_column,
            group_column=group_column,
        )

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def score(self) -> np.ndarray:
        return self._cache["score"]

    @property
    def target(self) -> np.ndarray:
        return self._cache["target"]

    @property
    def reserved_columns(self) -> List[str]:
        """Columns that identify or describe the outcome, never covariates."""
        cols = [self.score_column, self.target_column, self.id_column, f"source_{self.id_column}"]
        return [c for c in cols if c in self.frame.columns]

    @property
    def covariates(self) -> List[str]:
        reserved = set(self.reserved_columns)
        return [c for c in self.frame.columns if c not in reserved]

    def covariate(self, name: str) -> np.ndarray:
        if name not in self.frame.columns:
            raise ValueError(f"unknown covariate '{name}'")
        return self.frame[name].to_numpy()

    def group(self, value: Any, name: Optional[str] = None) -> GroupIndex:
        """Rows whose group covariate equals ``value``."""
        if self.group_column is None:
            raise ValueError("cohort has no group covariate")
        mask = self.frame[self.group_column].to_numpy() == value
        return GroupIndex.from_mask(mask, name=name if name is not None else str(value))

    def take(self, indices) -> "Cohort":
        """New cohort made of the given rows, in order, repeats allowed."""
        if isinstance(indices, GroupIndex):
            indices = indices.positions
        idx = np.asarray(_to_np(indices), dtype=np.int64).ravel()
        sub = self.frame.iloc[idx].reset_index(drop=True)
        if self.id_column in sub.columns and not sub[self.id_column].is_unique:
            # Resampled rows keep their source id in a separate column.
            sub = sub.rename(columns={self.id_column: f"source_{self.id_column}"})
            sub.insert(0, self.id_column, np.arange(len(sub)))
        return Cohort(
            frame=sub,
            score_column=self.score_column,
            target_column=self.target_column,
            id_column=self.id_column,
            group_column=self.group_column,
        )
