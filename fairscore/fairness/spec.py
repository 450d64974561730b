"""Confusion-matrix ratio specifications."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Sequence, Tuple, Union

import numpy as np

from fairscore.core.exceptions import InvalidSpecError

# A confusion cell is (score above cutoff, target positive).
Cell = Tuple[bool, bool]
ALL_CELLS: Tuple[Cell, ...] = ((False, False), (False, True), (True, False), (True, True))


@dataclass(frozen=True)
class CellCondition:
    """Constraint on one side of a confusion ratio.

    ``score``: True selects score > cutoff, False selects score <= cutoff,
    None leaves it free. ``target`` likewise selects the outcome value.
    """

    score: Optional[bool] = None
    target: Optional[bool] = None

    @property
    def is_set(self) -> bool:
        return self.score is not None or self.target is not None

    def cells(self) -> FrozenSet[Cell]:
        return frozenset(
            (s, t)
            for s, t in ALL_CELLS
            if (self.score is None or self.score == s)
            and (self.target is None or self.target == t)
        )


@dataclass(frozen=True)
class ConfusionSpec:
    """Ratio P(numerator | denominator_1 OR denominator_2).

    Denominator conditions with neither field set are unused; at least one
    must be used.
    """

    numerator: CellCondition
    denominators: Tuple[CellCondition, CellCondition] = (CellCondition(), CellCondition())
    name: Optional[str] = None

    def __post_init__(self):
        if len(self.denominators) != 2:
            raise InvalidSpecError("a spec has exactly two denominator conditions")
        if not any(d.is_set for d in self.denominators):
            raise InvalidSpecError(
                "no denominator condition is resolvable: set the score or target "
                "of at least one denominator"
            )

    @classmethod
    def from_vector(cls, vector: Sequence, name: Optional[str] = None) -> "ConfusionSpec":
        """Parse ``[s_num, t_num, s_den1, t_den1, s_den2, t_den2]``.

        Unset slots are ``None`` or NaN; set slots are 0 or 1.
        """
        slots = list(vector)
        if len(slots) != 6:
            raise InvalidSpecError(f"spec vector must have 6 slots, got {len(slots)}")
        parsed = [_parse_slot(v, i) for i, v in enumerate(slots)]
        return cls(
            numerator=CellCondition(parsed[0], parsed[1]),
            denominators=(
                CellCondition(parsed[2], parsed[3]),
                CellCondition(parsed[4], parsed[5]),
            ),
            name=name,
        )

    def to_vector(self) -> Tuple[Optional[int], ...]:
        out = []
        for cond in (self.numerator,) + tuple(self.denominators):
            out.append(None if cond.score is None else int(cond.score))
            out.append(None if cond.target is None else int(cond.target))
        return tuple(out)

    def denominator_cells(self) -> FrozenSet[Cell]:
        cells: FrozenSet[Cell] = frozenset()
        for cond in self.denominators:
            if cond.is_set:
                cells = cells | cond.cells()
        return cells

    def numerator_cells(self) -> FrozenSet[Cell]:
        """Cells counted in the numerator (always within the denominator)."""
        return self.numerator.cells() & self.denominator_cells()


def _parse_slot(value, position: int) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if value in (0, 1):
        return bool(int(value))
    raise InvalidSpecError(f"slot {position} must be 0, 1 or unset, got {value!r}")


# ── Named specifications ──────────────────────────────────────────────────────
REGISTRY: Dict[str, ConfusionSpec] = {
    # P(Y=1 | score <= c)
    "FOR": ConfusionSpec.from_vector([0, 1, 0, None, None, None], name="FOR"),
    # P(Y=0 | score > c)
    "FDR": ConfusionSpec.from_vector([1, 0, 1, None, None, None], name="FDR"),
    # P(score > c | Y=1)
    "TPR": ConfusionSpec.from_vector([1, 1, None, 1, None, None], name="TPR"),
    # P(score > c | Y=0)
    "FPR": ConfusionSpec.from_vector([1, 0, None, 0, None, None], name="FPR"),
    # P(score <= c | Y=1)
    "FNR": ConfusionSpec.from_vector([0, 1, None, 1, None, None], name="FNR"),
    # P(score <= c | Y=0)
    "TNR": ConfusionSpec.from_vector([0, 0, None, 0, None, None], name="TNR"),
    # P(Y=1 | score > c)
    "PPV": ConfusionSpec.from_vector([1, 1, 1, None, None, None], name="PPV"),
    # P(Y=0 | score <= c)
    "NPV": ConfusionSpec.from_vector([0, 0, 0, None, None, None], name="NPV"),
}


def get_spec(name: str) -> ConfusionSpec:
    key = name.upper()
    if key not in REGISTRY:
        raise ValueError(f"Unknown spec: {name}. Available: {list(REGISTRY.keys())}")
    return REGISTRY[key]


SpecLike = Union[ConfusionSpec, str, Sequence]


def as_spec(spec: SpecLike) -> ConfusionSpec:
    if isinstance(spec, ConfusionSpec):
        return spec
    if isinstance(spec, str):
        return get_spec(spec)
    return ConfusionSpec.from_vector(spec)
