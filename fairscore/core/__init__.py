"""Core data model, errors and run utilities.

The analysis orchestrator lives in ``fairscore.core.analysis`` and is not
imported here, since it depends on ``fairscore.fairness``.
"""

from fairscore.core.cohort import Cohort, GroupIndex, as_group_index, make_cutoffs, validate_cutoffs
from fairscore.core.exceptions import (
    DegenerateLabelError,
    DimensionMismatchError,
    EmptyDonorPoolError,
    EmptyGroupError,
    FairScoreError,
    InvalidSpecError,
)

__all__ = [
    "Cohort",
    "GroupIndex",
    "as_group_index",
    "make_cutoffs",
    "validate_cutoffs",
    "FairScoreError",
    "DimensionMismatchError",
    "InvalidSpecError",
    "EmptyGroupError",
    "EmptyDonorPoolError",
    "DegenerateLabelError",
]
