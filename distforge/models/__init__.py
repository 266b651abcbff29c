"""
Data models for distforge.
"""

from .outcomes import BuildOutcome, OutcomeStatus
from .sources import (
    ArchiveKind,
    BuildPlan,
    BuildSource,
    DistributionType,
    PlanKind,
    SourceKind,
    accepted_suffixes,
)
from .workspace import PackageTarget, Workspace

__all__ = [
    "ArchiveKind",
    "BuildOutcome",
    "BuildPlan",
    "BuildSource",
    "DistributionType",
    "OutcomeStatus",
    "PackageTarget",
    "PlanKind",
    "SourceKind",
    "Workspace",
    "accepted_suffixes",
]
