"""
distforge

Build orchestration for Python packages: source distributions and wheels
through any PEP 517 backend, with a native fast path.
"""

import importlib.metadata

__version__ = importlib.metadata.version("distforge")

from .errors import DistforgeError, PackageBuildError
from .models import BuildOutcome, BuildPlan, BuildSource, OutcomeStatus, PlanKind

__all__ = [
    "BuildOutcome",
    "BuildPlan",
    "BuildSource",
    "DistforgeError",
    "OutcomeStatus",
    "PackageBuildError",
    "PlanKind",
]
