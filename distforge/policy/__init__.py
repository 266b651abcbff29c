"""
Build request gate.
"""

from .source_gate import (
    BuildRequest,
    BuildSelection,
    BuildTarget,
    classify_source,
    evaluate,
    resolve_plan,
)

__all__ = [
    "BuildRequest",
    "BuildSelection",
    "BuildTarget",
    "classify_source",
    "evaluate",
    "resolve_plan",
]
