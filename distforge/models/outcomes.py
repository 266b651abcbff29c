"""
Per-package build outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from ..errors import DistforgeError


class OutcomeStatus(Enum):
    """Final status of a package build."""

    BUILT = "built"
    FAILED = "failed"


@dataclass(frozen=True)
class BuildOutcome:
    """Result of one package build. Never mutated after creation."""

    label: str
    status: OutcomeStatus
    artifacts: Tuple[Path, ...] = ()
    error: Optional[DistforgeError] = None
    started_at: Optional[datetime] = None
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def built(
        cls, label: str, artifacts, started_at: Optional[datetime] = None
    ) -> "BuildOutcome":
        return cls(
            label=label,
            status=OutcomeStatus.BUILT,
            artifacts=tuple(artifacts),
            started_at=started_at,
        )

    @classmethod
    def failed(
        cls, label: str, error: DistforgeError, started_at: Optional[datetime] = None
    ) -> "BuildOutcome":
        return cls(
            label=label,
            status=OutcomeStatus.FAILED,
            error=error,
            started_at=started_at,
        )

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.BUILT

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()
