"""
Build source and build plan models.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Optional


class ArchiveKind(str, Enum):
    """Source distribution archive formats accepted as build sources."""

    TAR_GZ = "tar.gz"
    ZIP = "zip"
    TAR_BZ2 = "tar.bz2"
    TAR_LZ = "tar.lz"
    TAR_LZMA = "tar.lzma"
    TAR_XZ = "tar.xz"
    TAR_ZST = "tar.zst"
    TAR = "tar"
    TBZ = "tbz"
    TGZ = "tgz"
    TLZ = "tlz"
    TXZ = "txz"

    @property
    def suffix(self) -> str:
        return f".{self.value}"

    @classmethod
    def from_path(cls, path: Path) -> Optional["ArchiveKind"]:
        """Match a path against the known suffixes, longest suffix first."""
        name = path.name.lower()
        for kind in sorted(cls, key=lambda k: len(k.value), reverse=True):
            if name.endswith(kind.suffix) and len(name) > len(kind.suffix):
                return kind
        return None


def accepted_suffixes() -> str:
    """The accepted archive suffixes, as an English enumeration."""
    quoted = [f"`{kind.suffix}`" for kind in ArchiveKind]
    return ", ".join(quoted[:-1]) + f", or {quoted[-1]}"


class SourceKind(str, Enum):
    """What a build source path points at."""

    DIRECTORY = "directory"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class BuildSource:
    """A project directory or a source distribution archive."""

    kind: SourceKind
    path: Path
    archive_kind: Optional[ArchiveKind] = None

    @classmethod
    def directory(cls, path: Path) -> "BuildSource":
        return cls(kind=SourceKind.DIRECTORY, path=path)

    @classmethod
    def archive(cls, path: Path, archive_kind: ArchiveKind) -> "BuildSource":
        return cls(kind=SourceKind.ARCHIVE, path=path, archive_kind=archive_kind)

    @property
    def is_archive(self) -> bool:
        return self.kind is SourceKind.ARCHIVE


class DistributionType(str, Enum):
    """Artifact types a build can produce."""

    SDIST = "sdist"
    WHEEL = "wheel"


class PlanKind(str, Enum):
    """The concrete sequence of builds for a validated source and plan."""

    SDIST_AND_WHEEL_FROM_SDIST = "sdist_and_wheel_from_sdist"
    SDIST = "sdist"
    WHEEL = "wheel"
    SDIST_AND_WHEEL = "sdist_and_wheel"
    WHEEL_FROM_SDIST = "wheel_from_sdist"

    @property
    def builds_sdist(self) -> bool:
        return self in (
            PlanKind.SDIST_AND_WHEEL_FROM_SDIST,
            PlanKind.SDIST,
            PlanKind.SDIST_AND_WHEEL,
        )

    @property
    def builds_wheel(self) -> bool:
        return self is not PlanKind.SDIST


@dataclass(frozen=True)
class BuildPlan:
    """The outputs a caller asked for.

    An empty request means "both", but only for directory sources.
    """

    requested: FrozenSet[DistributionType] = frozenset()

    @classmethod
    def from_flags(cls, sdist: bool = False, wheel: bool = False) -> "BuildPlan":
        requested = set()
        if sdist:
            requested.add(DistributionType.SDIST)
        if wheel:
            requested.add(DistributionType.WHEEL)
        return cls(requested=frozenset(requested))

    @property
    def explicit(self) -> bool:
        return bool(self.requested)

    @property
    def sdist(self) -> bool:
        return DistributionType.SDIST in self.requested

    @property
    def wheel(self) -> bool:
        return DistributionType.WHEEL in self.requested

    def outputs(self) -> FrozenSet[DistributionType]:
        """Requested outputs with the default applied."""
        return self.requested or frozenset(DistributionType)
