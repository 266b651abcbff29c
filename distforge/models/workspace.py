"""
Workspace and package target models.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from packaging.utils import canonicalize_name


@dataclass(frozen=True)
class PackageTarget:
    """A buildable (or not) package inside a workspace."""

    name: str
    root: Path
    manifest_path: Path
    is_buildable: bool

    @property
    def normalized_name(self) -> str:
        return canonicalize_name(self.name)

    @property
    def label(self) -> str:
        return f"{self.normalized_name} @ {self.root}"


@dataclass(frozen=True)
class Workspace:
    """A root directory plus its members, in declaration order."""

    root: Path
    members: Tuple[PackageTarget, ...]

    def find(self, name: str) -> Optional[PackageTarget]:
        wanted = canonicalize_name(name)
        for member in self.members:
            if member.normalized_name == wanted:
                return member
        return None

    @property
    def buildable(self) -> Tuple[PackageTarget, ...]:
        return tuple(member for member in self.members if member.is_buildable)

    def relative(self, path: Path) -> str:
        """Render a path relative to the workspace root when possible."""
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)
