"""
Build requirement sources.

``[tool.distforge.sources]`` maps a package name to a local path or a URL:

    [tool.distforge.sources]
    backend = { path = "../backend" }
    helper = { url = "https://example.com/helper-1.0.tar.gz" }

Requirements naming such a package are rewritten into PEP 508 direct
references (``backend @ file:///.../backend``) before resolution. Paths are
relative to the directory of the declaring ``pyproject.toml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from packaging.requirements import Requirement
from packaging.utils import canonicalize_name

from ..errors import BuildDependencyError
from ..schemas import PyProject, SourceEntry


@dataclass(frozen=True)
class DirectReferences:
    """The sources of one project, keyed by normalized package name."""

    entries: Dict[str, SourceEntry] = field(default_factory=dict)
    base: Path = Path(".")

    @classmethod
    def from_pyproject(cls, pyproject: Optional[PyProject], base: Path) -> "DirectReferences":
        if pyproject is None:
            return cls(base=base)
        entries = {
            canonicalize_name(name): entry
            for name, entry in pyproject.distforge.sources.items()
        }
        return cls(entries=entries, base=base)

    def url_for(self, name: str) -> Optional[str]:
        """The direct reference URL for `name`, if it has a source.

        Raises:
            BuildDependencyError: If a path source does not exist.
        """
        entry = self.entries.get(canonicalize_name(name))
        if entry is None:
            return None
        if entry.url is not None:
            return entry.url
        path = (self.base / entry.path).resolve()
        if not path.exists():
            raise BuildDependencyError(
                f"Source path `{entry.path}` for `{name}` does not exist: `{path}`"
            )
        return path.as_uri()

    def apply(self, requirement: Requirement) -> Requirement:
        """Rewrite `requirement` into a direct reference when it has a source."""
        if requirement.url is not None:
            return requirement
        url = self.url_for(requirement.name)
        if url is None:
            return requirement
        extras = f"[{','.join(sorted(requirement.extras))}]" if requirement.extras else ""
        marker = f" ; {requirement.marker}" if requirement.marker is not None else ""
        return Requirement(f"{requirement.name}{extras} @ {url}{marker}")
