"""
Manifest engine for the native backend.

Computes the exact file list of an sdist or a wheel from a project tree and
its ``[tool.distforge]`` configuration. Every entry records where it came
from: a project-relative path, or nothing for generated files.

Exclude globs without a ``/`` match any single path component
(``__pycache__`` excludes every such directory); globs with a ``/`` match the
project-relative path or one of its parent directories.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import ManifestError
from ..schemas import PyProject, load_pyproject
from ..schemas.pyproject import LicenseTable, ReadmeTable
from . import metadata

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDES = ("__pycache__", "*.pyc", "*.pyo")


@dataclass(frozen=True)
class ManifestEntry:
    """One file in an artifact."""

    archive_path: str
    source: Optional[str] = None
    content: Optional[bytes] = field(default=None, compare=False, repr=False)

    @property
    def source_description(self) -> str:
        return self.source if self.source is not None else "generated"

    def read(self, root: Path) -> bytes:
        if self.content is not None:
            return self.content
        return (root / self.source).read_bytes()


@dataclass(frozen=True)
class ArtifactManifest:
    """The entries of one artifact, sorted by archive path."""

    filename: str
    entries: Tuple[ManifestEntry, ...]

    @classmethod
    def create(cls, filename: str, entries: Iterable[ManifestEntry]) -> "ArtifactManifest":
        """Deduplicate by archive path; generated files replace authored ones."""
        unique: Dict[str, ManifestEntry] = {}
        for entry in entries:
            existing = unique.get(entry.archive_path)
            if existing is None:
                unique[entry.archive_path] = entry
            elif entry.source is None and existing.source is not None:
                logger.warning(
                    f"Ignoring {existing.source}: {entry.archive_path} is generated"
                )
                unique[entry.archive_path] = entry
        return cls(
            filename=filename,
            entries=tuple(sorted(unique.values(), key=lambda e: e.archive_path)),
        )

    def listing(self) -> List[str]:
        """Human-readable listing, as printed by ``--list``."""
        lines = [f"Building {self.filename} will include the following files:"]
        lines.extend(
            f"{entry.archive_path} ({entry.source_description})" for entry in self.entries
        )
        return lines


def matches_exclude(relative: str, pattern: str) -> bool:
    parts = relative.split("/")
    if "/" not in pattern:
        return any(fnmatch.fnmatchcase(part, pattern) for part in parts)
    pattern = pattern.strip("/")
    return any(
        fnmatch.fnmatchcase("/".join(parts[:index]), pattern)
        for index in range(1, len(parts) + 1)
    )


class ProjectTree:
    """A project directory plus its parsed ``pyproject.toml``."""

    def __init__(self, root: Path, pyproject: Optional[PyProject] = None):
        self.root = root
        self.pyproject = pyproject or load_pyproject(root / "pyproject.toml")
        if self.pyproject.project is None:
            raise ManifestError(
                f"`{root / 'pyproject.toml'}` is missing a `[project]` table"
            )
        self.project = self.pyproject.project
        self.config = self.pyproject.distforge

    @property
    def module_name(self) -> str:
        return self.config.module_name or metadata.distribution_name(self.project)

    @property
    def module_dir(self) -> str:
        module_root = self.config.module_root.strip("/")
        if module_root in ("", "."):
            return self.module_name
        return f"{module_root}/{self.module_name}"

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _excluded(self, relative: str, patterns: Iterable[str]) -> bool:
        patterns = list(patterns)
        if self.config.default_excludes:
            patterns.extend(DEFAULT_EXCLUDES)
        return any(matches_exclude(relative, pattern) for pattern in patterns)

    def _walk(self, directory: Path) -> List[str]:
        return sorted(
            self._relative(path) for path in directory.rglob("*") if path.is_file()
        )

    def _require_dir(self, relative: str, what: str) -> Path:
        path = self.root / relative
        if not path.is_dir():
            raise ManifestError(f"Expected {what} directory at `{relative}`")
        return path

    def module_files(self) -> List[str]:
        module = self._require_dir(self.module_dir, "a Python module")
        if not (module / "__init__.py").is_file():
            raise ManifestError(
                f"Expected a Python module with an `__init__.py` at: `{self.module_dir}/__init__.py`"
            )
        return self._walk(module)

    def data_files(self) -> List[Tuple[str, str, str]]:
        """(kind, data directory, file) triples for the configured data directories."""
        files = []
        for kind, directory in self.config.data.items():
            base = self._require_dir(directory.strip("/"), f"a `{kind}`")
            for relative in self._walk(base):
                files.append((kind, directory.strip("/"), relative))
        return files

    def license_files(self) -> List[str]:
        files: List[str] = []
        license = self.project.license
        if isinstance(license, LicenseTable) and license.file:
            if not (self.root / license.file).is_file():
                raise ManifestError(f"License file `{license.file}` does not exist")
            files.append(Path(license.file).as_posix())
        for pattern in self.project.license_files or []:
            matched = [path for path in sorted(self.root.glob(pattern)) if path.is_file()]
            if not matched:
                raise ManifestError(f"`project.license-files` pattern `{pattern}` matched no files")
            files.extend(self._relative(path) for path in matched)
        return list(dict.fromkeys(files))

    def readme_file(self) -> Optional[str]:
        readme = self.project.readme
        if isinstance(readme, str):
            return readme
        if isinstance(readme, ReadmeTable) and readme.file:
            return readme.file
        return None

    def source_include_files(self) -> List[str]:
        files: List[str] = []
        for pattern in self.config.source_include:
            for path in sorted(self.root.glob(pattern)):
                if path.is_dir():
                    files.extend(self._walk(path))
                elif path.is_file():
                    files.append(self._relative(path))
        return files

    def sdist_manifest(self) -> ArtifactManifest:
        """Files of the source distribution, prefixed with ``<name>-<version>/``."""
        prefix = f"{metadata.distribution_name(self.project)}-{metadata.project_version(self.project)}"
        license_files = self.license_files()

        candidates = [*self.module_files(), *license_files, *self.source_include_files()]
        candidates.extend(relative for _, _, relative in self.data_files())
        readme = self.readme_file()
        if readme:
            candidates.append(Path(readme).as_posix())

        entries = [ManifestEntry(f"{prefix}/pyproject.toml", "pyproject.toml")]
        for relative in candidates:
            if self._excluded(relative, self.config.source_exclude):
                logger.debug(f"Excluding {relative} from the source distribution")
                continue
            entries.append(ManifestEntry(f"{prefix}/{relative}", relative))

        pkg_info = metadata.core_metadata(self.project, self.root, license_files)
        entries.append(ManifestEntry(f"{prefix}/PKG-INFO", None, pkg_info.encode("utf-8")))
        return ArtifactManifest.create(metadata.sdist_filename(self.project), entries)

    def wheel_manifest(self, generator: str) -> ArtifactManifest:
        """Files of the wheel, without ``RECORD`` (written by the archive writer)."""
        excludes = [*self.config.source_exclude, *self.config.wheel_exclude]
        module_root = self.module_dir[: -len(self.module_name)]
        entries: List[ManifestEntry] = []

        for relative in self.module_files():
            if self._excluded(relative, excludes):
                logger.debug(f"Excluding {relative} from the wheel")
                continue
            entries.append(ManifestEntry(relative[len(module_root):], relative))

        data_dir = metadata.data_dir(self.project)
        for kind, directory, relative in self.data_files():
            if self._excluded(relative, excludes):
                continue
            inner = relative[len(directory) + 1:]
            entries.append(ManifestEntry(f"{data_dir}/{kind}/{inner}", relative))

        dist_info = metadata.dist_info_dir(self.project)
        license_files = self.license_files()
        for relative in license_files:
            entries.append(ManifestEntry(f"{dist_info}/licenses/{relative}", relative))

        generated = {
            "METADATA": metadata.core_metadata(self.project, self.root, license_files),
            "WHEEL": metadata.wheel_file(generator),
            "entry_points.txt": metadata.entry_points_file(self.project),
        }
        for name, text in generated.items():
            if text is not None:
                entries.append(ManifestEntry(f"{dist_info}/{name}", None, text.encode("utf-8")))
        return ArtifactManifest.create(metadata.wheel_filename(self.project), entries)
