"""
Workspace discovery.

A workspace is a root `pyproject.toml` declaring `[tool.distforge.workspace]`
members plus the packages those globs match. A project that is not part of
any workspace is a workspace of one.

Member order is declaration order: the root project first (when it has a
`[project]` table), then the matches of each `members` glob, in glob order,
each glob's matches sorted.
"""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path
from typing import List, Optional

from ..errors import WorkspaceDiscoveryError
from ..models import PackageTarget, Workspace
from ..schemas import PyProject, WorkspaceConfig, load_pyproject

logger = logging.getLogger(__name__)

PYPROJECT = "pyproject.toml"

BUILD_SYSTEM_EXAMPLE = (
    "```toml\n"
    "[build-system]\n"
    'requires = ["setuptools"]\n'
    'build-backend = "setuptools.build_meta"\n'
    "```"
)


def find_project_root(start: Path) -> Path:
    """Find the closest directory at or above `start` holding a `pyproject.toml`.

    Raises:
        WorkspaceDiscoveryError: If no directory up to the filesystem root has one.
    """
    start = start if start.is_dir() else start.parent
    for directory in (start, *start.parents):
        if (directory / PYPROJECT).is_file():
            return directory
    raise WorkspaceDiscoveryError(
        "No `pyproject.toml` found in current directory or any parent directory"
    )


def _is_excluded(relative: str, patterns: List[str]) -> bool:
    return any(fnmatch.fnmatchcase(relative, pattern.rstrip("/")) for pattern in patterns)


def member_directories(root: Path, config: WorkspaceConfig) -> List[Path]:
    """Expand the `members` globs of a workspace, honoring `exclude`."""
    found: List[Path] = []
    for pattern in config.members:
        for match in sorted(root.glob(pattern)):
            if not match.is_dir():
                continue
            relative = match.relative_to(root).as_posix()
            if _is_excluded(relative, config.exclude):
                logger.debug(f"Excluding workspace member {relative}")
                continue
            resolved = match.resolve()
            if resolved != root and resolved not in found:
                found.append(resolved)
    return found


def _find_workspace_root(project_root: Path) -> Optional[Path]:
    for directory in (project_root, *project_root.parents):
        manifest = directory / PYPROJECT
        if not manifest.is_file():
            continue
        config = load_pyproject(manifest).distforge.workspace
        if config is None:
            continue
        if directory == project_root or project_root in member_directories(directory, config):
            return directory
    return None


def _target(directory: Path, pyproject: PyProject, root: Path) -> PackageTarget:
    if pyproject.project is None:
        relative = directory.relative_to(root).as_posix() if directory != root else "."
        raise WorkspaceDiscoveryError(
            f"Workspace member `{relative}` is missing a `[project]` table"
        )
    return PackageTarget(
        name=pyproject.project.name,
        root=directory,
        manifest_path=directory / PYPROJECT,
        is_buildable=pyproject.build_system is not None,
    )


def load_workspace(root: Path) -> Workspace:
    """Load the workspace rooted at `root`."""
    root = root.resolve()
    root_pyproject = load_pyproject(root / PYPROJECT)
    members: List[PackageTarget] = []

    if root_pyproject.project is not None:
        members.append(_target(root, root_pyproject, root))

    config = root_pyproject.distforge.workspace
    if config is not None:
        for directory in member_directories(root, config):
            manifest = directory / PYPROJECT
            if not manifest.is_file():
                raise WorkspaceDiscoveryError(
                    f"Workspace member `{directory.relative_to(root).as_posix()}` "
                    "is missing a `pyproject.toml`"
                )
            members.append(_target(directory, load_pyproject(manifest), root))

    logger.info(f"Discovered workspace at {root} with {len(members)} member(s)")
    return Workspace(root=root, members=tuple(members))


def discover_workspace(start: Path) -> Workspace:
    """Discover the workspace containing `start`.

    Raises:
        WorkspaceDiscoveryError: If there is no project at or above `start`.
    """
    project_root = find_project_root(start.resolve())
    root = _find_workspace_root(project_root) or project_root
    return load_workspace(root)


def missing_build_system_message(member: PackageTarget, workspace: Workspace) -> str:
    manifest = workspace.relative(member.manifest_path)
    return (
        f"Package `{member.normalized_name}` is missing a `build-system`. "
        f"For example, to build with `setuptools`, add the following to `{manifest}`:\n"
        f"{BUILD_SYSTEM_EXAMPLE}"
    )


def no_buildable_members_message(workspace: Workspace) -> str:
    if not workspace.members:
        return "Workspace does not contain any buildable packages"
    member = workspace.members[0]
    manifest = workspace.relative(member.manifest_path)
    return (
        "Workspace does not contain any buildable packages. "
        f"For example, to build `{member.normalized_name}` with `setuptools`, "
        f"add a `build-system` to `{manifest}`:\n"
        f"{BUILD_SYSTEM_EXAMPLE}"
    )
