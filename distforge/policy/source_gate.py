"""
Source gate for build requests.

This module implements a pure, testable gate that classifies a build source
and validates the requested plan against it. It either returns a BuildSelection
(the ordered list of targets to build) or raises a stable, chained error. It
never writes to disk.

Rules, in order:
- The source must be an existing directory or end in a known archive suffix
- A directory must contain `pyproject.toml` or `setup.py`
- An sdist cannot be built from a source distribution
- A wheel is only built from a source distribution when `--wheel` is explicit
- `--package` / `--all` need a discoverable workspace
- `--package NAME` must name a workspace member with a `[build-system]`
- `--all` needs at least one buildable member

Per-source failures (the first four rules) are wrapped in a PackageBuildError
so they are reported as a failed build of that source. Workspace failures are
raised as WorkspaceDiscoveryError and abort before any build starts.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from ..config import Settings, get_settings
from ..errors import PackageBuildError, SourceClassificationError, WorkspaceDiscoveryError
from ..models import (
    ArchiveKind,
    BuildPlan,
    BuildSource,
    PackageTarget,
    PlanKind,
    Workspace,
    accepted_suffixes,
)
from ..workspace import (
    discover_workspace,
    missing_build_system_message,
    no_buildable_members_message,
)

PROJECT_FILES = ("pyproject.toml", "setup.py")


@dataclass(frozen=True)
class BuildRequest:
    """What the caller asked for, before validation."""

    src: Optional[Path] = None
    plan: BuildPlan = field(default_factory=BuildPlan)
    package: Optional[str] = None
    all_packages: bool = False
    out_dir: Optional[Path] = None
    cwd: Path = field(default_factory=Path.cwd)

    @property
    def workspace_flag(self) -> Optional[str]:
        if self.package is not None:
            return "--package"
        if self.all_packages:
            return "--all-packages"
        return None


@dataclass(frozen=True)
class BuildTarget:
    """One validated source to build."""

    label: str
    source: BuildSource
    plan_kind: PlanKind
    out_dir: Path
    package: Optional[PackageTarget] = None

    @property
    def name(self) -> str:
        if self.package is not None:
            return self.package.normalized_name
        return self.source.path.name


@dataclass(frozen=True)
class BuildSelection:
    """Targets in build order, plus members skipped as non-buildable."""

    targets: Tuple[BuildTarget, ...]
    workspace: Optional[Workspace] = None
    skipped: Tuple[PackageTarget, ...] = ()

    @property
    def prefixed(self) -> bool:
        """Whether progress output needs a per-package prefix."""
        return len(self.targets) > 1


def _absolute(path: Path, cwd: Path) -> Path:
    path = path.expanduser()
    if not path.is_absolute():
        path = cwd / path
    return Path(os.path.normpath(path))


def classify_source(path: Path, display: Optional[str] = None) -> BuildSource:
    """Classify a path as a project directory or a source distribution.

    Raises:
        SourceClassificationError: If the path is neither.
    """
    display = display or str(path)
    if path.is_dir():
        if not any((path / name).is_file() for name in PROJECT_FILES):
            raise SourceClassificationError(
                f"`{display}` does not appear to be a Python project, as neither "
                "`pyproject.toml` nor `setup.py` are present in the directory"
            )
        return BuildSource.directory(path)

    archive_kind = ArchiveKind.from_path(path)
    if archive_kind is None:
        raise SourceClassificationError(
            f"`{display}` is not a valid build source. Expected to receive a source "
            "directory, or a source distribution ending in one of: "
            f"{accepted_suffixes()}."
        )
    return BuildSource.archive(path, archive_kind)


def resolve_plan(source: BuildSource, plan: BuildPlan) -> PlanKind:
    """Turn a requested plan into the concrete build sequence for a source.

    Raises:
        SourceClassificationError: If the plan is invalid for the source.
    """
    if source.is_archive:
        if plan.sdist:
            raise SourceClassificationError(
                "Building an `--sdist` from a source distribution is not supported"
            )
        if not plan.wheel:
            raise SourceClassificationError(
                "Pass `--wheel` explicitly to build a wheel from a source distribution"
            )
        return PlanKind.WHEEL_FROM_SDIST

    if plan.sdist and plan.wheel:
        return PlanKind.SDIST_AND_WHEEL
    if plan.sdist:
        return PlanKind.SDIST
    if plan.wheel:
        return PlanKind.WHEEL
    return PlanKind.SDIST_AND_WHEEL_FROM_SDIST


def _check_archive_exists(source: BuildSource, display: str) -> None:
    if source.is_archive and not source.path.is_file():
        raise SourceClassificationError(f"Source distribution `{display}` does not exist")


def _default_out_dir(source: BuildSource, settings: Settings) -> Path:
    if source.is_archive:
        return source.path.parent
    return source.path / settings.default_out_dir


def _evaluate_single(request: BuildRequest, settings: Settings) -> BuildSelection:
    raw = request.src if request.src is not None else Path(".")
    path = _absolute(raw, request.cwd)
    try:
        source = classify_source(path, display=str(raw))
        plan_kind = resolve_plan(source, request.plan)
        _check_archive_exists(source, str(raw))
    except SourceClassificationError as e:
        raise PackageBuildError(str(path)) from e

    out_dir = (
        _absolute(request.out_dir, request.cwd)
        if request.out_dir is not None
        else _default_out_dir(source, settings)
    )
    target = BuildTarget(label=str(path), source=source, plan_kind=plan_kind, out_dir=out_dir)
    return BuildSelection(targets=(target,))


def _evaluate_workspace(request: BuildRequest, settings: Settings) -> BuildSelection:
    flag = request.workspace_flag
    start = _absolute(request.src, request.cwd) if request.src is not None else request.cwd

    if not start.is_dir() and ArchiveKind.from_path(start) is not None:
        raise SourceClassificationError(
            f"`{flag}` cannot be used with a source distribution"
        )

    try:
        workspace = discover_workspace(start)
    except WorkspaceDiscoveryError as e:
        raise WorkspaceDiscoveryError(
            f"`{flag}` was provided, but no workspace was found"
        ) from e

    skipped: Tuple[PackageTarget, ...] = ()
    if request.package is not None:
        member = workspace.find(request.package)
        if member is None:
            raise WorkspaceDiscoveryError(
                f"Package `{request.package}` not found in workspace"
            )
        if not member.is_buildable:
            raise WorkspaceDiscoveryError(missing_build_system_message(member, workspace))
        selected: Tuple[PackageTarget, ...] = (member,)
    else:
        selected = workspace.buildable
        if not selected:
            raise WorkspaceDiscoveryError(no_buildable_members_message(workspace))
        skipped = tuple(m for m in workspace.members if not m.is_buildable)

    out_dir = (
        _absolute(request.out_dir, request.cwd)
        if request.out_dir is not None
        else workspace.root / settings.default_out_dir
    )
    targets = []
    for member in selected:
        source = BuildSource.directory(member.root)
        targets.append(
            BuildTarget(
                label=member.label,
                source=source,
                plan_kind=resolve_plan(source, request.plan),
                out_dir=out_dir,
                package=member,
            )
        )
    return BuildSelection(targets=tuple(targets), workspace=workspace, skipped=skipped)


def evaluate(request: BuildRequest, settings: Optional[Settings] = None) -> BuildSelection:
    """
    Validate a build request and select the targets to build.

    This is a pure function: it only reads the filesystem.

    Args:
        request: The incoming request
        settings: Optional settings. Defaults to the environment-backed settings.

    Returns:
        A BuildSelection with targets in build order

    Raises:
        PackageBuildError: If a single source is invalid (chained to the cause)
        SourceClassificationError: If workspace flags are combined incorrectly
        WorkspaceDiscoveryError: If workspace selection fails
    """
    if settings is None:
        settings = get_settings()

    if request.package is not None and request.all_packages:
        raise SourceClassificationError(
            "`--package` and `--all-packages` cannot be used together"
        )

    if request.workspace_flag is None:
        return _evaluate_single(request, settings)
    return _evaluate_workspace(request, settings)
