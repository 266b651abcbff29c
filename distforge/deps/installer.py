"""
Build-dependency installer.

Resolves and installs the build requirements of one source tree into an
isolated environment, enforcing build constraints and, in
``--require-hashes`` mode, pins and hashes.

Flow:
1. Parse: every requirement string must be a valid PEP 508 requirement;
   requirements with a configured source become direct references
2. Check: constraints that contradict a requirement fail locally
3. Require hashes: pins and hashes are checked before any download
4. Resolve: delegated to the Resolver collaborator
5. Fetch: one artifact per pin, verified against declared hashes
6. Install: into a fresh environment from the EnvironmentManager

Resolution-phase failures are chained under "Failed to resolve requirements
from <source>", fetch and install failures under "Failed to install
requirements from <source>".
"""

from __future__ import annotations

import hashlib
import logging
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from ..errors import (
    BuildDependencyError,
    FetchError,
    HashMismatchError,
    ResolutionError,
    UnpinnedRequirementError,
    UnsatisfiableRequirementsError,
)
from ..schemas import BuildConstraints
from .environment import BuildEnvironment, EnvironmentManager
from .resolver import Fetcher, ResolvedRequirement, Resolver
from .sources import DirectReferences

logger = logging.getLogger(__name__)

BUILD_SYSTEM_REQUIRES = "`build-system.requires`"


def parse_requirements(
    requires: Sequence[str], references: Optional[DirectReferences] = None
) -> List[Requirement]:
    """Parse requirement strings, dropping those whose marker does not apply.

    Requirements with a configured source become direct references.
    """
    requirements = []
    for text in requires:
        try:
            requirement = Requirement(text)
        except InvalidRequirement as e:
            raise BuildDependencyError(f"Invalid build requirement `{text}`") from e
        if requirement.marker is not None and not requirement.marker.evaluate():
            logger.debug(f"Skipping build requirement {text}: marker does not apply")
            continue
        if references is not None:
            requirement = references.apply(requirement)
        requirements.append(requirement)
    return requirements


def _pinned_version(requirement: Requirement) -> Optional[str]:
    specs = list(requirement.specifier)
    if len(specs) == 1 and specs[0].operator in ("==", "===") and "*" not in specs[0].version:
        return specs[0].version
    return None


def file_digest(path: Path, algorithm: str) -> str:
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(chunk)
    return f"{algorithm}:{digest.hexdigest()}"


class BuildRequirementsInstaller:
    """Resolve, verify and install build requirements."""

    def __init__(
        self,
        resolver: Resolver,
        fetcher: Fetcher,
        environments: EnvironmentManager,
        constraints: Optional[BuildConstraints] = None,
        require_hashes: bool = False,
    ):
        self.resolver = resolver
        self.fetcher = fetcher
        self.environments = environments
        self.constraints = constraints or BuildConstraints()
        self.require_hashes = require_hashes

    def install(
        self,
        requires: Sequence[str],
        source: str = BUILD_SYSTEM_REQUIRES,
        references: Optional[DirectReferences] = None,
    ) -> BuildEnvironment:
        """Create a new environment holding `requires`.

        Raises:
            BuildDependencyError: Chained to the failing phase.
        """
        with tempfile.TemporaryDirectory(prefix="distforge-artifacts-") as tmp:
            artifacts = self._prepare(requires, source, Path(tmp), references)
            try:
                env = self.environments.create()
            except BuildDependencyError as e:
                raise BuildDependencyError(
                    f"Failed to install requirements from {source}"
                ) from e
            try:
                self._install(env, artifacts, source)
            except BaseException:
                env.close()
                raise
        return env

    def install_into(
        self,
        env: BuildEnvironment,
        requires: Sequence[str],
        source: str,
        references: Optional[DirectReferences] = None,
    ) -> None:
        """Install additional requirements into an existing environment."""
        with tempfile.TemporaryDirectory(prefix="distforge-artifacts-") as tmp:
            artifacts = self._prepare(requires, source, Path(tmp), references)
            self._install(env, artifacts, source)

    def _prepare(
        self,
        requires: Sequence[str],
        source: str,
        dest: Path,
        references: Optional[DirectReferences],
    ) -> List[Path]:
        try:
            requirements = parse_requirements(requires, references)
            resolved = self._resolve(requirements) if requirements else []
        except BuildDependencyError as e:
            raise BuildDependencyError(
                f"Failed to resolve requirements from {source}"
            ) from e

        try:
            return [self._fetch(pin, dest) for pin in resolved]
        except BuildDependencyError as e:
            raise BuildDependencyError(
                f"Failed to install requirements from {source}"
            ) from e

    def _install(self, env: BuildEnvironment, artifacts: List[Path], source: str) -> None:
        try:
            env.install(artifacts)
        except BuildDependencyError as e:
            raise BuildDependencyError(
                f"Failed to install requirements from {source}"
            ) from e

    def _resolve(self, requirements: List[Requirement]) -> List[ResolvedRequirement]:
        try:
            self._check_conflicts(requirements)
            if self.require_hashes:
                self._check_pinned(requirements)
            resolved = self.resolver.resolve(requirements, self.constraints)
            if self.require_hashes:
                self._check_hashed(resolved)
        except (ResolutionError, UnsatisfiableRequirementsError, UnpinnedRequirementError) as e:
            listed = ", ".join(str(requirement) for requirement in requirements)
            raise ResolutionError(f"No solution found when resolving: `{listed}`") from e
        logger.info(f"Resolved {len(resolved)} build requirement(s)")
        return resolved

    def _check_conflicts(self, requirements: List[Requirement]) -> None:
        for requirement in requirements:
            constraint = self.constraints.get(requirement.name)
            if constraint is None:
                continue
            pinned = constraint.pinned_version
            if pinned is not None and not requirement.specifier.contains(
                pinned, prereleases=True
            ):
                raise UnsatisfiableRequirementsError([str(requirement), str(constraint)])
            own = _pinned_version(requirement)
            if own is not None and constraint.specifier and not constraint.specifier_set.contains(
                own, prereleases=True
            ):
                raise UnsatisfiableRequirementsError([str(requirement), str(constraint)])

    def _check_pinned(self, requirements: List[Requirement]) -> None:
        pins = []
        unpinned = []
        for requirement in requirements:
            constraint = self.constraints.get(requirement.name)
            pinned = _pinned_version(requirement) or (
                constraint.pinned_version if constraint else None
            )
            if pinned is None:
                unpinned.append(requirement.name)
            else:
                pins.append(f"{requirement.name}=={pinned}")
        if unpinned:
            raise UnpinnedRequirementError(
                "In `--require-hashes` mode, all requirements must be pinned upfront "
                f"with `==`, but found: `{', '.join(unpinned)}`"
            )
        for pin in pins:
            if not self.constraints.hashes_for(pin.partition("==")[0]):
                raise UnpinnedRequirementError(
                    "In `--require-hashes` mode, all requirements must have a hash, "
                    f"but none were provided for: `{pin}`"
                )

    def _check_hashed(self, resolved: List[ResolvedRequirement]) -> None:
        for pin in resolved:
            if not self.constraints.hashes_for(pin.name):
                raise UnpinnedRequirementError(
                    "In `--require-hashes` mode, all requirements must have a hash, "
                    f"but none were provided for: `{pin}`"
                )

    def _fetch(self, pin: ResolvedRequirement, dest: Path) -> Path:
        try:
            path = self.fetcher.fetch(pin, dest)
            self._verify(pin, path)
        except (FetchError, HashMismatchError) as e:
            raise FetchError(f"Failed to download `{pin}`") from e
        return path

    def _verify(self, pin: ResolvedRequirement, path: Path) -> None:
        expected = self.constraints.hashes_for(pin.name)
        if not expected:
            return
        algorithms = list(dict.fromkeys(digest.partition(":")[0] for digest in expected))
        computed = [file_digest(path, algorithm) for algorithm in algorithms]
        if not set(computed) & set(expected):
            raise HashMismatchError(str(pin), expected, computed)
        logger.debug(f"Verified hash of {path.name} for {canonicalize_name(pin.name)}")
