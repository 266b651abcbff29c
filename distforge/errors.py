"""
Error taxonomy for distforge.

Every failure in the build core is a DistforgeError carrying a stable code
and a human-readable message. Causes are linked with ``raise ... from ...`` so
that a report can start at the outermost intent ("Failed to build ...") and
drill down into the precise technical cause.

Rendering:
- Per-source failures render as a causal tree::

      × Failed to build `project`
      ├─▶ Failed to resolve requirements from `build-system.requires`
      ╰─▶ No solution found when resolving: `setuptools>=42`

- Failures raised before any build starts render as ``error: ...`` with
  ``Caused by: ...`` lines.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence


class DistforgeError(Exception):
    """
    Base class for all distforge failures.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    code = "DISTFORGE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization, including the cause chain."""
        return {
            "error": self.code.lower(),
            "code": self.code,
            "message": self.message,
            "causes": [str(cause) for cause in iter_causes(self)[1:]],
        }


class SourceClassificationError(DistforgeError):
    """Bad source path, unknown archive type, or invalid plan for the source."""

    code = "INVALID_SOURCE"


class PyProjectError(DistforgeError):
    """A `pyproject.toml` could not be read or failed validation."""

    code = "INVALID_PYPROJECT"


class WorkspaceDiscoveryError(DistforgeError):
    """Missing workspace, missing member, or no buildable members."""

    code = "WORKSPACE_DISCOVERY"


class BuildDependencyError(DistforgeError):
    """Resolution or installation of build requirements failed."""

    code = "BUILD_DEPENDENCY"


class UnsatisfiableRequirementsError(BuildDependencyError):
    """Requirements and constraints name incompatible clauses."""

    code = "UNSATISFIABLE_REQUIREMENTS"

    def __init__(self, clauses: Sequence[str]):
        self.clauses = list(clauses)
        super().__init__(
            f"Because you require {' and '.join(self.clauses)}, "
            "we can conclude that your requirements are unsatisfiable."
        )


class UnpinnedRequirementError(BuildDependencyError):
    """A requirement is not pinned or not hashed under `--require-hashes`."""

    code = "UNPINNED_REQUIREMENT"


class HashMismatchError(BuildDependencyError):
    """A downloaded artifact does not match any of its declared hashes."""

    code = "HASH_MISMATCH"

    def __init__(self, requirement: str, expected: Sequence[str], computed: Sequence[str]):
        self.requirement = requirement
        self.expected = list(expected)
        self.computed = list(computed)
        lines = [f"Hash mismatch for `{requirement}`", "", "Expected:"]
        lines.extend(f"  {digest}" for digest in self.expected)
        lines.extend(["", "Computed:"])
        lines.extend(f"  {digest}" for digest in self.computed)
        super().__init__("\n".join(lines))


class ResolutionError(BuildDependencyError):
    """Raised by a resolver collaborator when no solution exists."""

    code = "RESOLUTION_FAILED"


class FetchError(BuildDependencyError):
    """Raised by a fetcher collaborator when a download fails."""

    code = "FETCH_FAILED"


class BackendExecutionError(DistforgeError):
    """A build backend hook failed or misbehaved."""

    code = "BACKEND_FAILED"

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        output: Optional[List[str]] = None,
    ):
        self.returncode = returncode
        self.output = output or []
        super().__init__(message)


class ListingUnsupportedError(BackendExecutionError):
    """`--list` was requested for a package that does not use the native backend."""

    code = "LIST_UNSUPPORTED"


class ArtifactConsistencyError(DistforgeError):
    """The wheel built from an sdist disagrees with the sdist's metadata."""

    code = "ARTIFACT_INCONSISTENT"

    def __init__(
        self, sdist_version: Optional[str], wheel_version: str, message: Optional[str] = None
    ):
        self.sdist_version = sdist_version
        self.wheel_version = wheel_version
        super().__init__(
            message
            or f"The source distribution declares version {sdist_version}, "
            f"but the wheel declares version {wheel_version}"
        )


class ManifestError(DistforgeError):
    """The native backend cannot compute a manifest for the project."""

    code = "MANIFEST_INVALID"


class PackageBuildError(DistforgeError):
    """Root of every per-package failure chain."""

    code = "BUILD_FAILED"

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Failed to build `{label}`")


def iter_causes(error: BaseException) -> List[BaseException]:
    """Return the error followed by its explicit causes, outermost first."""
    chain: List[BaseException] = []
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(current)
        current = current.__cause__
    return chain


def _describe(error: BaseException) -> str:
    if isinstance(error, DistforgeError):
        return error.message
    text = str(error)
    return text or type(error).__name__


def render_chain(error: BaseException) -> str:
    """Render a per-source failure as a causal tree."""
    chain = iter_causes(error)
    lines: List[str] = []
    for index, cause in enumerate(chain):
        if index == 0:
            marker, indent = "  × ", "    "
        elif index == len(chain) - 1:
            marker, indent = "  ╰─▶ ", "      "
        else:
            marker, indent = "  ├─▶ ", "  │   "
        first, *rest = _describe(cause).splitlines() or [""]
        lines.append(f"{marker}{first}")
        lines.extend(f"{indent}{line}".rstrip() for line in rest)
    return "\n".join(lines)


def render_top_level(error: BaseException) -> str:
    """Render a failure raised before any build started."""
    chain = iter_causes(error)
    lines = [f"error: {_describe(chain[0])}"]
    for cause in chain[1:]:
        lines.append(f"  Caused by: {_describe(cause)}")
    return "\n".join(lines)


def error_summary(errors: Sequence[DistforgeError]) -> Dict[str, int]:
    """Count errors by code."""
    summary: Dict[str, int] = {}
    for error in errors:
        summary[error.code] = summary.get(error.code, 0) + 1
    return summary
