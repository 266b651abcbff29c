"""
Build frontend: backends, per-package pipeline and the workspace coordinator.
"""

from .coordinator import EXIT_FAILURE, EXIT_SUCCESS, WorkspaceBuildCoordinator
from .executor import BuildBackend, NativeBackend, Pep517Backend, uses_native_backend
from .hooks import StreamingRunner
from .pipeline import PackageBuilder
from .reporting import BuildReporter
from .storage import ArtifactStore
from .verifier import check_versions

__all__ = [
    "ArtifactStore",
    "BuildBackend",
    "BuildReporter",
    "EXIT_FAILURE",
    "EXIT_SUCCESS",
    "NativeBackend",
    "PackageBuilder",
    "Pep517Backend",
    "StreamingRunner",
    "WorkspaceBuildCoordinator",
    "check_versions",
    "uses_native_backend",
]
