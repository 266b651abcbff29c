"""
Build backends.

A BuildBackend drives the four PEP 517 hooks for one source tree:

- Pep517Backend: any backend, in a subprocess inside a build environment
- NativeBackend: distforge's own backend, in process

The variant is chosen once per source tree; uses_native_backend() decides
whether the in-process path applies.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Optional

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name
from pyproject_hooks import BackendUnavailable, BuildBackendHookCaller, HookMissing

from .. import __version__
from ..errors import BackendExecutionError, ListingUnsupportedError
from ..native import builder
from ..native.manifest import ArtifactManifest
from ..schemas import BuildSystemTable
from .hooks import StreamingRunner

logger = logging.getLogger(__name__)

NATIVE_BACKEND = "distforge.backend"
LISTING_UNSUPPORTED = "Can only use `--list` with the distforge backend"


class BuildBackend(ABC):
    """Abstract base class for build backends."""

    display_suffix = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name for logging and error messages."""
        pass

    @abstractmethod
    def get_requires_for_build_sdist(self) -> List[str]:
        pass

    @abstractmethod
    def build_sdist(self, out_dir: Path) -> str:
        """Build an sdist into `out_dir` and return its filename."""
        pass

    @abstractmethod
    def get_requires_for_build_wheel(self) -> List[str]:
        pass

    @abstractmethod
    def build_wheel(self, out_dir: Path) -> str:
        """Build a wheel into `out_dir` and return its filename."""
        pass

    def list_sdist(self) -> ArtifactManifest:
        raise ListingUnsupportedError(LISTING_UNSUPPORTED)

    def list_wheel(self) -> ArtifactManifest:
        raise ListingUnsupportedError(LISTING_UNSUPPORTED)


class NativeBackend(BuildBackend):
    """In-process builds for packages that declare ``distforge.backend``."""

    display_suffix = " (distforge backend)"

    def __init__(self, root: Path):
        self.root = root

    @property
    def name(self) -> str:
        return NATIVE_BACKEND

    def get_requires_for_build_sdist(self) -> List[str]:
        return []

    def build_sdist(self, out_dir: Path) -> str:
        return builder.build_sdist(self.root, out_dir)

    def get_requires_for_build_wheel(self) -> List[str]:
        return []

    def build_wheel(self, out_dir: Path) -> str:
        return builder.build_wheel(self.root, out_dir)

    def list_sdist(self) -> ArtifactManifest:
        return builder.sdist_manifest(self.root)

    def list_wheel(self) -> ArtifactManifest:
        return builder.wheel_manifest(self.root)


class Pep517Backend(BuildBackend):
    """Drive a PEP 517 backend through ``pyproject_hooks`` in a subprocess."""

    def __init__(
        self,
        root: Path,
        build_system: BuildSystemTable,
        python: str,
        runner: StreamingRunner,
        caller_factory: Callable[..., Any] = BuildBackendHookCaller,
    ):
        self.root = root
        self.build_system = build_system
        self.runner = runner
        self.caller = caller_factory(
            str(root),
            build_system.backend,
            backend_path=build_system.backend_path,
            runner=runner,
            python_executable=python,
        )

    @property
    def name(self) -> str:
        return self.build_system.backend

    def _call(self, hook: str, action: str, distribution: str, *args: Any) -> Any:
        try:
            return getattr(self.caller, hook)(*args)
        except subprocess.CalledProcessError as e:
            raise BackendExecutionError(
                f"Build backend failed to {action} with `build_{distribution}()` "
                f"(exit status: {e.returncode})",
                returncode=e.returncode,
                output=list(self.runner.output),
            ) from e
        except BackendUnavailable as e:
            raise BackendExecutionError(
                f"Build backend `{self.name}` is not available in the build environment",
                output=list(self.runner.output),
            ) from e
        except HookMissing as e:
            raise BackendExecutionError(
                f"Build backend `{self.name}` does not provide the `{hook}()` hook"
            ) from e

    def _check_written(self, filename: str, out_dir: Path, hook: str) -> str:
        if not (out_dir / filename).is_file():
            raise BackendExecutionError(
                f"Build backend returned `{filename}` from `{hook}()`, but no such file was written"
            )
        return filename

    def get_requires_for_build_sdist(self) -> List[str]:
        return list(self._call("get_requires_for_build_sdist", "determine requirements", "sdist"))

    def build_sdist(self, out_dir: Path) -> str:
        filename = self._call("build_sdist", "build sdist", "sdist", str(out_dir))
        return self._check_written(filename, out_dir, "build_sdist")

    def get_requires_for_build_wheel(self) -> List[str]:
        return list(self._call("get_requires_for_build_wheel", "determine requirements", "wheel"))

    def build_wheel(self, out_dir: Path) -> str:
        filename = self._call("build_wheel", "build wheel", "wheel", str(out_dir))
        return self._check_written(filename, out_dir, "build_wheel")


def uses_native_backend(build_system: Optional[BuildSystemTable]) -> bool:
    """Whether a `[build-system]` can be built in process.

    It must name ``distforge.backend`` and require only ``distforge``, with a
    specifier the running version satisfies.
    """
    if build_system is None or build_system.build_backend != NATIVE_BACKEND:
        return False
    if build_system.backend_path or not build_system.requires:
        return False
    for text in build_system.requires:
        try:
            requirement = Requirement(text)
        except InvalidRequirement:
            return False
        if canonicalize_name(requirement.name) != "distforge":
            return False
        if requirement.url or requirement.extras:
            return False
        if not requirement.specifier.contains(__version__, prereleases=True):
            logger.info(
                f"Running distforge {__version__} does not satisfy `{text}`, using PEP 517"
            )
            return False
    return True
