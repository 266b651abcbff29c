"""
Per-package build pipeline.

Runs the build sequence of one validated BuildTarget:

    SDIST_AND_WHEEL_FROM_SDIST  sdist, then wheel from the extracted sdist
    SDIST                       sdist
    WHEEL                       wheel straight from the directory
    SDIST_AND_WHEEL             sdist and wheel straight from the directory
    WHEEL_FROM_SDIST            wheel from the extracted archive

Every source tree gets its own backend and, for PEP 517 backends, its own
build environment, torn down when the tree is done. Artifacts are staged and
published only once every step of the package succeeded.
"""

from __future__ import annotations

import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Tuple

import structlog
from pyproject_hooks import BuildBackendHookCaller

from ..deps import BuildEnvironment, BuildRequirementsInstaller, DirectReferences
from ..errors import ListingUnsupportedError
from ..models import ArchiveKind, PlanKind
from ..native import extract_sdist
from ..policy import BuildTarget
from ..schemas import BuildSystemTable, PyProject, load_pyproject
from .executor import (
    LISTING_UNSUPPORTED,
    BuildBackend,
    NativeBackend,
    Pep517Backend,
    uses_native_backend,
)
from .hooks import StreamingRunner
from .reporting import BuildReporter
from .storage import ArtifactStore
from .verifier import check_versions

logger = structlog.get_logger()

SDIST_REQUIRES_SOURCE = "`get_requires_for_build_sdist()`"
WHEEL_REQUIRES_SOURCE = "`get_requires_for_build_wheel()`"


class PackageBuilder:
    """Builds (or lists) the artifacts of one target."""

    def __init__(
        self,
        installer: BuildRequirementsInstaller,
        reporter: BuildReporter,
        force_pep517: bool = False,
        list_files: bool = False,
        caller_factory: Callable[..., Any] = BuildBackendHookCaller,
    ):
        self.installer = installer
        self.reporter = reporter
        self.force_pep517 = force_pep517
        self.list_files = list_files
        self.caller_factory = caller_factory

    def _pyproject(self, root: Path) -> Optional[PyProject]:
        manifest = root / "pyproject.toml"
        return load_pyproject(manifest) if manifest.is_file() else None

    def _build_system(self, root: Path) -> Tuple[Optional[BuildSystemTable], bool]:
        pyproject = self._pyproject(root)
        build_system = pyproject.build_system if pyproject is not None else None
        native = not self.force_pep517 and uses_native_backend(build_system)
        return build_system, native

    @contextmanager
    def _backend(
        self,
        root: Path,
        git_ceiling: Optional[Path] = None,
        sources_base: Optional[Path] = None,
    ) -> Iterator[Tuple[BuildBackend, Optional[BuildEnvironment], DirectReferences]]:
        """Set up the backend for one tree.

        Path sources resolve against `sources_base`, defaulting to `root`.
        """
        build_system, native = self._build_system(root)
        if native:
            yield NativeBackend(root), None, DirectReferences(base=root)
            return

        references = DirectReferences.from_pyproject(self._pyproject(root), sources_base or root)

        if build_system is None:
            logger.info("no_build_system", root=str(root), fallback=BuildSystemTable.legacy().backend)
            build_system = BuildSystemTable.legacy()

        env = self.installer.install(build_system.requires, references=references)
        try:
            runner = StreamingRunner(
                on_line=self.reporter.build_log,
                env=env.environ(),
                git_ceiling=git_ceiling,
            )
            yield (
                Pep517Backend(root, build_system, env.python, runner, self.caller_factory),
                env,
                references,
            )
        finally:
            env.close()

    def _suffix(self, root: Path) -> str:
        return NativeBackend.display_suffix if self._build_system(root)[1] else ""

    def _build_sdist(
        self,
        backend: BuildBackend,
        env: Optional[BuildEnvironment],
        references: DirectReferences,
        store: ArtifactStore,
    ) -> str:
        requires = backend.get_requires_for_build_sdist()
        if requires and env is not None:
            self.installer.install_into(env, requires, SDIST_REQUIRES_SOURCE, references)
        return store.add(backend.build_sdist(store.staging)).name

    def _build_wheel(
        self,
        backend: BuildBackend,
        env: Optional[BuildEnvironment],
        references: DirectReferences,
        store: ArtifactStore,
    ) -> str:
        requires = backend.get_requires_for_build_wheel()
        if requires and env is not None:
            self.installer.install_into(env, requires, WHEEL_REQUIRES_SOURCE, references)
        return store.add(backend.build_wheel(store.staging)).name

    def _from_directory(
        self, root: Path, store: ArtifactStore, sdist: bool, wheel: bool
    ) -> Optional[str]:
        """Build from a project directory; returns the sdist filename, if any."""
        suffix = self._suffix(root)
        built_sdist = None
        if sdist:
            self.reporter.progress(f"Building source distribution{suffix}...")
        with self._backend(root) as (backend, env, references):
            if sdist:
                built_sdist = self._build_sdist(backend, env, references, store)
            if wheel:
                self.reporter.progress(f"Building wheel{suffix}...")
                self._build_wheel(backend, env, references, store)
        return built_sdist

    def _wheel_from_sdist(
        self, sdist: Path, store: ArtifactStore, project_root: Optional[Path] = None
    ) -> str:
        """Build a wheel from an sdist.

        When the sdist was just built from `project_root`, path sources keep
        resolving against that directory rather than the extracted tree.
        """
        kind = ArchiveKind.from_path(sdist) or ArchiveKind.TAR_GZ
        with tempfile.TemporaryDirectory(prefix="distforge-sdist-") as tmp:
            tree = extract_sdist(sdist, kind, Path(tmp))
            self.reporter.progress(
                f"Building wheel from source distribution{self._suffix(tree)}..."
            )
            with self._backend(
                tree, git_ceiling=Path(tmp), sources_base=project_root
            ) as (backend, env, references):
                wheel = self._build_wheel(backend, env, references, store)
        check_versions(sdist, store.path(wheel))
        return wheel

    def _list(self, target: BuildTarget) -> None:
        source = target.source
        if source.is_archive:
            kind = source.archive_kind or ArchiveKind.TAR_GZ
            with tempfile.TemporaryDirectory(prefix="distforge-sdist-") as tmp:
                tree = extract_sdist(source.path, kind, Path(tmp))
                self._listing(tree, sdist=False, wheel=True)
            return
        self._listing(
            source.path,
            sdist=target.plan_kind.builds_sdist,
            wheel=target.plan_kind.builds_wheel,
        )

    def _listing(self, root: Path, sdist: bool, wheel: bool) -> None:
        if not self._build_system(root)[1]:
            raise ListingUnsupportedError(LISTING_UNSUPPORTED)
        backend = NativeBackend(root)
        manifests = []
        if sdist:
            manifests.append(backend.list_sdist())
        if wheel:
            manifests.append(backend.list_wheel())
        for manifest in manifests:
            self.reporter.listing(manifest.listing())

    def build(self, target: BuildTarget) -> List[Path]:
        """Build `target` and return the published artifacts (none in list mode)."""
        log = logger.bind(package=target.name, source=str(target.source.path))
        log.info("package_build_started", plan=target.plan_kind.value)

        if self.list_files:
            self._list(target)
            log.info("package_listed")
            return []

        root = target.source.path
        with ArtifactStore(target.out_dir) as store:
            plan = target.plan_kind
            if plan is PlanKind.WHEEL_FROM_SDIST:
                self._wheel_from_sdist(root, store)
            elif plan is PlanKind.SDIST_AND_WHEEL_FROM_SDIST:
                sdist = self._from_directory(root, store, sdist=True, wheel=False)
                self._wheel_from_sdist(store.path(sdist), store, project_root=root)
            else:
                self._from_directory(
                    root, store, sdist=plan.builds_sdist, wheel=plan.builds_wheel
                )
            artifacts = store.publish()

        log.info("package_build_completed", artifacts=[path.name for path in artifacts])
        return artifacts

