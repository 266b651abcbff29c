"""
Workspace build coordinator.

Flow:
1. Select: validate the request and pick targets (source gate)
2. Build: each target in declaration order, one at a time
3. Record: every target ends as exactly one BuildOutcome
4. Report: outcomes in order, then the exit code (0 all built, 2 otherwise)

A failing package never stops its siblings. Only ``Exception`` is caught;
interrupts propagate after the pipeline cleaned up its staging directory.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple

import structlog
from pyproject_hooks import BuildBackendHookCaller

from ..config import Settings, get_settings
from ..deps import BuildRequirementsInstaller
from ..errors import (
    DistforgeError,
    PackageBuildError,
    error_summary,
    iter_causes,
    render_chain,
)
from ..models import BuildOutcome
from ..policy import BuildRequest, BuildSelection, BuildTarget, evaluate
from .pipeline import PackageBuilder
from .reporting import BuildReporter

logger = structlog.get_logger()

EXIT_SUCCESS = 0
EXIT_FAILURE = 2


def wrap_failure(label: str, error: BaseException) -> PackageBuildError:
    """Root `error` under "Failed to build `<label>`"."""
    if isinstance(error, PackageBuildError) and error.label == label:
        return error
    wrapped = PackageBuildError(label)
    wrapped.__cause__ = error
    return wrapped


class WorkspaceBuildCoordinator:
    """Runs the builds of one request and folds them into outcomes."""

    def __init__(
        self,
        installer: BuildRequirementsInstaller,
        reporter: BuildReporter,
        settings: Optional[Settings] = None,
        force_pep517: bool = False,
        list_files: bool = False,
        caller_factory: Callable[..., Any] = BuildBackendHookCaller,
    ):
        self.installer = installer
        self.reporter = reporter
        self.settings = settings or get_settings()
        self.force_pep517 = force_pep517 or self.settings.force_pep517
        self.list_files = list_files
        self.caller_factory = caller_factory

    def select(self, request: BuildRequest) -> Tuple[Optional[BuildSelection], List[BuildOutcome]]:
        """Validate the request.

        A single invalid source becomes a failed outcome; workspace-level
        errors are raised.
        """
        try:
            return evaluate(request, self.settings), []
        except PackageBuildError as e:
            return None, [BuildOutcome.failed(e.label, e)]

    def build_target(self, target: BuildTarget, prefixed: bool) -> BuildOutcome:
        started_at = datetime.now(timezone.utc)
        builder = PackageBuilder(
            self.installer,
            self.reporter.for_package(target.name, prefixed),
            force_pep517=self.force_pep517,
            list_files=self.list_files,
            caller_factory=self.caller_factory,
        )
        try:
            artifacts = builder.build(target)
        except Exception as e:
            logger.warning(
                "package_build_failed",
                package=target.name,
                error=type(e).__name__,
            )
            return BuildOutcome.failed(target.label, wrap_failure(target.label, e), started_at)
        return BuildOutcome.built(target.label, artifacts, started_at)

    def report(self, outcomes: List[BuildOutcome]) -> None:
        for outcome in outcomes:
            if outcome.success:
                for artifact in outcome.artifacts:
                    self.reporter.built(artifact)
            else:
                self.reporter.error(render_chain(outcome.error))

    def run(self, request: BuildRequest) -> Tuple[List[BuildOutcome], int]:
        """
        Build everything the request selects.

        Returns:
            The outcomes in target order and the process exit code

        Raises:
            SourceClassificationError: If workspace flags are misused
            WorkspaceDiscoveryError: If workspace selection fails
        """
        selection, outcomes = self.select(request)

        if selection is not None:
            workspace = selection.workspace
            for member in selection.skipped:
                where = workspace.relative(member.manifest_path) if workspace else member.manifest_path
                self.reporter.warning(
                    f"Skipping `{member.normalized_name}`, which is missing a "
                    f"`build-system` in `{where}`"
                )
            for target in selection.targets:
                outcomes.append(self.build_target(target, selection.prefixed))

        self.report(outcomes)

        failures = [outcome for outcome in outcomes if not outcome.success]
        root_causes = [
            cause
            for outcome in failures
            for cause in iter_causes(outcome.error)[-1:]
            if isinstance(cause, DistforgeError)
        ]
        logger.info(
            "build_finished",
            built=len(outcomes) - len(failures),
            failed=len(failures),
            errors=error_summary(root_causes),
        )
        return outcomes, EXIT_FAILURE if failures else EXIT_SUCCESS
