"""Tests for the per-package build pipeline."""

from pathlib import Path

import pytest

from distforge.errors import ArtifactConsistencyError, BackendExecutionError, ListingUnsupportedError
from distforge.frontend import BuildReporter, PackageBuilder
from distforge.models import BuildPlan
from distforge.native import build_sdist
from distforge.policy import BuildRequest, evaluate


def make_target(settings, cwd: Path, **overrides):
    """Validate a request and return its only target."""
    data = {"cwd": cwd}
    data.update(overrides)
    (target,) = evaluate(BuildRequest(**data), settings).targets
    return target


def stderr_lines(consoles):
    return consoles[0].export_text().splitlines()


def stdout_lines(consoles):
    return consoles[1].export_text().splitlines()


def published(out_dir: Path):
    return sorted(path.name for path in out_dir.iterdir())


class TestNativeBuilds:
    """Builds of distforge-backed packages, in process."""

    def test_sdist_then_wheel_from_sdist(
        self, native_project, settings, installer, reporter, consoles, environments
    ):
        builder = PackageBuilder(installer, reporter)

        artifacts = builder.build(make_target(settings, native_project))

        out_dir = native_project / "dist"
        assert artifacts == [
            out_dir / "built_by_distforge-0.1.0.tar.gz",
            out_dir / "built_by_distforge-0.1.0-py3-none-any.whl",
        ]
        assert published(out_dir) == [
            "built_by_distforge-0.1.0-py3-none-any.whl",
            "built_by_distforge-0.1.0.tar.gz",
        ]
        assert stderr_lines(consoles) == [
            "Building source distribution (distforge backend)...",
            "Building wheel from source distribution (distforge backend)...",
        ]
        assert environments.created == []

    def test_wheel_from_archive(self, native_project, tmp_path, settings, installer, reporter):
        sdist = tmp_path / "archives" / build_sdist(native_project, tmp_path / "archives")
        target = make_target(
            settings, tmp_path, src=sdist, plan=BuildPlan.from_flags(wheel=True)
        )

        artifacts = PackageBuilder(installer, reporter).build(target)

        assert artifacts == [tmp_path / "archives" / "built_by_distforge-0.1.0-py3-none-any.whl"]

    def test_quiet(self, native_project, settings, installer, consoles, tmp_path):
        quiet = BuildReporter(quiet=True, stderr=consoles[0], stdout=consoles[1], cwd=tmp_path)

        PackageBuilder(installer, quiet).build(make_target(settings, native_project))

        assert stderr_lines(consoles) == []


class TestPep517Builds:
    """Builds through PEP 517 hooks with fake collaborators."""

    def test_sdist_then_wheel_from_sdist(
        self, setuptools_project, settings, installer, reporter, consoles, environments,
        hook_caller_factory,
    ):
        builder = PackageBuilder(installer, reporter, caller_factory=hook_caller_factory())

        artifacts = builder.build(make_target(settings, setuptools_project))

        assert [path.name for path in artifacts] == [
            "project-0.1.0.tar.gz",
            "project-0.1.0-py3-none-any.whl",
        ]
        assert stderr_lines(consoles) == [
            "Building source distribution...",
            "Building wheel from source distribution...",
        ]
        assert len(environments.created) == 2
        assert all(env.closed for env in environments.created)
        assert environments.created[0].installed == ["setuptools-1.0.0-py3-none-any.whl"]

        directory_caller, extracted_caller = hook_caller_factory.instances
        assert directory_caller.source_dir == setuptools_project
        assert directory_caller.runner.git_ceiling is None
        assert extracted_caller.source_dir.name == "project-0.1.0"
        assert extracted_caller.runner.git_ceiling == extracted_caller.source_dir.parent
        assert not extracted_caller.source_dir.exists()

    def test_sdist_and_wheel_share_one_environment(
        self, setuptools_project, settings, installer, reporter, environments,
        hook_caller_factory,
    ):
        builder = PackageBuilder(
            installer, reporter, caller_factory=hook_caller_factory(requires=["wheel"])
        )
        target = make_target(
            settings, setuptools_project, plan=BuildPlan.from_flags(sdist=True, wheel=True)
        )

        builder.build(target)

        (env,) = environments.created
        assert env.installed == [
            "setuptools-1.0.0-py3-none-any.whl",
            "wheel-1.0.0-py3-none-any.whl",
            "wheel-1.0.0-py3-none-any.whl",
        ]
        (caller,) = hook_caller_factory.instances
        assert caller.calls == [
            "get_requires_for_build_sdist",
            "build_sdist",
            "get_requires_for_build_wheel",
            "build_wheel",
        ]

    def test_sdist_only_writes_no_wheel(
        self, setuptools_project, settings, installer, reporter, hook_caller_factory
    ):
        builder = PackageBuilder(installer, reporter, caller_factory=hook_caller_factory())
        target = make_target(settings, setuptools_project, plan=BuildPlan.from_flags(sdist=True))

        builder.build(target)

        assert published(setuptools_project / "dist") == ["project-0.1.0.tar.gz"]
        (caller,) = hook_caller_factory.instances
        assert "build_wheel" not in caller.calls

    def test_wheel_only(
        self, setuptools_project, settings, installer, reporter, consoles, hook_caller_factory
    ):
        builder = PackageBuilder(installer, reporter, caller_factory=hook_caller_factory())
        target = make_target(settings, setuptools_project, plan=BuildPlan.from_flags(wheel=True))

        artifacts = builder.build(target)

        assert [path.name for path in artifacts] == ["project-0.1.0-py3-none-any.whl"]
        assert stderr_lines(consoles) == ["Building wheel..."]

    def test_legacy_backend_without_build_system(
        self, tmp_path, settings, installer, reporter, hook_caller_factory, write_tree
    ):
        root = write_tree(
            tmp_path / "legacy",
            {"pyproject.toml": '[project]\nname = "legacy"\nversion = "1.0"\n'},
        )
        builder = PackageBuilder(installer, reporter, caller_factory=hook_caller_factory())

        builder.build(make_target(settings, root, plan=BuildPlan.from_flags(wheel=True)))

        (caller,) = hook_caller_factory.instances
        assert caller.build_backend == "setuptools.build_meta:__legacy__"
        assert installer.resolver.calls == [["setuptools>=40.8.0"]]

    def test_force_pep517_for_native_project(
        self, native_project, settings, installer, reporter, consoles, hook_caller_factory
    ):
        builder = PackageBuilder(
            installer, reporter, force_pep517=True, caller_factory=hook_caller_factory()
        )
        target = make_target(settings, native_project, plan=BuildPlan.from_flags(wheel=True))

        builder.build(target)

        (caller,) = hook_caller_factory.instances
        assert caller.build_backend == "distforge.backend"
        assert stderr_lines(consoles) == ["Building wheel..."]


class TestFailures:
    """Failed builds publish nothing."""

    def test_version_mismatch(
        self, setuptools_project, settings, installer, reporter, hook_caller_factory
    ):
        builder = PackageBuilder(
            installer, reporter, caller_factory=hook_caller_factory(wheel_version="0.2.0")
        )

        with pytest.raises(ArtifactConsistencyError) as exc_info:
            builder.build(make_target(settings, setuptools_project))

        assert exc_info.value.message == (
            "The source distribution declares version 0.1.0, "
            "but the wheel declares version 0.2.0"
        )
        assert published(setuptools_project / "dist") == []

    def test_hook_failure(
        self, setuptools_project, settings, installer, reporter, environments,
        hook_caller_factory,
    ):
        builder = PackageBuilder(
            installer, reporter, caller_factory=hook_caller_factory(fail_hook="build_wheel")
        )
        target = make_target(
            settings, setuptools_project, plan=BuildPlan.from_flags(sdist=True, wheel=True)
        )

        with pytest.raises(BackendExecutionError) as exc_info:
            builder.build(target)

        assert exc_info.value.message == (
            "Build backend failed to build wheel with `build_wheel()` (exit status: 1)"
        )
        assert published(setuptools_project / "dist") == []
        assert all(env.closed for env in environments.created)

    def test_interrupt_cleans_up(
        self, setuptools_project, settings, installer, reporter, environments,
        hook_caller_factory,
    ):
        out_dir = setuptools_project / "dist"
        out_dir.mkdir()
        (out_dir / "existing.txt").write_text("keep me")
        builder = PackageBuilder(
            installer, reporter, caller_factory=hook_caller_factory(interrupt_hook="build_wheel")
        )

        with pytest.raises(KeyboardInterrupt):
            builder.build(make_target(settings, setuptools_project))

        assert published(out_dir) == ["existing.txt"]
        assert all(env.closed for env in environments.created)


class TestListing:
    """`--list` mode computes manifests without building."""

    def test_native_listing(self, native_project, settings, installer, reporter, consoles):
        builder = PackageBuilder(installer, reporter, list_files=True)

        artifacts = builder.build(make_target(settings, native_project))

        lines = stdout_lines(consoles)
        assert artifacts == []
        assert lines[0] == (
            "Building built_by_distforge-0.1.0.tar.gz will include the following files:"
        )
        assert (
            "Building built_by_distforge-0.1.0-py3-none-any.whl will include the following files:"
            in lines
        )
        assert not (native_project / "dist").exists()

    def test_wheel_only_listing(self, native_project, settings, installer, reporter, consoles):
        builder = PackageBuilder(installer, reporter, list_files=True)
        target = make_target(settings, native_project, plan=BuildPlan.from_flags(wheel=True))

        builder.build(target)

        lines = stdout_lines(consoles)
        assert lines[0].startswith("Building built_by_distforge-0.1.0-py3-none-any.whl")
        assert not any(".tar.gz" in line for line in lines)

    def test_archive_listing(self, native_project, tmp_path, settings, installer, reporter, consoles):
        sdist = tmp_path / build_sdist(native_project, tmp_path)
        builder = PackageBuilder(installer, reporter, list_files=True)
        target = make_target(settings, tmp_path, src=sdist, plan=BuildPlan.from_flags(wheel=True))

        builder.build(target)

        assert stdout_lines(consoles)[0].startswith(
            "Building built_by_distforge-0.1.0-py3-none-any.whl"
        )

    def test_other_backend(self, setuptools_project, settings, installer, reporter, environments):
        builder = PackageBuilder(installer, reporter, list_files=True)

        with pytest.raises(ListingUnsupportedError) as exc_info:
            builder.build(make_target(settings, setuptools_project))

        assert exc_info.value.message == "Can only use `--list` with the distforge backend"
        assert environments.created == []

    def test_listing_is_stable(self, native_project, settings, installer, reporter, consoles):
        builder = PackageBuilder(installer, reporter, list_files=True)

        builder.build(make_target(settings, native_project))
        builder.build(make_target(settings, native_project))

        lines = stdout_lines(consoles)
        half = len(lines) // 2
        assert lines[:half] == lines[half:]
        assert lines[0].startswith("Building built_by_distforge-0.1.0.tar.gz")


class TestBuildRequirementSources:
    """`[tool.distforge.sources]` redirects build requirements."""

    def test_path_source_for_both_builds(
        self, tmp_path, settings, installer, reporter, hook_caller_factory, write_tree
    ):
        write_tree(
            tmp_path / "backend",
            {"pyproject.toml": '[project]\nname = "backend"\nversion = "0.1.0"\n'},
        )
        root = write_tree(
            tmp_path / "project",
            {
                "pyproject.toml": """\
                    [project]
                    name = "project"
                    version = "0.1.0"

                    [build-system]
                    requires = ["setuptools>=42", "backend==0.1.0"]
                    build-backend = "backend.build"

                    [tool.distforge.sources]
                    backend = { path = "../backend" }
                    """,
            },
        )
        builder = PackageBuilder(installer, reporter, caller_factory=hook_caller_factory())

        builder.build(make_target(settings, root))

        backend_url = (tmp_path / "backend").resolve().as_uri()
        assert installer.resolver.urls == [
            {"setuptools": None, "backend": backend_url},
            {"setuptools": None, "backend": backend_url},
        ]
        assert all("==" not in call[1] for call in installer.resolver.calls)
