"""Test configuration and fixtures."""

import io
import subprocess
import sys
import tarfile
import textwrap
import tomllib
import zipfile
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest
from rich.console import Console

from distforge.config import Settings
from distforge.deps import BuildEnvironment, BuildRequirementsInstaller, ResolvedRequirement
from distforge.errors import FetchError, ResolutionError
from distforge.frontend import BuildReporter
from distforge.schemas import BuildConstraints


NATIVE_PYPROJECT = """\
[project]
name = "{name}"
version = "{version}"
description = "A package built by distforge"
readme = "README.md"
requires-python = ">=3.9"
license = "MIT"
license-files = ["LICENSE"]
dependencies = ["anyio>=4"]

[project.optional-dependencies]
cli = ["rich; python_version >= '3.8'"]

[project.scripts]
{name}-cli = "{module}.cli:main"

[build-system]
requires = ["distforge>=0.1,<0.2"]
build-backend = "distforge.backend"
"""

SETUPTOOLS_PYPROJECT = """\
[project]
name = "{name}"
version = "{version}"

[build-system]
requires = ["setuptools>=42"]
build-backend = "setuptools.build_meta"
"""


def write_files(root: Path, files: Dict[str, str]) -> Path:
    """Write a mapping of relative path to text under root."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content), encoding="utf-8")
    return root


@pytest.fixture
def write_tree() -> Callable[[Path, Dict[str, str]], Path]:
    """The file-writing helper, for tests that lay out their own trees."""
    return write_files


@pytest.fixture
def settings() -> Settings:
    """Settings that ignore the environment."""
    return Settings(_env_file=None, default_out_dir="dist")


@pytest.fixture
def native_project(tmp_path: Path) -> Path:
    """A project that declares the distforge backend."""
    root = tmp_path / "built-by-distforge"
    name, module = "built-by-distforge", "built_by_distforge"
    return write_files(
        root,
        {
            "pyproject.toml": NATIVE_PYPROJECT.format(name=name, module=module, version="0.1.0"),
            "README.md": "# built-by-distforge\n",
            "LICENSE": "MIT License\n",
            f"src/{module}/__init__.py": "def greet():\n    return 'hello'\n",
            f"src/{module}/cli.py": "def main():\n    print('hi')\n",
            f"src/{module}/data/values.txt": "1 2 3\n",
            f"src/{module}/__pycache__/cli.cpython-312.pyc": "junk",
            "tests/test_it.py": "def test_nothing():\n    pass\n",
        },
    )


@pytest.fixture
def setuptools_project(tmp_path: Path) -> Path:
    """A project that builds with a third-party PEP 517 backend."""
    root = tmp_path / "project"
    return write_files(
        root,
        {
            "pyproject.toml": SETUPTOOLS_PYPROJECT.format(name="project", version="0.1.0"),
            "src/project/__init__.py": "",
        },
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace with a buildable root, two members and one unbuildable member."""
    root = tmp_path / "workspace"
    return write_files(
        root,
        {
            "pyproject.toml": """\
                [project]
                name = "project"
                version = "0.1.0"

                [build-system]
                requires = ["setuptools>=42"]
                build-backend = "setuptools.build_meta"

                [tool.distforge.workspace]
                members = ["packages/*"]
                exclude = ["packages/ignored"]
                """,
            "packages/member_a/pyproject.toml": SETUPTOOLS_PYPROJECT.format(
                name="member-a", version="0.1.0"
            ),
            "packages/member_b/pyproject.toml": SETUPTOOLS_PYPROJECT.format(
                name="member-b", version="0.1.0"
            ),
            "packages/member_c/pyproject.toml": """\
                [project]
                name = "member-c"
                version = "0.1.0"
                """,
            "packages/ignored/pyproject.toml": SETUPTOOLS_PYPROJECT.format(
                name="ignored", version="0.1.0"
            ),
        },
    )


class FakeResolver:
    """Resolver that pins every requirement to a fixed version."""

    def __init__(self, versions: Optional[Dict[str, str]] = None, error: Optional[str] = None):
        self.versions = versions or {}
        self.error = error
        self.calls: List[List[str]] = []
        self.urls: List[Dict[str, Optional[str]]] = []

    def resolve(self, requirements, constraints: BuildConstraints) -> List[ResolvedRequirement]:
        self.calls.append([str(requirement) for requirement in requirements])
        self.urls.append({requirement.name: requirement.url for requirement in requirements})
        if self.error:
            raise ResolutionError(self.error)
        return [
            ResolvedRequirement(
                requirement.name,
                self.versions.get(requirement.name, "1.0.0"),
                url=requirement.url,
            )
            for requirement in requirements
        ]


class FakeFetcher:
    """Fetcher that writes a small file per pin."""

    def __init__(self, contents: Optional[Dict[str, bytes]] = None, fail: bool = False):
        self.contents = contents or {}
        self.fail = fail
        self.fetched: List[str] = []

    def fetch(self, resolved: ResolvedRequirement, dest: Path) -> Path:
        if self.fail:
            raise FetchError("connection refused")
        self.fetched.append(str(resolved))
        path = dest / f"{resolved.name}-{resolved.version}-py3-none-any.whl"
        path.write_bytes(self.contents.get(resolved.name, str(resolved).encode()))
        return path


class FakeEnvironment(BuildEnvironment):
    """Build environment that records installs instead of running pip."""

    def __init__(self, root: Path):
        super().__init__(root)
        self.closed = False

    @property
    def python(self) -> str:
        return sys.executable

    def install(self, artifacts) -> None:
        self.installed.extend(path.name for path in artifacts)

    def close(self) -> None:
        self.closed = True


class FakeEnvironmentManager:
    def __init__(self, root: Path):
        self.root = root
        self.created: List[FakeEnvironment] = []

    def create(self) -> FakeEnvironment:
        env = FakeEnvironment(self.root / f"env-{len(self.created)}")
        self.created.append(env)
        return env


class FakeHookCaller:
    """Stands in for pyproject_hooks.BuildBackendHookCaller.

    Writes real archives so wheel-from-sdist builds can extract them.
    """

    instances: List["FakeHookCaller"] = []

    def __init__(
        self,
        source_dir,
        build_backend,
        backend_path=None,
        runner=None,
        python_executable=None,
        wheel_version: Optional[str] = None,
        fail_hook: Optional[str] = None,
        interrupt_hook: Optional[str] = None,
        requires: Optional[List[str]] = None,
    ):
        self.source_dir = Path(source_dir)
        self.build_backend = build_backend
        self.runner = runner
        self.wheel_version = wheel_version
        self.fail_hook = fail_hook
        self.interrupt_hook = interrupt_hook
        self.requires = requires or []
        self.calls: List[str] = []
        FakeHookCaller.instances.append(self)

    def _project(self):
        with open(self.source_dir / "pyproject.toml", "rb") as f:
            project = tomllib.load(f)["project"]
        return project["name"].replace("-", "_"), project["version"]

    def _maybe_fail(self, hook: str) -> None:
        self.calls.append(hook)
        if self.interrupt_hook == hook:
            raise KeyboardInterrupt
        if self.fail_hook == hook:
            raise subprocess.CalledProcessError(1, ["python", "_in_process.py", hook])

    def get_requires_for_build_sdist(self, config_settings=None):
        self._maybe_fail("get_requires_for_build_sdist")
        return list(self.requires)

    def get_requires_for_build_wheel(self, config_settings=None):
        self._maybe_fail("get_requires_for_build_wheel")
        return list(self.requires)

    def build_sdist(self, sdist_directory, config_settings=None):
        self._maybe_fail("build_sdist")
        name, version = self._project()
        filename = f"{name}-{version}.tar.gz"
        data = (self.source_dir / "pyproject.toml").read_bytes()
        with tarfile.open(Path(sdist_directory) / filename, "w:gz") as tar:
            info = tarfile.TarInfo(f"{name}-{version}/pyproject.toml")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
        return filename

    def build_wheel(self, wheel_directory, config_settings=None, metadata_directory=None):
        self._maybe_fail("build_wheel")
        name, version = self._project()
        filename = f"{name}-{self.wheel_version or version}-py3-none-any.whl"
        with zipfile.ZipFile(Path(wheel_directory) / filename, "w") as whl:
            whl.writestr(f"{name}/__init__.py", "")
        return filename


@pytest.fixture
def hook_caller_factory() -> Callable[..., Callable[..., FakeHookCaller]]:
    """Build a caller factory with fixed fake behavior."""
    FakeHookCaller.instances = []

    def factory(**behavior):
        def create(*args, **kwargs):
            return FakeHookCaller(*args, **kwargs, **behavior)

        return create

    factory.instances = FakeHookCaller.instances
    return factory


@pytest.fixture
def environments(tmp_path: Path) -> FakeEnvironmentManager:
    return FakeEnvironmentManager(tmp_path / "envs")


@pytest.fixture
def make_installer(environments: FakeEnvironmentManager):
    """Factory for installers wired to fake collaborators."""

    def factory(
        versions: Optional[Dict[str, str]] = None,
        resolve_error: Optional[str] = None,
        contents: Optional[Dict[str, bytes]] = None,
        fetch_fails: bool = False,
        constraints: Optional[BuildConstraints] = None,
        require_hashes: bool = False,
    ) -> BuildRequirementsInstaller:
        return BuildRequirementsInstaller(
            FakeResolver(versions, resolve_error),
            FakeFetcher(contents, fetch_fails),
            environments,
            constraints=constraints,
            require_hashes=require_hashes,
        )

    return factory


@pytest.fixture
def installer(make_installer) -> BuildRequirementsInstaller:
    return make_installer()


@pytest.fixture
def consoles():
    """Recording stderr and stdout consoles."""
    return (
        Console(file=io.StringIO(), record=True, width=400, color_system=None, soft_wrap=True),
        Console(file=io.StringIO(), record=True, width=400, color_system=None, soft_wrap=True),
    )


@pytest.fixture
def reporter(consoles, tmp_path: Path) -> BuildReporter:
    stderr, stdout = consoles
    return BuildReporter(stderr=stderr, stdout=stdout, cwd=tmp_path)
