"""
Isolated build environments.

Each source tree gets its own virtual environment. Environments are created
in a temporary directory and removed when the build of that tree finishes,
unless ``keep_build_envs`` is set.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import tempfile
import venv
from pathlib import Path
from typing import Dict, Optional, Protocol, Sequence

from ..errors import BuildDependencyError

logger = logging.getLogger(__name__)


def _bin_dir(root: Path) -> Path:
    return root / ("Scripts" if sys.platform == "win32" else "bin")


class BuildEnvironment:
    """A virtual environment holding the build requirements of one source tree."""

    def __init__(self, root: Path, keep: bool = False):
        self.root = root
        self.keep = keep
        self.installed: list = []

    @property
    def python(self) -> str:
        name = "python.exe" if sys.platform == "win32" else "python"
        return str(_bin_dir(self.root) / name)

    def environ(self, base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Environment variables for a process running inside this environment."""
        env = dict(os.environ if base is None else base)
        env["VIRTUAL_ENV"] = str(self.root)
        env["PATH"] = os.pathsep.join([str(_bin_dir(self.root)), env.get("PATH", "")])
        env.pop("PYTHONHOME", None)
        return env

    def install(self, artifacts: Sequence[Path]) -> None:
        """Install already downloaded artifacts, without touching any index.

        Raises:
            BuildDependencyError: If pip fails.
        """
        if not artifacts:
            return
        command = [
            self.python,
            "-m",
            "pip",
            "--disable-pip-version-check",
            "install",
            "--no-deps",
            "--no-index",
            "--quiet",
            *(str(path) for path in artifacts),
        ]
        logger.debug(f"Installing {len(artifacts)} artifact(s) into {self.root}")
        try:
            subprocess.run(command, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            output = (e.stderr or e.stdout or "").strip().splitlines()
            detail = output[-1] if output else f"pip exited with status {e.returncode}"
            raise BuildDependencyError(detail) from e
        self.installed.extend(artifacts)

    def close(self) -> None:
        if self.keep:
            logger.info(f"Keeping build environment at {self.root}")
            return
        shutil.rmtree(self.root, ignore_errors=True)

    def __enter__(self) -> "BuildEnvironment":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class EnvironmentManager(Protocol):
    def create(self) -> BuildEnvironment:
        ...


class VenvEnvironmentManager:
    """Create build environments with :mod:`venv`.

    When an explicit interpreter is configured the environment is created by
    running ``<python> -m venv`` instead of using the running interpreter.
    """

    def __init__(self, python: Optional[str] = None, keep: bool = False):
        self.python = python
        self.keep = keep

    def create(self) -> BuildEnvironment:
        root = Path(tempfile.mkdtemp(prefix="distforge-build-env-"))
        try:
            if self.python:
                subprocess.run(
                    [self.python, "-m", "venv", str(root)],
                    check=True,
                    capture_output=True,
                    text=True,
                )
            else:
                venv.EnvBuilder(with_pip=True, clear=True).create(root)
        except (OSError, subprocess.CalledProcessError) as e:
            shutil.rmtree(root, ignore_errors=True)
            raise BuildDependencyError(
                f"Failed to create build environment at `{root}`"
            ) from e
        logger.debug(f"Created build environment at {root}")
        return BuildEnvironment(root, keep=self.keep)
