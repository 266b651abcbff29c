"""
Resolver and fetcher collaborators.

The installer only depends on the Resolver and Fetcher protocols. The
defaults drive ``pip`` in a subprocess:

- PipResolver: ``pip install --dry-run --report`` to pick versions
- PipFetcher: ``pip download --no-deps`` to fetch one artifact per pin, or
  ``pip wheel --no-deps`` for a local directory source
"""

from __future__ import annotations

import json
import logging
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence
from urllib.parse import urlparse
from urllib.request import url2pathname

from packaging.requirements import Requirement
from packaging.utils import canonicalize_name

from ..errors import FetchError, ResolutionError
from ..schemas import BuildConstraints

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRequirement:
    """A pinned package chosen by the resolver."""

    name: str
    version: str
    url: Optional[str] = None

    @property
    def normalized_name(self) -> str:
        return canonicalize_name(self.name)

    def __str__(self) -> str:
        return f"{self.name}=={self.version}"


class Resolver(Protocol):
    def resolve(
        self, requirements: Sequence[Requirement], constraints: BuildConstraints
    ) -> List[ResolvedRequirement]:
        """Pick one version per package, transitive requirements included.

        Raises:
            ResolutionError: If no solution exists.
        """
        ...


class Fetcher(Protocol):
    def fetch(self, resolved: ResolvedRequirement, dest: Path) -> Path:
        """Download the artifact for a pin into `dest` and return its path.

        Raises:
            FetchError: If the download fails.
        """
        ...


def _pip(python: str, *args: str) -> List[str]:
    return [python, "-m", "pip", "--disable-pip-version-check", "--no-input", *args]


def _local_directory(url: Optional[str]) -> Optional[Path]:
    """The directory behind a `file:` URL, if it points at one."""
    if not url or urlparse(url).scheme != "file":
        return None
    path = Path(url2pathname(urlparse(url).path))
    return path if path.is_dir() else None


def _failure_detail(error: subprocess.CalledProcessError) -> str:
    output = (error.stderr or error.stdout or "").strip().splitlines()
    return output[-1] if output else f"pip exited with status {error.returncode}"


class PipResolver:
    """Resolve requirements with ``pip install --dry-run --report``."""

    def __init__(self, python: Optional[str] = None, index_url: Optional[str] = None):
        self.python = python or sys.executable
        self.index_url = index_url

    def resolve(
        self, requirements: Sequence[Requirement], constraints: BuildConstraints
    ) -> List[ResolvedRequirement]:
        with tempfile.TemporaryDirectory(prefix="distforge-resolve-") as tmp:
            report = Path(tmp) / "report.json"
            args = [
                "install",
                "--dry-run",
                "--ignore-installed",
                "--quiet",
                "--report",
                str(report),
            ]
            if self.index_url:
                args += ["--index-url", self.index_url]
            if len(constraints):
                constraints_file = Path(tmp) / "constraints.txt"
                constraints_file.write_text(
                    "".join(f"{entry}\n" for entry in constraints), encoding="utf-8"
                )
                args += ["--constraint", str(constraints_file)]
            args += [str(requirement) for requirement in requirements]

            logger.debug(f"Resolving {len(requirements)} build requirement(s) with pip")
            try:
                subprocess.run(
                    _pip(self.python, *args), check=True, capture_output=True, text=True
                )
            except subprocess.CalledProcessError as e:
                raise ResolutionError(_failure_detail(e)) from e

            data = json.loads(report.read_text(encoding="utf-8"))

        resolved = []
        for item in data.get("install", []):
            metadata = item.get("metadata", {})
            resolved.append(
                ResolvedRequirement(
                    name=metadata["name"],
                    version=metadata["version"],
                    url=item.get("download_info", {}).get("url"),
                )
            )
        return resolved


class PipFetcher:
    """Download pinned artifacts with ``pip download --no-deps``."""

    def __init__(self, python: Optional[str] = None, index_url: Optional[str] = None):
        self.python = python or sys.executable
        self.index_url = index_url

    def fetch(self, resolved: ResolvedRequirement, dest: Path) -> Path:
        target = dest / resolved.normalized_name
        target.mkdir(parents=True, exist_ok=True)
        if _local_directory(resolved.url) is not None:
            # A path source has nothing to download; build it into a wheel.
            args = ["wheel", "--no-deps", "--quiet", "--wheel-dir", str(target)]
        else:
            args = ["download", "--no-deps", "--quiet", "--dest", str(target)]
        if self.index_url:
            args += ["--index-url", self.index_url]
        args.append(resolved.url or str(resolved))

        logger.debug(f"Fetching {resolved}")
        try:
            subprocess.run(
                _pip(self.python, *args), check=True, capture_output=True, text=True
            )
        except subprocess.CalledProcessError as e:
            raise FetchError(_failure_detail(e)) from e

        files = sorted(path for path in target.iterdir() if path.is_file())
        if len(files) != 1:
            raise FetchError(
                f"Expected one artifact for `{resolved}`, found {len(files)}"
            )
        return files[0]
