"""
Artifact storage for one package build.

Artifacts are written into a hidden staging directory inside the output
directory and moved into place only when the whole package succeeded:

    dist/
    ├── .distforge-staging-XXXX/   # removed on success, failure or interrupt
    ├── project-0.1.0.tar.gz
    └── project-0.1.0-py3-none-any.whl

Existing files in the output directory are never removed.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".distforge-staging-"


class ArtifactStore:
    """Stage artifacts for one package and publish them atomically."""

    def __init__(self, out_dir: Path):
        self.out_dir = out_dir
        self.staging: Optional[Path] = None
        self.staged: List[str] = []

    def __enter__(self) -> "ArtifactStore":
        self.out_dir.mkdir(parents=True, exist_ok=True)
        self.staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=self.out_dir))
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.discard()

    def add(self, filename: str) -> Path:
        """Record a file written into the staging directory."""
        if self.staging is None:
            raise RuntimeError("ArtifactStore used outside of its context")
        self.staged.append(filename)
        return self.staging / filename

    def path(self, filename: str) -> Path:
        return self.staging / filename

    def publish(self) -> List[Path]:
        """Move every staged artifact into the output directory."""
        published = []
        for filename in self.staged:
            target = self.out_dir / filename
            os.replace(self.staging / filename, target)
            published.append(target)
            logger.debug(f"Published {target}")
        self.staged = []
        return published

    def discard(self) -> None:
        if self.staging is not None:
            shutil.rmtree(self.staging, ignore_errors=True)
            self.staging = None
