"""
Native builds: manifests plus archive writers, without any subprocess.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .. import __version__
from . import metadata
from .archives import write_sdist, write_wheel
from .manifest import ArtifactManifest, ProjectTree

logger = logging.getLogger(__name__)

GENERATOR = f"distforge {__version__}"


def sdist_manifest(root: Path) -> ArtifactManifest:
    return ProjectTree(root).sdist_manifest()


def wheel_manifest(root: Path) -> ArtifactManifest:
    return ProjectTree(root).wheel_manifest(GENERATOR)


def build_sdist(root: Path, out_dir: Path) -> str:
    """Build a source distribution of the project at `root`; returns its filename."""
    tree = ProjectTree(root)
    manifest = tree.sdist_manifest()
    out_dir.mkdir(parents=True, exist_ok=True)
    write_sdist(manifest, root, out_dir)
    return manifest.filename


def build_wheel(root: Path, out_dir: Path) -> str:
    """Build a wheel of the project at `root`; returns its filename."""
    tree = ProjectTree(root)
    manifest = tree.wheel_manifest(GENERATOR)
    out_dir.mkdir(parents=True, exist_ok=True)
    write_wheel(manifest, root, out_dir, metadata.dist_info_dir(tree.project))
    return manifest.filename
