"""
Native build backend: manifest engine and reproducible archive writers.
"""

from .archives import build_timestamp, extract_sdist, write_sdist, write_wheel
from .builder import GENERATOR, build_sdist, build_wheel, sdist_manifest, wheel_manifest
from .manifest import ArtifactManifest, ManifestEntry, ProjectTree, matches_exclude

__all__ = [
    "ArtifactManifest",
    "GENERATOR",
    "ManifestEntry",
    "ProjectTree",
    "build_sdist",
    "build_timestamp",
    "build_wheel",
    "extract_sdist",
    "matches_exclude",
    "sdist_manifest",
    "wheel_manifest",
    "write_sdist",
    "write_wheel",
]
