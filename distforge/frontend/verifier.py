"""
Post-build consistency checks.

A wheel built from a source distribution must carry the sdist's version.
The sdist version comes from its filename, or from its ``PKG-INFO`` when the
filename does not parse.
"""

from __future__ import annotations

import email.parser
import logging
from pathlib import Path
from typing import Optional

from packaging.utils import (
    InvalidSdistFilename,
    InvalidWheelFilename,
    parse_sdist_filename,
    parse_wheel_filename,
)
from packaging.version import InvalidVersion, Version

from ..errors import ArtifactConsistencyError, BackendExecutionError
from ..models import ArchiveKind
from ..native.archives import single_member

logger = logging.getLogger(__name__)


def sdist_version(sdist: Path) -> Optional[Version]:
    """The version declared by a source distribution."""
    try:
        return parse_sdist_filename(sdist.name)[1]
    except InvalidSdistFilename:
        logger.debug(f"Cannot parse version from {sdist.name}, reading PKG-INFO")

    kind = ArchiveKind.from_path(sdist)
    data = single_member(sdist, kind, "PKG-INFO") if kind is not None else None
    if data is None:
        return None
    headers = email.parser.BytesHeaderParser().parsebytes(data)
    try:
        return Version(headers["Version"]) if headers["Version"] else None
    except InvalidVersion:
        return None


def wheel_version(wheel: Path) -> Version:
    try:
        return parse_wheel_filename(wheel.name)[1]
    except InvalidWheelFilename as e:
        raise BackendExecutionError(
            f"Build backend produced an invalid wheel filename: `{wheel.name}`"
        ) from e


def check_versions(sdist: Path, wheel: Path) -> None:
    """Raise when the wheel's version differs from the sdist's.

    Raises:
        ArtifactConsistencyError: On a mismatch, or when the sdist's version
            cannot be read.
    """
    declared = sdist_version(sdist)
    built = wheel_version(wheel)
    if declared is None:
        raise ArtifactConsistencyError(
            None,
            str(built),
            f"Could not determine the version of the source distribution `{sdist.name}`: "
            "its filename has no version and it has no readable `PKG-INFO`",
        )
    if declared != built:
        raise ArtifactConsistencyError(str(declared), str(built))
