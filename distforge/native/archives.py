"""
Reproducible archive writers and sdist extraction.

Archives written here are byte-for-byte reproducible for an unchanged tree:
entries are sorted, timestamps are fixed (``SOURCE_DATE_EPOCH`` when set,
else 1980-01-01), owners are zeroed and permissions normalized to 0644/0755.
"""

from __future__ import annotations

import gzip
import io
import logging
import os
import tarfile
import time
import zipfile
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..errors import ManifestError, SourceClassificationError
from ..models import ArchiveKind
from .manifest import ArtifactManifest, ManifestEntry
from .metadata import record_file

logger = logging.getLogger(__name__)

# The earliest timestamp a zip file can represent.
ZIP_EPOCH = 315532800

TAR_MODES = {
    ArchiveKind.TAR_GZ: "r:gz",
    ArchiveKind.TGZ: "r:gz",
    ArchiveKind.TAR_BZ2: "r:bz2",
    ArchiveKind.TBZ: "r:bz2",
    ArchiveKind.TAR_XZ: "r:xz",
    ArchiveKind.TXZ: "r:xz",
    ArchiveKind.TAR_LZMA: "r:xz",
    ArchiveKind.TAR_ZST: "r:zst",
    ArchiveKind.TAR: "r:",
}


def build_timestamp() -> int:
    """The timestamp stamped on every archive member."""
    value = os.environ.get("SOURCE_DATE_EPOCH")
    if value:
        try:
            return max(int(value), ZIP_EPOCH)
        except ValueError:
            logger.warning(f"Ignoring invalid SOURCE_DATE_EPOCH={value!r}")
    return ZIP_EPOCH


def _mode(root: Path, entry: ManifestEntry) -> int:
    if entry.source is not None and os.access(root / entry.source, os.X_OK):
        return 0o755
    return 0o644


def _contents(root: Path, entries: Iterable[ManifestEntry]) -> List[Tuple[ManifestEntry, bytes]]:
    contents = []
    for entry in entries:
        try:
            contents.append((entry, entry.read(root)))
        except OSError as e:
            raise ManifestError(f"Failed to read `{entry.source}`") from e
    return contents


def write_sdist(manifest: ArtifactManifest, root: Path, out_dir: Path) -> Path:
    """Write a ``.tar.gz`` for `manifest` into `out_dir`."""
    mtime = build_timestamp()
    raw = io.BytesIO()
    with gzip.GzipFile(filename="", fileobj=raw, mode="wb", mtime=mtime) as gz:
        with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
            for entry, data in _contents(root, manifest.entries):
                info = tarfile.TarInfo(entry.archive_path)
                info.size = len(data)
                info.mtime = mtime
                info.mode = _mode(root, entry)
                info.uid = info.gid = 0
                info.uname = info.gname = ""
                tar.addfile(info, io.BytesIO(data))

    path = out_dir / manifest.filename
    path.write_bytes(raw.getvalue())
    logger.info(f"Wrote {path} ({len(manifest.entries)} files)")
    return path


def write_wheel(manifest: ArtifactManifest, root: Path, out_dir: Path, dist_info: str) -> Path:
    """Write a ``.whl`` for `manifest` into `out_dir`, appending ``RECORD``."""
    date_time = time.gmtime(build_timestamp())[:6]
    record_path = f"{dist_info}/RECORD"
    rows = []

    path = out_dir / manifest.filename
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as whl:
        for entry, data in _contents(root, manifest.entries):
            info = zipfile.ZipInfo(entry.archive_path, date_time=date_time)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = (0o100000 | _mode(root, entry)) << 16
            whl.writestr(info, data)
            rows.append((entry.archive_path, data))

        info = zipfile.ZipInfo(record_path, date_time=date_time)
        info.compress_type = zipfile.ZIP_DEFLATED
        info.external_attr = 0o100644 << 16
        whl.writestr(info, record_file(rows, record_path))

    logger.info(f"Wrote {path} ({len(manifest.entries) + 1} files)")
    return path


def extract_sdist(archive: Path, kind: ArchiveKind, dest: Path) -> Path:
    """Unpack a source distribution into `dest` and return the project directory.

    Raises:
        SourceClassificationError: If the archive cannot be read.
    """
    try:
        if kind is ArchiveKind.ZIP:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(dest)
        else:
            mode = TAR_MODES.get(kind)
            if mode is None:
                raise SourceClassificationError(
                    f"Source distributions ending in `{kind.suffix}` cannot be extracted "
                    "by this Python interpreter"
                )
            with tarfile.open(archive, mode) as tar:
                tar.extractall(dest, filter="data")
    except tarfile.CompressionError as e:
        raise SourceClassificationError(
            f"Source distributions ending in `{kind.suffix}` cannot be extracted "
            "by this Python interpreter"
        ) from e
    except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
        raise SourceClassificationError(f"Failed to extract `{archive.name}`") from e

    children = [child for child in dest.iterdir()]
    if len(children) == 1 and children[0].is_dir():
        return children[0]
    return dest


def single_member(archive: Path, kind: ArchiveKind, name: str) -> Optional[bytes]:
    """Read `<top>/<name>` from a source distribution without extracting it."""
    try:
        if kind is ArchiveKind.ZIP:
            with zipfile.ZipFile(archive) as zf:
                for member in zf.namelist():
                    if member.count("/") == 1 and member.endswith(f"/{name}"):
                        return zf.read(member)
            return None
        mode = TAR_MODES.get(kind)
        if mode is None:
            return None
        with tarfile.open(archive, mode) as tar:
            for member in tar.getmembers():
                if member.isfile() and member.name.count("/") == 1 and member.name.endswith(f"/{name}"):
                    handle = tar.extractfile(member)
                    return handle.read() if handle is not None else None
    except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
        logger.debug(f"Could not read {name} from {archive}: {e}")
    return None
