"""
Generated distribution metadata for the native backend.

Produces the core metadata file (``PKG-INFO`` / ``METADATA``), the wheel's
``WHEEL`` and ``entry_points.txt`` files, and ``RECORD`` lines. Only the
static subset of ``[project]`` is supported.
"""

from __future__ import annotations

import base64
import csv
import hashlib
import io
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from ..errors import ManifestError
from ..schemas.pyproject import (
    Contact,
    LicenseTable,
    ProjectTable,
    ReadmeTable,
    readme_content_type,
)

WHEEL_TAG = "py3-none-any"


def distribution_name(project: ProjectTable) -> str:
    """The normalized name used in filenames and archive prefixes."""
    return canonicalize_name(project.name).replace("-", "_")


def project_version(project: ProjectTable) -> str:
    if project.dynamic:
        fields = ", ".join(f"`{name}`" for name in project.dynamic)
        raise ManifestError(
            f"The distforge backend does not support dynamic metadata, "
            f"but `project.dynamic` lists: {fields}"
        )
    if project.version is None:
        raise ManifestError("`project.version` is required by the distforge backend")
    try:
        return str(Version(project.version))
    except InvalidVersion as e:
        raise ManifestError(f"Invalid `project.version`: `{project.version}`") from e


def sdist_filename(project: ProjectTable) -> str:
    return f"{distribution_name(project)}-{project_version(project)}.tar.gz"


def wheel_filename(project: ProjectTable) -> str:
    return f"{distribution_name(project)}-{project_version(project)}-{WHEEL_TAG}.whl"


def dist_info_dir(project: ProjectTable) -> str:
    return f"{distribution_name(project)}-{project_version(project)}.dist-info"


def data_dir(project: ProjectTable) -> str:
    return f"{distribution_name(project)}-{project_version(project)}.data"


def _contacts(contacts: List[Contact]) -> Tuple[Optional[str], Optional[str]]:
    names = []
    emails = []
    for contact in contacts:
        if contact.email:
            emails.append(f"{contact.name} <{contact.email}>" if contact.name else contact.email)
        elif contact.name:
            names.append(contact.name)
    return (", ".join(names) or None, ", ".join(emails) or None)


def _fold(value: str) -> str:
    """Indent continuation lines of a multi-line header value."""
    return "\n        ".join(value.splitlines())


def _readme(project: ProjectTable, root: Path) -> Tuple[Optional[str], Optional[str]]:
    readme = project.readme
    if readme is None:
        return None, None
    if isinstance(readme, str):
        readme = ReadmeTable(file=readme)
    if readme.text is not None:
        return readme.text, readme.content_type or "text/plain"
    if readme.file is None:
        raise ManifestError("`project.readme` must have a `file` or a `text` key")
    path = root / readme.file
    try:
        body = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Failed to read readme `{readme.file}`") from e
    return body, readme.content_type or readme_content_type(readme.file)


def _requires_dist(project: ProjectTable) -> List[str]:
    lines = list(project.dependencies)
    for extra, requirements in project.optional_dependencies.items():
        extra = canonicalize_name(extra)
        for requirement in requirements:
            spec, _, marker = requirement.partition(";")
            marker = marker.strip()
            condition = f'extra == "{extra}"'
            if marker:
                condition = f"({marker}) and {condition}"
            lines.append(f"{spec.strip()} ; {condition}")
    return lines


def uses_license_files(project: ProjectTable) -> bool:
    return isinstance(project.license, str) or bool(project.license_files)


def core_metadata(project: ProjectTable, root: Path, license_files: Iterable[str] = ()) -> str:
    """Render core metadata for `project`, reading the readme and license text from `root`."""
    version = project_version(project)
    metadata_version = "2.4" if uses_license_files(project) else "2.3"

    headers: List[Tuple[str, str]] = [
        ("Metadata-Version", metadata_version),
        ("Name", project.name),
        ("Version", version),
    ]
    if project.description:
        headers.append(("Summary", project.description))
    if project.keywords:
        headers.append(("Keywords", ",".join(project.keywords)))

    author, author_email = _contacts(project.authors)
    maintainer, maintainer_email = _contacts(project.maintainers)
    for key, value in (
        ("Author", author),
        ("Author-email", author_email),
        ("Maintainer", maintainer),
        ("Maintainer-email", maintainer_email),
    ):
        if value:
            headers.append((key, value))

    if isinstance(project.license, str):
        headers.append(("License-Expression", project.license))
    elif isinstance(project.license, LicenseTable):
        text = project.license.text
        if text is None and project.license.file:
            try:
                text = (root / project.license.file).read_text(encoding="utf-8")
            except OSError as e:
                raise ManifestError(f"Failed to read license `{project.license.file}`") from e
        if text:
            headers.append(("License", _fold(text.strip())))
    if metadata_version == "2.4":
        headers.extend(("License-File", path) for path in license_files)

    headers.extend(("Classifier", classifier) for classifier in project.classifiers)
    if project.requires_python:
        headers.append(("Requires-Python", project.requires_python))
    headers.extend(("Requires-Dist", requirement) for requirement in _requires_dist(project))
    headers.extend(
        ("Provides-Extra", canonicalize_name(extra)) for extra in project.optional_dependencies
    )
    headers.extend(("Project-URL", f"{label}, {url}") for label, url in project.urls.items())

    body, content_type = _readme(project, root)
    if content_type:
        headers.append(("Description-Content-Type", content_type))

    text = "".join(f"{key}: {value}\n" for key, value in headers)
    if body:
        text += "\n" + body
    return text


def wheel_file(generator: str) -> str:
    return (
        "Wheel-Version: 1.0\n"
        f"Generator: {generator}\n"
        "Root-Is-Purelib: true\n"
        f"Tag: {WHEEL_TAG}\n"
    )


def entry_points_file(project: ProjectTable) -> Optional[str]:
    """Render ``entry_points.txt``, or None when the project declares none."""
    groups = []
    if project.scripts:
        groups.append(("console_scripts", project.scripts))
    if project.gui_scripts:
        groups.append(("gui_scripts", project.gui_scripts))
    for group, entries in project.entry_points.items():
        if group in ("console_scripts", "gui_scripts"):
            raise ManifestError(
                f"Use `project.{group.replace('_', '-')}` instead of "
                f"`project.entry-points.{group}`"
            )
        groups.append((group, entries))
    if not groups:
        return None
    sections = []
    for group, entries in groups:
        lines = [f"[{group}]"]
        lines.extend(f"{name} = {target}" for name, target in entries.items())
        sections.append("\n".join(lines) + "\n")
    return "\n".join(sections)


def record_hash(data: bytes) -> str:
    digest = base64.urlsafe_b64encode(hashlib.sha256(data).digest()).rstrip(b"=")
    return f"sha256={digest.decode('ascii')}"


def record_file(rows: Iterable[Tuple[str, bytes]], record_path: str) -> str:
    """Render ``RECORD`` for (archive path, content) pairs."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for path, data in rows:
        writer.writerow([path, record_hash(data), str(len(data))])
    writer.writerow([record_path, "", ""])
    return buffer.getvalue()
