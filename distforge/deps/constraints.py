"""
Build constraint files.

Constraint files use the requirements-file syntax: one requirement per line,
``#`` comments, ``\\`` line continuations, and repeatable
``--hash=<algorithm>:<hex>`` options. Entries naming the same package are
merged.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from packaging.requirements import InvalidRequirement, Requirement
from pydantic import ValidationError

from ..errors import BuildDependencyError
from ..schemas import BuildConstraint, BuildConstraints

logger = logging.getLogger(__name__)


def _logical_lines(text: str) -> Iterator[Tuple[int, str]]:
    """Yield (line number, line) pairs with comments stripped and continuations joined."""
    buffer: List[str] = []
    start = 0
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw
        if line.lstrip().startswith("#"):
            line = ""
        elif " #" in line or "\t#" in line:
            line = line[: min(i for i in (line.find(" #"), line.find("\t#")) if i >= 0)]
        if not buffer:
            start = number
        if line.rstrip().endswith("\\"):
            buffer.append(line.rstrip()[:-1])
            continue
        buffer.append(line)
        joined = " ".join(part.strip() for part in buffer).strip()
        buffer = []
        if joined:
            yield start, joined
    if buffer:
        joined = " ".join(part.strip() for part in buffer).strip()
        if joined:
            yield start, joined


def _parse_line(line: str, location: str) -> Optional[BuildConstraint]:
    tokens = line.split()
    requirement_parts: List[str] = []
    hashes: List[str] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token.startswith("--hash="):
            hashes.append(token[len("--hash="):])
        elif token == "--hash":
            index += 1
            if index >= len(tokens):
                raise BuildDependencyError(f"Missing value for `--hash` at {location}")
            hashes.append(tokens[index])
        elif token.startswith("-"):
            raise BuildDependencyError(
                f"Unsupported option `{token}` in build constraints at {location}"
            )
        elif hashes:
            raise BuildDependencyError(
                f"Unexpected `{token}` after `--hash` at {location}"
            )
        else:
            requirement_parts.append(token)
        index += 1

    if not requirement_parts:
        raise BuildDependencyError(f"Expected a requirement before `--hash` at {location}")

    text = " ".join(requirement_parts)
    try:
        requirement = Requirement(text)
    except InvalidRequirement as e:
        raise BuildDependencyError(
            f"Failed to parse build constraint `{text}` at {location}"
        ) from e
    if requirement.url:
        raise BuildDependencyError(
            f"Build constraints cannot use direct URLs: `{text}` at {location}"
        )
    if requirement.marker is not None and not requirement.marker.evaluate():
        logger.debug(f"Skipping build constraint `{text}` at {location}: marker does not apply")
        return None

    try:
        return BuildConstraint(
            name=requirement.name, specifier=str(requirement.specifier), hashes=hashes
        )
    except ValidationError as e:
        raise BuildDependencyError(
            f"Invalid build constraint `{text}` at {location}: {e.errors()[0]['msg']}"
        ) from e


def parse_constraints(text: str, source: str = "<constraints>") -> List[BuildConstraint]:
    """Parse the contents of one constraints file.

    Entries whose environment marker does not apply to the running
    interpreter are dropped.
    """
    entries: List[BuildConstraint] = []
    for number, line in _logical_lines(text):
        entry = _parse_line(line, f"{source}:{number}")
        if entry is not None:
            entries.append(entry)
    return entries


def load_constraints(paths: Iterable[Path]) -> BuildConstraints:
    """Read and merge build constraint files.

    Raises:
        BuildDependencyError: If a file cannot be read or contains an invalid line.
    """
    entries: List[BuildConstraint] = []
    for path in paths:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise BuildDependencyError(
                f"Failed to read build constraints from `{path}`"
            ) from e
        entries.extend(parse_constraints(text, source=str(path)))
    constraints = BuildConstraints.from_entries(entries)
    logger.debug(f"Loaded {len(constraints)} build constraint(s)")
    return constraints
