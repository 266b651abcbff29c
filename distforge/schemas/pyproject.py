from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
    model_validator,
)

from ..errors import PyProjectError

# PEP 517 fallback for projects without a [build-system] table.
LEGACY_BUILD_BACKEND = "setuptools.build_meta:__legacy__"
LEGACY_BUILD_REQUIRES = ["setuptools>=40.8.0"]


class _Table(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class BuildSystemTable(_Table):
    """The `[build-system]` table (PEP 518 / PEP 517)."""

    requires: List[str] = Field(default_factory=list)
    build_backend: Optional[str] = Field(default=None, alias="build-backend")
    backend_path: Optional[List[str]] = Field(default=None, alias="backend-path")

    @classmethod
    def legacy(cls) -> "BuildSystemTable":
        return cls(requires=list(LEGACY_BUILD_REQUIRES), build_backend=LEGACY_BUILD_BACKEND)

    @property
    def backend(self) -> str:
        return self.build_backend or LEGACY_BUILD_BACKEND


class ReadmeTable(_Table):
    file: Optional[str] = None
    text: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="content-type")


class LicenseTable(_Table):
    file: Optional[str] = None
    text: Optional[str] = None


class Contact(_Table):
    name: Optional[str] = None
    email: Optional[str] = None


class ProjectTable(_Table):
    """The static subset of the `[project]` table (PEP 621)."""

    name: str
    version: Optional[str] = None
    description: Optional[str] = None
    readme: Union[str, ReadmeTable, None] = None
    requires_python: Optional[str] = Field(default=None, alias="requires-python")
    license: Union[str, LicenseTable, None] = None
    license_files: Optional[List[str]] = Field(default=None, alias="license-files")
    authors: List[Contact] = Field(default_factory=list)
    maintainers: List[Contact] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    classifiers: List[str] = Field(default_factory=list)
    urls: Dict[str, str] = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list)
    optional_dependencies: Dict[str, List[str]] = Field(
        default_factory=dict, alias="optional-dependencies"
    )
    scripts: Dict[str, str] = Field(default_factory=dict)
    gui_scripts: Dict[str, str] = Field(default_factory=dict, alias="gui-scripts")
    entry_points: Dict[str, Dict[str, str]] = Field(
        default_factory=dict, alias="entry-points"
    )
    dynamic: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("project name must not be empty")
        return value.strip()


class WheelDataDirs(_Table):
    """Directories mapped into `<name>-<version>.data/<kind>/`."""

    data: Optional[str] = None
    headers: Optional[str] = None
    scripts: Optional[str] = None

    def items(self) -> List[tuple]:
        """Configured (kind, directory) pairs in a fixed order."""
        pairs = []
        for kind in ("data", "headers", "scripts"):
            directory = getattr(self, kind)
            if directory:
                pairs.append((kind, directory))
        return pairs


class WorkspaceConfig(_Table):
    """The `[tool.distforge.workspace]` table."""

    members: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)


class SourceEntry(_Table):
    """A `[tool.distforge.sources]` entry: where a build requirement comes from."""

    path: Optional[str] = None
    url: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_location(self) -> "SourceEntry":
        if (self.path is None) == (self.url is None):
            raise ValueError("a source must set exactly one of `path` or `url`")
        return self


class DistforgeToolConfig(_Table):
    """The `[tool.distforge]` table."""

    module_root: str = Field(default="src", alias="module-root")
    module_name: Optional[str] = Field(default=None, alias="module-name")
    source_include: List[str] = Field(default_factory=list, alias="source-include")
    source_exclude: List[str] = Field(default_factory=list, alias="source-exclude")
    wheel_exclude: List[str] = Field(default_factory=list, alias="wheel-exclude")
    default_excludes: bool = Field(default=True, alias="default-excludes")
    data: WheelDataDirs = Field(default_factory=WheelDataDirs)
    workspace: Optional[WorkspaceConfig] = None
    sources: Dict[str, SourceEntry] = Field(default_factory=dict)


class PyProject(_Table):
    """A parsed `pyproject.toml`."""

    project: Optional[ProjectTable] = None
    build_system: Optional[BuildSystemTable] = Field(default=None, alias="build-system")
    tool: Dict[str, Any] = Field(default_factory=dict)

    _distforge: DistforgeToolConfig = PrivateAttr(default_factory=DistforgeToolConfig)

    @model_validator(mode="after")
    def parse_tool_config(self) -> "PyProject":
        """Validate `[tool.distforge]` eagerly so errors surface at load time."""
        self._distforge = DistforgeToolConfig.model_validate(
            self.tool.get("distforge") or {}
        )
        return self

    @property
    def distforge(self) -> DistforgeToolConfig:
        return self._distforge

    @property
    def effective_build_system(self) -> BuildSystemTable:
        return self.build_system or BuildSystemTable.legacy()


def load_pyproject(path: Path) -> PyProject:
    """Read and validate a `pyproject.toml`.

    Raises:
        PyProjectError: If the file cannot be read, is not valid TOML, or
            fails validation.
    """
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except OSError as e:
        raise PyProjectError(f"Failed to read `{path}`: {e.strerror or e}") from e
    except tomllib.TOMLDecodeError as e:
        raise PyProjectError(f"Failed to parse `{path}`: {e}") from e

    try:
        return PyProject.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise PyProjectError(
            f"Invalid `{path.name}` at `{location}`: {first['msg']}"
        ) from e


ReadmeKind = Literal["text/markdown", "text/x-rst", "text/plain"]


def readme_content_type(filename: str) -> ReadmeKind:
    """Guess a readme content type from its file extension."""
    lowered = filename.lower()
    if lowered.endswith(".md"):
        return "text/markdown"
    if lowered.endswith(".rst"):
        return "text/x-rst"
    return "text/plain"
