from .constraints import BuildConstraint, BuildConstraints
from .pyproject import (
    BuildSystemTable,
    DistforgeToolConfig,
    ProjectTable,
    PyProject,
    SourceEntry,
    WheelDataDirs,
    WorkspaceConfig,
    load_pyproject,
)

__all__ = [
    "BuildConstraint",
    "BuildConstraints",
    "BuildSystemTable",
    "DistforgeToolConfig",
    "ProjectTable",
    "PyProject",
    "SourceEntry",
    "WheelDataDirs",
    "WorkspaceConfig",
    "load_pyproject",
]
