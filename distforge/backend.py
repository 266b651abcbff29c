"""A module to implement the build backend interface,
defined in https://peps.python.org/pep-0517.

Mandatory hooks:

- build_wheel
- build_sdist

Optional hooks:

- get_requires_for_build_wheel
- get_requires_for_build_sdist

The project is always the current working directory.
"""
import typing as t
from pathlib import Path

from .native import builder


def get_requires_for_build_sdist(
    config_settings: t.Optional[t.Dict[str, t.Any]] = None,
) -> t.List[str]:
    """The native backend needs nothing beyond itself."""
    return []


def get_requires_for_build_wheel(
    config_settings: t.Optional[t.Dict[str, t.Any]] = None,
) -> t.List[str]:
    return []


def build_sdist(
    sdist_directory: str,
    config_settings: t.Optional[t.Dict[str, t.Any]] = None,
) -> str:
    """Must build a .tar.gz file, and place it in the specified sdist_directory.

    :returns: The basename (not the full path) of the .tar.gz file it creates.
    """
    return builder.build_sdist(Path.cwd(), Path(sdist_directory))


def build_wheel(
    wheel_directory: str,
    config_settings: t.Optional[t.Dict[str, t.Any]] = None,
    metadata_directory: t.Optional[str] = None,
) -> str:
    """Must build a .whl file, and place it in the specified wheel_directory.

    :returns: The basename (not the full path) of the .whl file it creates.
    """
    return builder.build_wheel(Path.cwd(), Path(wheel_directory))
