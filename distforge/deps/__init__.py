"""
Build-dependency resolution and installation.
"""

from .constraints import load_constraints, parse_constraints
from .environment import BuildEnvironment, EnvironmentManager, VenvEnvironmentManager
from .installer import BUILD_SYSTEM_REQUIRES, BuildRequirementsInstaller, parse_requirements
from .resolver import Fetcher, PipFetcher, PipResolver, ResolvedRequirement, Resolver
from .sources import DirectReferences

__all__ = [
    "BUILD_SYSTEM_REQUIRES",
    "BuildEnvironment",
    "BuildRequirementsInstaller",
    "DirectReferences",
    "EnvironmentManager",
    "Fetcher",
    "PipFetcher",
    "PipResolver",
    "ResolvedRequirement",
    "Resolver",
    "VenvEnvironmentManager",
    "load_constraints",
    "parse_constraints",
    "parse_requirements",
]
