from .discovery import (
    discover_workspace,
    find_project_root,
    load_workspace,
    member_directories,
    missing_build_system_message,
    no_buildable_members_message,
)

__all__ = [
    "discover_workspace",
    "find_project_root",
    "load_workspace",
    "member_directories",
    "missing_build_system_message",
    "no_buildable_members_message",
]
