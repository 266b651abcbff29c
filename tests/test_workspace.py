"""Unit tests for workspace discovery and pyproject loading."""

import pytest

from distforge.errors import PyProjectError, WorkspaceDiscoveryError
from distforge.schemas import load_pyproject
from distforge.workspace import discover_workspace, find_project_root, load_workspace


class TestFindProjectRoot:
    """Tests for walking up to the closest pyproject.toml."""

    def test_from_nested_directory(self, setuptools_project):
        nested = setuptools_project / "src" / "project"

        assert find_project_root(nested) == setuptools_project

    def test_nothing_found(self, tmp_path):
        with pytest.raises(WorkspaceDiscoveryError) as exc_info:
            find_project_root(tmp_path)

        assert "No `pyproject.toml` found" in exc_info.value.message


class TestDiscoverWorkspace:
    """Tests for workspace discovery."""

    def test_single_project_is_a_workspace_of_one(self, setuptools_project):
        workspace = discover_workspace(setuptools_project)

        assert workspace.root == setuptools_project.resolve()
        assert [member.name for member in workspace.members] == ["project"]
        assert workspace.members[0].is_buildable

    def test_members_in_declaration_order(self, workspace):
        discovered = discover_workspace(workspace)

        assert [member.name for member in discovered.members] == [
            "project",
            "member-a",
            "member-b",
            "member-c",
        ]
        assert [member.is_buildable for member in discovered.members] == [
            True,
            True,
            True,
            False,
        ]

    def test_exclude(self, workspace):
        names = [member.name for member in discover_workspace(workspace).members]

        assert "ignored" not in names

    def test_from_member_finds_root(self, workspace):
        discovered = discover_workspace(workspace / "packages" / "member_b")

        assert discovered.root == workspace.resolve()

    def test_from_excluded_directory_stays_local(self, workspace):
        """A project excluded from the workspace is a workspace of its own."""
        discovered = discover_workspace(workspace / "packages" / "ignored")

        assert discovered.root == (workspace / "packages" / "ignored").resolve()
        assert [member.name for member in discovered.members] == ["ignored"]

    def test_virtual_root(self, tmp_path, write_tree):
        """A root without `[project]` only contributes members."""
        root = write_tree(
            tmp_path / "ws",
            {
                "pyproject.toml": """\
                    [tool.distforge.workspace]
                    members = ["libs/*"]
                    """,
                "libs/one/pyproject.toml": """\
                    [project]
                    name = "one"
                    version = "1.0"

                    [build-system]
                    requires = ["setuptools"]
                    build-backend = "setuptools.build_meta"
                    """,
            },
        )

        workspace = load_workspace(root)

        assert [member.name for member in workspace.members] == ["one"]

    def test_member_without_pyproject(self, tmp_path, write_tree):
        root = write_tree(
            tmp_path / "ws",
            {
                "pyproject.toml": """\
                    [tool.distforge.workspace]
                    members = ["libs/*"]
                    """,
                "libs/one/README.md": "",
            },
        )

        with pytest.raises(WorkspaceDiscoveryError) as exc_info:
            load_workspace(root)

        assert exc_info.value.message == "Workspace member `libs/one` is missing a `pyproject.toml`"


class TestLoadPyproject:
    """Tests for pyproject.toml validation."""

    def test_invalid_toml(self, tmp_path, write_tree):
        write_tree(tmp_path, {"pyproject.toml": "[project\n"})

        with pytest.raises(PyProjectError) as exc_info:
            load_pyproject(tmp_path / "pyproject.toml")

        assert exc_info.value.message.startswith("Failed to parse")

    def test_invalid_field(self, tmp_path, write_tree):
        write_tree(tmp_path, {"pyproject.toml": "[project]\nname = 3\n"})

        with pytest.raises(PyProjectError) as exc_info:
            load_pyproject(tmp_path / "pyproject.toml")

        assert exc_info.value.message.startswith("Invalid `pyproject.toml` at `project.name`")

    def test_missing_file(self, tmp_path):
        with pytest.raises(PyProjectError) as exc_info:
            load_pyproject(tmp_path / "pyproject.toml")

        assert exc_info.value.message.startswith("Failed to read")

    def test_build_system_aliases(self, setuptools_project):
        pyproject = load_pyproject(setuptools_project / "pyproject.toml")

        assert pyproject.build_system.requires == ["setuptools>=42"]
        assert pyproject.build_system.backend == "setuptools.build_meta"

    def test_legacy_build_system(self, tmp_path, write_tree):
        write_tree(tmp_path, {"pyproject.toml": '[project]\nname = "x"\nversion = "1"\n'})

        pyproject = load_pyproject(tmp_path / "pyproject.toml")

        assert pyproject.build_system is None
        assert pyproject.effective_build_system.backend == "setuptools.build_meta:__legacy__"

    def test_tool_config(self, tmp_path, write_tree):
        write_tree(
            tmp_path,
            {
                "pyproject.toml": """\
                    [project]
                    name = "x"

                    [tool.distforge]
                    module-root = ""
                    source-exclude = ["tests"]

                    [tool.distforge.data]
                    scripts = "bin"
                    """,
            },
        )

        config = load_pyproject(tmp_path / "pyproject.toml").distforge

        assert config.module_root == ""
        assert config.source_exclude == ["tests"]
        assert config.data.items() == [("scripts", "bin")]
        assert config.workspace is None

    def test_sources(self, tmp_path, write_tree):
        write_tree(
            tmp_path,
            {
                "pyproject.toml": """\
                    [project]
                    name = "x"

                    [tool.distforge.sources]
                    backend = { path = "../backend" }
                    helper = { url = "https://example.com/helper-1.0.tar.gz" }
                    """,
            },
        )

        sources = load_pyproject(tmp_path / "pyproject.toml").distforge.sources

        assert sources["backend"].path == "../backend"
        assert sources["helper"].url == "https://example.com/helper-1.0.tar.gz"

    def test_source_with_path_and_url(self, tmp_path, write_tree):
        write_tree(
            tmp_path,
            {
                "pyproject.toml": """\
                    [project]
                    name = "x"

                    [tool.distforge.sources]
                    backend = { path = "../backend", url = "https://example.com/b.tar.gz" }
                    """,
            },
        )

        with pytest.raises(PyProjectError) as exc_info:
            load_pyproject(tmp_path / "pyproject.toml")

        assert "a source must set exactly one of `path` or `url`" in exc_info.value.message
