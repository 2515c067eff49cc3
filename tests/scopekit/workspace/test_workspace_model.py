"""Tests for the in-memory workspace model."""

import pytest

from scopekit.scope.models import ModuleFlavor, Shape, StandardScope
from scopekit.scope.predicates import FilterScope
from scopekit.workspace import FileHandle, InMemoryWorkspace, RootKind, WorkspaceError

from sample_workspace import (
    ALL_URLS,
    ATTRS,
    BASE,
    GENERATED,
    MAIN,
    REQUESTS_API,
    SCRATCH,
    TEST_BASE,
    TEST_MAIN,
    UTIL,
    make_workspace,
    url,
    urls_of,
)


class TestLookups:
    def test_find_file(self, workspace):
        assert workspace.find_file(MAIN).path == "app/src/main.py"
        assert workspace.find_file(url("nope.py")) is None

    def test_is_directory(self, workspace):
        assert workspace.is_directory(url("app"))
        assert workspace.is_directory(url("app/src/"))
        assert not workspace.is_directory(MAIN)
        assert not workspace.is_directory(url("ap"))

    def test_duplicate_file_url_rejected(self):
        handle = FileHandle(url=MAIN, path="app/src/main.py")
        with pytest.raises(WorkspaceError, match="Duplicate file URL"):
            InMemoryWorkspace(files=[handle, handle])

    def test_named_scope_display_name(self, workspace):
        project = workspace.named_scope_holders()[0]
        assert project.get_scope("Tests").display_name == "All tests"
        assert project.get_scope("Generated").display_name == "Generated"
        assert project.get_scope("Missing") is None


class TestStandardScopes:
    """Preset predicates."""

    @pytest.mark.parametrize(
        "scope_id,expected",
        [
            (StandardScope.ALL_PLACES, ALL_URLS),
            (StandardScope.PROJECT_AND_LIBRARIES, [MAIN, UTIL, TEST_MAIN, BASE, GENERATED, TEST_BASE, REQUESTS_API, ATTRS]),
            (StandardScope.PROJECT_FILES, [MAIN, UTIL, TEST_MAIN, BASE, GENERATED, TEST_BASE]),
            (StandardScope.PROJECT_PRODUCTION_FILES, [MAIN, UTIL, BASE, GENERATED]),
            (StandardScope.PROJECT_TEST_FILES, [TEST_MAIN, TEST_BASE]),
            (StandardScope.PROJECT_LIBRARIES, [REQUESTS_API, ATTRS]),
            (StandardScope.SCRATCHES_AND_CONSOLES, [SCRATCH]),
            (StandardScope.OPEN_FILES, [MAIN]),
            (StandardScope.RECENTLY_VIEWED_FILES, [MAIN, BASE]),
            (StandardScope.RECENTLY_CHANGED_FILES, [BASE]),
        ],
    )
    def test_membership(self, workspace, scope_id, expected):
        assert urls_of(workspace.standard_scope(scope_id), workspace) == expected

    def test_current_file_is_local(self, workspace):
        scope = workspace.standard_scope(StandardScope.CURRENT_FILE)
        assert scope.shape == Shape.LOCAL
        assert urls_of(scope, workspace) == [MAIN]

    def test_current_file_absent_without_focus(self):
        workspace = make_workspace(current_file=None)
        assert workspace.standard_scope(StandardScope.CURRENT_FILE) is None
        names = [scope.display_name for scope in workspace.predefined_scopes()]
        assert "Current File" not in names
        assert len(names) == len(StandardScope) - 1

    def test_extra_presets_follow_standard_ones(self):
        extra = FilterScope("Vendored", lambda f: False)
        workspace = make_workspace(extra_presets=[extra])
        assert workspace.predefined_scopes()[-1] is extra


class TestModuleScopes:
    """Module flavors, including transitive dependencies and libraries."""

    @pytest.mark.parametrize(
        "flavor,expected",
        [
            (ModuleFlavor.MODULE, [MAIN, UTIL, TEST_MAIN]),
            (ModuleFlavor.MODULE_WITH_DEPENDENCIES, [MAIN, UTIL, TEST_MAIN, BASE, GENERATED, TEST_BASE]),
            (ModuleFlavor.MODULE_WITH_LIBRARIES, [MAIN, UTIL, TEST_MAIN, REQUESTS_API]),
            (
                ModuleFlavor.MODULE_WITH_DEPENDENCIES_AND_LIBRARIES,
                [MAIN, UTIL, TEST_MAIN, BASE, GENERATED, TEST_BASE, REQUESTS_API, ATTRS],
            ),
        ],
    )
    def test_app_flavors(self, workspace, flavor, expected):
        scope = workspace.module_scope(workspace.find_module("app"), flavor)
        assert urls_of(scope, workspace) == expected
        assert scope.display_name == f"app ({flavor.value})"

    def test_unknown_dependency_is_ignored(self):
        from scopekit.workspace import Module

        workspace = make_workspace(modules=[Module(name="app", dependencies=("ghost",))])
        scope = workspace.module_scope(workspace.find_module("app"), ModuleFlavor.MODULE_WITH_DEPENDENCIES)
        assert urls_of(scope, workspace) == [MAIN, UTIL, TEST_MAIN]


class TestDirectoryAndFileScopes:
    def test_recursive_directory(self, workspace):
        scope = workspace.directory_scope(url("core/src"))
        assert urls_of(scope, workspace) == [BASE, GENERATED]
        assert scope.display_name == f"Directory '{url('core/src')}'"

    def test_non_recursive_directory(self, workspace):
        scope = workspace.directory_scope(url("core/src"), recursive=False)
        assert urls_of(scope, workspace) == [BASE]

    def test_directory_not_found(self, workspace):
        with pytest.raises(WorkspaceError, match="not found"):
            workspace.directory_scope(url("docs"))

    def test_file_is_not_a_directory(self, workspace):
        with pytest.raises(WorkspaceError, match="is not a directory"):
            workspace.directory_scope(MAIN)

    def test_files_scope(self, workspace):
        scope = workspace.files_scope([MAIN, BASE])
        assert scope.shape == Shape.GLOBAL
        assert scope.display_name == "2 selected files"
        assert urls_of(scope, workspace) == [MAIN, BASE]

    def test_single_file_scope_named_after_path(self, workspace):
        assert workspace.files_scope([MAIN]).display_name == "File 'app/src/main.py'"

    def test_files_scope_missing_url(self, workspace):
        with pytest.raises(WorkspaceError) as exc_info:
            workspace.files_scope([MAIN, url("ghost.py")])
        assert exc_info.value.url == url("ghost.py")


class TestPatternScopes:
    def test_compile_pattern_uses_display_name(self, workspace):
        scope = workspace.compile_pattern("file:**/generated/**", "Generated")
        assert scope.display_name == "Generated"
        assert urls_of(scope, workspace) == [GENERATED]

    def test_compile_pattern_defaults_to_normalized_text(self, workspace):
        assert workspace.compile_pattern("src:a||test:b").display_name == "src:a || test:b"

    def test_root_kind_enum_values(self):
        assert {kind.value for kind in RootKind} == {"source", "test", "library", "scratch"}
