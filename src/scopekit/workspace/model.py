"""Workspace model consumed by the scope engine.

The engine only talks to a workspace through :class:`WorkspaceModel`.
:class:`InMemoryWorkspace` is the concrete implementation used by the CLI
(populated from a manifest) and by tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterable, Optional, Protocol, Sequence, runtime_checkable

from scopekit.scope.models import STANDARD_SCOPE_DISPLAY_NAMES, ModuleFlavor, StandardScope
from scopekit.scope.predicates import FilterScope, LocalScope, Predicate

from .errors import WorkspaceError
from .patterns import CompiledPattern, normalize_pattern

logger = logging.getLogger(__name__)


class RootKind(StrEnum):
    """Content root a file lives under."""

    SOURCE = "source"
    TEST = "test"
    LIBRARY = "library"
    SCRATCH = "scratch"


PROJECT_ROOT_KINDS = frozenset({RootKind.SOURCE, RootKind.TEST})


@dataclass(frozen=True)
class FileHandle:
    """One file known to the workspace."""
    url: str
    path: str  # workspace-relative, forward slashes
    module: str | None = None
    root_kind: RootKind = RootKind.SOURCE
    library: str | None = None  # set for library roots


@dataclass(frozen=True)
class Module:
    name: str
    dependencies: tuple[str, ...] = ()
    libraries: tuple[str, ...] = ()


@dataclass(frozen=True)
class NamedScope:
    """A user-defined scope stored under a holder."""
    name: str
    pattern: str | None
    presentable_name: str | None = None

    @property
    def display_name(self) -> str:
        return self.presentable_name or self.name


@dataclass
class NamedScopeHolder:
    """Container of named scopes (for example project-shared vs. local scopes)."""
    holder_id: str
    scopes: list[NamedScope] = field(default_factory=list)

    def get_scope(self, name: str) -> Optional[NamedScope]:
        for scope in self.scopes:
            if scope.name == name:
                return scope
        return None


@runtime_checkable
class ScopeProvider(Protocol):
    """Externally contributed scopes.

    Providers expose ``provider_id`` plus ``general_scopes(workspace)`` and/or
    ``list_scopes(workspace)``, each returning an iterable of predicates.
    """

    provider_id: str


@runtime_checkable
class WorkspaceModel(Protocol):
    """Capabilities the scope engine needs from a workspace."""

    def files(self) -> list[FileHandle]: ...

    def find_file(self, url: str) -> Optional[FileHandle]: ...

    def is_directory(self, url: str) -> bool: ...

    def predefined_scopes(self) -> list[Predicate]: ...

    def named_scope_holders(self) -> list[NamedScopeHolder]: ...

    def modules(self) -> list[Module]: ...

    def find_module(self, name: str) -> Optional[Module]: ...

    def module_scope(self, module: Module, flavor: ModuleFlavor) -> Predicate: ...

    def normalize_pattern(self, text: str) -> str: ...

    def compile_pattern(self, text: str, display_name: str | None = None) -> Predicate: ...

    def directory_scope(self, url: str, recursive: bool = True) -> Predicate: ...

    def files_scope(self, urls: Sequence[str]) -> Predicate: ...

    def everything(self) -> Predicate: ...


class InMemoryWorkspace:
    """Workspace held entirely in memory.

    Args:
        files: Every file in the workspace
        modules: Module definitions; files refer to them by name
        named_scope_holders: Holders of named pattern scopes
        open_files: Urls of files open in an editor
        recent_files: Urls of recently viewed files
        changed_files: Urls of recently changed files
        current_file: Url of the focused file, if any
        extra_presets: Additional predefined scopes without a standard id
    """

    def __init__(
        self,
        files: Iterable[FileHandle] = (),
        modules: Iterable[Module] = (),
        named_scope_holders: Iterable[NamedScopeHolder] = (),
        open_files: Iterable[str] = (),
        recent_files: Iterable[str] = (),
        changed_files: Iterable[str] = (),
        current_file: str | None = None,
        extra_presets: Iterable[Predicate] = (),
    ):
        self._files: dict[str, FileHandle] = {}
        for handle in files:
            if handle.url in self._files:
                raise WorkspaceError(f"Duplicate file URL '{handle.url}'.", handle.url)
            self._files[handle.url] = handle
        self._modules = {module.name: module for module in modules}
        self._holders = list(named_scope_holders)
        self.open_files = tuple(open_files)
        self.recent_files = tuple(recent_files)
        self.changed_files = tuple(changed_files)
        self.current_file = current_file
        self.extra_presets = list(extra_presets)

    # -- lookups -----------------------------------------------------------

    def files(self) -> list[FileHandle]:
        return list(self._files.values())

    def find_file(self, url: str) -> Optional[FileHandle]:
        return self._files.get(url)

    def is_directory(self, url: str) -> bool:
        prefix = url.rstrip("/") + "/"
        return any(candidate.startswith(prefix) for candidate in self._files)

    def modules(self) -> list[Module]:
        return list(self._modules.values())

    def find_module(self, name: str) -> Optional[Module]:
        return self._modules.get(name)

    def named_scope_holders(self) -> list[NamedScopeHolder]:
        return list(self._holders)

    # -- predicates --------------------------------------------------------

    def everything(self) -> Predicate:
        return FilterScope(STANDARD_SCOPE_DISPLAY_NAMES[StandardScope.ALL_PLACES], lambda f: True)

    def standard_scope(self, scope_id: StandardScope) -> Optional[Predicate]:
        """Predicate for one standard preset, or None when unavailable here."""
        name = STANDARD_SCOPE_DISPLAY_NAMES[scope_id]
        if scope_id == StandardScope.ALL_PLACES:
            return self.everything()
        if scope_id == StandardScope.PROJECT_AND_LIBRARIES:
            return FilterScope(name, lambda f: f.root_kind != RootKind.SCRATCH)
        if scope_id == StandardScope.PROJECT_FILES:
            return FilterScope(name, lambda f: f.root_kind in PROJECT_ROOT_KINDS)
        if scope_id == StandardScope.PROJECT_PRODUCTION_FILES:
            return FilterScope(name, lambda f: f.root_kind == RootKind.SOURCE)
        if scope_id == StandardScope.PROJECT_TEST_FILES:
            return FilterScope(name, lambda f: f.root_kind == RootKind.TEST)
        if scope_id == StandardScope.PROJECT_LIBRARIES:
            return FilterScope(name, lambda f: f.root_kind == RootKind.LIBRARY)
        if scope_id == StandardScope.SCRATCHES_AND_CONSOLES:
            return FilterScope(name, lambda f: f.root_kind == RootKind.SCRATCH)
        if scope_id == StandardScope.OPEN_FILES:
            return _url_filter(name, self.open_files)
        if scope_id == StandardScope.RECENTLY_VIEWED_FILES:
            return _url_filter(name, self.recent_files)
        if scope_id == StandardScope.RECENTLY_CHANGED_FILES:
            return _url_filter(name, self.changed_files)
        if scope_id == StandardScope.CURRENT_FILE:
            if self.current_file is None:
                return None
            return LocalScope(name, [self.current_file])
        return None

    def predefined_scopes(self) -> list[Predicate]:
        """Standard presets available right now, followed by any extra presets."""
        scopes: list[Predicate] = []
        for scope_id in StandardScope:
            scope = self.standard_scope(scope_id)
            if scope is not None:
                scopes.append(scope)
        scopes.extend(self.extra_presets)
        return scopes

    def module_scope(self, module: Module, flavor: ModuleFlavor) -> Predicate:
        with_dependencies = flavor in (
            ModuleFlavor.MODULE_WITH_DEPENDENCIES,
            ModuleFlavor.MODULE_WITH_DEPENDENCIES_AND_LIBRARIES,
        )
        with_libraries = flavor in (
            ModuleFlavor.MODULE_WITH_LIBRARIES,
            ModuleFlavor.MODULE_WITH_DEPENDENCIES_AND_LIBRARIES,
        )
        module_names = self._dependency_closure(module) if with_dependencies else {module.name}
        libraries: set[str] = set()
        if with_libraries:
            for name in module_names:
                member = self._modules.get(name)
                if member is not None:
                    libraries.update(member.libraries)

        def test(f: FileHandle) -> bool:
            if f.root_kind == RootKind.LIBRARY:
                return f.library in libraries
            return f.root_kind in PROJECT_ROOT_KINDS and f.module in module_names

        return FilterScope(f"{module.name} ({flavor.value})", test)

    def _dependency_closure(self, module: Module) -> set[str]:
        seen = {module.name}
        pending = list(module.dependencies)
        while pending:
            name = pending.pop()
            if name in seen:
                continue
            seen.add(name)
            dependency = self._modules.get(name)
            if dependency is None:
                logger.debug("Module %s depends on unknown module %s", module.name, name)
                continue
            pending.extend(dependency.dependencies)
        return seen

    def normalize_pattern(self, text: str) -> str:
        return normalize_pattern(text)

    def compile_pattern(self, text: str, display_name: str | None = None) -> Predicate:
        """Compile pattern text; raises PatternSyntaxError on bad input."""
        compiled = CompiledPattern(text)
        return FilterScope(display_name or compiled.pattern_text, compiled.matches)

    def directory_scope(self, url: str, recursive: bool = True) -> Predicate:
        if self.find_file(url) is not None:
            raise WorkspaceError(f"URL '{url}' is not a directory.", url)
        if not self.is_directory(url):
            raise WorkspaceError(f"Directory URL '{url}' not found.", url)
        prefix = url.rstrip("/") + "/"

        def test(f: FileHandle) -> bool:
            if not f.url.startswith(prefix):
                return False
            return recursive or "/" not in f.url[len(prefix):]

        label = "Directory" if recursive else "Directory (non-recursive)"
        return FilterScope(f"{label} '{url}'", test)

    def files_scope(self, urls: Sequence[str]) -> Predicate:
        for url in urls:
            if self.find_file(url) is None:
                raise WorkspaceError(f"File URL '{url}' not found.", url)
        if len(urls) == 1:
            name = f"File '{self._files[urls[0]].path}'"
        else:
            name = f"{len(urls)} selected files"
        return _url_filter(name, urls)


def _url_filter(display_name: str, urls: Iterable[str]) -> Predicate:
    members = frozenset(urls)
    return FilterScope(display_name, lambda f: f.url in members)
