"""Workspace manifests: YAML descriptions of an in-memory workspace.

Example manifest::

    root: file:///workspace
    modules:
      - name: app
        dependencies: [core]
        libraries: [requests]
      - name: core
    files:
      - path: app/src/main.py
        module: app
      - path: app/tests/test_main.py
        module: app
        root: test
    libraries:
      requests: [libs/requests/api.py]
    named_scopes:
      - holder: project
        scopes:
          - name: Generated
            pattern: "file:**/generated/**"
    open_files: [app/src/main.py]
    current_file: app/src/main.py

Entries in ``open_files``, ``recent_files``, ``changed_files`` and
``current_file`` may be workspace-relative paths or full urls.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ManifestError
from .model import FileHandle, InMemoryWorkspace, Module, NamedScope, NamedScopeHolder, RootKind

logger = logging.getLogger(__name__)

DEFAULT_ROOT_URL = "file:///workspace"


def _none_as_empty(value: Any) -> Any:
    return [] if value is None else value


class ModuleEntry(BaseModel):
    """A module and the modules and libraries it depends on."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Module name")
    dependencies: List[str] = Field(default_factory=list, description="Names of modules this module depends on")
    libraries: List[str] = Field(default_factory=list, description="Names of libraries this module depends on")

    @field_validator("dependencies", "libraries", mode="before")
    @classmethod
    def empty_lists(cls, value: Any) -> Any:
        return _none_as_empty(value)


class FileEntry(BaseModel):
    """A workspace file, given relative to the manifest root."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1, description="Path relative to the workspace root")
    module: Optional[str] = Field(default=None, description="Owning module, if any")
    root: RootKind = Field(default=RootKind.SOURCE, description="Content root the file lives under")
    library: Optional[str] = Field(default=None, description="Library name for library roots")


class NamedScopeEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    pattern: Optional[str] = Field(default=None, description="Pattern text; absent for unparsable scopes")
    presentable_name: Optional[str] = None


class HolderEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    holder: str = Field(..., min_length=1, description="Holder id, e.g. 'project' or 'shared'")
    scopes: List[NamedScopeEntry] = Field(default_factory=list)

    @field_validator("scopes", mode="before")
    @classmethod
    def empty_scopes(cls, value: Any) -> Any:
        return _none_as_empty(value)


class WorkspaceManifest(BaseModel):
    """Schema of a workspace manifest file."""

    model_config = ConfigDict(frozen=True)

    root: str = Field(default=DEFAULT_ROOT_URL, description="Url every relative path is resolved against")
    modules: List[ModuleEntry] = Field(default_factory=list)
    files: List[FileEntry] = Field(default_factory=list)
    libraries: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Library name mapped to the paths of its files",
    )
    named_scopes: List[HolderEntry] = Field(default_factory=list)
    open_files: List[str] = Field(default_factory=list)
    recent_files: List[str] = Field(default_factory=list)
    changed_files: List[str] = Field(default_factory=list)
    current_file: Optional[str] = None

    @field_validator("root", mode="before")
    @classmethod
    def default_root(cls, value: Any) -> Any:
        return value or DEFAULT_ROOT_URL

    @field_validator("modules", mode="before")
    @classmethod
    def module_names_as_entries(cls, value: Any) -> Any:
        """Accept bare module names in place of mappings."""
        if isinstance(value, list):
            return [{"name": entry} if isinstance(entry, str) else entry for entry in value]
        return _none_as_empty(value)

    @field_validator("files", mode="before")
    @classmethod
    def file_paths_as_entries(cls, value: Any) -> Any:
        """Accept bare paths in place of mappings; such files are source files."""
        if isinstance(value, list):
            return [{"path": entry} if isinstance(entry, str) else entry for entry in value]
        return _none_as_empty(value)

    @field_validator("libraries", mode="before")
    @classmethod
    def empty_libraries(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("named_scopes", "open_files", "recent_files", "changed_files", mode="before")
    @classmethod
    def empty_lists(cls, value: Any) -> Any:
        return _none_as_empty(value)

    @property
    def root_url(self) -> str:
        return self.root.rstrip("/")

    def url_for(self, path_or_url: str) -> str:
        if "://" in path_or_url:
            return path_or_url
        return f"{self.root_url}/{path_or_url.lstrip('/')}"

    def file_handles(self) -> List[FileHandle]:
        handles = [
            FileHandle(
                url=self.url_for(entry.path),
                path=entry.path.lstrip("/"),
                module=entry.module,
                root_kind=entry.root,
                library=entry.library,
            )
            for entry in self.files
        ]
        for library, paths in self.libraries.items():
            handles.extend(
                FileHandle(
                    url=self.url_for(path),
                    path=path.lstrip("/"),
                    root_kind=RootKind.LIBRARY,
                    library=library,
                )
                for path in paths
            )
        return handles

    def to_workspace(self) -> InMemoryWorkspace:
        files = self.file_handles()
        modules = [
            Module(name=entry.name, dependencies=tuple(entry.dependencies), libraries=tuple(entry.libraries))
            for entry in self.modules
        ]
        holders = [
            NamedScopeHolder(
                holder_id=entry.holder,
                scopes=[
                    NamedScope(name=scope.name, pattern=scope.pattern, presentable_name=scope.presentable_name)
                    for scope in entry.scopes
                ],
            )
            for entry in self.named_scopes
        ]
        logger.debug("Loaded workspace manifest: %d files, %d modules", len(files), len(modules))
        return InMemoryWorkspace(
            files=files,
            modules=modules,
            named_scope_holders=holders,
            open_files=[self.url_for(p) for p in self.open_files],
            recent_files=[self.url_for(p) for p in self.recent_files],
            changed_files=[self.url_for(p) for p in self.changed_files],
            current_file=self.url_for(self.current_file) if self.current_file else None,
        )


def _describe(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "manifest"
        problems.append(f"{location}: {error['msg']}")
    return "; ".join(problems)


def workspace_from_dict(data: Any) -> InMemoryWorkspace:
    """Build a workspace from parsed manifest data.

    Raises:
        ManifestError: If the manifest schema is invalid
    """
    try:
        manifest = WorkspaceManifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestError(f"Invalid workspace manifest: {_describe(exc)}") from exc
    return manifest.to_workspace()


def load_manifest(path: Path) -> InMemoryWorkspace:
    """Load a workspace manifest file.

    Args:
        path: Path to a YAML manifest

    Returns:
        InMemoryWorkspace described by the manifest

    Raises:
        ManifestError: If the file is missing, is not valid YAML, or has an invalid schema
    """
    if not path.exists():
        raise ManifestError(f"Workspace manifest not found: {path}")
    yaml = YAML(typ="safe")
    try:
        with path.open() as f:
            data = yaml.load(f)
    except YAMLError as exc:
        raise ManifestError(f"Workspace manifest {path} is not valid YAML: {exc}") from exc
    try:
        return workspace_from_dict(data or {})
    except ManifestError as exc:
        raise ManifestError(f"{path}: {exc}") from exc
