"""In-memory workspace model: files, modules, named scopes and presets."""

from .errors import ManifestError, PatternSyntaxError, WorkspaceError
from .patterns import CompiledPattern, normalize_pattern, parse_pattern
from .model import (
    FileHandle,
    InMemoryWorkspace,
    Module,
    NamedScope,
    NamedScopeHolder,
    RootKind,
    ScopeProvider,
    WorkspaceModel,
)
from .manifest import load_manifest, workspace_from_dict

__all__ = [
    "ManifestError",
    "PatternSyntaxError",
    "WorkspaceError",
    "CompiledPattern",
    "normalize_pattern",
    "parse_pattern",
    "FileHandle",
    "InMemoryWorkspace",
    "Module",
    "NamedScope",
    "NamedScopeHolder",
    "RootKind",
    "ScopeProvider",
    "WorkspaceModel",
    "load_manifest",
    "workspace_from_dict",
]
