"""Wire models for scope programs, descriptors and catalog listings.

Everything in this module is serializable with ``model_dump(mode="json")``
and is safe to store or hand across process boundaries. Live predicates
never appear here; see ``scopekit.scope.evaluator.ResolvedScope``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CURRENT_DESCRIPTOR_VERSION = 2
SUPPORTED_DESCRIPTOR_VERSIONS = range(1, CURRENT_DESCRIPTOR_VERSION + 1)


class AtomKind(StrEnum):
    """Kinds of atomic scope descriptions."""

    CATALOG_REF = "catalog_ref"
    STANDARD = "standard"
    MODULE = "module"
    NAMED_PATTERN = "named_pattern"
    ADHOC_PATTERN = "adhoc_pattern"
    DIRECTORY = "directory"
    FILE_SET = "file_set"
    PROVIDER = "provider"


# Kinds whose reference id is derived from their own payload on every pass
AD_HOC_KINDS = frozenset({AtomKind.ADHOC_PATTERN, AtomKind.DIRECTORY, AtomKind.FILE_SET})


class ModuleFlavor(StrEnum):
    """Module scope variants."""

    MODULE = "module"
    MODULE_WITH_DEPENDENCIES = "module_with_dependencies"
    MODULE_WITH_LIBRARIES = "module_with_libraries"
    MODULE_WITH_DEPENDENCIES_AND_LIBRARIES = "module_with_dependencies_and_libraries"


class ProgramOp(StrEnum):
    """RPN instructions."""

    PUSH_ATOM = "push_atom"
    AND = "and"
    OR = "or"
    NOT = "not"


class Shape(StrEnum):
    """Enumerability classification of a predicate.

    - GLOBAL: index-style, supports enumeration and complement
    - LOCAL: explicit element snapshot, no enumeration, no complement
    - MIXED: combination of the two; testable per file only
    """

    GLOBAL = "global"
    LOCAL = "local"
    MIXED = "mixed"


class FailureMode(StrEnum):
    """What lenient resolution does with an atom that fails to resolve."""

    FAIL = "fail"
    EMPTY_SCOPE = "empty_scope"
    SKIP = "skip"


class StandardScope(StrEnum):
    """Well-known preset ids understood by every workspace."""

    ALL_PLACES = "AllPlaces"
    PROJECT_AND_LIBRARIES = "ProjectAndLibraries"
    PROJECT_FILES = "ProjectFiles"
    PROJECT_PRODUCTION_FILES = "ProjectProductionFiles"
    PROJECT_TEST_FILES = "ProjectTestFiles"
    PROJECT_LIBRARIES = "ProjectLibraries"
    SCRATCHES_AND_CONSOLES = "ScratchesAndConsoles"
    OPEN_FILES = "OpenFiles"
    RECENTLY_VIEWED_FILES = "RecentlyViewedFiles"
    RECENTLY_CHANGED_FILES = "RecentlyChangedFiles"
    CURRENT_FILE = "CurrentFile"


STANDARD_SCOPE_DISPLAY_NAMES: dict[StandardScope, str] = {
    StandardScope.ALL_PLACES: "All Places",
    StandardScope.PROJECT_AND_LIBRARIES: "Project and Libraries",
    StandardScope.PROJECT_FILES: "Project Files",
    StandardScope.PROJECT_PRODUCTION_FILES: "Project Production Files",
    StandardScope.PROJECT_TEST_FILES: "Project Test Files",
    StandardScope.PROJECT_LIBRARIES: "Project Libraries",
    StandardScope.SCRATCHES_AND_CONSOLES: "Scratches and Consoles",
    StandardScope.OPEN_FILES: "Open Files",
    StandardScope.RECENTLY_VIEWED_FILES: "Recently Viewed Files",
    StandardScope.RECENTLY_CHANGED_FILES: "Recently Changed Files",
    StandardScope.CURRENT_FILE: "Current File",
}

# Presets whose contents follow editor state and may change between calls
UNSTABLE_STANDARD_SCOPES = frozenset({
    StandardScope.CURRENT_FILE,
    StandardScope.OPEN_FILES,
    StandardScope.RECENTLY_VIEWED_FILES,
    StandardScope.RECENTLY_CHANGED_FILES,
})


class ScopePreset(StrEnum):
    """Quick presets that map onto a single standard scope."""

    PROJECT_FILES = "project_files"
    ALL_PLACES = "all_places"
    OPEN_FILES = "open_files"
    PROJECT_AND_LIBRARIES = "project_and_libraries"
    PROJECT_PRODUCTION_FILES = "project_production_files"
    PROJECT_TEST_FILES = "project_test_files"

    def to_standard_scope(self) -> StandardScope:
        return _PRESET_TO_STANDARD[self]


_PRESET_TO_STANDARD: dict[ScopePreset, StandardScope] = {
    ScopePreset.PROJECT_FILES: StandardScope.PROJECT_FILES,
    ScopePreset.ALL_PLACES: StandardScope.ALL_PLACES,
    ScopePreset.OPEN_FILES: StandardScope.OPEN_FILES,
    ScopePreset.PROJECT_AND_LIBRARIES: StandardScope.PROJECT_AND_LIBRARIES,
    ScopePreset.PROJECT_PRODUCTION_FILES: StandardScope.PROJECT_PRODUCTION_FILES,
    ScopePreset.PROJECT_TEST_FILES: StandardScope.PROJECT_TEST_FILES,
}


class CatalogIntent(StrEnum):
    """Selection intents for narrowing the catalog."""

    PROJECT_ONLY = "project_only"
    WITH_LIBRARIES = "with_libraries"
    CHANGED_FILES = "changed_files"
    OPEN_FILES = "open_files"
    CURRENT_FILE = "current_file"


class ScopeAtom(BaseModel):
    """One atomic predicate description.

    Only the fields relevant to ``kind`` need to be populated by callers.
    Normalization fills in ``scope_ref_id`` and copies catalog metadata onto
    the remaining fields.
    """

    model_config = ConfigDict(frozen=True)

    atom_id: str = Field(..., min_length=1, description="Request-local atom id")
    kind: AtomKind = Field(default=AtomKind.CATALOG_REF)
    scope_ref_id: Optional[str] = Field(None, description="Catalog reference id")
    standard_scope_id: Optional[str] = None
    module_name: Optional[str] = None
    module_flavor: Optional[ModuleFlavor] = None
    named_scope_name: Optional[str] = None
    named_scope_holder_id: Optional[str] = None
    pattern_text: Optional[str] = None
    directory_url: Optional[str] = None
    directory_recursive: bool = True
    file_urls: tuple[str, ...] = ()
    provider_id: Optional[str] = None
    on_resolve_failure: Optional[FailureMode] = Field(
        None,
        description="Per-atom lenient fallback; overrides the request default",
    )


class ProgramToken(BaseModel):
    """One RPN instruction."""

    model_config = ConfigDict(frozen=True)

    op: ProgramOp
    atom_id: Optional[str] = None

    @field_validator("op", mode="before")
    @classmethod
    def accept_legacy_push(cls, v: object) -> object:
        """Accept the older ``atom`` spelling of ``push_atom``."""
        if isinstance(v, str) and v.strip().lower() == "atom":
            return ProgramOp.PUSH_ATOM
        return v

    @classmethod
    def push(cls, atom_id: str) -> ProgramToken:
        return cls(op=ProgramOp.PUSH_ATOM, atom_id=atom_id)


class ResolveRequest(BaseModel):
    """A scope program to compile.

    Unset policy fields fall back to the engine configuration
    (strict, non-interactive, ``empty_scope`` fallback by default).
    """

    model_config = ConfigDict(frozen=True)

    atoms: list[ScopeAtom] = Field(default_factory=list)
    tokens: list[ProgramToken] = Field(default_factory=list)
    strict: Optional[bool] = None
    allow_interactive: Optional[bool] = None
    default_failure_mode: Optional[FailureMode] = None


class ProgramDescriptor(BaseModel):
    """Compiled, serializable scope program."""

    model_config = ConfigDict(frozen=True)

    version: int = CURRENT_DESCRIPTOR_VERSION
    atoms: list[ScopeAtom] = Field(default_factory=list)
    tokens: list[ProgramToken] = Field(default_factory=list)
    display_name: str = ""
    shape: Shape = Shape.GLOBAL
    diagnostics: list[str] = Field(default_factory=list)


class CatalogItem(BaseModel):
    """Public view of one catalog record."""

    model_config = ConfigDict(frozen=True)

    scope_ref_id: str
    display_name: str
    kind: AtomKind
    shape: Shape
    serialization_id: Optional[str] = None
    requires_user_input: bool = False
    unstable: bool = False
    module_name: Optional[str] = None
    module_flavor: Optional[ModuleFlavor] = None
    named_scope_name: Optional[str] = None
    named_scope_holder_id: Optional[str] = None
    provider_id: Optional[str] = None


class CatalogResult(BaseModel):
    items: list[CatalogItem] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)


class PatternValidationResult(BaseModel):
    valid: bool
    normalized_pattern_text: Optional[str] = None
    diagnostics: list[str] = Field(default_factory=list)


class CatalogIntentResult(BaseModel):
    intent: CatalogIntent
    recommended_scope_ref_id: Optional[str] = None
    items: list[CatalogItem] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)


class ContainsFileResult(BaseModel):
    file_url: str
    matches: bool
    scope_display_name: str
    shape: Shape
    diagnostics: list[str] = Field(default_factory=list)


class FilterFilesResult(BaseModel):
    scope_display_name: str
    shape: Shape
    matched_file_urls: list[str] = Field(default_factory=list)
    excluded_file_urls: list[str] = Field(default_factory=list)
    missing_file_urls: list[str] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)


def merge_diagnostics(*groups: list[str] | tuple[str, ...]) -> list[str]:
    """Concatenate diagnostic lists, dropping repeats but keeping first-seen order."""
    merged: list[str] = []
    seen: set[str] = set()
    for group in groups:
        for message in group:
            if message not in seen:
                seen.add(message)
                merged.append(message)
    return merged
