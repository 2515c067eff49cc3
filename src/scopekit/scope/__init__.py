"""Scope algebra: compile and resolve boolean scope programs over a workspace."""

from .models import (
    AtomKind,
    CatalogIntent,
    CatalogIntentResult,
    CatalogItem,
    CatalogResult,
    ContainsFileResult,
    FailureMode,
    FilterFilesResult,
    ModuleFlavor,
    PatternValidationResult,
    ProgramDescriptor,
    ProgramOp,
    ProgramToken,
    ResolveRequest,
    ScopeAtom,
    ScopePreset,
    Shape,
    StandardScope,
)
from .exceptions import (
    ScopeEngineError,
    StructuralError,
    InvalidAtomError,
    ResolutionError,
    NegationError,
    UnsupportedDescriptorVersion,
)
from .predicates import Predicate, EMPTY_SCOPE
from .strictness import ResolutionPolicy, resolve_policy
from .catalog import (
    CatalogFamily,
    CatalogRecord,
    CatalogSnapshot,
    CollisionPolicy,
    build_catalog,
)
from .normalizer import normalize_atoms
from .evaluator import ResolvedScope, evaluate_program
from .config import EngineConfig, load_engine_config
from .resolver import ScopeResolver
from .planning import SearchPlan, build_search_plan
from .queries import contains_file, filter_files

__all__ = [
    "AtomKind",
    "CatalogIntent",
    "CatalogIntentResult",
    "CatalogItem",
    "CatalogResult",
    "ContainsFileResult",
    "FailureMode",
    "FilterFilesResult",
    "ModuleFlavor",
    "PatternValidationResult",
    "ProgramDescriptor",
    "ProgramOp",
    "ProgramToken",
    "ResolveRequest",
    "ScopeAtom",
    "ScopePreset",
    "Shape",
    "StandardScope",
    "ScopeEngineError",
    "StructuralError",
    "InvalidAtomError",
    "ResolutionError",
    "NegationError",
    "UnsupportedDescriptorVersion",
    "Predicate",
    "EMPTY_SCOPE",
    "ResolutionPolicy",
    "resolve_policy",
    "CatalogFamily",
    "CatalogRecord",
    "CatalogSnapshot",
    "CollisionPolicy",
    "build_catalog",
    "normalize_atoms",
    "ResolvedScope",
    "evaluate_program",
    "EngineConfig",
    "load_engine_config",
    "ScopeResolver",
    "SearchPlan",
    "build_search_plan",
    "contains_file",
    "filter_files",
]
