"""Scope resolver façade.

:class:`ScopeResolver` is what consumers talk to. Every call builds a fresh
catalog snapshot, so a descriptor compiled earlier is always re-resolved
against the current workspace state.

Typical use::

    resolver = ScopeResolver(workspace, providers=[...])
    descriptor = resolver.compile(request)      # store this
    ...
    resolved = resolver.resolve(descriptor)     # once per operation
    hits = [f for f in workspace.files() if resolved.contains(f)]
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from scopekit.workspace.errors import PatternSyntaxError

from .catalog import CatalogSnapshot, build_catalog
from .config import EngineConfig
from .evaluator import AtomResolver, ProgramEvaluator, ResolvedScope, check_program, index_atoms
from .exceptions import UnsupportedDescriptorVersion
from .models import (
    SUPPORTED_DESCRIPTOR_VERSIONS,
    AtomKind,
    CatalogIntent,
    CatalogIntentResult,
    CatalogItem,
    CatalogResult,
    FailureMode,
    ModuleFlavor,
    PatternValidationResult,
    ProgramDescriptor,
    ProgramToken,
    ResolveRequest,
    ScopeAtom,
    ScopePreset,
    StandardScope,
    merge_diagnostics,
)
from .normalizer import normalize_atoms
from .strictness import ResolutionPolicy, resolve_policy

if TYPE_CHECKING:
    from scopekit.workspace.model import WorkspaceModel

logger = logging.getLogger(__name__)

STANDARD_ATOM_ID = "std"

_PROJECT_ONLY_SCOPES = {
    StandardScope.PROJECT_FILES,
    StandardScope.PROJECT_PRODUCTION_FILES,
    StandardScope.PROJECT_TEST_FILES,
}
_WITH_LIBRARIES_SCOPES = {
    StandardScope.ALL_PLACES,
    StandardScope.PROJECT_AND_LIBRARIES,
}
_WITH_LIBRARIES_FLAVORS = {
    ModuleFlavor.MODULE_WITH_LIBRARIES,
    ModuleFlavor.MODULE_WITH_DEPENDENCIES_AND_LIBRARIES,
}


def matches_intent(item: CatalogItem, intent: CatalogIntent) -> bool:
    """Whether a catalog item is a candidate for ``intent``."""
    serialization_id = item.serialization_id
    if intent == CatalogIntent.PROJECT_ONLY:
        return serialization_id in _PROJECT_ONLY_SCOPES or item.kind == AtomKind.MODULE
    if intent == CatalogIntent.WITH_LIBRARIES:
        return serialization_id in _WITH_LIBRARIES_SCOPES or item.module_flavor in _WITH_LIBRARIES_FLAVORS
    if intent == CatalogIntent.CHANGED_FILES:
        return serialization_id == StandardScope.RECENTLY_CHANGED_FILES
    if intent == CatalogIntent.OPEN_FILES:
        return serialization_id == StandardScope.OPEN_FILES
    return serialization_id == StandardScope.CURRENT_FILE


def check_descriptor_version(descriptor: ProgramDescriptor) -> None:
    if descriptor.version not in SUPPORTED_DESCRIPTOR_VERSIONS:
        raise UnsupportedDescriptorVersion(descriptor.version)


class ScopeResolver:
    """Compiles scope programs into descriptors and resolves descriptors into predicates.

    Args:
        workspace: Workspace model to resolve against
        providers: Scope providers contributing extra catalog entries
        config: Engine defaults (policy, failure mode, collision handling)
    """

    def __init__(
        self,
        workspace: WorkspaceModel,
        providers: Iterable[object] = (),
        config: Optional[EngineConfig] = None,
    ):
        self.workspace = workspace
        self.providers = list(providers)
        self.config = config or EngineConfig()

    def build_catalog(self) -> CatalogSnapshot:
        return build_catalog(
            self.workspace,
            self.providers,
            collision_policy=self.config.collision_policy,
            family_order=self.config.family_order,
        )

    def list_catalog(self, allow_interactive: Optional[bool] = None) -> CatalogResult:
        """Every catalog item, hiding interactive scopes unless allowed."""
        include = self.config.allow_interactive if allow_interactive is None else allow_interactive
        catalog = self.build_catalog()
        return CatalogResult(items=catalog.items(include_interactive=include), diagnostics=catalog.diagnostics)

    def validate_pattern(self, pattern_text: str) -> PatternValidationResult:
        try:
            normalized = self.workspace.normalize_pattern(pattern_text)
        except PatternSyntaxError as exc:
            return PatternValidationResult(valid=False, diagnostics=[str(exc)])
        return PatternValidationResult(valid=True, normalized_pattern_text=normalized)

    # -- programs ----------------------------------------------------------

    def _policy(self, request: ResolveRequest, strict_override: Optional[bool]) -> ResolutionPolicy:
        return resolve_policy(
            config_default=self.config.policy,
            request_override=None if request.strict is None else ResolutionPolicy.from_strict(request.strict),
            runtime_override=None if strict_override is None else ResolutionPolicy.from_strict(strict_override),
        )

    def _evaluate(
        self,
        catalog: CatalogSnapshot,
        atoms: Sequence[ScopeAtom],
        tokens: Sequence[ProgramToken],
        policy: ResolutionPolicy,
        allow_interactive: bool,
        default_failure_mode: FailureMode,
    ) -> ResolvedScope:
        evaluator = ProgramEvaluator(
            AtomResolver(catalog, self.workspace, allow_interactive=allow_interactive),
            policy=policy,
            default_failure_mode=default_failure_mode,
        )
        return evaluator.evaluate(tokens, index_atoms(atoms))

    def resolve_request(self, request: ResolveRequest, strict: Optional[bool] = None) -> ResolvedScope:
        """Evaluate a request as-is, without normalizing its atoms first."""
        allow_interactive = self._allow_interactive(request)
        return self._evaluate(
            self.build_catalog(),
            request.atoms,
            request.tokens,
            self._policy(request, strict),
            allow_interactive,
            request.default_failure_mode or self.config.default_failure_mode,
        )

    def _allow_interactive(self, request: ResolveRequest) -> bool:
        if request.allow_interactive is None:
            return self.config.allow_interactive
        return request.allow_interactive

    def compile(self, request: ResolveRequest, strict: Optional[bool] = None) -> ProgramDescriptor:
        """Normalize atoms, evaluate the program and package a descriptor.

        Args:
            request: Atoms, tokens and per-request policy
            strict: Runtime override of the resolution policy

        Raises:
            StructuralError: malformed program, always
            ResolutionError: unresolvable atom under the strict policy
            NegationError: NOT on a non-global operand under the strict policy
        """
        policy = self._policy(request, strict)
        allow_interactive = self._allow_interactive(request)
        failure_mode = request.default_failure_mode or self.config.default_failure_mode
        catalog = self.build_catalog()

        check_program(request.tokens, index_atoms(request.atoms))
        normalized, diagnostics = normalize_atoms(
            request.atoms,
            catalog,
            self.workspace,
            allow_interactive=allow_interactive,
            policy=policy,
        )
        resolved = self._evaluate(catalog, normalized, request.tokens, policy, allow_interactive, failure_mode)
        logger.debug(
            "Compiled scope program: %d atoms, %d tokens, shape=%s",
            len(normalized),
            len(request.tokens),
            resolved.shape.value,
        )
        return ProgramDescriptor(
            atoms=normalized,
            tokens=list(request.tokens),
            display_name=resolved.display_name,
            shape=resolved.shape,
            diagnostics=merge_diagnostics(diagnostics, resolved.diagnostics),
        )

    def compile_program(
        self,
        atoms: Sequence[ScopeAtom],
        tokens: Sequence[ProgramToken],
        strict: Optional[bool] = None,
        allow_interactive: Optional[bool] = None,
    ) -> ProgramDescriptor:
        return self.compile(
            ResolveRequest(atoms=list(atoms), tokens=list(tokens), strict=strict, allow_interactive=allow_interactive)
        )

    def resolve(
        self,
        descriptor: ProgramDescriptor,
        allow_interactive: Optional[bool] = None,
        strict: bool = True,
    ) -> ResolvedScope:
        """Re-derive a live predicate from a stored descriptor.

        Raises:
            UnsupportedDescriptorVersion: descriptor version is not understood
        """
        check_descriptor_version(descriptor)
        request = ResolveRequest(
            atoms=descriptor.atoms,
            tokens=descriptor.tokens,
            strict=strict,
            allow_interactive=allow_interactive,
            default_failure_mode=FailureMode.EMPTY_SCOPE,
        )
        return self.resolve_request(request)

    def normalize_descriptor(
        self,
        descriptor: ProgramDescriptor,
        allow_interactive: Optional[bool] = None,
    ) -> ProgramDescriptor:
        """Recompile a stored descriptor strictly, keeping its earlier diagnostics."""
        check_descriptor_version(descriptor)
        request = ResolveRequest(
            atoms=descriptor.atoms,
            tokens=descriptor.tokens,
            strict=True,
            allow_interactive=allow_interactive,
            default_failure_mode=FailureMode.EMPTY_SCOPE,
        )
        normalized = self.compile(request)
        return normalized.model_copy(
            update={"diagnostics": merge_diagnostics(descriptor.diagnostics, normalized.diagnostics)}
        )

    def standard_descriptor(
        self,
        standard_scope_id: str,
        allow_interactive: Optional[bool] = None,
    ) -> ProgramDescriptor:
        """Descriptor for a single standard scope."""
        if not standard_scope_id or not standard_scope_id.strip():
            raise ValueError("standard_scope_id must not be blank.")
        request = ResolveRequest(
            atoms=[ScopeAtom(atom_id=STANDARD_ATOM_ID, kind=AtomKind.STANDARD, standard_scope_id=standard_scope_id)],
            tokens=[ProgramToken.push(STANDARD_ATOM_ID)],
            strict=True,
            allow_interactive=allow_interactive,
            default_failure_mode=FailureMode.EMPTY_SCOPE,
        )
        return self.compile(request)

    def preset_descriptor(
        self,
        preset: ScopePreset,
        allow_interactive: Optional[bool] = None,
    ) -> ProgramDescriptor:
        return self.standard_descriptor(preset.to_standard_scope().value, allow_interactive=allow_interactive)

    def find_by_intent(
        self,
        intent: CatalogIntent,
        max_results: int = 20,
        include_interactive: bool = False,
    ) -> CatalogIntentResult:
        """Compact catalog subset for a selection intent.

        Stable, non-interactive scopes sort first, then by display name.
        """
        if max_results < 1:
            raise ValueError("max_results must be >= 1.")
        catalog = self.list_catalog(allow_interactive=include_interactive)
        candidates = [item for item in catalog.items if matches_intent(item, intent)]
        candidates.sort(key=lambda item: (item.requires_user_input, item.unstable, item.display_name.lower()))
        selected = candidates[:max_results]

        diagnostics = list(catalog.diagnostics)
        if not selected:
            diagnostics.append(
                f"No catalog items matched intent={intent.value}. "
                "Consider include_interactive=true or a different intent."
            )
        if len(candidates) > max_results:
            diagnostics.append(f"Matched catalog items exceed max_results={max_results}; result was truncated.")
        return CatalogIntentResult(
            intent=intent,
            recommended_scope_ref_id=selected[0].scope_ref_id if selected else None,
            items=selected,
            diagnostics=merge_diagnostics(diagnostics),
        )
