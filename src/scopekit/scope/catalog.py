"""Catalog builder: a per-call snapshot of every atomic scope in a workspace.

The snapshot is rebuilt on every call and never cached, because the
workspace can change between calls. Four families are collected in order
(standard presets, provider scopes, named pattern scopes, module flavors)
and keyed by deterministic reference ids:

    standard:<preset id>
    provider:<provider id>:<hash of provider id, display name, implementation>
    named:<holder id>:<scope name>
    module:<module name>:<flavor>

When two families produce the same id, the collision policy decides which
record is kept. The default keeps the first registration.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Iterable, Optional, Sequence

from scopekit.workspace.errors import PatternSyntaxError

from .models import (
    AD_HOC_KINDS,
    STANDARD_SCOPE_DISPLAY_NAMES,
    UNSTABLE_STANDARD_SCOPES,
    AtomKind,
    CatalogItem,
    ModuleFlavor,
    ScopeAtom,
    Shape,
    StandardScope,
)
from .predicates import Predicate

if TYPE_CHECKING:
    from scopekit.workspace.model import NamedScopeHolder, WorkspaceModel

logger = logging.getLogger(__name__)

PREDEFINED_PROVIDER_ID = "predefined"

# Provider methods tried in this order; both are collected when present
PROVIDER_SCOPE_METHODS = ("general_scopes", "list_scopes")

_DISPLAY_NAME_TO_STANDARD = {name: scope_id for scope_id, name in STANDARD_SCOPE_DISPLAY_NAMES.items()}


class CatalogFamily(StrEnum):
    STANDARD = "standard"
    PROVIDER = "provider"
    NAMED = "named"
    MODULE = "module"


DEFAULT_FAMILY_ORDER: tuple[CatalogFamily, ...] = (
    CatalogFamily.STANDARD,
    CatalogFamily.PROVIDER,
    CatalogFamily.NAMED,
    CatalogFamily.MODULE,
)


class CollisionPolicy(StrEnum):
    """Which record survives when two records share a reference id."""

    FIRST_WINS = "first_wins"
    LAST_WINS = "last_wins"


def short_hash(text: str, length: int = 12) -> str:
    """First ``length`` hex digits of the SHA-256 of ``text``."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]


def standard_ref_id(scope_id: str) -> str:
    return f"standard:{scope_id}"


def module_ref_id(module_name: str, flavor: ModuleFlavor) -> str:
    return f"module:{module_name}:{flavor.value}"


def named_ref_id(holder_id: str, scope_name: str) -> str:
    return f"named:{holder_id}:{scope_name}"


def provider_ref_id(provider_id: str, display_name: str, implementation: str) -> str:
    return f"provider:{provider_id}:{short_hash(f'{provider_id}|{display_name}|{implementation}')}"


def pattern_ref_id(normalized_pattern: str) -> str:
    return f"pattern:{short_hash(normalized_pattern)}"


def directory_ref_id(directory_url: str) -> str:
    return f"directory:{directory_url}"


def files_ref_id(sorted_urls: Sequence[str]) -> str:
    joined = "\n".join(sorted_urls)
    return f"files:{short_hash(joined)}"


def implementation_name(obj: object) -> str:
    """Stable name of an object's implementation, used in provider ref ids."""
    cls = type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


def provider_id_of(provider: object) -> str:
    provider_id = getattr(provider, "provider_id", None)
    if isinstance(provider_id, str) and provider_id.strip():
        return provider_id.strip()
    return implementation_name(provider)


@dataclass(frozen=True)
class CatalogRecord:
    item: CatalogItem
    predicate: Predicate

    @property
    def scope_ref_id(self) -> str:
        return self.item.scope_ref_id


@dataclass
class CatalogSnapshot:
    """Records keyed by reference id, plus non-fatal build diagnostics."""

    records: dict[str, CatalogRecord] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)

    def get(self, scope_ref_id: str) -> Optional[CatalogRecord]:
        return self.records.get(scope_ref_id)

    def resolves_by_reference(self, atom: ScopeAtom) -> bool:
        """Whether ``atom`` is looked up by its ``scope_ref_id`` rather than its payload.

        Catalog references and provider atoms always are, and ad-hoc kinds never
        are. A standard, module or named atom uses its reference when this
        snapshot knows it, or when the atom carries no payload of its own.
        """
        if atom.kind in (AtomKind.CATALOG_REF, AtomKind.PROVIDER):
            return True
        if atom.kind in AD_HOC_KINDS or atom.scope_ref_id is None or not atom.scope_ref_id.strip():
            return False
        return atom.scope_ref_id.strip() in self.records or not _has_payload(atom)

    def lookup(self, scope_ref_id: str, allow_interactive: bool) -> Optional[CatalogRecord]:
        """Record for ``scope_ref_id``, hiding interactive records unless allowed."""
        record = self.records.get(scope_ref_id)
        if record is None:
            return None
        if record.item.requires_user_input and not allow_interactive:
            return None
        return record

    def items(self, include_interactive: bool = False) -> list[CatalogItem]:
        return [
            record.item
            for record in self.records.values()
            if include_interactive or not record.item.requires_user_input
        ]

    def __len__(self) -> int:
        return len(self.records)


def _has_payload(atom: ScopeAtom) -> bool:
    if atom.kind == AtomKind.STANDARD:
        return bool(atom.standard_scope_id and atom.standard_scope_id.strip())
    if atom.kind == AtomKind.MODULE:
        return bool(atom.module_name and atom.module_name.strip()) and atom.module_flavor is not None
    if atom.kind == AtomKind.NAMED_PATTERN:
        return bool(atom.named_scope_name and atom.named_scope_name.strip())
    return False


def matching_holders(workspace: WorkspaceModel, scope_name: str) -> list[NamedScopeHolder]:
    """Holders that expose a named scope called ``scope_name``."""
    return [holder for holder in workspace.named_scope_holders() if holder.get_scope(scope_name) is not None]


class _Registry:
    def __init__(self, policy: CollisionPolicy):
        self.policy = policy
        self.records: dict[str, CatalogRecord] = {}

    def register(self, record: CatalogRecord) -> None:
        ref_id = record.scope_ref_id
        existing = self.records.get(ref_id)
        if existing is not None:
            logger.debug(
                "Catalog collision on %s: %s vs %s (%s)",
                ref_id,
                existing.item.kind.value,
                record.item.kind.value,
                self.policy.value,
            )
            if self.policy == CollisionPolicy.FIRST_WINS:
                return
            # Re-insert so iteration order follows the surviving registration
            del self.records[ref_id]
        self.records[ref_id] = record


def build_catalog(
    workspace: WorkspaceModel,
    providers: Iterable[object] = (),
    collision_policy: CollisionPolicy = CollisionPolicy.FIRST_WINS,
    family_order: Sequence[CatalogFamily] = DEFAULT_FAMILY_ORDER,
) -> CatalogSnapshot:
    """Snapshot every atomic scope currently available in ``workspace``.

    Never raises for provider problems; those become diagnostics.

    Args:
        workspace: Workspace model to enumerate
        providers: Scope providers, each exposing ``provider_id`` and
            ``general_scopes(workspace)`` and/or ``list_scopes(workspace)``
        collision_policy: Which record survives a reference id collision
        family_order: Registration order of the four families

    Returns:
        CatalogSnapshot with records and deduplicated diagnostics
    """
    registry = _Registry(collision_policy)
    diagnostics: list[str] = []
    providers = list(providers)

    adders = {
        CatalogFamily.STANDARD: lambda: _add_predefined_scopes(workspace, registry),
        CatalogFamily.PROVIDER: lambda: _add_provider_scopes(workspace, providers, registry, diagnostics),
        CatalogFamily.NAMED: lambda: _add_named_scopes(workspace, registry, diagnostics),
        CatalogFamily.MODULE: lambda: _add_module_scopes(workspace, registry),
    }
    seen: set[CatalogFamily] = set()
    for family in list(family_order) + list(DEFAULT_FAMILY_ORDER):
        if family in seen:
            continue
        seen.add(family)
        adders[family]()

    unique = list(dict.fromkeys(diagnostics))
    logger.debug("Built scope catalog: %d records, %d diagnostics", len(registry.records), len(unique))
    return CatalogSnapshot(records=registry.records, diagnostics=unique)


def _add_predefined_scopes(workspace: WorkspaceModel, registry: _Registry) -> None:
    for scope in workspace.predefined_scopes():
        display_name = scope.display_name
        standard_id = _DISPLAY_NAME_TO_STANDARD.get(display_name)
        if standard_id is not None:
            item = CatalogItem(
                scope_ref_id=standard_ref_id(standard_id.value),
                display_name=display_name,
                kind=AtomKind.STANDARD,
                shape=scope.shape,
                serialization_id=standard_id.value,
                requires_user_input=standard_id == StandardScope.CURRENT_FILE or scope.shape == Shape.LOCAL,
                unstable=standard_id in UNSTABLE_STANDARD_SCOPES,
            )
        else:
            item = CatalogItem(
                scope_ref_id=provider_ref_id(PREDEFINED_PROVIDER_ID, display_name, implementation_name(scope)),
                display_name=display_name,
                kind=AtomKind.PROVIDER,
                shape=scope.shape,
                requires_user_input=scope.shape == Shape.LOCAL,
                provider_id=PREDEFINED_PROVIDER_ID,
            )
        registry.register(CatalogRecord(item=item, predicate=scope))


def _add_provider_scopes(
    workspace: WorkspaceModel,
    providers: list[object],
    registry: _Registry,
    diagnostics: list[str],
) -> None:
    for provider in providers:
        provider_id = provider_id_of(provider)
        for scope in collect_provider_scopes(provider, workspace, diagnostics):
            display_name = scope.display_name
            item = CatalogItem(
                scope_ref_id=provider_ref_id(provider_id, display_name, implementation_name(scope)),
                display_name=display_name,
                kind=AtomKind.PROVIDER,
                shape=scope.shape,
                requires_user_input=scope.shape == Shape.LOCAL,
                unstable=True,
                provider_id=provider_id,
            )
            registry.register(CatalogRecord(item=item, predicate=scope))


def collect_provider_scopes(
    provider: object,
    workspace: WorkspaceModel,
    diagnostics: list[str],
) -> list[Predicate]:
    """Invoke every recognized scope method on ``provider``.

    Failures are reported through ``diagnostics``; the provider's other
    methods and the remaining providers still run.
    """
    provider_id = provider_id_of(provider)
    scopes: list[Predicate] = []
    seen_ids: set[int] = set()
    found_method = False

    for method_name in PROVIDER_SCOPE_METHODS:
        method = getattr(provider, method_name, None)
        if not callable(method):
            continue
        found_method = True
        for scope in _call_provider_method(provider_id, method_name, method, workspace, diagnostics):
            if id(scope) not in seen_ids:
                seen_ids.add(id(scope))
                scopes.append(scope)

    if not found_method:
        diagnostics.append(
            f"Provider '{provider_id}' has no compatible scope method. "
            f"Expected {' or '.join(f'{name}(workspace)' for name in PROVIDER_SCOPE_METHODS)}."
        )
    return scopes


def _call_provider_method(
    provider_id: str,
    method_name: str,
    method: Any,
    workspace: WorkspaceModel,
    diagnostics: list[str],
) -> list[Predicate]:
    try:
        result = method(workspace)
    except Exception as exc:
        logger.warning("Scope provider %s.%s failed: %s", provider_id, method_name, exc)
        diagnostics.append(
            f"Provider '{provider_id}' method '{method_name}' invocation failed: {str(exc) or type(exc).__name__}."
        )
        return []
    if result is None:
        return []
    if isinstance(result, (str, bytes)) or not isinstance(result, Iterable):
        diagnostics.append(
            f"Provider '{provider_id}' method '{method_name}' returned non-iterable type '{type(result).__name__}'."
        )
        return []
    values = list(result)
    scopes = [value for value in values if isinstance(value, Predicate)]
    if len(scopes) != len(values):
        diagnostics.append(
            f"Provider '{provider_id}' method '{method_name}' returned non-predicate elements; ignored invalid entries."
        )
    return scopes


def _add_named_scopes(workspace: WorkspaceModel, registry: _Registry, diagnostics: list[str]) -> None:
    for holder in workspace.named_scope_holders():
        for named_scope in holder.scopes:
            if named_scope.pattern is None:
                continue
            try:
                scope = workspace.compile_pattern(named_scope.pattern, named_scope.display_name)
            except PatternSyntaxError as exc:
                diagnostics.append(f"Named scope '{named_scope.name}' in holder '{holder.holder_id}' skipped: {exc}")
                continue
            item = CatalogItem(
                scope_ref_id=named_ref_id(holder.holder_id, named_scope.name),
                display_name=named_scope.display_name,
                kind=AtomKind.NAMED_PATTERN,
                shape=Shape.GLOBAL,
                named_scope_name=named_scope.name,
                named_scope_holder_id=holder.holder_id,
            )
            registry.register(CatalogRecord(item=item, predicate=scope))


def _add_module_scopes(workspace: WorkspaceModel, registry: _Registry) -> None:
    for module in sorted(workspace.modules(), key=lambda m: m.name.lower()):
        for flavor in ModuleFlavor:
            item = CatalogItem(
                scope_ref_id=module_ref_id(module.name, flavor),
                display_name=f"{module.name} ({flavor.value})",
                kind=AtomKind.MODULE,
                shape=Shape.GLOBAL,
                module_name=module.name,
                module_flavor=flavor,
            )
            registry.register(CatalogRecord(item=item, predicate=workspace.module_scope(module, flavor)))
