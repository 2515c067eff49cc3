"""Atom normalization.

Turns a raw atom into its canonical form. An atom whose reference id the
catalog knows is looked up and enriched with the record's metadata, whatever
its kind; ad-hoc kinds always get a reference id recomputed from their
payload, and the remaining kinds synthesize one from theirs. Normalizing an
already-normalized atom returns it unchanged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from scopekit.workspace.errors import PatternSyntaxError

from .catalog import (
    CatalogSnapshot,
    directory_ref_id,
    files_ref_id,
    matching_holders,
    module_ref_id,
    named_ref_id,
    pattern_ref_id,
    standard_ref_id,
)
from .exceptions import InvalidAtomError, ResolutionError, StructuralError
from .models import AtomKind, ScopeAtom
from .strictness import ResolutionPolicy

if TYPE_CHECKING:
    from scopekit.workspace.model import WorkspaceModel

logger = logging.getLogger(__name__)


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _require(atom: ScopeAtom, value: str | None, field_name: str) -> str:
    if _blank(value):
        raise InvalidAtomError(
            atom.atom_id,
            f"Atom '{atom.atom_id}' kind {atom.kind.value} requires {field_name}.",
        )
    return (value or "").strip()


class AtomNormalizer:
    """Normalizes atoms against one catalog snapshot.

    Args:
        catalog: Snapshot built for the current call
        workspace: Workspace the snapshot was built from
        allow_interactive: Whether records that require user input may be used
        policy: STRICT raises ResolutionError, LENIENT records diagnostics
    """

    def __init__(
        self,
        catalog: CatalogSnapshot,
        workspace: WorkspaceModel,
        allow_interactive: bool = False,
        policy: ResolutionPolicy = ResolutionPolicy.STRICT,
    ):
        self.catalog = catalog
        self.workspace = workspace
        self.allow_interactive = allow_interactive
        self.policy = policy
        self.diagnostics: list[str] = []

    def _fail_or_diagnose(self, error: ResolutionError) -> None:
        if self.policy == ResolutionPolicy.STRICT:
            raise error
        logger.debug("Lenient normalization: %s", error)
        self.diagnostics.append(str(error))

    def normalize_all(self, atoms: Sequence[ScopeAtom]) -> list[ScopeAtom]:
        """Normalize every atom, rejecting duplicate atom ids."""
        seen: set[str] = set()
        for atom in atoms:
            if atom.atom_id in seen:
                raise StructuralError(f"Duplicate atom_id '{atom.atom_id}' in request.")
            seen.add(atom.atom_id)
        return [self.normalize(atom) for atom in atoms]

    def normalize(self, atom: ScopeAtom) -> ScopeAtom:
        if self.catalog.resolves_by_reference(atom):
            return self._normalize_reference(atom)
        if atom.kind == AtomKind.STANDARD:
            scope_id = _require(atom, atom.standard_scope_id, "standard_scope_id")
            return atom.model_copy(update={"standard_scope_id": scope_id, "scope_ref_id": standard_ref_id(scope_id)})
        if atom.kind == AtomKind.MODULE:
            name = _require(atom, atom.module_name, "module_name")
            if atom.module_flavor is None:
                raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' kind module requires module_flavor.")
            return atom.model_copy(update={"module_name": name, "scope_ref_id": module_ref_id(name, atom.module_flavor)})
        if atom.kind == AtomKind.NAMED_PATTERN:
            return self._normalize_named(atom)
        if atom.kind == AtomKind.ADHOC_PATTERN:
            return self._normalize_pattern(atom)
        if atom.kind == AtomKind.DIRECTORY:
            url = _require(atom, atom.directory_url, "directory_url")
            return atom.model_copy(update={"directory_url": url, "scope_ref_id": directory_ref_id(url)})
        if atom.kind == AtomKind.FILE_SET:
            urls = _canonical_urls(atom.file_urls)
            if not urls:
                raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' kind file_set requires non-empty file_urls.")
            return atom.model_copy(update={"file_urls": urls, "scope_ref_id": files_ref_id(urls)})
        raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' has unsupported kind '{atom.kind}'.")

    def _normalize_reference(self, atom: ScopeAtom) -> ScopeAtom:
        ref_id = _require(atom, atom.scope_ref_id, "scope_ref_id")
        record = self.catalog.get(ref_id)
        if record is None:
            self._fail_or_diagnose(ResolutionError(f"Unknown scope_ref_id '{ref_id}'.", atom.atom_id))
            return atom
        item = record.item
        if item.requires_user_input and not self.allow_interactive:
            self._fail_or_diagnose(
                ResolutionError(
                    f"Scope '{ref_id}' requires user input and interactive scopes are not allowed.",
                    atom.atom_id,
                )
            )
            return atom
        return atom.model_copy(
            update={
                "kind": item.kind,
                "scope_ref_id": item.scope_ref_id,
                "standard_scope_id": item.serialization_id or atom.standard_scope_id,
                "module_name": item.module_name or atom.module_name,
                "module_flavor": item.module_flavor or atom.module_flavor,
                "named_scope_name": item.named_scope_name or atom.named_scope_name,
                "named_scope_holder_id": item.named_scope_holder_id or atom.named_scope_holder_id,
                "provider_id": item.provider_id or atom.provider_id,
                "file_urls": _canonical_urls(atom.file_urls),
            }
        )

    def _normalize_named(self, atom: ScopeAtom) -> ScopeAtom:
        name = _require(atom, atom.named_scope_name, "named_scope_name")
        if not _blank(atom.named_scope_holder_id):
            holder_id = atom.named_scope_holder_id.strip()  # type: ignore[union-attr]
            return atom.model_copy(
                update={
                    "named_scope_name": name,
                    "named_scope_holder_id": holder_id,
                    "scope_ref_id": named_ref_id(holder_id, name),
                }
            )
        holders = [holder.holder_id for holder in matching_holders(self.workspace, name)]
        if not holders:
            self._fail_or_diagnose(ResolutionError(f"Named scope '{name}' not found.", atom.atom_id))
            return atom
        if len(holders) > 1:
            self._fail_or_diagnose(
                ResolutionError(
                    f"Named scope '{name}' is ambiguous across holders {', '.join(holders)}; "
                    "specify named_scope_holder_id.",
                    atom.atom_id,
                    candidates=holders,
                )
            )
            return atom
        return atom.model_copy(
            update={
                "named_scope_name": name,
                "named_scope_holder_id": holders[0],
                "scope_ref_id": named_ref_id(holders[0], name),
            }
        )

    def _normalize_pattern(self, atom: ScopeAtom) -> ScopeAtom:
        raw = _require(atom, atom.pattern_text, "pattern_text")
        try:
            normalized = self.workspace.normalize_pattern(raw)
        except PatternSyntaxError as exc:
            self._fail_or_diagnose(ResolutionError(str(exc), atom.atom_id))
            normalized = raw
        return atom.model_copy(update={"pattern_text": normalized, "scope_ref_id": pattern_ref_id(normalized)})


def _canonical_urls(urls: Sequence[str]) -> tuple[str, ...]:
    return tuple(sorted({url.strip() for url in urls if url.strip()}))


def normalize_atoms(
    atoms: Sequence[ScopeAtom],
    catalog: CatalogSnapshot,
    workspace: WorkspaceModel,
    allow_interactive: bool = False,
    policy: ResolutionPolicy = ResolutionPolicy.STRICT,
) -> tuple[list[ScopeAtom], list[str]]:
    """Normalize ``atoms`` and return them with any lenient diagnostics.

    Raises:
        StructuralError: duplicate atom ids or missing kind payload
        ResolutionError: unresolvable atoms under the STRICT policy
    """
    normalizer = AtomNormalizer(catalog, workspace, allow_interactive=allow_interactive, policy=policy)
    normalized = normalizer.normalize_all(atoms)
    return normalized, normalizer.diagnostics
