"""RPN program evaluator.

Executes ``push_atom``/``and``/``or``/``not`` tokens over normalized atoms
using an explicit stack and produces one :class:`ResolvedScope`.

Errors fall in three groups:

- StructuralError: the program itself is malformed. Always fatal.
- ResolutionError: an atom could not be resolved. Fatal when strict,
  otherwise handled by the atom's failure mode.
- NegationError: ``not`` on a non-global operand. Fatal when strict,
  otherwise replaced by the empty scope.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

from scopekit.workspace.errors import WorkspaceError

from .catalog import CatalogSnapshot, matching_holders, standard_ref_id
from .exceptions import InvalidAtomError, NegationError, ResolutionError, StructuralError
from .models import AtomKind, FailureMode, ProgramOp, ProgramToken, ScopeAtom, Shape
from .predicates import EMPTY_SCOPE, Predicate, complement, intersect, union
from .strictness import ResolutionPolicy, effective_failure_mode, should_abort

if TYPE_CHECKING:
    from scopekit.workspace.model import FileHandle, WorkspaceModel

logger = logging.getLogger(__name__)

_ARITY = {
    ProgramOp.PUSH_ATOM: 0,
    ProgramOp.AND: 2,
    ProgramOp.OR: 2,
    ProgramOp.NOT: 1,
}


@dataclass(frozen=True)
class ResolvedScope:
    """Live result of evaluating a scope program. Not serializable."""

    predicate: Predicate
    display_name: str
    shape: Shape
    diagnostics: tuple[str, ...] = ()

    def contains(self, file: FileHandle) -> bool:
        return self.predicate.contains(file)


def index_atoms(atoms: Sequence[ScopeAtom]) -> dict[str, ScopeAtom]:
    """Map atom ids to atoms, rejecting duplicates."""
    by_id: dict[str, ScopeAtom] = {}
    for atom in atoms:
        if atom.atom_id in by_id:
            raise StructuralError(f"Duplicate atom_id '{atom.atom_id}' in request.")
        by_id[atom.atom_id] = atom
    return by_id


def check_program(tokens: Sequence[ProgramToken], atoms_by_id: Mapping[str, ScopeAtom]) -> None:
    """Validate program structure without resolving anything.

    Simulates the stack depth so arity problems are reported before any
    atom is resolved.

    Raises:
        StructuralError: empty program, push without atom id, unknown atom id,
            arity violation, or final stack size other than 1
    """
    if not tokens:
        raise StructuralError("Scope program tokens must not be empty.")
    depth = 0
    for index, token in enumerate(tokens):
        if token.op == ProgramOp.PUSH_ATOM:
            if not token.atom_id:
                raise StructuralError(f"Token[{index}] push_atom requires atom_id.", index)
            if token.atom_id not in atoms_by_id:
                raise StructuralError(f"Token[{index}] references unknown atom_id '{token.atom_id}'.", index)
            depth += 1
            continue
        _ensure_depth(depth, index, token.op)
        depth -= _ARITY[token.op] - 1
    if depth != 1:
        raise StructuralError(f"Scope program is invalid: final stack size must be 1, but was {depth}.")


def _ensure_depth(depth: int, index: int, op: ProgramOp) -> None:
    expected = _ARITY[op]
    if depth < expected:
        raise StructuralError(
            f"Token[{index}] {op.value.upper()} requires {expected} stack items, but stack size is {depth}.",
            index,
        )


class AtomResolver:
    """Turns one normalized atom into a predicate."""

    def __init__(self, catalog: CatalogSnapshot, workspace: WorkspaceModel, allow_interactive: bool = False):
        self.catalog = catalog
        self.workspace = workspace
        self.allow_interactive = allow_interactive

    def _by_ref(self, ref_id: str) -> Predicate:
        record = self.catalog.get(ref_id)
        if record is None:
            raise ResolutionError(f"Unknown scope_ref_id '{ref_id}'.")
        if record.item.requires_user_input and not self.allow_interactive:
            raise ResolutionError(f"Scope '{ref_id}' requires user input and interactive scopes are not allowed.")
        return record.predicate

    def resolve(self, atom: ScopeAtom) -> Predicate:
        """Resolve ``atom``.

        Raises:
            ResolutionError: the atom does not resolve in this workspace
            InvalidAtomError: the atom lacks the payload its kind requires
        """
        try:
            return self._resolve(atom)
        except ResolutionError as exc:
            if exc.atom_id is None:
                exc.atom_id = atom.atom_id
            raise
        except WorkspaceError as exc:
            raise ResolutionError(str(exc), atom.atom_id) from exc

    def _resolve(self, atom: ScopeAtom) -> Predicate:
        kind = atom.kind
        if self.catalog.resolves_by_reference(atom):
            ref_id = (atom.scope_ref_id or "").strip()
            if not ref_id:
                raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' kind {kind.value} requires scope_ref_id.")
            return self._by_ref(ref_id)

        if kind == AtomKind.STANDARD:
            if not atom.standard_scope_id:
                raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' kind standard requires standard_scope_id.")
            ref_id = standard_ref_id(atom.standard_scope_id)
            if self.catalog.get(ref_id) is None:
                raise ResolutionError(f"Standard scope '{atom.standard_scope_id}' cannot be resolved in this context.")
            return self._by_ref(ref_id)

        if kind == AtomKind.MODULE:
            if not atom.module_name or atom.module_flavor is None:
                raise InvalidAtomError(
                    atom.atom_id, f"Atom '{atom.atom_id}' kind module requires module_name and module_flavor."
                )
            module = self.workspace.find_module(atom.module_name)
            if module is None:
                raise ResolutionError(f"Module '{atom.module_name}' not found.")
            return self.workspace.module_scope(module, atom.module_flavor)

        if kind == AtomKind.NAMED_PATTERN:
            return self._resolve_named(atom)

        if kind == AtomKind.ADHOC_PATTERN:
            if not atom.pattern_text:
                raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' kind adhoc_pattern requires pattern_text.")
            return self.workspace.compile_pattern(atom.pattern_text)

        if kind == AtomKind.DIRECTORY:
            if not atom.directory_url:
                raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' kind directory requires directory_url.")
            return self.workspace.directory_scope(atom.directory_url, atom.directory_recursive)

        if kind == AtomKind.FILE_SET:
            if not atom.file_urls:
                raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' kind file_set requires non-empty file_urls.")
            return self.workspace.files_scope(list(atom.file_urls))

        raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' has unsupported kind '{kind}'.")

    def _resolve_named(self, atom: ScopeAtom) -> Predicate:
        name = atom.named_scope_name
        if not name:
            raise InvalidAtomError(atom.atom_id, f"Atom '{atom.atom_id}' kind named_pattern requires named_scope_name.")
        holder_id = atom.named_scope_holder_id
        if holder_id:
            holders = [h for h in self.workspace.named_scope_holders() if h.holder_id == holder_id]
            named_scope = holders[0].get_scope(name) if holders else None
        else:
            candidates = matching_holders(self.workspace, name)
            if len(candidates) > 1:
                holder_ids = [h.holder_id for h in candidates]
                raise ResolutionError(
                    f"Named scope '{name}' is ambiguous across holders {', '.join(holder_ids)}; "
                    "specify named_scope_holder_id.",
                    candidates=holder_ids,
                )
            named_scope = candidates[0].get_scope(name) if candidates else None
        if named_scope is None:
            raise ResolutionError(f"Named scope '{name}' not found.")
        if named_scope.pattern is None:
            raise ResolutionError(f"Named scope '{name}' has no pattern and cannot be resolved.")
        return self.workspace.compile_pattern(named_scope.pattern, named_scope.display_name)


class ProgramEvaluator:
    """Stack machine over resolved atoms.

    A stack entry of ``None`` marks an atom skipped under FailureMode.SKIP.
    AND/OR with one skipped side yield the other side; NOT of a skipped
    entry stays skipped.
    """

    def __init__(
        self,
        resolver: AtomResolver,
        policy: ResolutionPolicy = ResolutionPolicy.STRICT,
        default_failure_mode: FailureMode = FailureMode.EMPTY_SCOPE,
    ):
        self.resolver = resolver
        self.policy = policy
        self.default_failure_mode = default_failure_mode
        self.diagnostics: list[str] = []

    def evaluate(self, tokens: Sequence[ProgramToken], atoms_by_id: Mapping[str, ScopeAtom]) -> ResolvedScope:
        check_program(tokens, atoms_by_id)
        stack: list[Optional[Predicate]] = []
        for index, token in enumerate(tokens):
            if token.op == ProgramOp.PUSH_ATOM:
                stack.append(self._push(atoms_by_id[token.atom_id]))  # type: ignore[index]
            elif token.op in (ProgramOp.AND, ProgramOp.OR):
                _ensure_depth(len(stack), index, token.op)
                right = stack.pop()
                left = stack.pop()
                stack.append(self._combine(token.op, left, right))
            else:
                _ensure_depth(len(stack), index, token.op)
                stack.append(self._negate(index, stack.pop()))
            logger.debug("Token[%d] %s -> stack size %d", index, token.op.value, len(stack))

        if len(stack) != 1:
            raise StructuralError(f"Scope program is invalid: final stack size must be 1, but was {len(stack)}.")
        result = stack[0]
        if result is None:
            raise ResolutionError(
                "Scope program resolved to an empty expression after fallback processing. "
                "Provide at least one resolvable atom or use the empty_scope failure mode."
            )
        return ResolvedScope(
            predicate=result,
            display_name=result.display_name,
            shape=result.shape,
            diagnostics=tuple(dict.fromkeys(self.diagnostics)),
        )

    def _push(self, atom: ScopeAtom) -> Optional[Predicate]:
        try:
            return self.resolver.resolve(atom)
        except ResolutionError as exc:
            mode = effective_failure_mode(atom.on_resolve_failure, self.default_failure_mode)
            if should_abort(self.policy, mode):
                raise
            if mode == FailureMode.SKIP:
                self.diagnostics.append(f"{exc} Fallback mode=SKIP.")
                return None
            self.diagnostics.append(f"{exc} Fallback mode=EMPTY_SCOPE.")
            return EMPTY_SCOPE

    @staticmethod
    def _combine(op: ProgramOp, left: Optional[Predicate], right: Optional[Predicate]) -> Optional[Predicate]:
        if left is None:
            return right
        if right is None:
            return left
        return intersect(left, right) if op == ProgramOp.AND else union(left, right)

    def _negate(self, index: int, operand: Optional[Predicate]) -> Optional[Predicate]:
        if operand is None:
            self.diagnostics.append(f"Token[{index}] NOT operand skipped; result remains unresolved.")
            return None
        if operand.shape != Shape.GLOBAL:
            if should_abort(self.policy, self.default_failure_mode):
                raise NegationError(index, operand.shape.value)
            self.diagnostics.append(
                f"Token[{index}] NOT operand is {operand.shape.value.upper()}, not GLOBAL; replaced with empty scope."
            )
            return EMPTY_SCOPE
        return complement(operand)


def evaluate_program(
    tokens: Sequence[ProgramToken],
    atoms: Sequence[ScopeAtom],
    catalog: CatalogSnapshot,
    workspace: WorkspaceModel,
    policy: ResolutionPolicy = ResolutionPolicy.STRICT,
    allow_interactive: bool = False,
    default_failure_mode: FailureMode = FailureMode.EMPTY_SCOPE,
) -> ResolvedScope:
    """Evaluate an RPN program over ``atoms`` against one catalog snapshot."""
    evaluator = ProgramEvaluator(
        AtomResolver(catalog, workspace, allow_interactive=allow_interactive),
        policy=policy,
        default_failure_mode=default_failure_mode,
    )
    return evaluator.evaluate(tokens, index_atoms(atoms))
