"""Search planning for consumers that enumerate files.

Only global predicates can drive enumeration. A plan splits a resolved
scope into a *recall* predicate (a global superset that is safe to
enumerate) and an optional per-file *post-filter* that restores precision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from .models import Shape
from .predicates import BasePredicate, Predicate, ScopeParts

if TYPE_CHECKING:
    from scopekit.workspace.model import FileHandle, WorkspaceModel

    from .evaluator import ResolvedScope

logger = logging.getLogger(__name__)


@dataclass
class SearchPlan:
    recall: Predicate
    post_filter: Optional[Callable[[FileHandle], bool]] = None
    diagnostics: list[str] = field(default_factory=list)

    def accepts(self, file: FileHandle) -> bool:
        if not self.recall.contains(file):
            return False
        return self.post_filter is None or self.post_filter(file)

    def select(self, files: Iterable[FileHandle]) -> list[FileHandle]:
        return [file for file in files if self.accepts(file)]


def global_and_local_parts(predicate: Predicate) -> Optional[ScopeParts]:
    """Ask a predicate to split itself; opaque predicates may not support it.

    External predicates may answer with a plain ``(global, local)`` pair,
    which is read as their union.
    """
    splitter = getattr(predicate, "as_global_and_local_parts", None)
    if not callable(splitter):
        return None
    parts = splitter()
    if parts is None or isinstance(parts, ScopeParts):
        return parts
    global_part, local_part = parts
    return ScopeParts(global_part, local_part)


def build_search_plan(resolved: ResolvedScope, workspace: WorkspaceModel) -> SearchPlan:
    """Plan enumeration for ``resolved``.

    Args:
        resolved: Result of resolving a descriptor
        workspace: Workspace providing the broadest global scope

    Returns:
        SearchPlan whose ``select`` yields exactly the files the scope contains
    """
    predicate = resolved.predicate
    name = resolved.display_name

    if resolved.shape == Shape.LOCAL:
        return SearchPlan(
            recall=workspace.everything(),
            post_filter=predicate.contains,
            diagnostics=[f"Scope '{name}' is local; scanning all files and filtering by local membership."],
        )

    if resolved.shape == Shape.GLOBAL:
        return SearchPlan(recall=predicate)

    parts = global_and_local_parts(predicate)
    if parts is not None and parts.conjunctive:
        return SearchPlan(
            recall=parts.global_part,
            post_filter=parts.local_part.contains,
            diagnostics=[
                f"Scope '{name}' narrows global '{parts.global_part.display_name}' "
                f"by local '{parts.local_part.display_name}'; members of the global part are checked per file."
            ],
        )

    if parts is not None:
        global_part, local_part = parts.global_part, parts.local_part
        return SearchPlan(
            recall=workspace.everything(),
            post_filter=lambda f: global_part.contains(f) or local_part.contains(f),
            diagnostics=[
                f"Scope '{name}' combines global '{global_part.display_name}' "
                f"and local '{local_part.display_name}'; local members are checked per file."
            ],
        )

    if isinstance(predicate, BasePredicate):
        return SearchPlan(
            recall=workspace.everything(),
            post_filter=predicate.contains,
            diagnostics=[
                f"Scope '{name}' is bounded only by local parts; scanning all files and testing membership per file."
            ],
        )

    logger.warning("Scope %r cannot be decomposed; falling back to a full scan", name)
    return SearchPlan(
        recall=workspace.everything(),
        post_filter=predicate.contains,
        diagnostics=[
            f"Scope '{name}' is mixed and cannot be split into global and local parts; "
            "scanning all files and testing membership per file."
        ],
    )
