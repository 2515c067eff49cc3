"""Membership predicates over workspace files and their boolean algebra.

A predicate answers one question, ``contains(file)``, and reports its
``shape`` and ``display_name``. Predicates built by scopekit itself derive
from :class:`BasePredicate`; predicates contributed by external providers
only need to satisfy the :class:`Predicate` protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Protocol, runtime_checkable

from .models import Shape

if TYPE_CHECKING:
    from scopekit.workspace.model import FileHandle


@runtime_checkable
class Predicate(Protocol):
    """Minimal surface every scope predicate offers."""

    display_name: str
    shape: Shape

    def contains(self, file: FileHandle) -> bool:
        ...


class BasePredicate:
    """Common behaviour for predicates constructed by scopekit."""

    display_name: str = ""
    shape: Shape = Shape.GLOBAL

    def contains(self, file: FileHandle) -> bool:
        raise NotImplementedError

    def as_global_and_local_parts(self) -> Optional[ScopeParts]:
        """Split a mixed predicate into a global part and a part tested per file."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.display_name!r} {self.shape.value}>"


class FilterScope(BasePredicate):
    """Global predicate backed by a per-file test."""

    def __init__(self, display_name: str, test: Callable[[FileHandle], bool]):
        self.display_name = display_name
        self.shape = Shape.GLOBAL
        self._test = test

    def contains(self, file: FileHandle) -> bool:
        return bool(self._test(file))


class EmptyScope(BasePredicate):
    """Accepts nothing. Global, so it can stand in anywhere."""

    def __init__(self) -> None:
        self.display_name = "Empty scope"
        self.shape = Shape.GLOBAL

    def contains(self, file: FileHandle) -> bool:
        return False


EMPTY_SCOPE = EmptyScope()


class LocalScope(BasePredicate):
    """Explicit snapshot of file urls; cannot be enumerated or negated."""

    def __init__(self, display_name: str, file_urls: Iterable[str]):
        self.display_name = display_name
        self.shape = Shape.LOCAL
        self.file_urls = frozenset(file_urls)

    def contains(self, file: FileHandle) -> bool:
        return file.url in self.file_urls


def combine_shapes(left: Shape, right: Shape) -> Shape:
    """Shape of an intersection or union of two shaped operands."""
    if left == right and left != Shape.MIXED:
        return left
    return Shape.MIXED


@dataclass(frozen=True)
class ScopeParts:
    """A mixed scope split into a global part and a part tested per file.

    A conjunctive split means ``global_part AND local_part``, so the global
    part alone bounds the scope. Otherwise the scope is
    ``global_part OR local_part``.
    """

    global_part: Predicate
    local_part: Predicate
    conjunctive: bool = False


def _conjunctive_parts(predicate: Predicate) -> Optional[ScopeParts]:
    parts = getattr(predicate, "as_global_and_local_parts", lambda: None)()
    return parts if isinstance(parts, ScopeParts) and parts.conjunctive else None


def _disjunctive_parts(predicate: Predicate) -> Optional[ScopeParts]:
    parts = getattr(predicate, "as_global_and_local_parts", lambda: None)()
    return parts if isinstance(parts, ScopeParts) and not parts.conjunctive else None


class IntersectionScope(BasePredicate):
    def __init__(self, left: Predicate, right: Predicate):
        self.left = left
        self.right = right
        self.display_name = f"Intersection of {left.display_name} and {right.display_name}"
        self.shape = combine_shapes(left.shape, right.shape)

    def contains(self, file: FileHandle) -> bool:
        return self.left.contains(file) and self.right.contains(file)

    def as_global_and_local_parts(self) -> Optional[ScopeParts]:
        if self.shape != Shape.MIXED:
            return None
        if self.left.shape == Shape.GLOBAL:
            return ScopeParts(self.left, self.right, conjunctive=True)
        if self.right.shape == Shape.GLOBAL:
            return ScopeParts(self.right, self.left, conjunctive=True)
        left, right = _conjunctive_parts(self.left), _conjunctive_parts(self.right)
        if left is not None and right is not None:
            return ScopeParts(
                IntersectionScope(left.global_part, right.global_part),
                IntersectionScope(left.local_part, right.local_part),
                conjunctive=True,
            )
        if left is not None:
            return ScopeParts(left.global_part, IntersectionScope(left.local_part, self.right), conjunctive=True)
        if right is not None:
            return ScopeParts(right.global_part, IntersectionScope(self.left, right.local_part), conjunctive=True)
        # Bounded only by local snapshots: nothing global to enumerate
        return None


class UnionScope(BasePredicate):
    def __init__(self, left: Predicate, right: Predicate):
        self.left = left
        self.right = right
        self.display_name = f"Union of {left.display_name} and {right.display_name}"
        self.shape = combine_shapes(left.shape, right.shape)

    def contains(self, file: FileHandle) -> bool:
        return self.left.contains(file) or self.right.contains(file)

    def as_global_and_local_parts(self) -> Optional[ScopeParts]:
        if self.shape != Shape.MIXED:
            return None
        if self.left.shape == Shape.GLOBAL:
            return ScopeParts(self.left, self.right)
        if self.right.shape == Shape.GLOBAL:
            return ScopeParts(self.right, self.left)
        left, right = _disjunctive_parts(self.left), _disjunctive_parts(self.right)
        if left is not None and right is not None:
            return ScopeParts(
                UnionScope(left.global_part, right.global_part),
                UnionScope(left.local_part, right.local_part),
            )
        if left is not None:
            return ScopeParts(left.global_part, UnionScope(left.local_part, self.right))
        if right is not None:
            return ScopeParts(right.global_part, UnionScope(self.left, right.local_part))
        return None


class ComplementScope(BasePredicate):
    """Every file the operand rejects. Only defined for global operands."""

    def __init__(self, operand: Predicate):
        if operand.shape != Shape.GLOBAL:
            raise ValueError(f"Complement requires a global operand, got {operand.shape.value}")
        self.operand = operand
        self.display_name = f"Not {operand.display_name}"
        self.shape = Shape.GLOBAL

    def contains(self, file: FileHandle) -> bool:
        return not self.operand.contains(file)


def intersect(left: Predicate, right: Predicate) -> Predicate:
    return IntersectionScope(left, right)


def union(left: Predicate, right: Predicate) -> Predicate:
    return UnionScope(left, right)


def complement(operand: Predicate) -> Predicate:
    return ComplementScope(operand)
