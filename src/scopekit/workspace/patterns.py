"""Scope pattern language.

A pattern combines file terms with boolean operators::

    src[app]:**/*.py && !test:**/fixtures/** || lib:vendor/*

A term is ``kind[module]:glob``. ``kind`` selects files by content root
(``file`` matches every root), the optional ``[module]`` narrows to modules
whose name matches, and ``glob`` is matched against the workspace-relative
path. ``*`` and ``?`` stay inside one path segment, ``**`` crosses segments.

Precedence from loosest to tightest is ``||``, ``&&``, ``!``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING, Union

from .errors import PatternSyntaxError

if TYPE_CHECKING:
    from .model import FileHandle

# Term kind -> content root kind it selects (None selects any root)
TERM_KINDS: dict[str, str | None] = {
    "file": None,
    "src": "source",
    "test": "test",
    "lib": "library",
    "scratch": "scratch",
}

_GLOB_STOP = set(" \t\r\n()|&!")


@dataclass(frozen=True)
class Term:
    kind: str
    module: str | None
    glob: str

    def render(self) -> str:
        if self.module is not None:
            return f"{self.kind}[{self.module}]:{self.glob}"
        return f"{self.kind}:{self.glob}"


@dataclass(frozen=True)
class Negation:
    operand: "Node"

    def render(self) -> str:
        inner = self.operand.render()
        if isinstance(self.operand, (Conjunction, Disjunction)):
            inner = f"({inner})"
        return f"!{inner}"


@dataclass(frozen=True)
class Conjunction:
    operands: tuple["Node", ...]

    def render(self) -> str:
        parts = []
        for operand in self.operands:
            text = operand.render()
            parts.append(f"({text})" if isinstance(operand, Disjunction) else text)
        return " && ".join(parts)


@dataclass(frozen=True)
class Disjunction:
    operands: tuple["Node", ...]

    def render(self) -> str:
        return " || ".join(operand.render() for operand in self.operands)


Node = Union[Term, Negation, Conjunction, Disjunction]


def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Translate a path glob into an anchored regular expression."""
    out: list[str] = []
    i = 0
    while i < len(glob):
        ch = glob[i]
        if glob.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif glob.startswith("**", i):
            out.append(".*")
            i += 2
        elif ch == "*":
            out.append("[^/]*")
            i += 1
        elif ch == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(ch))
            i += 1
    return re.compile("".join(out) + r"\Z")


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, detail: str, pos: int | None = None) -> PatternSyntaxError:
        column = (self.pos if pos is None else pos) + 1
        return PatternSyntaxError(detail, column, self.text)

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def at(self, token: str) -> bool:
        self.skip_ws()
        return self.text.startswith(token, self.pos)

    def parse(self) -> Node:
        self.skip_ws()
        if self.pos >= len(self.text):
            raise self.error("empty pattern")
        node = self.parse_or()
        self.skip_ws()
        if self.pos < len(self.text):
            raise self.error(f"unexpected '{self.text[self.pos]}'")
        return node

    def parse_or(self) -> Node:
        operands = [self.parse_and()]
        while self.at("||"):
            self.pos += 2
            operands.append(self.parse_and())
        return _flatten(Disjunction, operands)

    def parse_and(self) -> Node:
        operands = [self.parse_unary()]
        while self.at("&&"):
            self.pos += 2
            operands.append(self.parse_unary())
        return _flatten(Conjunction, operands)

    def parse_unary(self) -> Node:
        if self.at("!"):
            self.pos += 1
            operand = self.parse_unary()
            if isinstance(operand, Negation):
                return operand.operand
            return Negation(operand)
        return self.parse_primary()

    def parse_primary(self) -> Node:
        self.skip_ws()
        if self.pos >= len(self.text):
            raise self.error("unexpected end of pattern")
        if self.text[self.pos] == "(":
            open_pos = self.pos
            self.pos += 1
            node = self.parse_or()
            if not self.at(")"):
                raise self.error("unclosed '('", open_pos)
            self.pos += 1
            return node
        return self.parse_term()

    def parse_term(self) -> Term:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos].isalpha():
            self.pos += 1
        kind = self.text[start:self.pos]
        if not kind:
            raise self.error(f"expected a term, found '{self.text[self.pos]}'")
        if kind not in TERM_KINDS:
            raise self.error(
                f"unknown term kind '{kind}' (expected one of {', '.join(TERM_KINDS)})", start
            )
        module = None
        if self.pos < len(self.text) and self.text[self.pos] == "[":
            close = self.text.find("]", self.pos)
            if close == -1:
                raise self.error("unclosed '['")
            module = self.text[self.pos + 1:close].strip()
            if not module:
                raise self.error("empty module name")
            self.pos = close + 1
        if self.pos >= len(self.text) or self.text[self.pos] != ":":
            raise self.error(f"expected ':' after '{self.text[start:self.pos]}'")
        self.pos += 1
        glob_start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in _GLOB_STOP:
            self.pos += 1
        glob = self.text[glob_start:self.pos]
        if not glob:
            raise self.error("expected a path glob")
        return Term(kind=kind, module=module, glob=glob)


def _flatten(cls: type, operands: list[Node]) -> Node:
    if len(operands) == 1:
        return operands[0]
    flat: list[Node] = []
    for operand in operands:
        if isinstance(operand, cls):
            flat.extend(operand.operands)
        else:
            flat.append(operand)
    return cls(tuple(flat))


def parse_pattern(text: str) -> Node:
    """Parse pattern text into a syntax tree.

    Raises:
        PatternSyntaxError: with the 1-based column of the problem
    """
    return _Parser(text).parse()


def normalize_pattern(text: str) -> str:
    """Canonical rendering of a pattern. Re-normalizing returns the same text."""
    return parse_pattern(text).render()


class CompiledPattern:
    """Pattern text compiled into a file matcher."""

    def __init__(self, text: str):
        self.root = parse_pattern(text)
        self.pattern_text = self.root.render()
        self._regexes: dict[str, re.Pattern[str]] = {}

    def matches(self, file: FileHandle) -> bool:
        return self._eval(self.root, file)

    def _eval(self, node: Node, file: FileHandle) -> bool:
        if isinstance(node, Term):
            return self._match_term(node, file)
        if isinstance(node, Negation):
            return not self._eval(node.operand, file)
        if isinstance(node, Conjunction):
            return all(self._eval(operand, file) for operand in node.operands)
        return any(self._eval(operand, file) for operand in node.operands)

    def _match_term(self, term: Term, file: FileHandle) -> bool:
        root_kind = TERM_KINDS[term.kind]
        if root_kind is not None and file.root_kind != root_kind:
            return False
        if term.module is not None:
            if file.module is None or not fnmatchcase(file.module, term.module):
                return False
        regex = self._regexes.get(term.glob)
        if regex is None:
            regex = self._regexes[term.glob] = glob_to_regex(term.glob)
        return regex.match(file.path) is not None
