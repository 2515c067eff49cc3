"""Exception hierarchy for scope program compilation and resolution."""

from __future__ import annotations

from typing import Sequence


class ScopeEngineError(Exception):
    """Base exception for scope engine errors."""
    pass


class StructuralError(ScopeEngineError):
    """Malformed scope program or request.

    Structural errors are caller bugs (arity violations, leftover stack
    items, duplicate or unknown atom ids) and are always fatal, regardless
    of the strict/lenient policy.
    """

    def __init__(self, message: str, token_index: int | None = None):
        """Initialize StructuralError.

        Args:
            message: Human-readable description of the problem
            token_index: Index of the offending token, when one applies
        """
        self.token_index = token_index
        super().__init__(message)


class InvalidAtomError(StructuralError):
    """Atom is missing the payload its kind requires."""

    def __init__(self, atom_id: str, message: str):
        self.atom_id = atom_id
        super().__init__(message)


class ResolutionError(ScopeEngineError):
    """An atom could not be resolved against the current catalog snapshot.

    Raised for unknown catalog references, unresolvable or ambiguous named
    scopes, invalid pattern syntax, missing directories or files and
    interactive scopes that were not allowed. Fatal in strict mode; in
    lenient mode the evaluator records the message as a diagnostic instead.
    """

    def __init__(
        self,
        message: str,
        atom_id: str | None = None,
        candidates: Sequence[str] = (),
    ):
        self.atom_id = atom_id
        self.candidates = tuple(candidates)
        super().__init__(message)


class NegationError(ScopeEngineError):
    """NOT applied to an operand whose shape is not GLOBAL."""

    def __init__(self, token_index: int, shape: str):
        self.token_index = token_index
        self.shape = shape
        super().__init__(
            f"Token[{token_index}] NOT requires a GLOBAL operand, but operand shape is {shape.upper()}."
        )


class UnsupportedDescriptorVersion(ScopeEngineError):
    """Stored descriptor was written by an incompatible format version."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Unsupported scope descriptor version {version}.")
