"""Strict/lenient resolution policy.

Strict resolution aborts on the first resolution or negation failure.
Lenient resolution records a diagnostic and substitutes according to the
effective failure mode. Structural errors are fatal under both policies.

Policy values are resolved through a precedence chain
(runtime override → request → configuration → built-in default).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from .models import FailureMode


class ResolutionPolicy(StrEnum):
    """How resolution failures are handled.

    - STRICT: any resolution or negation failure aborts the program
    - LENIENT: failures become diagnostics with a safe substitute
    """

    STRICT = "strict"
    LENIENT = "lenient"

    @classmethod
    def from_strict(cls, strict: bool) -> ResolutionPolicy:
        return cls.STRICT if strict else cls.LENIENT


def resolve_policy(
    config_default: ResolutionPolicy = ResolutionPolicy.STRICT,
    request_override: Optional[ResolutionPolicy] = None,
    runtime_override: Optional[ResolutionPolicy] = None,
) -> ResolutionPolicy:
    """Resolve the effective policy using the precedence chain.

    Precedence (highest to lowest):
    1. Runtime override (CLI --strict/--lenient flag)
    2. Request field (``ResolveRequest.strict``)
    3. Configuration (``resolution.strict`` in .scopekit/config.yaml)

    Examples:
        >>> resolve_policy()
        <ResolutionPolicy.STRICT: 'strict'>

        >>> resolve_policy(request_override=ResolutionPolicy.LENIENT)
        <ResolutionPolicy.LENIENT: 'lenient'>

        >>> resolve_policy(
        ...     request_override=ResolutionPolicy.LENIENT,
        ...     runtime_override=ResolutionPolicy.STRICT,
        ... )
        <ResolutionPolicy.STRICT: 'strict'>
    """
    if runtime_override is not None:
        return runtime_override
    if request_override is not None:
        return request_override
    return config_default


def effective_failure_mode(
    atom_mode: Optional[FailureMode],
    request_default: FailureMode = FailureMode.EMPTY_SCOPE,
) -> FailureMode:
    """Per-atom override wins over the request-wide default."""
    return atom_mode if atom_mode is not None else request_default


def should_abort(policy: ResolutionPolicy, mode: FailureMode) -> bool:
    """Whether a resolution failure aborts the whole program.

    Examples:
        >>> should_abort(ResolutionPolicy.STRICT, FailureMode.SKIP)
        True
        >>> should_abort(ResolutionPolicy.LENIENT, FailureMode.FAIL)
        True
        >>> should_abort(ResolutionPolicy.LENIENT, FailureMode.EMPTY_SCOPE)
        False
    """
    return policy == ResolutionPolicy.STRICT or mode == FailureMode.FAIL
