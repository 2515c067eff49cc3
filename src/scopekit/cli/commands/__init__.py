"""CLI command modules for scopekit.

Each module exposes a typer ``app`` registered as a sub-command in
``scopekit.__init__``.
"""

from . import scope

__all__ = ["scope"]
