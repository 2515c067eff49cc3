"""scopekit: compile and resolve boolean scope programs over a workspace.

Run ``scopekit --help`` for usage information.
"""

import logging

import typer

from scopekit.cli.commands import scope

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="scopekit",
    help="Compile and resolve scope programs against a workspace",
    add_completion=False,
    no_args_is_help=True,
)

app.add_typer(scope.app, name="scope")


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Scope algebra toolkit."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def main():
    app()


if __name__ == "__main__":
    main()
