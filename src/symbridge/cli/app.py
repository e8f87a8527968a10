"""
Root of the symbridge command line.

    symbridge run              relay messages until interrupted
    symbridge config check     validate the connection settings
"""

from typing import Annotated, Optional

import typer

from symbridge import __version__
from symbridge.cli.commands import config, run
from symbridge.cli.output import console

app = typer.Typer(
    name="symbridge",
    help="Relay messages between a chat-bot and a Symphony pod.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
)


def _show_version(value: bool) -> None:
    if not value:
        return
    console.print(f"symbridge [green]{__version__}[/green]")
    raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log at DEBUG level."),
    ] = False,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_show_version,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    [bold blue]symbridge[/bold blue] bridges a chat-bot to Symphony.

    Connection settings come from the [bold]HUBOT_SYMPHONY_*[/bold]
    variables or [bold]~/.symbridge/config.yaml[/bold].
    """
    ctx.obj = {"log_level": "DEBUG" if verbose else None}


app.add_typer(run.app, name="run")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
