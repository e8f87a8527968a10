"""
symbridge run - Connect to Symphony and relay messages to the console.

Usage:
    symbridge run
    symbridge run --echo
    symbridge run --config ./bot.yaml --fail-connect-after 5
"""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.markup import escape

from symbridge.cli.output import console, print_error, print_info, print_success, setup_logging
from symbridge.config import ConfigurationError, load_config
from symbridge.platforms.adapters.symphony import SymphonyAdapter
from symbridge.platforms.models import Envelope, TextMessage
from symbridge.platforms.protocol import Robot

app = typer.Typer(
    name="run",
    help="Connect to Symphony and relay messages.",
    invoke_without_command=True,
)


class ConsoleRobot(Robot):
    """Prints inbound messages and optionally echoes them back as replies."""

    def __init__(self, name: str, echo: bool = False) -> None:
        super().__init__(name=name)
        self.echo = echo
        self.adapter: Optional[SymphonyAdapter] = None
        self.on("error", self._print_error)

    def receive(self, message: TextMessage) -> None:
        console.print(
            f"[cyan]{escape(message.user.name)}[/cyan] [dim]({message.room})[/dim]: "
            f"{escape(message.text)}"
        )
        if self.echo and self.adapter is not None:
            self.emit("reply", message)

    @staticmethod
    def _print_error(error: Exception) -> None:
        print_error(f"{type(error).__name__}: {error}")


async def _serve(
    robot: ConsoleRobot,
    config_path: Optional[Path],
    options: dict,
    log_level: Optional[str] = None,
) -> int:
    config = load_config(config_path=config_path)
    setup_logging(log_level or config.logging.level, config.logging.rich)

    stopped = asyncio.Event()
    exit_code = 0

    def shutdown() -> None:
        nonlocal exit_code
        exit_code = 1
        stopped.set()

    adapter = SymphonyAdapter.use(
        robot, options={**options, "shutdown_func": shutdown}, config=config
    )
    robot.adapter = adapter

    async def echo(message: TextMessage) -> None:
        await adapter.reply(Envelope.for_message(message), message.text)

    robot.on("reply", echo)
    adapter.on("connected", lambda: print_success(f"Connected to {config.symphony.host}"))

    adapter.run()
    try:
        await stopped.wait()
    finally:
        await adapter.aclose()
    return exit_code


@app.callback(invoke_without_command=True)
def run(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="YAML config file."),
    ] = None,
    name: Annotated[
        str,
        typer.Option("--name", "-n", help="Robot name used to address direct messages."),
    ] = "hubot",
    echo: Annotated[
        bool,
        typer.Option("--echo", help="Reply to every message with its own text."),
    ] = False,
    fail_connect_after: Annotated[
        Optional[int],
        typer.Option("--fail-connect-after", min=1, help="Give up after this many attempts."),
    ] = None,
) -> None:
    """Connect and print inbound messages until interrupted."""
    options = {}
    if fail_connect_after is not None:
        options["fail_connect_after"] = fail_connect_after

    log_level = (ctx.obj or {}).get("log_level")
    robot = ConsoleRobot(name=name, echo=echo)
    print_info("Connecting to Symphony, press Ctrl+C to stop")

    try:
        exit_code = asyncio.run(_serve(robot, config_path, options, log_level))
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(1)
    except KeyboardInterrupt:
        print_info("Stopped")
        return

    if exit_code:
        raise typer.Exit(exit_code)
