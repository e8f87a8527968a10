"""
symbridge config - Inspect and validate configuration.

Usage:
    symbridge config show
    symbridge config check
"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from symbridge.cli.output import print_error, print_success, print_table
from symbridge.config import (
    REQUIRED_SETTINGS,
    ConfigurationError,
    load_config,
    validate_symphony_config,
)
from symbridge.storage.paths import expand_path, get_global_config_path

app = typer.Typer(
    name="config",
    help="Inspect and validate configuration.",
)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="YAML config file (default: ~/.symbridge/config.yaml).",
    ),
]


def _mask(name: str, value: object) -> str:
    if value is None:
        return "[dim]unset[/dim]"
    if name == "passphrase":
        return "********"
    return str(value)


@app.command("show")
def show(config_path: ConfigOption = None) -> None:
    """Show the merged configuration."""
    try:
        config = load_config(config_path=config_path)
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(1)

    rows = []
    for section_name in ("symphony", "adapter", "logging"):
        section = getattr(config, section_name)
        for key, value in section.model_dump().items():
            rows.append([f"{section_name}.{key}", _mask(key, value)])

    source = config_path or get_global_config_path()
    print_table(["Setting", "Value"], rows, title=f"Configuration ({source})")


@app.command("check")
def check(config_path: ConfigOption = None) -> None:
    """Validate that the adapter can be constructed."""
    try:
        config = load_config(config_path=config_path)
        validate_symphony_config(config.symphony)
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(1)

    missing_files = [
        getattr(config.symphony, key)
        for key in ("public_key", "private_key")
        if not expand_path(getattr(config.symphony, key)).exists()
    ]
    if missing_files:
        for path in missing_files:
            print_error(f"Key file not found: {path}")
        raise typer.Exit(1)

    print_success(
        f"Configuration valid ({', '.join(REQUIRED_SETTINGS.values())} set)"
    )
