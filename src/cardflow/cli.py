# src/cardflow/cli.py
"""Cardflow Command Line Interface.

Entry point for the cardflow CLI tool: configuration checks and plugin
inspection. Running workers is left to the process hosting them.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from cardflow import __version__
from cardflow.core.config import load_settings, resolve_config

__all__ = ["app"]

app = typer.Typer(
    name="cardflow",
    help="Cardflow: batch job-card processing with retries and phase orchestration.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"cardflow version {__version__}")
        raise typer.Exit()


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    console.print(Panel(content, title=f"[red bold]{title}[/]", border_style="red", padding=(0, 1)))


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Cardflow: batch job-card processing."""
    from cardflow.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")


@app.command()
def check(
    settings: str = typer.Argument(
        ...,
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate worker configuration and print the resolved settings."""
    settings_path = Path(settings).expanduser()

    try:
        config = load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if e.problem else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None

    typer.echo(json.dumps(resolve_config(config), indent=2, sort_keys=True))


@app.command()
def translators() -> None:
    """List translator keys provided by installed plugins."""
    from cardflow.plugins.translators import TranslatorRegistry

    registry = TranslatorRegistry()
    registry.load_entrypoints()

    keys = registry.keys()
    if not keys:
        typer.echo("(no translators available)")
        return
    for key in keys:
        typer.echo(key)


if __name__ == "__main__":
    app()
