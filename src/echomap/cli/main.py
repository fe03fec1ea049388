"""CLI entry-point: Click command group and dispatch."""

from __future__ import annotations

import dataclasses
import logging

import click
from pydantic import ValidationError

from echomap.errors import ConfigError, EchoMapError, PersistenceError, TransportError
from echomap.models.config import AppSettings
from echomap.output.formatter import OutputFormatter

# Third-party loggers that are chatty at INFO.
_NOISY_LOGGERS = ("websockets", "httpx", "httpcore", "uvicorn.access")

# ---------------------------------------------------------------------------
# Application context (stored in ctx.obj)
# ---------------------------------------------------------------------------


@dataclasses.dataclass
class AppContext:
    """Shared state passed to every Click command via ``@click.pass_obj``."""

    output_format: str | None
    verbose: bool
    _settings: AppSettings | None = dataclasses.field(default=None, repr=False)
    _formatter: OutputFormatter | None = dataclasses.field(default=None, repr=False)

    @property
    def settings(self) -> AppSettings:
        if self._settings is None:
            try:
                self._settings = AppSettings()
            except ValidationError as exc:
                raise ConfigError(f"Invalid ECHOMAP_* configuration: {exc}") from exc
        return self._settings

    @property
    def formatter(self) -> OutputFormatter:
        if self._formatter is None:
            self._formatter = OutputFormatter(force_format=self.output_format)
        return self._formatter


def configure_logging(verbose: bool) -> None:
    """Route all logging through a Rich handler on stderr."""
    from rich.console import Console
    from rich.logging import RichHandler

    level = logging.DEBUG if verbose else logging.INFO
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if not isinstance(h, RichHandler)] + [handler]
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


# ---------------------------------------------------------------------------
# Root Click group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["rich", "json"]),
    default=None,
    help="Output format (default: auto-detect)",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable verbose logging")
@click.version_option(package_name="echomap")
@click.pass_context
def cli(ctx: click.Context, output_format: str | None, verbose: bool) -> None:
    """Relay, view, and archive live ranging-sensor point clouds."""
    configure_logging(verbose)
    ctx.obj = AppContext(output_format=output_format, verbose=verbose)


# ---------------------------------------------------------------------------
# Register subcommands (lazy imports keep startup fast)
# ---------------------------------------------------------------------------


def _register_commands() -> None:
    """Import and attach all subcommands to the root CLI."""
    from echomap.cli.relay import relay_cmd
    from echomap.cli.scans import scans_group
    from echomap.cli.simulate import simulate_cmd
    from echomap.cli.view import view_cmd

    cli.add_command(relay_cmd)
    cli.add_command(scans_group)
    cli.add_command(simulate_cmd)
    cli.add_command(view_cmd)


_register_commands()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate command handler."""
    try:
        cli(args=argv, standalone_mode=False)
    except click.exceptions.Exit as exc:
        raise SystemExit(exc.exit_code) from None
    except click.exceptions.Abort:
        raise SystemExit(1) from None
    except click.ClickException as exc:
        exc.show()
        raise SystemExit(exc.exit_code) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except SystemExit:
        raise
    except Exception as exc:
        app_ctx = _extract_app_ctx()
        formatter = app_ctx.formatter if app_ctx else OutputFormatter()
        formatter.output_error(
            code=_error_code(exc),
            message=str(exc) or type(exc).__name__,
            command=_get_command_name(),
        )
        raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# Helpers for error handling
# ---------------------------------------------------------------------------


def _error_code(exc: Exception) -> str:
    """Map well-known errors to stable machine-readable codes."""
    if isinstance(exc, TransportError):
        return "transport_failed"
    if isinstance(exc, PersistenceError):
        return "persistence_failed"
    if isinstance(exc, ConfigError):
        return "config_invalid"
    if isinstance(exc, EchoMapError):
        return "echomap_error"
    return type(exc).__name__


def _extract_app_ctx() -> AppContext | None:
    """Try to extract AppContext from the current Click context."""
    ctx = click.get_current_context(silent=True)
    while ctx is not None:
        if isinstance(ctx.obj, AppContext):
            return ctx.obj
        ctx = ctx.parent
    return None


def _get_command_name() -> str:
    """Reconstruct a dotted command name from the Click context chain."""
    ctx = click.get_current_context(silent=True)
    parts: list[str] = []
    while ctx is not None:
        if ctx.info_name and ctx.info_name != "cli":
            parts.append(ctx.info_name)
        ctx = ctx.parent
    return ".".join(reversed(parts)) or "unknown"
