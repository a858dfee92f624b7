"""Click-based entry point for the capture proxy."""

from __future__ import annotations

import click

from lsp_capture import __version__
from lsp_capture.runner import (
    BaseDirectoryError,
    CaptureLayout,
    CaptureStartupError,
    CaptureSupervisor,
    ChildStartError,
    exit_code_for,
    resolve_base_dir,
)

USAGE = "Usage: lsp-capture <cmd> [args...]"


@click.command(
    context_settings={
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    }
)
@click.version_option(__version__, prog_name="lsp-capture")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def app(ctx: click.Context, command: tuple[str, ...]) -> None:
    """Run COMMAND, relaying its standard streams and recording them.

    Logs are written next to the lsp-capture entry point: lsp_capture.log,
    client_input.log, server_output.log and server_err.log.
    """

    if not command:
        click.echo(USAGE)
        ctx.exit(1)

    try:
        base_dir = resolve_base_dir()
    except BaseDirectoryError as exc:
        click.echo(str(exc), err=True)
        return

    supervisor = CaptureSupervisor(command, CaptureLayout.from_base_dir(base_dir))
    try:
        outcome = supervisor.run()
    except (CaptureStartupError, ChildStartError) as exc:
        click.echo(f"lsp-capture: {exc}", err=True)
        ctx.exit(1)
    ctx.exit(exit_code_for(outcome))


def main() -> None:
    """Entry point for console_scripts."""

    app(standalone_mode=True)
