"""CLI commands for transformator_client.

The CLI only composes the client's public calls: pick a target (socket,
host/port, connect string, config file or a private standalone server), send
one request and print the result.
"""

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer
from rich.console import Console

from transformator_client import __version__
from transformator_client.cli.shared.data_utils import build_data, decode_input
from transformator_client.cli.shared.logging_utils import configure_console_logging, ensure_rotating_log_file
from transformator_client.client import SHORTCUT_ENGINES, TransformatorClient
from transformator_client.config.loader import load_config
from transformator_client.transport.endpoint import UNIX_PREFIX
from transformator_client.utils.exceptions import ConfigError, TransformatorError, format_error

app = typer.Typer(
    name="transformator-client",
    help="Client for the transformator text-transformation service",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


@dataclass
class CliTarget:
    """Connection choices collected by the top-level callback."""
    connect: str | None = None
    host: str | None = None
    port: int | None = None
    socket: str | None = None
    standalone: bool = False
    binary: str | None = None
    config_path: Path | None = None
    verbose: bool = False


def version_callback(value: bool):
    if value:
        console.print(f"transformator-client v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    connect: Optional[str] = typer.Option(None, "--connect", "-c", help="Connect string: PORT, HOST:PORT or socket path"),
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Service host (requires --port)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Service TCP port"),
    socket_path: Optional[str] = typer.Option(None, "--socket", "-s", help="Unix domain socket path"),
    standalone: bool = typer.Option(False, "--standalone", help="Start a private transformator server for this call"),
    binary: Optional[str] = typer.Option(None, "--binary", help="Path to the transformator executable (with --standalone)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file (default ~/.transformator/config.json)"),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output to stderr"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write logs to a rotating file"),
    version: bool = typer.Option(None, "--version", "-V", callback=version_callback, is_eager=True),
):
    """transformator-client - talk to a transformator service."""
    configure_console_logging(verbose)
    if log_file:
        ensure_rotating_log_file(log_file)
    ctx.obj = CliTarget(
        connect=connect,
        host=host,
        port=port,
        socket=socket_path,
        standalone=standalone,
        binary=binary,
        config_path=config_path,
        verbose=verbose,
    )


def resolve_connect_string(target: CliTarget, default: str | None) -> str | None:
    """Pick the connect string: --socket, then --host/--port, then --connect, then config."""
    if target.socket:
        return f"{UNIX_PREFIX}{target.socket}"
    if target.port is not None:
        host = target.host or "localhost"
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{host}:{target.port}"
    if target.host:
        raise ConfigError("--host requires --port", value=target.host)
    return target.connect or default


def _fail(exc: BaseException, verbose: bool) -> None:
    err_console.print(format_error(exc, include_details=verbose), style="red", markup=False, highlight=False)
    raise typer.Exit(1)


def _with_client(ctx: typer.Context, call: Callable[[TransformatorClient], Any]) -> Any:
    target: CliTarget = ctx.obj or CliTarget()
    try:
        config = load_config(target.config_path)
        if target.standalone:
            update = {"binary_path": target.binary} if target.binary else {}
            options = config.standalone.model_copy(update=update)
            with TransformatorClient.standalone(options, client_options=config.client) as client:
                return call(client)
        connect = resolve_connect_string(target, config.connect)
        if connect is None:
            err_console.print(
                "[red]No service target.[/red] Use --port, --host/--port, --socket, --connect or --standalone."
            )
            raise typer.Exit(2)
        client = TransformatorClient(connect, options=config.client)
        return call(client)
    except TransformatorError as exc:
        _fail(exc, target.verbose)


def _print_result(result: Any) -> None:
    if isinstance(result, (str, bytes)):
        typer.echo(result, nl=False)
    else:
        typer.echo(json.dumps(result, indent=2, ensure_ascii=False))


@app.command("transform")
def transform_command(
    ctx: typer.Context,
    engine: str = typer.Argument(..., help=f"Engine name, e.g. {', '.join(SHORTCUT_ENGINES)}"),
    input_file: Optional[Path] = typer.Argument(None, help="Input file (default: stdin)"),
    data_file: Optional[Path] = typer.Option(None, "--data-file", "-d", help="JSON object sent as auxiliary data"),
    variables: Optional[List[str]] = typer.Option(None, "--var", help="key=value added to the auxiliary data"),
):
    """Transform INPUT_FILE (or stdin) with ENGINE and print the result."""
    target: CliTarget = ctx.obj or CliTarget()
    try:
        data = build_data(data_file, variables or [])
        if input_file is not None:
            raw = input_file.read_bytes()
        else:
            raw = sys.stdin.buffer.read()
        text = decode_input(raw)
    except OSError as exc:
        _fail(ConfigError(f"Cannot read input: {exc}"), target.verbose)
    except TransformatorError as exc:
        _fail(exc, target.verbose)
    result = _with_client(ctx, lambda client: client.transform(engine, text, data))
    _print_result(result)


@app.command("list")
def list_command(ctx: typer.Context):
    """List the engines the service supports."""
    result = _with_client(ctx, lambda client: client.list_engines())
    if isinstance(result, list):
        for name in result:
            typer.echo(str(name))
    else:
        _print_result(result)


if __name__ == "__main__":
    app()
