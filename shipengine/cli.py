"""Command-line interface for shipengine."""

import json
import logging
import sys
from typing import Optional

import click

from . import __version__
from .client import ShipEngineClient
from .config import ShipEngineConfig
from .errors import ShipEngineError
from .events import ShipEngineEventListener, RequestSentEvent, ResponseReceivedEvent


class EchoListener(ShipEngineEventListener):
    """Writes one stderr line per lifecycle event."""

    def on_request_sent(self, event: RequestSentEvent) -> None:
        click.echo(f"[{event.retry}] {event.message} ({event.request_id})", err=True)

    def on_response_received(self, event: ResponseReceivedEvent) -> None:
        elapsed_ms = event.elapsed.total_seconds() * 1000
        click.echo(f"[{event.retry}] {event.message} in {elapsed_ms:.0f}ms", err=True)


@click.group()
@click.version_option(version=__version__, prog_name="shipengine")
@click.option("--api-key", "-k", envvar="SHIPENGINE_API_KEY",
              help="API key (or set SHIPENGINE_API_KEY)")
@click.option("--base-url", help="JSON-RPC endpoint URL")
@click.option("--retries", "-r", type=int, help="Retries for rate-limited requests")
@click.option("--timeout", "-t", type=float, help="Per-attempt timeout in seconds")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, api_key: Optional[str], base_url: Optional[str],
        retries: Optional[int], timeout: Optional[float], verbose: bool) -> None:
    """Call the ShipEngine JSON-RPC API."""
    ctx.ensure_object(dict)
    ctx.obj["settings"] = {
        "api_key": api_key,
        "base_url": base_url,
        "retries": retries,
        "timeout": timeout,
    }
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def get_config(ctx: click.Context) -> ShipEngineConfig:
    """Create config from context."""
    return ShipEngineConfig.from_mapping(ctx.obj["settings"])


def fail(error: ShipEngineError) -> None:
    click.echo(json.dumps(error.to_dict(), indent=2), err=True)
    sys.exit(1)


@cli.command()
@click.argument("method")
@click.option("--params", "-p", help="JSON-encoded params")
@click.option("--json-output", "-j", is_flag=True, help="Output as indented JSON")
@click.pass_context
def call(ctx: click.Context, method: str, params: Optional[str], json_output: bool) -> None:
    """Call a JSON-RPC method and print its result.

    Example:
        shipengine call address/validate -p '[{"street": ["4 Jersey St"]}]'
        shipengine -r 0 call carrier/list
    """
    try:
        decoded = json.loads(params) if params else None
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--params")

    try:
        config = get_config(ctx)
        with ShipEngineClient(config) as client:
            if ctx.obj["verbose"]:
                client.subscribe(EchoListener())
            result = client.request(method, decoded)
    except ShipEngineError as e:
        fail(e)
        return

    click.echo(json.dumps(result, indent=2 if json_output else None))


@cli.command(name="config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the effective configuration (API key redacted).

    Example:
        shipengine -r 3 config
    """
    try:
        config = get_config(ctx)
    except ShipEngineError as e:
        fail(e)
        return

    click.echo(json.dumps(config.to_dict(), indent=2))


def main() -> None:
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
