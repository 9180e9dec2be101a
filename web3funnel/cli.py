import asyncio
import json
import logging
import sys
from functools import wraps
from pathlib import Path
from typing import List, Optional

import click
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from web3funnel.constants import (
    API_BASE_URL,
    BATCH_SIZE,
    CLI_MAIN_INTRODUCTION,
    CLI_VERSION,
    DEFAULT_EPILOG,
    DEFAULT_HOST,
    DEFAULT_PORT,
    EXIT_CODE_FAILURE,
    EXIT_CODE_OK,
    EXIT_CODE_UNDELIVERED_EVENTS,
    MAX_BATCH_EVENTS,
    URLSettings,
    get_config_path,
)
from web3funnel.errors import InvalidEventFileError, Web3FunnelError
from web3funnel.events import EventRecord
from web3funnel.tracker import (
    CountingTrackerCallbacks,
    EventQueue,
    TrackerConfig,
    Transport,
    render_snippet,
)
from web3funnel.tracker.embed import DEFAULT_WIDGET_SRC

LOG = logging.getLogger(__name__)

console = Console()

cli_app = typer.Typer(
    rich_markup_mode="rich",
    help=CLI_MAIN_INTRODUCTION,
    epilog=DEFAULT_EPILOG,
    no_args_is_help=True,
)


def configure_logger(debug: bool) -> None:
    level = logging.CRITICAL

    if debug:
        level = logging.DEBUG

    logging.basicConfig(format="%(asctime)s %(name)s => %(message)s", level=level)

    if debug:
        LOG.debug("web3funnel %s, config file: %s", CLI_VERSION, get_config_path())


def output_exception(exception: Exception, exit_code_output: bool = True) -> None:
    """
    Output an exception message to the console and exit.

    Args:
        exception (Exception): The exception to output.
        exit_code_output (bool): Whether to output the exit code.
    """
    click.secho(str(exception), fg="red", file=sys.stderr)

    if exit_code_output:
        exit_code = EXIT_CODE_FAILURE
        if hasattr(exception, "get_exit_code"):
            exit_code = exception.get_exit_code()
    else:
        exit_code = EXIT_CODE_OK

    sys.exit(exit_code)


def handle_cmd_exception(func):
    """
    Decorator to turn web3funnel errors raised by a command into a red
    message and the error's exit code.
    """

    @wraps(func)
    def inner(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except Web3FunnelError as e:
            LOG.exception("Expected Web3FunnelError happened: %s", e)
            output_exception(e, exit_code_output=True)

    return inner


@cli_app.callback()
def main(
    debug: Annotated[
        bool, typer.Option("--debug", help="Enable debug logging.")
    ] = False,
):
    configure_logger(debug)


@cli_app.command(help="Run the ingest and analytics backend.", epilog=DEFAULT_EPILOG)
def serve(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = DEFAULT_HOST,
    port: Annotated[int, typer.Option(help="Port to listen on.")] = DEFAULT_PORT,
):
    import uvicorn

    from web3funnel.server import create_app

    console.print(f"Web3 Funnel backend listening on http://{host}:{port}")
    uvicorn.run(create_app(), host=host, port=port)


def read_event_file(path: Path) -> List[EventRecord]:
    """
    Read one JSON event record per line; blank lines are skipped.

    Raises:
        InvalidEventFileError: On the first line that is not a valid record.
    """
    records = []

    with path.open(encoding="utf-8") as f:
        for number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                records.append(EventRecord.model_validate(json.loads(line)))
            except (ValueError, ValidationError) as e:
                raise InvalidEventFileError(str(path), number, str(e)) from e

    return records


async def deliver(
    records: List[EventRecord],
    api_key: str,
    config: TrackerConfig,
    callbacks: CountingTrackerCallbacks,
    http_client=None,
) -> int:
    """
    Send ``records`` through a batching queue.

    Returns:
        int: How many records could not be delivered.
    """
    async with Transport(
        config.api_base_url,
        api_key,
        http_client=http_client,
        timeout=config.timeout,
        connect_attempts=config.connect_attempts,
    ) as transport:
        queue = EventQueue(transport, config, callbacks)
        queue.start()

        for record in records:
            queue.enqueue(record)

        await queue.join()
        await queue.close(flush=False)

        return len(queue)


def print_summary(total: int, callbacks: CountingTrackerCallbacks, remaining: int) -> None:
    table = Table(title="Replay summary")
    table.add_column("Events read", justify="right")
    table.add_column("Events sent", justify="right")
    table.add_column("Batches sent", justify="right")
    table.add_column("Failed attempts", justify="right")
    table.add_column("Undelivered", justify="right")
    table.add_row(
        str(total),
        str(callbacks.events_sent),
        str(callbacks.batches_sent),
        str(callbacks.batches_failed),
        str(remaining),
    )
    console.print(table)


@cli_app.command(
    help="Deliver captured events from a JSON lines file to the ingest API.",
    epilog=DEFAULT_EPILOG,
)
@handle_cmd_exception
def replay(
    file: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="JSON lines file of event records."),
    ],
    api_key: Annotated[
        str, typer.Option("--api-key", envvar="WEB3FUNNEL_API_KEY", help="API key of the website.")
    ],
    base_url: Annotated[
        Optional[str], typer.Option("--base-url", help="Ingest API base URL.")
    ] = None,
    batch_size: Annotated[
        int, typer.Option("--batch-size", min=1, max=MAX_BATCH_EVENTS, help="Events per request.")
    ] = BATCH_SIZE,
):
    records = read_event_file(file)

    if not records:
        console.print("No events to replay.")
        return

    config = TrackerConfig(
        batch_size=batch_size,
        api_base_url=base_url or API_BASE_URL or URLSettings.API_BASE_URL.value,
    )
    callbacks = CountingTrackerCallbacks()

    remaining = asyncio.run(deliver(records, api_key, config, callbacks))
    print_summary(len(records), callbacks, remaining)

    if remaining:
        reason = f": {callbacks.last_error}" if callbacks.last_error else ""
        console.print(f"[red]{remaining} events were not delivered{reason}[/red]")
        sys.exit(EXIT_CODE_UNDELIVERED_EVENTS)


@cli_app.command(help="Print the script tag that embeds the tracker.", epilog=DEFAULT_EPILOG)
def snippet(
    website_id: Annotated[str, typer.Option("--website-id", help="Website identifier.")],
    api_key: Annotated[str, typer.Option("--api-key", help="API key of the website.")],
    src: Annotated[str, typer.Option(help="Widget script URL.")] = DEFAULT_WIDGET_SRC,
):
    typer.echo(render_snippet(website_id, api_key, src))
