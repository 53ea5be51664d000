import asyncio
import logging
from typing import Any, Callable, Dict, Tuple, Union

import click
from rich.console import Console
from rich.logging import RichHandler

from calclane import __version__
from calclane.broker import Submitter
from calclane.cli.runner import LoopRunner
from calclane.collector import ResultCollector
from calclane.config import CHANNEL_BACKENDS, Settings, create_channel, create_channels
from calclane.exceptions import CalclaneError
from calclane.result import InMemoryResultStore
from calclane.task import default_registry
from calclane.worker import TaskWorker

console = Console()
log_console = Console(stderr=True)

DEFAULTS = Settings()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=log_console, show_path=False)],
        force=True,
    )


def _build_settings(options: Dict[str, Any]) -> Settings:
    try:
        return Settings(**options)
    except ValueError as e:
        raise click.BadParameter(str(e)) from None


def channel_options(func: Callable) -> Callable:
    """Options shared by every command, each readable from the environment."""
    options = [
        click.option("--task-queue", envvar="TASK_QUEUE_URL", default=DEFAULTS.task_queue, show_default=True,
                     help="Task queue identifier"),
        click.option("--result-queue", envvar="RESULT_QUEUE_URL", default=DEFAULTS.result_queue, show_default=True,
                     help="Result queue identifier"),
        click.option("--region", envvar="AWS_REGION", default=DEFAULTS.region, show_default=True,
                     help="Region passed to the channel backend"),
        click.option("--channel", envvar="CALCLANE_CHANNEL", type=click.Choice(CHANNEL_BACKENDS),
                     default=DEFAULTS.channel, show_default=True, help="Channel backend to use"),
        click.option("--db-path", envvar="CALCLANE_DB_PATH", default=DEFAULTS.db_path, show_default=True,
                     help="Database path (for lmdb channels)"),
        click.option("--visibility-timeout", envvar="CALCLANE_VISIBILITY_TIMEOUT", type=float,
                     default=DEFAULTS.visibility_timeout, show_default=True, help="Seconds a received message stays hidden"),
        click.option("--log-level", envvar="CALCLANE_LOG_LEVEL", default="info", show_default=True,
                     type=click.Choice(["debug", "info", "warning", "error"]), help="Logging level"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def loop_options(func: Callable) -> Callable:
    options = [
        click.option("--wait-seconds", envvar="CALCLANE_WAIT_SECONDS", type=float,
                     default=DEFAULTS.wait_seconds, show_default=True, help="Long-poll duration of each receive"),
        click.option("--cycle-interval", envvar="CALCLANE_CYCLE_INTERVAL", type=float, default=DEFAULTS.cycle_interval,
                     show_default=True, help="Fixed pause between cycles"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _parse_value(raw: str) -> Union[int, float, str]:
    for convert in (int, float):
        try:
            return convert(raw)
        except ValueError:
            continue
    return raw


def _parse_fields(fields: Tuple[str, ...]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for item in fields:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got '{item}'", param_hint="FIELDS")
        payload[key] = _parse_value(value)
    return payload


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Calclane - asynchronous task and result exchange"""
    pass


@cli.command()
@channel_options
@loop_options
@click.option("--conversion-rate", envvar="CALCLANE_CONVERSION_RATE", type=float,
              default=DEFAULTS.conversion_rate, show_default=True, help="Fixed rate used by convert_currency")
def worker(log_level: str, **options: Any) -> None:
    """Start a worker that turns tasks into results.

    Examples:

        # Start worker with LMDB channels (default)
        calclane worker

        # Use a different fixed conversion rate
        calclane worker --conversion-rate 0.92
    """
    _setup_logging(log_level)
    settings = _build_settings(options)

    try:
        task_channel, result_channel = create_channels(settings)
    except CalclaneError as e:
        raise click.ClickException(str(e)) from None

    handlers = default_registry(conversion_rate=settings.conversion_rate)
    task_worker = TaskWorker(
        task_channel=task_channel,
        result_channel=result_channel,
        handlers=handlers,
        wait_seconds=settings.wait_seconds,
        cycle_interval=settings.cycle_interval,
    )
    LoopRunner(
        task_worker,
        settings,
        role="worker",
        handlers=handlers,
        console=console,
        extra_channels=[result_channel],
    ).run()


@cli.command()
@channel_options
@loop_options
def collector(log_level: str, **options: Any) -> None:
    """Start a collector that gathers results and prints them."""
    _setup_logging(log_level)
    settings = _build_settings(options)

    try:
        result_channel = create_channel(settings, settings.result_queue)
    except CalclaneError as e:
        raise click.ClickException(str(e)) from None

    runner: LoopRunner
    result_collector = ResultCollector(
        result_channel=result_channel,
        store=InMemoryResultStore(),
        wait_seconds=settings.wait_seconds,
        cycle_interval=settings.cycle_interval,
        on_collected=lambda result: runner.print_result(result),
    )
    runner = LoopRunner(result_collector, settings, role="collector", console=console)
    runner.run()


async def _submit(settings: Settings, task_type: str, payload: Dict[str, Any]) -> str:
    task_channel = create_channel(settings, settings.task_queue)
    try:
        submitter = Submitter(task_channel=task_channel)
        return await submitter.submit(task_type, payload)
    finally:
        await task_channel.close()


@cli.command()
@channel_options
@click.argument("task_type")
@click.argument("fields", nargs=-1)
def submit(task_type: str, fields: Tuple[str, ...], log_level: str, **options: Any) -> None:
    """Submit one task and print its id.

    FIELDS are KEY=VALUE pairs using wire names; numbers are parsed.

    Examples:

        calclane submit convert_currency amount=100 fromCurrency=USD toCurrency=EUR

        calclane submit calculate_interest principal=1000 annualRate=5 days=365
    """
    _setup_logging(log_level)
    settings = _build_settings(options)
    payload = _parse_fields(fields)

    try:
        task_id = asyncio.run(_submit(settings, task_type, payload))
    except CalclaneError as e:
        raise click.ClickException(str(e)) from None

    click.echo(task_id)


if __name__ == "__main__":
    cli()
