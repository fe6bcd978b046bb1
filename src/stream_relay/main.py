"""CLI entrypoint for stream-relay."""

import logging

import rich_click as click

from stream_relay import __version__
from stream_relay.config import RelaySettings
from stream_relay.controllers import RelayCliController, RelayCommand

click.rich_click.USE_MARKDOWN = True
RELAY_CONTROLLER = RelayCliController()

_USAGE_EXAMPLE = (
    "stream-relay --input http://example.com/live.m3u8 "
    "--output rtmp://live-push.example.com/live/YOUR_STREAM_KEY"
)


@click.command()
@click.version_option(version=__version__, prog_name="stream-relay")
@click.option(
    "--input",
    "input_url",
    default=None,
    help="Source stream locator, for example http://example.com/stream.m3u8.",
)
@click.option(
    "--output",
    "output_url",
    default=None,
    help="RTMP ingest locator, for example rtmp://live-push.example.com/live/KEY.",
)
@click.option(
    "--check",
    "check_only",
    is_flag=True,
    default=False,
    help="Only run preflight checks, do not start the relay.",
)
@click.option(
    "--ffmpeg",
    default=None,
    help="Relay tool executable. If omitted, STREAM_RELAY_FFMPEG or `ffmpeg` is used.",
)
@click.option(
    "--max-retries",
    type=click.IntRange(min=0),
    default=None,
    help="Reconnect attempts after the first one. Defaults to STREAM_RELAY_MAX_RETRIES (5).",
)
@click.option(
    "--retry-delay",
    "retry_delay_seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Fixed delay between attempts in seconds. Defaults to 5.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level. Defaults to STREAM_RELAY_LOG_LEVEL or INFO.",
)
@click.pass_context
def stream_relay(  # noqa: PLR0913
    ctx: click.Context,
    input_url: str | None,
    output_url: str | None,
    check_only: bool,
    ffmpeg: str | None,
    max_retries: int | None,
    retry_delay_seconds: float | None,
    log_level: str | None,
) -> None:
    """Relay a live stream to an RTMP ingest server with automatic reconnects."""

    if not input_url or not output_url:
        click.echo(ctx.get_usage())
        click.echo("")
        click.echo("Example:")
        click.echo(f"  {_USAGE_EXAMPLE}")
        ctx.exit(1)

    try:
        settings = RelaySettings.from_env()
        if log_level is not None:
            settings.log_level = log_level.upper()
        settings.validate()
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    logging.basicConfig(
        level=settings.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info("stream-relay %s", __version__)

    result = RELAY_CONTROLLER.run(
        RelayCommand(
            input_url=input_url,
            output_url=output_url,
            check_only=check_only,
            ffmpeg=ffmpeg,
            max_retries=max_retries,
            retry_delay_seconds=retry_delay_seconds,
        ),
        settings=settings,
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(result.error_message or "Stream relay failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    stream_relay()
