"""CLI entry-point for the ripper."""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import GfycatType, RipperConfig, SearchAPIConfig, VRedditMode
from .errors import RipperError
from .ripper import Ripper
from .sites import supported_domains
from .sites.reddit import FFMPEG
from .target import Target, TargetKind, parse_target
from .title import Title, formatting_help

logger = logging.getLogger("ripper")

console = Console()

EXIT_STARTUP = 1
EXIT_NOTHING_SAVED = 3


def _setup_logging(verbose: bool, quiet: bool, very_verbose: bool) -> None:
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console, show_path=very_verbose)],
        force=True,
    )
    # Suppress noisy libraries
    if not very_verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)


def _print_stats(stats: dict) -> None:
    table = Table(title="Rip Summary", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    for key, val in stats.items():
        table.add_row(key.capitalize(), str(val))
    console.print(table)


def _format_time(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%c")


# ─── Parameter types ─────────────────────────────────────────────


class DateType(click.ParamType):
    """``YYYY-MM-DD HH:MM:SS``, ``YYYY-MM-DD`` or a UNIX timestamp in seconds."""

    name = "date"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> int:
        if isinstance(value, int):
            return value
        for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d"):
            try:
                return int(datetime.strptime(value, fmt).replace(tzinfo=timezone.utc).timestamp())
            except ValueError:
                pass
        if value.isdigit():
            return int(value)
        self.fail("Invalid date format", param, ctx)


def _parse_domains(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> tuple[str, ...]:
    """Accept bare domains as well as URLs and keep only the host."""
    domains = []
    for value in values:
        host = urlsplit(value if "://" in value else f"http://{value}").hostname
        if not host:
            raise click.BadParameter(f"No domain found in {value!r}", ctx=ctx, param=param)
        domains.append(host)
    return tuple(domains)


def _parse_targets(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> list[Target]:
    targets = []
    for value in values:
        try:
            targets.append(parse_target(value))
        except ValueError as exc:
            raise click.BadParameter(str(exc), ctx=ctx, param=param) from exc
    return targets


# ─── Command ─────────────────────────────────────────────────────


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("targets", nargs=-1, callback=_parse_targets)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Only report warnings and errors")
@click.option("--very-verbose", is_flag=True, hidden=True)
@click.option("-C", "--color", type=click.Choice(["auto", "always", "never"]), default="auto",
              show_default=True, help="Enable colored output")
@click.option("--domains", "show_domains", is_flag=True, help="Output a list of supported domains")
@click.option("--formatting-fields", is_flag=True, help="Display the available formatting fields")
@click.option("--max-file-name-length", default=255, type=click.IntRange(min=16), show_default=True,
              help="The maximum file name length")
@click.option("-o", "--output", type=click.Path(file_okay=False, path_type=Path), default=Path("."),
              show_default=True, help="The output directory")
@click.option("-f", "--force", is_flag=True,
              help="Force downloads from unknown domains by writing whatever is on the page to disk")
@click.option("-u", "--update", is_flag=True,
              help="Stop at the newest post of the previous run of each target")
@click.option("--no-parent", is_flag=True, help="Do not create a subdirectory per target")
@click.option("--after", type=DateType(), help="Only download posts after this date")
@click.option("--before", type=DateType(), help="Only download posts before this date")
@click.option("-b", "--queue-size", "--batch-size", "queue_size", default=16, type=click.IntRange(1, 1000),
              show_default=True, help="The number of simultaneous downloads")
@click.option("-s", "--selfposts", is_flag=True, help="Download self posts as text files")
@click.option("--allow", multiple=True, callback=_parse_domains, metavar="DOMAIN",
              help="Only download from the domain (repeatable)")
@click.option("-e", "--exclude", multiple=True, callback=_parse_domains, metavar="DOMAIN",
              help="Do not download from the domain (repeatable)")
@click.option("--gfycat-type", type=click.Choice([t.value for t in GfycatType]), default="mp4",
              show_default=True, help="The media type of gfycat videos")
@click.option("--vreddit-mode", default=VRedditMode.NO_AUDIO, show_default=True, metavar="MODE",
              help="'no-audio', 'ffmpeg', or a URL in which {} is replaced by the v.redd.it video id")
@click.option("-t", "--title", default="{id}-{title}", show_default=True,
              help="File name template; see --formatting-fields for the placeholders")
def cli(targets: list[Target], **opts: Any) -> None:
    """Download the linked contents of entire subreddits.

    TARGETS are subreddits ('pics', 'r/pics') or profiles ('u/name').

    Example: ripper -o downloads --update pics u/spez
    """
    global console
    if opts["color"] == "always":
        console = Console(force_terminal=True)
    elif opts["color"] == "never":
        console = Console(no_color=True)

    if opts["show_domains"]:
        click.echo(supported_domains())
        return
    if opts["formatting_fields"]:
        click.echo(formatting_help(), nl=False)
        return

    if opts["allow"] and opts["exclude"]:
        raise click.UsageError("--allow and --exclude cannot be used together")

    _setup_logging(opts["verbose"], opts["quiet"], opts["very_verbose"])

    if not targets:
        logger.info("No input subreddit given")
        return

    title = Title(opts["title"])
    if not title.utilizes_id():
        logger.warning("The title formatting string does not contain `{id}`. File name collisions may occur.")

    for target in targets:
        if target.kind is TargetKind.SUBREDDIT and not target.name:
            if not click.confirm(
                "An empty argument was passed, the result will be that the entirety of reddit "
                "will be downloaded. Do you want to continue?",
                default=True,
            ):
                return

    vreddit_mode = VRedditMode(opts["vreddit_mode"])
    if vreddit_mode.is_ffmpeg and shutil.which(FFMPEG) is None:
        logger.error(
            "'--vreddit-mode ffmpeg' set, but ffmpeg is not installed\n\n"
            "Please make sure that you have ffmpeg installed and it is in your PATH."
        )
        sys.exit(EXIT_STARTUP)

    after, before = opts["after"], opts["before"]
    if after is not None and before is not None:
        logger.info("Downloading posts between %s and %s", _format_time(after), _format_time(before))
    elif after is not None:
        logger.info("Downloading posts after %s", _format_time(after))
    elif before is not None:
        logger.info("Downloading posts before %s", _format_time(before))

    cfg = RipperConfig(
        api=SearchAPIConfig.from_env(),
        output=opts["output"],
        title=title,
        max_file_name_length=opts["max_file_name_length"],
        queue_size=opts["queue_size"],
        force=opts["force"],
        update=opts["update"],
        no_parent=opts["no_parent"],
        selfposts=opts["selfposts"],
        after=after,
        before=before,
        allow=opts["allow"],
        exclude=opts["exclude"],
        gfycat_type=GfycatType(opts["gfycat_type"]),
        vreddit_mode=vreddit_mode,
    )

    try:
        stats = asyncio.run(_run(cfg, targets))
    except RipperError as exc:
        if exc.help:
            logger.error("%s\n\n%s", exc, exc.help)
        else:
            logger.error("Error: %s", exc)
        sys.exit(exc.exit_code)
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        sys.exit(130)

    _print_stats(stats)
    if stats["failed"] and not stats["saved"]:
        logger.error("None of the %d attempted downloads succeeded", stats["failed"])
        sys.exit(EXIT_NOTHING_SAVED)


async def _run(cfg: RipperConfig, targets: list[Target]) -> dict[str, int]:
    async with Ripper(cfg) as r:
        return await r.rip(targets)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
