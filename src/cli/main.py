"""CLI entry point for the RFQ mail discovery tool."""

import logging

import click
from dotenv import load_dotenv

from src.config import Settings

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline progress at DEBUG level.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """RFQ mail discovery — find quotation requests in a Gmail inbox."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,  # keep CLI output clean
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.obj = Settings.from_env()


# Import and register commands after cli is defined to avoid circular imports.
from src.cli.commands import check, discover, mark_read, show  # noqa: E402

cli.add_command(discover)
cli.add_command(check)
cli.add_command(show)
cli.add_command(mark_read)
