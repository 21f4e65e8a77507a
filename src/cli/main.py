"""CLI entry point for the bulk-email composer."""

import logging

import click
from dotenv import load_dotenv

from src.agent.config import MailerConfig

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", count=True, help="-v for INFO logs, -vv for DEBUG.")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """Compose once, send to many — Gmail bulk sending with optional AI drafting."""
    load_dotenv()
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(
        level=level,  # keep CLI output clean; errors still surface
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.obj = MailerConfig.from_env()


# Import and register commands after cli is defined to avoid circular imports.
from src.cli.commands import generate, login, logout, send  # noqa: E402

cli.add_command(login)
cli.add_command(logout)
cli.add_command(generate)
cli.add_command(send)
