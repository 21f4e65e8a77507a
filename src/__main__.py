"""Allow ``python -m src``."""

from src.cli.main import cli

cli()
