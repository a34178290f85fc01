"""
wabot CLI — `wabot` command.

Commands:
  wabot creds inspect <uuid>     Decrypt and summarize stored credentials
  wabot creds wipe <uuid>        Remove every stored record for an identity
  wabot config show|set          CLI defaults in ~/.wabot/config.json
"""

import asyncio
import logging

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install wabot[cli]")

from wabot import __version__

console = Console()


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option(__version__)
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level")
def main(verbose: bool):
    """wabot CLI — credential maintenance for wabot bots."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# Register subcommands from separate modules
from wabot.cli.config import config  # noqa: E402
from wabot.cli.creds import creds  # noqa: E402

main.add_command(config)
main.add_command(creds)


if __name__ == "__main__":
    main()
