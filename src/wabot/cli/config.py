"""CLI: wabot config show|set"""

import json

import click
from rich.console import Console

from wabot.config import CONFIG_FILE, load_config, save_config

console = Console()

KEYS = ("sessions_dir", "redis_url", "redis_prefix", "mongo_uri", "mongo_db", "mongo_collection")


@click.group()
def config():
    """CLI defaults."""


@config.command("show")
def config_show():
    """Print the saved defaults."""
    click.echo(json.dumps(load_config(), indent=2))


@config.command("set")
@click.argument("key", type=click.Choice(KEYS))
@click.argument("value", required=False)
def config_set(key: str, value):
    """Save a default; omit VALUE to unset it."""
    cfg = load_config()
    if value:
        cfg[key] = value
    else:
        cfg.pop(key, None)
    save_config(cfg)
    console.print(f"[dim]Saved to {CONFIG_FILE}[/dim]")
