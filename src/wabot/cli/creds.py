"""CLI: wabot creds inspect|wipe"""

import json
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from wabot.auth.local import LocalBackend
from wabot.auth.store import CredentialStore, StorageBackend, validate_uuid
from wabot.config import load_config
from wabot.errors import WABotError

console = Console()


def _run(coro):
    from wabot.cli.main import _run
    return _run(coro)


def _backend(uuid: str, opts: dict[str, Optional[str]]) -> tuple[str, StorageBackend]:
    cfg = {**load_config(), **{k: v for k, v in opts.items() if v}}
    if cfg.get("redis_url"):
        from wabot.auth.redis import DEFAULT_PREFIX, RedisBackend
        return f"redis {cfg['redis_url']}", RedisBackend.from_url(
            cfg["redis_url"], uuid, cfg.get("redis_prefix") or DEFAULT_PREFIX,
        )
    if cfg.get("mongo_uri"):
        from wabot.auth.mongo import MongoBackend
        database = cfg.get("mongo_db") or "wabot"
        collection = cfg.get("mongo_collection") or "auth"
        return f"mongo {database}.{collection}", MongoBackend.from_uri(cfg["mongo_uri"], uuid, database, collection)
    directory = cfg.get("sessions_dir") or "./sessions"
    return f"local {directory}", LocalBackend(directory, uuid)


def backend_options(fn):
    fn = click.option("--mongo-collection", default=None, help="MongoDB collection (default: auth)")(fn)
    fn = click.option("--mongo-db", default=None, help="MongoDB database (default: wabot)")(fn)
    fn = click.option("--mongo-uri", default=None, help="Use the MongoDB backend")(fn)
    fn = click.option("--redis-prefix", default=None, help="Redis key prefix (default: wabot)")(fn)
    fn = click.option("--redis-url", default=None, help="Use the Redis backend")(fn)
    fn = click.option("--dir", "sessions_dir", default=None, help="Use the local backend rooted here")(fn)
    return fn


def _open_store(uuid: str, opts: dict[str, Optional[str]]) -> tuple[str, CredentialStore]:
    try:
        uuid = validate_uuid(uuid)
    except WABotError as e:
        raise click.BadParameter(str(e), param_hint="UUID")
    label, backend = _backend(uuid, opts)
    return label, CredentialStore(uuid, backend)


def summarize(creds: dict[str, Any]) -> dict[str, Any]:
    me = creds.get("me") or {}
    return {
        "registered": bool(creds.get("registered")),
        "id": me.get("id"),
        "lid": me.get("lid"),
        "name": me.get("name"),
        "registration_id": creds.get("registrationId"),
        "platform": creds.get("platform"),
        "pre_keys": creds.get("nextPreKeyId"),
    }


@click.group()
def creds():
    """Stored credential maintenance."""


@creds.command("inspect")
@click.argument("uuid")
@backend_options
@click.option("--json-output", "--json", is_flag=True)
def creds_inspect(uuid, json_output, **opts):
    """Decrypt and summarize the stored credentials of UUID."""
    label, store = _open_store(uuid, opts)
    try:
        stored = _run(store.load_stored())
    except WABotError as e:
        console.print(f"[red]{e.code}: {e}[/red]")
        raise SystemExit(1)
    if stored is None:
        console.print(f"[yellow]No credentials stored for {store.uuid} ({label}).[/yellow]")
        raise SystemExit(1)
    summary = summarize(stored)
    if json_output:
        click.echo(json.dumps(summary, indent=2))
        return
    table = Table(title=f"Credentials {store.uuid}", caption=label)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for field, value in summary.items():
        table.add_row(field, "" if value is None else str(value))
    console.print(table)


@creds.command("wipe")
@click.argument("uuid")
@backend_options
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
def creds_wipe(uuid, yes, **opts):
    """Irreversibly remove every stored record of UUID."""
    label, store = _open_store(uuid, opts)
    if not yes:
        click.confirm(f"Remove all credentials of {store.uuid} from {label}?", abort=True)
    _run(store.remove())
    console.print(f"[green]Removed credentials of {store.uuid}.[/green]")
