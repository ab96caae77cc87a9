"""
poap_ledger.cli
---------------

Command-line access to a SQLite-backed POAP ledger. Every command prints JSON
on stdout; logs go to stderr.

Examples
--------
# Create a ledger owned by an address
poap-ledger --db sqlite:///poap.db init --owner 0x0101010101010101010101010101010101010101

# Mint the token for a project (project id from a key string)
poap-ledger --db sqlite:///poap.db mint --caller 0x01... --project-key my-project \
    --recipient 0xa11ce... --uri ipfs://bafy...

# Read back
poap-ledger --db sqlite:///poap.db tokens 0xa11ce...
poap-ledger --db sqlite:///poap.db metadata 0
poap-ledger --db sqlite:///poap.db verify
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, NoReturn, Optional

import typer

from poap_ledger import logging as plog
from poap_ledger.config import AccessMode, LedgerConfig, load_config
from poap_ledger.db import open_kv
from poap_ledger.errors import LedgerError
from poap_ledger.metadata import build_poap_metadata, ipfs_to_http, padded_project_id, project_hash, to_data_uri
from poap_ledger.runtime.context import to_hex
from poap_ledger.runtime.events import LoggingEventSink
from poap_ledger.runtime.host import LedgerHost, MintCall, PublishCall
from poap_ledger.version import __version__

app = typer.Typer(
    name="poap-ledger",
    add_completion=False,
    no_args_is_help=True,
    help="Single-issuance POAP ledger: mint one attestation token per project.",
)


@dataclass
class _Opts:
    cfg: LedgerConfig


# -------------------- utils --------------------


def _emit(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, sort_keys=True))


def _fail(err: LedgerError | str, code: int = 1) -> NoReturn:
    payload = err.to_dict() if isinstance(err, LedgerError) else {"code": "CLI/ERROR", "message": err}
    typer.secho(json.dumps({"error": payload}, sort_keys=True), err=True, fg=typer.colors.RED)
    raise typer.Exit(code)


def _opts(ctx: typer.Context) -> _Opts:
    return ctx.obj if isinstance(ctx.obj, _Opts) else _Opts(cfg=load_config())


def _open_host(ctx: typer.Context) -> LedgerHost:
    cfg = _opts(ctx).cfg
    try:
        kv = open_kv(cfg.db_uri, create=False)
    except FileNotFoundError:
        _fail(f"no ledger at {cfg.db_uri}; run `poap-ledger init` first")
    except ValueError as e:
        _fail(str(e), code=2)
    try:
        return LedgerHost.open(kv, config=cfg, sink=LoggingEventSink())
    except LedgerError as e:
        kv.close()
        _fail(e)


def _resolve_project(project: Optional[str], key: Optional[str], padded: bool) -> str:
    if project and key:
        _fail("pass either --project or --project-key, not both", code=2)
    if key:
        return to_hex(padded_project_id(key) if padded else project_hash(key))
    if not project:
        _fail("one of --project or --project-key is required", code=2)
    return project  # type: ignore[return-value]


# -------------------- root --------------------


@app.callback()
def main(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(None, "--db", envvar="POAP_LEDGER_DB", help="Ledger store URI (sqlite:///path or memory://)."),
    access_mode: Optional[str] = typer.Option(None, "--access-mode", help="open | owner"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Minimum log level."),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="json | text"),
) -> None:
    overrides: dict = {}
    if db:
        overrides["db_uri"] = db
    if access_mode:
        try:
            overrides["access_mode"] = AccessMode.parse(access_mode)
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--access-mode") from e
    cfg = load_config(**overrides)
    fmt = (log_format or cfg.log_format or "").lower()
    plog.configure(json=(fmt == "json") if fmt in ("json", "text") else None, level=log_level or cfg.log_level)
    ctx.obj = _Opts(cfg=cfg)


@app.command("version")
def version() -> None:
    _emit({"version": __version__})


# -------------------- mutators --------------------


@app.command("init")
def init(
    ctx: typer.Context,
    owner: str = typer.Option(..., "--owner", help="Nominal owner address (hex)."),
) -> None:
    """Create the ledger (or re-open it unchanged if it already exists)."""
    cfg = _opts(ctx).cfg
    try:
        kv = open_kv(cfg.db_uri, create=True)
    except ValueError as e:
        _fail(str(e), code=2)
    try:
        host = LedgerHost.initialize(kv, owner, config=cfg)
    except LedgerError as e:
        kv.close()
        _fail(e)
    _emit(
        {
            "db": cfg.db_uri,
            "owner": to_hex(host.owner()),
            "access_mode": host.access_mode.value,
            "total_issued": host.total_issued(),
            "total_projects_published": host.total_projects_published(),
        }
    )
    host.close()


@app.command("mint")
def mint(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--caller", help="Calling address (hex)."),
    recipient: str = typer.Option(..., "--recipient", help="Recipient address (hex)."),
    uri: str = typer.Option(..., "--uri", help="Metadata URI (ipfs://..., data:..., https://...)."),
    project: Optional[str] = typer.Option(None, "--project", help="32-byte project id (hex)."),
    project_key: Optional[str] = typer.Option(None, "--project-key", help="Derive the project id from a key string."),
    padded: bool = typer.Option(False, "--padded", help="Use the legacy zero-padded key mapping."),
) -> None:
    """Mint the single token for a project."""
    pid = _resolve_project(project, project_key, padded)
    host = _open_host(ctx)
    try:
        receipt = host.execute(MintCall(caller=caller, project_id=pid, recipient=recipient, metadata_uri=uri))
    finally:
        host.close()
    _emit(receipt.to_dict())
    if not receipt.ok:
        raise typer.Exit(1)


@app.command("publish")
def publish(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--caller", help="Calling address (hex)."),
    project: Optional[str] = typer.Option(None, "--project", help="32-byte project id (hex)."),
    project_key: Optional[str] = typer.Option(None, "--project-key", help="Derive the project id from a key string."),
    padded: bool = typer.Option(False, "--padded", help="Use the legacy zero-padded key mapping."),
) -> None:
    """Record a project publication (counted, not deduplicated)."""
    pid = _resolve_project(project, project_key, padded)
    host = _open_host(ctx)
    try:
        receipt = host.execute(PublishCall(caller=caller, project_id=pid))
    finally:
        host.close()
    _emit(receipt.to_dict())
    if not receipt.ok:
        raise typer.Exit(1)


# -------------------- reads --------------------


@app.command("tokens")
def tokens(ctx: typer.Context, owner: str = typer.Argument(..., help="Owner address (hex).")) -> None:
    host = _open_host(ctx)
    try:
        ids = host.get_user_tokens(owner)
    except LedgerError as e:
        _fail(e)
    finally:
        host.close()
    _emit({"owner": owner, "tokens": [int(i) for i in ids]})


@app.command("metadata")
def metadata(ctx: typer.Context, token_id: int = typer.Argument(..., min=0, help="Token id.")) -> None:
    host = _open_host(ctx)
    try:
        md = host.get_metadata(token_id)
    finally:
        host.close()
    _emit({"token_id": token_id, "metadata": md.to_json() if md is not None else None})


@app.command("project-token")
def project_token(
    ctx: typer.Context,
    project: Optional[str] = typer.Argument(None, help="32-byte project id (hex)."),
    project_key: Optional[str] = typer.Option(None, "--project-key", help="Derive the project id from a key string."),
    padded: bool = typer.Option(False, "--padded", help="Use the legacy zero-padded key mapping."),
) -> None:
    pid = _resolve_project(project, project_key, padded)
    host = _open_host(ctx)
    try:
        tid = host.get_project_token(pid)
    except LedgerError as e:
        _fail(e)
    finally:
        host.close()
    _emit({"project_id": pid, "token_id": int(tid) if tid is not None else None})


@app.command("stats")
def stats(ctx: typer.Context) -> None:
    host = _open_host(ctx)
    try:
        _emit(
            {
                "owner": to_hex(host.owner()),
                "access_mode": host.access_mode.value,
                "total_issued": host.total_issued(),
                "total_projects_published": host.total_projects_published(),
            }
        )
    finally:
        host.close()


@app.command("verify")
def verify(ctx: typer.Context) -> None:
    """Check index and counter consistency; exit 1 on the first violation."""
    host = _open_host(ctx)
    try:
        summary = host.verify()
    except LedgerError as e:
        _fail(e)
    finally:
        host.close()
    _emit({"ok": True, **summary})


# -------------------- offline helpers --------------------


@app.command("project-hash")
def project_hash_cmd(
    key: str = typer.Argument(..., help="Project key string."),
    padded: bool = typer.Option(False, "--padded", help="Use the legacy zero-padded mapping."),
) -> None:
    """Derive the 32-byte project id for a key."""
    try:
        pid = padded_project_id(key) if padded else project_hash(key)
    except LedgerError as e:
        _fail(e, code=2)
    _emit({"key": key, "project_id": to_hex(pid), "scheme": "padded" if padded else "blake2b-256"})


@app.command("metadata-uri")
def metadata_uri(
    ctx: typer.Context,
    title: str = typer.Option(..., "--title"),
    image: str = typer.Option(..., "--image", help="Image URI (ipfs://... or https://...)."),
    category: str = typer.Option(..., "--category"),
    description: str = typer.Option("", "--description"),
    university: Optional[str] = typer.Option(None, "--university"),
    project_id: Optional[str] = typer.Option(None, "--project-id"),
    minted_at: Optional[int] = typer.Option(None, "--minted-at", help="Unix seconds (default: now)."),
) -> None:
    """Build a POAP metadata document and print it with its inline data URI."""
    cfg = _opts(ctx).cfg
    doc = build_poap_metadata(
        title,
        description,
        image,
        category,
        university=university,
        project_id=project_id,
        minted_at=minted_at,
    )
    _emit(
        {
            "metadata": doc.to_dict(),
            "uri": to_data_uri(doc),
            "image_url": ipfs_to_http(image, cfg.ipfs_gateway),
        }
    )


__all__ = ["app"]
