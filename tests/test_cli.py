from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import ALICE, BOB, OWNER, P0
from poap_ledger.cli import app
from poap_ledger.metadata import from_data_uri, project_hash

runner = CliRunner()

OWNER_HEX = "0x" + OWNER.hex()
ALICE_HEX = "0x" + ALICE.hex()
BOB_HEX = "0x" + BOB.hex()
P0_HEX = "0x" + P0.hex()


@pytest.fixture
def db(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'cli.db'}"


def _invoke(db: str, *args: str):
    # CRITICAL keeps log lines off the captured streams.
    return runner.invoke(app, ["--db", db, "--log-level", "CRITICAL", *args])


def _run(db: str, *args: str):
    res = _invoke(db, *args)
    assert res.exit_code == 0, res.output
    return json.loads(res.stdout)


def test_full_flow(db):
    init = _run(db, "init", "--owner", OWNER_HEX)
    assert init["owner"] == OWNER_HEX
    assert init["total_issued"] == 0

    r = _run(db, "mint", "--caller", ALICE_HEX, "--project", P0_HEX, "--recipient", ALICE_HEX, "--uri", "ipfs://a")
    assert r["status"] == "ok" and r["result"] == 0

    dup = _invoke(
        db,
        *["mint", "--caller", ALICE_HEX, "--project", P0_HEX, "--recipient", BOB_HEX, "--uri", "ipfs://b"],
    )
    assert dup.exit_code == 1
    assert json.loads(dup.stdout)["error"]["code"] == "LEDGER/PROJECT_ALREADY_MINTED"

    r2 = _run(db, "mint", "--caller", ALICE_HEX, "--project-key", "tower", "--recipient", ALICE_HEX, "--uri", "ipfs://c")
    assert r2["result"] == 1

    _run(db, "publish", "--caller", BOB_HEX, "--project", P0_HEX)

    assert _run(db, "tokens", ALICE_HEX)["tokens"] == [0, 1]
    assert _run(db, "project-token", P0_HEX)["token_id"] == 0
    assert _run(db, "project-token", "--project-key", "tower")["token_id"] == 1

    md = _run(db, "metadata", "1")["metadata"]
    assert md["project_id"] == "0x" + project_hash("tower").hex()
    assert md["metadata_uri"] == "ipfs://c"
    assert _run(db, "metadata", "9")["metadata"] is None

    stats = _run(db, "stats")
    assert stats["total_issued"] == 2
    assert stats["total_projects_published"] == 1

    v = _run(db, "verify")
    assert v["ok"] is True and v["total_issued"] == 2


def test_owner_gated_mode_flag(db):
    _run(db, "init", "--owner", OWNER_HEX)
    res = runner.invoke(
        app,
        ["--db", db, "--log-level", "CRITICAL", "--access-mode", "owner", "publish", "--caller", ALICE_HEX, "--project", P0_HEX],
    )
    assert res.exit_code == 1
    assert json.loads(res.stdout)["error"]["code"] == "LEDGER/UNAUTHORIZED"


def test_commands_require_initialized_ledger(db):
    res = _invoke(db, "stats")
    assert res.exit_code == 1


def test_project_selection_errors(db):
    _run(db, "init", "--owner", OWNER_HEX)
    res = _invoke(db, "publish", "--caller", ALICE_HEX)
    assert res.exit_code == 2
    res = _invoke(db, "publish", "--caller", ALICE_HEX, "--project", P0_HEX, "--project-key", "k")
    assert res.exit_code == 2


def test_project_hash_command():
    res = runner.invoke(app, ["project-hash", "tower"])
    assert res.exit_code == 0
    assert json.loads(res.stdout)["project_id"] == "0x" + project_hash("tower").hex()
    padded = json.loads(runner.invoke(app, ["project-hash", "--padded", "abc"]).stdout)
    assert padded["project_id"] == "0x" + (b"abc" + b"0" * 29).hex()


def test_metadata_uri_command():
    res = runner.invoke(
        app,
        ["metadata-uri", "--title", "Tower", "--image", "ipfs://img", "--category", "Civic", "--minted-at", "0"],
    )
    assert res.exit_code == 0
    out = json.loads(res.stdout)
    assert out["image_url"] == "https://gateway.pinata.cloud/ipfs/img"
    doc = from_data_uri(out["uri"])
    assert doc.name == "GitArch POAP - Tower"
    assert out["metadata"]["attributes"][-1] == {"trait_type": "Minted At", "value": "1970-01-01T00:00:00.000Z"}
