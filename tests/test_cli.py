# tests/test_cli.py
"""Tests for the command-line interface."""

import json
import tempfile
from pathlib import Path

import pytest

from assetledger.cli import main
from assetledger.ledger import Ledger
from assetledger.registry import hash_file


@pytest.fixture
def data_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "ledger"


def run(data_dir, *argv):
    main(["--data-dir", str(data_dir), *argv])


@pytest.fixture
def with_principals(data_dir):
    run(data_dir, "principal", "create", "alice")
    run(data_dir, "principal", "create", "bob")
    return data_dir


class TestCli:

    def test_principal_list(self, with_principals, capsys):
        capsys.readouterr()
        run(with_principals, "principal", "list")
        out = capsys.readouterr().out
        assert "alice" in out and "bob" in out

    def test_register_and_verify(self, with_principals, capsys):
        run(with_principals, "register", "h1", "--as", "alice", "--metadata", "ipfs://a")
        capsys.readouterr()

        run(with_principals, "verify", "h1", "--json")
        data = json.loads(capsys.readouterr().out)
        assert data["asset_hash"] == "h1"
        assert data["metadata"] == "ipfs://a"
        assert data["owner"].endswith("/principals/alice")

    def test_register_from_file(self, with_principals, capsys):
        art = with_principals.parent / "art.png"
        art.write_bytes(b"pixels")

        run(with_principals, "register", "--file", str(art), "--as", "alice")
        with Ledger(with_principals) as ledger:
            assert ledger.registry.asset_exists(hash_file(art))

    def test_register_missing_file(self, with_principals, capsys):
        missing = with_principals.parent / "missing.png"
        capsys.readouterr()

        with pytest.raises(SystemExit) as exc_info:
            run(with_principals, "register", "--file", str(missing), "--as", "alice")
        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "Error: Cannot read" in err
        assert "Traceback" not in err

    def test_transfer_count_at(self, with_principals, capsys):
        run(with_principals, "register", "h1", "--as", "alice")
        run(with_principals, "register", "h2", "--as", "alice")
        run(with_principals, "transfer", "h1", "--to", "bob", "--as", "alice")
        capsys.readouterr()

        run(with_principals, "count")
        assert capsys.readouterr().out.strip() == "2"
        run(with_principals, "at", "1")
        assert capsys.readouterr().out.strip() == "h2"

        with Ledger(with_principals) as ledger:
            assert ledger.registry.verify_asset("h1").owner == ledger.get_principal("bob").id

    def test_events(self, with_principals, capsys):
        run(with_principals, "register", "h1", "--as", "alice")
        run(with_principals, "transfer", "h1", "--to", "bob", "--as", "alice")
        capsys.readouterr()

        run(with_principals, "events", "h1")
        lines = capsys.readouterr().out.strip().splitlines()
        assert [json.loads(line)["event_type"] for line in lines] == [
            "AssetRegistered",
            "OwnershipTransferred",
        ]

    def test_exists_exit_code(self, with_principals, capsys):
        run(with_principals, "register", "h1", "--as", "alice")
        run(with_principals, "exists", "h1")
        with pytest.raises(SystemExit) as exc_info:
            run(with_principals, "exists", "h2")
        assert exc_info.value.code == 1

    def test_ledger_error_exits_1(self, with_principals, capsys):
        run(with_principals, "register", "h1", "--as", "alice")
        capsys.readouterr()

        with pytest.raises(SystemExit) as exc_info:
            run(with_principals, "transfer", "h1", "--to", "alice", "--as", "bob")
        assert exc_info.value.code == 1
        assert "Only the current owner can transfer" in capsys.readouterr().err

    def test_out_of_range(self, with_principals, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run(with_principals, "at", "0")
        assert exc_info.value.code == 1
        assert "Index out of range" in capsys.readouterr().err

    def test_unknown_acting_user(self, with_principals, capsys):
        with pytest.raises(SystemExit):
            run(with_principals, "register", "h1", "--as", "nobody")
        assert "Unknown principal" in capsys.readouterr().err

    def test_data_dir_in_use(self, with_principals, capsys):
        with Ledger(with_principals):
            with pytest.raises(SystemExit) as exc_info:
                run(with_principals, "count")
        assert exc_info.value.code == 1
        assert "in use" in capsys.readouterr().err

        run(with_principals, "count")
