# tests/test_ledger.py
"""Tests for the Ledger facade."""

import tempfile
from pathlib import Path

import pytest

from assetledger import (
    AuthenticationError,
    FixedClock,
    InvalidArgument,
    Ledger,
    NotAuthorized,
    SignedRequest,
    StorageError,
    sign_request,
)


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def ledger(temp_dir):
    ledger = Ledger(temp_dir / "ledger", clock=FixedClock(100))
    yield ledger
    ledger.close()


@pytest.fixture
def alice(ledger):
    return ledger.create_principal("alice")


@pytest.fixture
def bob(ledger):
    return ledger.create_principal("bob")


class TestLedger:
    """Tests for direct Ledger operations."""

    def test_register_uses_principal_id(self, ledger, alice):
        asset = ledger.register(alice, "h1", "ipfs://a")
        assert asset.owner == alice.id
        assert ledger.owned_by(alice.id) == [asset]

    def test_transfer_resolves_username(self, ledger, alice, bob):
        ledger.register(alice, "h1")
        asset = ledger.transfer(alice, "h1", "bob")

        assert asset.owner == bob.id
        assert ledger.owned_by(alice.id) == []

    def test_transfer_to_foreign_id(self, ledger, alice):
        ledger.register(alice, "h1")
        asset = ledger.transfer(alice, "h1", "https://elsewhere/principals/zed")
        assert asset.owner == "https://elsewhere/principals/zed"

    def test_history(self, ledger, alice, bob):
        ledger.register(alice, "h1")
        ledger.transfer(alice, "h1", "bob")

        history = ledger.history("h1")
        assert [e.event_type for e in history] == ["AssetRegistered", "OwnershipTransferred"]
        assert history[1].new_owner == bob.id

    def test_reopen(self, temp_dir, ledger, alice):
        ledger.register(alice, "h1")
        ledger.close()

        with Ledger(temp_dir / "ledger") as reopened:
            assert reopened.registry.verify_asset("h1").owner == alice.id
            assert len(reopened.events) == 1
            assert reopened.get_principal("alice").id == alice.id


class TestDirectoryLock:
    """Only one Ledger may have a data directory open."""

    def test_second_open_refused(self, temp_dir, ledger, alice):
        ledger.register(alice, "h1")

        with pytest.raises(StorageError, match="in use"):
            Ledger(temp_dir / "ledger")

        ledger.register(alice, "h2")
        assert ledger.registry.get_asset_count() == 2

    def test_writes_from_both_sessions_kept(self, temp_dir, ledger, alice):
        ledger.register(alice, "h1")
        ledger.close()

        with Ledger(temp_dir / "ledger") as second:
            second.register(second.get_principal("alice"), "h2")

        with Ledger(temp_dir / "ledger") as third:
            assert [a.asset_hash for a in third.registry] == ["h1", "h2"]
            assert len(third.events) == 2

    def test_context_manager_releases_on_error(self, temp_dir, ledger):
        ledger.close()

        with pytest.raises(InvalidArgument):
            with Ledger(temp_dir / "ledger") as opened:
                opened.create_principal("")

        Ledger(temp_dir / "ledger").close()

    def test_close_is_idempotent(self, ledger):
        ledger.close()
        ledger.close()


class TestSubmit:
    """Tests for signed request handling."""

    def test_signed_register(self, ledger, alice):
        request = sign_request(SignedRequest("Register", alice.id, {"asset_hash": "h1", "metadata": "m"}), alice)
        asset = ledger.submit(request)

        assert asset.as_tuple() == ("h1", alice.id, 100, "m")

    def test_signed_transfer(self, ledger, alice, bob):
        ledger.register(alice, "h1")
        request = sign_request(SignedRequest("Transfer", alice.id, {"asset_hash": "h1", "new_owner": bob.id}), alice)
        assert ledger.submit(request).owner == bob.id

    def test_signed_transfer_by_non_owner(self, ledger, alice, bob):
        ledger.register(alice, "h1")
        request = sign_request(SignedRequest("Transfer", bob.id, {"asset_hash": "h1", "new_owner": bob.id}), bob)
        with pytest.raises(NotAuthorized):
            ledger.submit(request)

    def test_missing_hash(self, ledger, alice):
        request = sign_request(SignedRequest("Register", alice.id, {}), alice)
        with pytest.raises(InvalidArgument):
            ledger.submit(request)

    def test_unsigned_rejected_before_registry(self, ledger, alice):
        with pytest.raises(AuthenticationError):
            ledger.submit(SignedRequest("Register", alice.id, {"asset_hash": "h1"}))
        assert not ledger.registry.asset_exists("h1")

    def test_signed_transfer_resolves_username(self, ledger, alice, bob):
        ledger.register(alice, "h1")
        request = sign_request(SignedRequest("Transfer", alice.id, {"asset_hash": "h1", "new_owner": "bob"}), alice)

        assert ledger.submit(request).owner == bob.id
        assert ledger.history("h1")[1].new_owner == bob.id

    def test_signed_non_string_metadata(self, ledger, alice):
        request = sign_request(SignedRequest("Register", alice.id, {"asset_hash": "h1", "metadata": 123}), alice)
        with pytest.raises(InvalidArgument):
            ledger.submit(request)
        assert ledger.registry.get_asset_count() == 0
