# assetledger/ledger.py
"""
Ledger: principals, registry and event log wired together.

Connects authenticated principals to the registry so that the calling
principal of every mutation is proven, not asserted.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional

from .auth import Principal, PrincipalStore, SignedRequest, authenticate
from .errors import InvalidArgument
from .events import Event, EventLog
from .registry import Asset, Registry
from .storage import DirectoryLock

logger = logging.getLogger(__name__)


class Ledger:
    """
    Manages ownership of assets by principals.

    Integrates:
    - PrincipalStore: Identity management
    - Registry: Asset ownership records
    - EventLog: Registration and transfer notifications

    Structure:
        base_dir/
            principals/principals.json
            registry/registry.json
            events/events.json
            .lock             # Held while the ledger is open

    Only one Ledger may have a base_dir open at a time; close it (or use
    it as a context manager) to let the next process in.
    """

    def __init__(self, base_dir: Path | str, clock: Optional[Callable[[], int]] = None):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._dir_lock = DirectoryLock(self.base_dir)
        self._dir_lock.acquire()

        try:
            self.principals = PrincipalStore(self.base_dir / "principals")
            self.events = EventLog(self.base_dir / "events")
            self.registry = Registry(self.base_dir / "registry", clock=clock, events=self.events)
        except BaseException:
            self._dir_lock.release()
            raise

    def close(self) -> None:
        """Release the data directory."""
        self._dir_lock.release()

    def __enter__(self) -> "Ledger":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _resolve_owner(self, new_owner: str) -> str:
        if isinstance(new_owner, str) and new_owner:
            return self.principals.resolve(new_owner)
        return new_owner

    def create_principal(self, username: str, display_name: str = None) -> Principal:
        return self.principals.create(username, display_name)

    def get_principal(self, username: str) -> Optional[Principal]:
        return self.principals.get(username)

    def register(self, principal: Principal, asset_hash: str, metadata: str = "") -> Asset:
        """Register an asset owned by principal."""
        return self.registry.register(principal.id, asset_hash, metadata)

    def transfer(self, principal: Principal, asset_hash: str, new_owner: str) -> Asset:
        """
        Transfer an asset held by principal.

        new_owner may be a local username or any owner id.
        """
        return self.registry.transfer_ownership(principal.id, asset_hash, self._resolve_owner(new_owner))

    def submit(self, request: SignedRequest) -> Asset:
        """
        Authenticate a signed request and apply it.

        Raises:
            AuthenticationError: the request signature does not check out
            InvalidArgument: unknown request type or bad payload
            plus whatever the registry operation raises
        """
        principal = authenticate(request, self.principals)
        payload = request.payload

        if request.request_type == "Register":
            return self.registry.register(
                principal.id,
                payload.get("asset_hash", ""),
                payload.get("metadata", ""),
            )
        if request.request_type == "Transfer":
            return self.registry.transfer_ownership(
                principal.id,
                payload.get("asset_hash", ""),
                self._resolve_owner(payload.get("new_owner", "")),
            )
        raise InvalidArgument("Unknown request type", details={"type": request.request_type})

    def owned_by(self, owner_id: str) -> List[Asset]:
        """List assets currently held by an owner id."""
        return self.registry.find_by_owner(owner_id)

    def history(self, asset_hash: str) -> List[Event]:
        """Registration and transfer events for one asset, oldest first."""
        return self.events.find_by_asset(asset_hash)
