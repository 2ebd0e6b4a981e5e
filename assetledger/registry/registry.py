# assetledger/registry/registry.py
"""
Asset ownership registry.

The registry maps a content hash to the principal that owns it, the time
it was registered and free-form metadata, and lets the current owner hand
the asset to someone else. It supports:
- Registration (first come, first owned)
- Verification of the stored record
- Owner-only transfer
- Enumeration in registration order
"""

import hashlib
import logging
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..clock import system_clock
from ..errors import (
    AlreadyExists,
    InvalidArgument,
    NotAuthorized,
    NotFound,
    OutOfRange,
    StorageError,
)
from ..events import AssetRegistered, Event, EventLog, OwnershipTransferred
from ..storage import FORMAT_VERSION, load_json, save_json

logger = logging.getLogger(__name__)

# The "no owner" marker. Never stored: it is only ever rejected.
NO_OWNER = ""


def hash_file(path: Path | str, algorithm: str = "sha3_256") -> str:
    """
    Compute content hash of a file.

    Args:
        path: File to hash
        algorithm: Hash algorithm (sha3_256, sha3_512, sha256, blake2b)

    Returns:
        Full hex digest (no truncation)
    """
    hasher = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def is_no_owner(owner: Optional[str]) -> bool:
    return owner is None or owner == NO_OWNER


@dataclass(frozen=True)
class Asset:
    """
    A registered asset.

    Attributes:
        asset_hash: The unique identifier (caller supplied, not validated)
        owner: Identity of the controlling principal
        registered_at: Clock seconds at registration, immutable
        metadata: Opaque string set at registration, never updated
    """
    asset_hash: str
    owner: str
    registered_at: int
    metadata: str = ""

    def as_tuple(self) -> tuple[str, str, int, str]:
        return (self.asset_hash, self.owner, self.registered_at, self.metadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_hash": self.asset_hash,
            "owner": self.owner,
            "registered_at": self.registered_at,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        return cls(
            asset_hash=data["asset_hash"],
            owner=data["owner"],
            registered_at=data["registered_at"],
            metadata=data.get("metadata", ""),
        )


class Registry:
    """
    The ownership registry.

    Holds the asset mapping and the registration-order index as one unit
    behind a single lock. Every mutation checks, writes, persists and then
    emits its event while holding that lock, so readers never see the
    mapping and the index disagree.

    Structure (when registry_dir is given):
        registry_dir/
            registry.json     # Assets and registration order
    """

    def __init__(
        self,
        registry_dir: Path | str | None = None,
        clock: Optional[Callable[[], int]] = None,
        events: Optional[EventLog] = None,
    ):
        """
        Initialize the registry.

        Args:
            registry_dir: Directory to persist to (None keeps state in memory)
            clock: Zero-arg callable returning integer seconds
            events: Event log receiving notifications (a private in-memory
                log is created if omitted)
        """
        self.registry_dir = Path(registry_dir) if registry_dir is not None else None
        self.clock = clock or system_clock
        self.events = events if events is not None else EventLog()
        self._assets: Dict[str, Asset] = {}
        self._index: List[str] = []
        self._lock = threading.RLock()
        if self.registry_dir is not None:
            self.registry_dir.mkdir(parents=True, exist_ok=True)
            self._load()

    def _index_path(self) -> Path:
        return self.registry_dir / "registry.json"

    def _load(self):
        """Load registry from disk."""
        data = load_json(self._index_path())
        if not data:
            return

        try:
            assets = {
                asset_hash: Asset.from_dict(asset_data)
                for asset_hash, asset_data in data.get("assets", {}).items()
            }
            index = list(data.get("index", []))
        except (KeyError, TypeError, AttributeError) as e:
            raise StorageError(f"Malformed registry record: {e}")

        if len(set(index)) != len(index) or set(index) != set(assets):
            raise StorageError(
                "Registry index does not match asset records",
                details={"assets": len(assets), "index": len(index)},
            )
        for asset_hash, asset in assets.items():
            if asset.asset_hash != asset_hash or is_no_owner(asset.owner):
                raise StorageError("Corrupt asset record", details={"asset_hash": asset_hash})

        self._assets = assets
        self._index = index
        logger.debug(f"Loaded {len(index)} assets from {self._index_path()}")

    def _save(self):
        """Save registry to disk."""
        if self.registry_dir is None:
            return
        data = {
            "version": FORMAT_VERSION,
            "assets": {h: self._assets[h].to_dict() for h in self._index},
            "index": list(self._index),
        }
        save_json(self._index_path(), data)

    def _commit(self, event: Event, undo: Callable[[], None]) -> None:
        """
        Persist an applied mutation together with its event, then notify.

        The registry file and the event log are written in that order. If
        either write fails, undo() reverts the in-memory change, the
        registry file is rewritten from the reverted state and the error
        propagates; subscribers hear nothing.
        """
        try:
            self._save()
            self.events.append(event)
        except BaseException:
            undo()
            try:
                self._save()
            except Exception:
                logger.exception("Failed to restore registry after aborted write")
            raise
        self.events.notify(event)

    def register(self, caller: str, asset_hash: str, metadata: str = "") -> Asset:
        """
        Register an asset hash under the caller's ownership.

        Args:
            caller: Authenticated identity of the calling principal
            asset_hash: Non-empty identifier of the asset
            metadata: Free-form string stored verbatim

        Returns:
            The created Asset

        Raises:
            InvalidArgument: asset_hash is empty, or caller is the no-owner value
            AlreadyExists: asset_hash is already registered
        """
        if not isinstance(asset_hash, str) or not asset_hash:
            raise InvalidArgument("Asset hash must be a non-empty string")
        if is_no_owner(caller):
            raise InvalidArgument("Caller identity is required", details={"asset_hash": asset_hash})
        if metadata is None:
            metadata = ""
        if not isinstance(metadata, str):
            raise InvalidArgument("Metadata must be a string", details={"asset_hash": asset_hash})

        with self._lock:
            if asset_hash in self._assets:
                raise AlreadyExists("Asset already registered", details={"asset_hash": asset_hash})

            asset = Asset(
                asset_hash=asset_hash,
                owner=caller,
                registered_at=int(self.clock()),
                metadata=metadata,
            )
            self._assets[asset_hash] = asset
            self._index.append(asset_hash)

            def undo():
                del self._assets[asset_hash]
                self._index.pop()

            self._commit(AssetRegistered(
                asset_hash=asset_hash,
                owner=asset.owner,
                timestamp=asset.registered_at,
            ), undo)
            logger.info(f"Registered {asset_hash} to {caller}")
            return asset

    def verify_asset(self, asset_hash: str) -> Asset:
        """
        Return the stored record for an asset.

        Raises:
            NotFound: asset_hash was never registered
        """
        with self._lock:
            asset = self._assets.get(asset_hash) if isinstance(asset_hash, str) else None
        if asset is None:
            raise NotFound("Asset not registered", details={"asset_hash": asset_hash})
        return asset

    def transfer_ownership(self, caller: str, asset_hash: str, new_owner: str) -> Asset:
        """
        Hand an asset to a new owner.

        Checks run in order: existence, caller is current owner, new owner
        is not the no-owner value. Transferring to oneself is allowed and
        still emits OwnershipTransferred.

        Returns:
            The updated Asset

        Raises:
            NotFound: asset_hash was never registered
            NotAuthorized: caller is not the current owner
            InvalidArgument: new_owner is the no-owner value
        """
        with self._lock:
            current = self.verify_asset(asset_hash)
            if caller != current.owner:
                raise NotAuthorized(
                    "Only the current owner can transfer",
                    details={"asset_hash": asset_hash, "caller": caller},
                )
            if is_no_owner(new_owner) or not isinstance(new_owner, str):
                raise InvalidArgument("New owner is required", details={"asset_hash": asset_hash})

            updated = replace(current, owner=new_owner)
            self._assets[asset_hash] = updated

            def undo():
                self._assets[asset_hash] = current

            self._commit(OwnershipTransferred(
                asset_hash=asset_hash,
                previous_owner=current.owner,
                new_owner=new_owner,
            ), undo)
            logger.info(f"Transferred {asset_hash} from {current.owner} to {new_owner}")
            return updated

    def get_asset_count(self) -> int:
        """Number of assets ever registered."""
        with self._lock:
            return len(self._index)

    def asset_exists(self, asset_hash: str) -> bool:
        """True iff asset_hash is registered. Never raises."""
        if not isinstance(asset_hash, str):
            return False
        with self._lock:
            return asset_hash in self._assets

    def get_asset_hash_at_index(self, index: int) -> str:
        """
        Hash registered at a 0-based position in registration order.

        Raises:
            InvalidArgument: index is not an integer
            OutOfRange: index is negative or not below the asset count
        """
        if isinstance(index, bool) or not isinstance(index, int):
            raise InvalidArgument("Index must be an integer", details={"index": index})
        with self._lock:
            count = len(self._index)
            if index < 0 or index >= count:
                raise OutOfRange("Index out of range", details={"index": index, "count": count})
            return self._index[index]

    def list(self) -> List[Asset]:
        """List all assets in registration order."""
        with self._lock:
            return [self._assets[h] for h in self._index]

    def find_by_owner(self, owner: str) -> List[Asset]:
        """Assets currently held by owner (linear scan)."""
        return [a for a in self.list() if a.owner == owner]

    def __contains__(self, asset_hash: str) -> bool:
        return self.asset_exists(asset_hash)

    def __len__(self) -> int:
        return self.get_asset_count()

    def __iter__(self) -> Iterator[Asset]:
        return iter(self.list())
