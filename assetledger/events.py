# assetledger/events.py
"""
Ownership notifications.

Two event types are emitted by the registry:
- AssetRegistered: an asset hash was claimed by its first owner
- OwnershipTransferred: the current owner handed the asset to someone else

Events are kept in an append-only log for auditability and pushed to any
subscribed callbacks.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .errors import StorageError
from .storage import FORMAT_VERSION, load_json, save_json

logger = logging.getLogger(__name__)


def _generate_id() -> str:
    """Generate unique event ID."""
    return str(uuid.uuid4())


@dataclass
class Event:
    """
    Base ledger event.

    Attributes:
        asset_hash: Hash of the asset the event concerns
        event_id: Unique identifier
        recorded_at: Wall-clock time the event was created
    """
    asset_hash: str
    event_id: str = field(default_factory=_generate_id)
    recorded_at: float = field(default_factory=time.time)

    event_type = "Event"

    def _fields(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "event_type": self.event_type,
            "event_id": self.event_id,
            "asset_hash": self.asset_hash,
            "recorded_at": self.recorded_at,
        }
        data.update(self._fields())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event_cls = EVENT_TYPES.get(data.get("event_type"))
        if event_cls is None:
            raise ValueError(f"Unknown event type: {data.get('event_type')}")
        return event_cls._from_dict(data)


@dataclass
class AssetRegistered(Event):
    """Emitted on successful registration."""
    owner: str = ""
    timestamp: int = 0

    event_type = "AssetRegistered"

    def _fields(self) -> Dict[str, Any]:
        return {"owner": self.owner, "timestamp": self.timestamp}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "AssetRegistered":
        return cls(
            asset_hash=data["asset_hash"],
            owner=data["owner"],
            timestamp=data["timestamp"],
            event_id=data.get("event_id") or _generate_id(),
            recorded_at=data.get("recorded_at", time.time()),
        )


@dataclass
class OwnershipTransferred(Event):
    """Emitted on successful transfer, including transfers to oneself."""
    previous_owner: str = ""
    new_owner: str = ""

    event_type = "OwnershipTransferred"

    def _fields(self) -> Dict[str, Any]:
        return {"previous_owner": self.previous_owner, "new_owner": self.new_owner}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "OwnershipTransferred":
        return cls(
            asset_hash=data["asset_hash"],
            previous_owner=data["previous_owner"],
            new_owner=data["new_owner"],
            event_id=data.get("event_id") or _generate_id(),
            recorded_at=data.get("recorded_at", time.time()),
        )


EVENT_TYPES = {
    AssetRegistered.event_type: AssetRegistered,
    OwnershipTransferred.event_type: OwnershipTransferred,
}

Subscriber = Callable[[Event], None]


class EventLog:
    """
    Append-only event log with subscribers.

    With a store_dir the log is persisted to store_dir/events.json,
    otherwise it lives in memory only.
    """

    def __init__(self, store_dir: Path | str | None = None):
        self.store_dir = Path(store_dir) if store_dir is not None else None
        self._events: List[Event] = []
        self._subscribers: List[Subscriber] = []
        if self.store_dir is not None:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            self._load()

    def _log_path(self) -> Path:
        return self.store_dir / "events.json"

    def _load(self):
        data = load_json(self._log_path())
        if data:
            try:
                self._events = [Event.from_dict(e) for e in data.get("events", [])]
            except (KeyError, TypeError, ValueError) as e:
                raise StorageError(f"Malformed event record: {e}")

    def _save(self, events: List[Event]):
        if self.store_dir is None:
            return
        data = {
            "version": FORMAT_VERSION,
            "events": [e.to_dict() for e in events],
        }
        save_json(self._log_path(), data)

    def subscribe(self, callback: Subscriber) -> None:
        """Deliver every future event to callback."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> bool:
        if callback not in self._subscribers:
            return False
        self._subscribers.remove(callback)
        return True

    def append(self, event: Event) -> None:
        """
        Persist an event without notifying anyone.

        The in-memory log only grows once the write has succeeded.
        """
        events = self._events + [event]
        self._save(events)
        self._events = events
        logger.debug(f"{event.event_type} {event.asset_hash}")

    def notify(self, event: Event) -> None:
        """
        Deliver an event to subscribers.

        A failing subscriber is logged and skipped; it cannot roll back the
        mutation that caused the event.
        """
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on {event.event_type}")

    def emit(self, event: Event) -> None:
        """Record an event and notify subscribers."""
        self.append(event)
        self.notify(event)

    def list(self) -> List[Event]:
        """List all events in emission order."""
        return list(self._events)

    def find_by_asset(self, asset_hash: str) -> List[Event]:
        return [e for e in self._events if e.asset_hash == asset_hash]

    def find_by_type(self, event_type: str) -> List[Event]:
        return [e for e in self._events if e.event_type == event_type]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(list(self._events))
