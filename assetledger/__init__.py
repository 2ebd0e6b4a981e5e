# assetledger - Content hash ownership registry
#
# Records who owns an asset (identified by its content hash), when it was
# registered and any metadata supplied at the time, and lets the current
# owner transfer it.
#
# Core concepts:
# - Registry: The asset mapping plus registration-order index
# - Asset: (hash, owner, registration time, metadata)
# - EventLog: AssetRegistered / OwnershipTransferred notifications
# - Principal: An identity whose id is stored as owner
# - Ledger: Principals, registry and events wired together

from .errors import (
    LedgerError,
    InvalidArgument,
    AlreadyExists,
    NotFound,
    NotAuthorized,
    OutOfRange,
    AuthenticationError,
    StorageError,
)
from .clock import FixedClock, system_clock
from .events import Event, AssetRegistered, OwnershipTransferred, EventLog
from .registry import Registry, Asset, NO_OWNER, hash_file
from .auth import Principal, PrincipalStore, SignedRequest, sign_request, authenticate
from .ledger import Ledger

__all__ = [
    # Errors
    "LedgerError",
    "InvalidArgument",
    "AlreadyExists",
    "NotFound",
    "NotAuthorized",
    "OutOfRange",
    "AuthenticationError",
    "StorageError",
    # Core
    "Registry",
    "Asset",
    "NO_OWNER",
    "hash_file",
    "FixedClock",
    "system_clock",
    "Event",
    "AssetRegistered",
    "OwnershipTransferred",
    "EventLog",
    # Identity
    "Principal",
    "PrincipalStore",
    "SignedRequest",
    "sign_request",
    "authenticate",
    "Ledger",
]

__version__ = "0.1.0"
