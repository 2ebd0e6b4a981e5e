# assetledger/registry/__init__.py
"""
Asset ownership registry.

Maps content hashes to their owner, registration time and metadata.
Assets are never removed; only their owner changes, and only by transfer
from the current owner.

Example:
    registry = Registry("/path/to/registry")
    registry.register("alice", "9f86d0...", metadata="ipfs://a")
    registry.transfer_ownership("alice", "9f86d0...", "bob")
    registry.verify_asset("9f86d0...").owner  # "bob"
"""

from .registry import Registry, Asset, NO_OWNER, hash_file, is_no_owner

__all__ = ["Registry", "Asset", "NO_OWNER", "hash_file", "is_no_owner"]
