# assetledger/auth/principal.py
"""
Principal management.

A Principal is an identity that can own assets:
- Username and display name
- RSA key pair for signing requests
- A stable id, which is what the registry stores as the owner
"""

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import AlreadyExists, InvalidArgument, StorageError
from ..storage import FORMAT_VERSION, load_json, save_json

logger = logging.getLogger(__name__)

DOMAIN = os.environ.get("ASSETLEDGER_DOMAIN", "ledger.localhost")


def _generate_keypair() -> tuple[bytes, bytes]:
    """Generate RSA key pair for signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


@dataclass
class Principal:
    """
    An identity that can own and transfer assets.

    Attributes:
        username: Unique username (e.g., "alice")
        display_name: Human-readable name
        public_key: PEM-encoded public key
        private_key: PEM-encoded private key (None for a verify-only copy)
        created_at: Timestamp of creation
        domain: Domain the id is minted under
    """
    username: str
    display_name: str
    public_key: bytes
    private_key: Optional[bytes] = None
    created_at: float = field(default_factory=time.time)
    domain: str = DOMAIN

    @property
    def id(self) -> str:
        """Owner identity as stored in the registry."""
        return f"https://{self.domain}/principals/{self.username}"

    @property
    def handle(self) -> str:
        return f"@{self.username}@{self.domain}"

    @property
    def key_id(self) -> str:
        """Key ID placed in request signatures."""
        return f"{self.id}#main-key"

    def public_view(self) -> "Principal":
        """Copy without the private key."""
        return Principal(
            username=self.username,
            display_name=self.display_name,
            public_key=self.public_key,
            created_at=self.created_at,
            domain=self.domain,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        data = {
            "username": self.username,
            "display_name": self.display_name,
            "public_key": self.public_key.decode("utf-8"),
            "created_at": self.created_at,
            "domain": self.domain,
        }
        if self.private_key:
            data["private_key"] = self.private_key.decode("utf-8")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Principal":
        """Deserialize from storage."""
        private_key = data.get("private_key")
        return cls(
            username=data["username"],
            display_name=data["display_name"],
            public_key=data["public_key"].encode("utf-8"),
            private_key=private_key.encode("utf-8") if private_key else None,
            created_at=data.get("created_at", time.time()),
            domain=data.get("domain", DOMAIN),
        )

    @classmethod
    def create(cls, username: str, display_name: str = None, domain: str = DOMAIN) -> "Principal":
        """Create a new principal with generated keys."""
        private_pem, public_pem = _generate_keypair()
        return cls(
            username=username,
            display_name=display_name or username,
            public_key=public_pem,
            private_key=private_pem,
            domain=domain,
        )


class PrincipalStore:
    """
    Persistent storage for principals.

    Structure:
        store_dir/
            principals.json   # Index of all principals, keys included
    """

    def __init__(self, store_dir: Path | str, domain: str = DOMAIN):
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self.domain = domain
        self._principals: Dict[str, Principal] = {}
        self._load()

    def _index_path(self) -> Path:
        return self.store_dir / "principals.json"

    def _load(self):
        data = load_json(self._index_path())
        if data:
            try:
                self._principals = {
                    username: Principal.from_dict(principal_data)
                    for username, principal_data in data.get("principals", {}).items()
                }
            except (KeyError, TypeError, AttributeError) as e:
                raise StorageError(f"Malformed principal record: {e}")

    def _save(self):
        data = {
            "version": FORMAT_VERSION,
            "domain": self.domain,
            "principals": {
                username: principal.to_dict()
                for username, principal in self._principals.items()
            },
        }
        save_json(self._index_path(), data)
        os.chmod(self._index_path(), 0o600)

    def create(self, username: str, display_name: str = None) -> Principal:
        """Create and store a new principal."""
        if not username or "/" in username:
            raise InvalidArgument("Invalid username", details={"username": username})
        if username in self._principals:
            raise AlreadyExists("Principal already exists", details={"username": username})

        principal = Principal.create(username, display_name, domain=self.domain)
        self._principals[username] = principal
        self._save()
        logger.info(f"Created principal {principal.handle}")
        return principal

    def get(self, username: str) -> Optional[Principal]:
        """Get a principal by username."""
        return self._principals.get(username)

    def get_by_id(self, principal_id: str) -> Optional[Principal]:
        """Get a principal by its owner id."""
        for principal in self._principals.values():
            if principal.id == principal_id:
                return principal
        return None

    def resolve(self, name_or_id: str) -> str:
        """Map a known username to its id; anything else is taken as an id."""
        principal = self.get(name_or_id)
        return principal.id if principal else name_or_id

    def list(self) -> List[Principal]:
        return list(self._principals.values())

    def __contains__(self, username: str) -> bool:
        return username in self._principals

    def __len__(self) -> int:
        return len(self._principals)
