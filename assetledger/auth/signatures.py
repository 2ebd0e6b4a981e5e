# assetledger/auth/signatures.py
"""
Signed requests.

A mutating request names the acting principal and carries an RSA-SHA256
signature (RsaSignature2017 layout) over its canonical JSON form. The
server only acts on behalf of a principal whose key verifies the request.
"""

import base64
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from ..errors import AuthenticationError, InvalidArgument
from .principal import Principal, PrincipalStore

logger = logging.getLogger(__name__)

REQUEST_TYPES = ("Register", "Transfer")


@dataclass
class SignedRequest:
    """
    A request to mutate the registry.

    Attributes:
        request_type: Register or Transfer
        actor_id: Id of the principal the request is made for
        payload: Operation arguments (asset_hash, metadata / new_owner)
        signature: Attached by sign_request
    """
    request_type: str
    actor_id: str
    payload: Dict[str, Any]
    signature: Optional[Dict[str, Any]] = None

    def signable(self) -> Dict[str, Any]:
        return {
            "type": self.request_type,
            "actor": self.actor_id,
            "payload": self.payload,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.signable()
        if self.signature:
            data["signature"] = self.signature
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignedRequest":
        try:
            request = cls(
                request_type=data["type"],
                actor_id=data["actor"],
                payload=data.get("payload") or {},
                signature=data.get("signature"),
            )
        except (KeyError, TypeError) as e:
            raise InvalidArgument(f"Malformed request: missing {e}")
        if request.request_type not in REQUEST_TYPES:
            raise InvalidArgument("Unknown request type", details={"type": request.request_type})
        if not isinstance(request.payload, dict):
            raise InvalidArgument("Request payload must be an object")
        return request


def _canonicalize(data: Dict[str, Any]) -> str:
    """
    Canonicalize JSON for signing.

    Uses JCS (JSON Canonicalization Scheme) - sorted keys, no whitespace.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def _hash_sha256(data: str) -> bytes:
    return hashlib.sha256(data.encode()).digest()


def _signed_bytes(request: SignedRequest, options: Dict[str, Any]) -> bytes:
    return _hash_sha256(_canonicalize(options)) + _hash_sha256(_canonicalize(request.signable()))


def sign_request(request: SignedRequest, principal: Principal) -> SignedRequest:
    """
    Sign a request with the principal's private key.

    Returns:
        The same request with its signature attached
    """
    if not principal.private_key:
        raise AuthenticationError("Principal has no private key", details={"principal": principal.id})

    private_key = serialization.load_pem_private_key(principal.private_key, password=None)
    created = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
    options = {
        "@context": "https://w3id.org/security/v1",
        "type": "RsaSignature2017",
        "creator": principal.key_id,
        "created": created,
    }

    signature_bytes = private_key.sign(
        _signed_bytes(request, options),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )

    request.signature = {
        "type": "RsaSignature2017",
        "creator": principal.key_id,
        "created": created,
        "signatureValue": base64.b64encode(signature_bytes).decode("utf-8"),
    }
    return request


def verify_signature(request: SignedRequest, public_key_pem: bytes) -> bool:
    """
    Verify a request's signature.

    Returns:
        True if signature is valid
    """
    if not request.signature:
        return False

    try:
        public_key = serialization.load_pem_public_key(public_key_pem)
        options = {
            "@context": "https://w3id.org/security/v1",
            "type": request.signature["type"],
            "creator": request.signature["creator"],
            "created": request.signature["created"],
        }
        signature_bytes = base64.b64decode(request.signature["signatureValue"])
        public_key.verify(
            signature_bytes,
            _signed_bytes(request, options),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return True

    except (InvalidSignature, KeyError, TypeError, ValueError):
        return False


def authenticate(request: SignedRequest, principals: PrincipalStore) -> Principal:
    """
    Resolve the principal a request was signed by.

    Raises:
        AuthenticationError: unsigned, unknown actor, key mismatch or bad signature
    """
    if not request.signature:
        raise AuthenticationError("Request is not signed")

    principal = principals.get_by_id(request.actor_id)
    if principal is None:
        raise AuthenticationError("Unknown principal", details={"actor": request.actor_id})

    if request.signature.get("creator") != principal.key_id:
        raise AuthenticationError("Signature creator does not match actor", details={"actor": request.actor_id})

    if not verify_signature(request, principal.public_key):
        logger.warning(f"Bad signature on {request.request_type} from {request.actor_id}")
        raise AuthenticationError("Invalid signature", details={"actor": request.actor_id})

    return principal
