# assetledger/auth/__init__.py
"""
Principals and request signing.

Core concepts:
- Principal: an identity with an RSA key pair; its id is the owner value
  the registry stores
- SignedRequest: a Register or Transfer request signed by its principal
- authenticate: turns a signed request into the calling principal
"""

from .principal import Principal, PrincipalStore, DOMAIN
from .signatures import SignedRequest, sign_request, verify_signature, authenticate

__all__ = [
    "Principal",
    "PrincipalStore",
    "SignedRequest",
    "sign_request",
    "verify_signature",
    "authenticate",
    "DOMAIN",
]
