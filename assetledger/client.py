# assetledger/client.py
"""
Client SDK for the ledger server.

Usage:
    alice = PrincipalStore("/path/to/ledger/principals").get("alice")
    client = LedgerClient("http://localhost:8080", principal=alice)

    client.register("9f86d0...", metadata="ipfs://a")
    client.transfer("9f86d0...", bob_id)
    print(client.verify("9f86d0...").owner)
"""

import json
from typing import List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from .auth import Principal, SignedRequest, sign_request
from .errors import AuthenticationError, LedgerError, error_from_dict
from .events import Event
from .registry import Asset


class LedgerClient:
    """
    Client for the ledger server.

    Args:
        base_url: Server URL (e.g., "http://localhost:8080")
        principal: Principal that signs mutating requests (reads need none)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        principal: Optional[Principal] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.principal = principal
        self.timeout = timeout

    def _request(self, method: str, path: str, data: dict = None) -> dict:
        """Make HTTP request to server."""
        url = f"{self.base_url}{path}"

        if data is not None:
            body = json.dumps(data).encode()
            headers = {"Content-Type": "application/json"}
        else:
            body = None
            headers = {}

        req = Request(url, data=body, headers=headers, method=method)

        try:
            with urlopen(req, timeout=self.timeout) as response:
                return json.loads(response.read().decode())
        except HTTPError as e:
            error_body = e.read().decode()
            try:
                error_data = json.loads(error_body)
            except json.JSONDecodeError:
                raise LedgerError(f"HTTP {e.code}: {error_body}")
            raise error_from_dict(error_data)
        except URLError as e:
            raise ConnectionError(f"Failed to connect to server: {e}")

    def _submit(self, request_type: str, payload: dict) -> Asset:
        if self.principal is None:
            raise AuthenticationError("A principal is required to sign requests")
        request = SignedRequest(request_type, self.principal.id, payload)
        sign_request(request, self.principal)
        return Asset.from_dict(self._request("POST", "/requests", request.to_dict()))

    def health(self) -> bool:
        """Check if server is healthy."""
        try:
            result = self._request("GET", "/health")
            return result.get("status") == "ok"
        except (LedgerError, ConnectionError):
            return False

    def register(self, asset_hash: str, metadata: str = "") -> Asset:
        return self._submit("Register", {"asset_hash": asset_hash, "metadata": metadata})

    def transfer(self, asset_hash: str, new_owner: str) -> Asset:
        return self._submit("Transfer", {"asset_hash": asset_hash, "new_owner": new_owner})

    def verify(self, asset_hash: str) -> Asset:
        return Asset.from_dict(self._request("GET", f"/assets/{quote(asset_hash, safe='')}"))

    def exists(self, asset_hash: str) -> bool:
        data = self._request("GET", f"/assets/{quote(asset_hash, safe='')}/exists")
        return bool(data["exists"])

    def count(self) -> int:
        return self._request("GET", "/count")["count"]

    def hash_at(self, index: int) -> str:
        return self._request("GET", f"/index/{index}")["asset_hash"]

    def events(self, asset_hash: str) -> List[Event]:
        data = self._request("GET", f"/assets/{quote(asset_hash, safe='')}/events")
        return [Event.from_dict(e) for e in data["events"]]
