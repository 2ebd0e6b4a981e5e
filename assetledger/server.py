# assetledger/server.py
"""
HTTP server for the asset ledger.

Provides a REST API over a Ledger. Reads are open; mutations must be
signed by the acting principal.

Endpoints:
    GET  /health                 - Liveness check
    GET  /count                  - Number of registered assets
    GET  /index/:i               - Asset hash at position i
    GET  /assets/:hash           - Stored asset record
    GET  /assets/:hash/exists    - Whether the hash is registered
    GET  /assets/:hash/events    - Registration and transfer history
    POST /requests               - Signed Register / Transfer request
"""

import json
import logging
import os
import threading
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urlparse

from .auth import SignedRequest
from .errors import (
    AlreadyExists,
    AuthenticationError,
    InvalidArgument,
    LedgerError,
    NotAuthorized,
    NotFound,
    OutOfRange,
)
from .ledger import Ledger

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 64 * 1024

STATUS_CODES = {
    InvalidArgument: 400,
    AuthenticationError: 401,
    NotAuthorized: 403,
    NotFound: 404,
    OutOfRange: 404,
    AlreadyExists: 409,
}


def status_for(error: LedgerError) -> int:
    for cls in type(error).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


class LedgerServer:
    """
    HTTP server for the ledger.

    Usage:
        with Ledger("/var/lib/ledger") as ledger:
            LedgerServer(ledger, port=8080).start()  # Blocking
    """

    def __init__(self, ledger: Ledger, host: str = "127.0.0.1", port: int = 8080):
        self.ledger = ledger
        self.host = host
        self.port = port
        self._httpd: Optional[ThreadingHTTPServer] = None

    def _create_handler(server_instance):
        """Create request handler with access to server instance."""

        class RequestHandler(BaseHTTPRequestHandler):
            server_ref = server_instance

            def log_message(self, format, *args):
                logger.debug(format % args)

            def _send_json(self, data: Any, status: int = 200):
                body = json.dumps(data).encode()
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def _send_error(self, error: LedgerError):
                self._send_json(error.to_dict(), status_for(error))

            def _read_json(self) -> Any:
                raw_length = self.headers.get("Content-Length", "0")
                try:
                    content_length = int(raw_length)
                except ValueError:
                    raise InvalidArgument("Invalid Content-Length", details={"content_length": raw_length})
                if content_length < 0:
                    raise InvalidArgument("Invalid Content-Length", details={"content_length": raw_length})
                if content_length > MAX_BODY_BYTES:
                    raise InvalidArgument("Request body too large")
                try:
                    body = self.rfile.read(content_length).decode("utf-8")
                except UnicodeDecodeError as e:
                    raise InvalidArgument(f"Request body is not UTF-8: {e.reason}")
                try:
                    return json.loads(body)
                except json.JSONDecodeError as e:
                    raise InvalidArgument(f"Invalid JSON: {e}")

            def do_GET(self):
                ledger = self.server_ref.ledger
                path = urlparse(self.path).path

                try:
                    if path == "/health":
                        self._send_json({"status": "ok"})

                    elif path == "/count":
                        self._send_json({"count": ledger.registry.get_asset_count()})

                    elif path.startswith("/index/"):
                        raw = path[len("/index/"):]
                        try:
                            index = int(raw)
                        except ValueError:
                            raise InvalidArgument("Index must be an integer", details={"index": raw})
                        asset_hash = ledger.registry.get_asset_hash_at_index(index)
                        self._send_json({"index": index, "asset_hash": asset_hash})

                    elif path.startswith("/assets/"):
                        rest = path[len("/assets/"):]
                        if rest.endswith("/exists"):
                            asset_hash = unquote(rest[:-len("/exists")])
                            self._send_json({
                                "asset_hash": asset_hash,
                                "exists": ledger.registry.asset_exists(asset_hash),
                            })
                        elif rest.endswith("/events"):
                            asset_hash = unquote(rest[:-len("/events")])
                            self._send_json({
                                "asset_hash": asset_hash,
                                "events": [e.to_dict() for e in ledger.history(asset_hash)],
                            })
                        else:
                            asset = ledger.registry.verify_asset(unquote(rest))
                            self._send_json(asset.to_dict())

                    else:
                        self._send_json({"error_type": "NotFound", "message": "Not found", "details": {}}, 404)

                except LedgerError as e:
                    self._send_error(e)

            def do_POST(self):
                if urlparse(self.path).path != "/requests":
                    self._send_json({"error_type": "NotFound", "message": "Not found", "details": {}}, 404)
                    return

                try:
                    data = self._read_json()
                    if not isinstance(data, dict):
                        raise InvalidArgument("Request must be a JSON object")
                    request = SignedRequest.from_dict(data)
                    asset = self.server_ref.ledger.submit(request)
                    self._send_json(asset.to_dict())
                except LedgerError as e:
                    if status_for(e) in (401, 403):
                        logger.warning(f"Rejected request: {e}")
                    self._send_error(e)
                except Exception as e:
                    logger.exception("Request failed")
                    self._send_json(LedgerError(str(e)).to_dict(), 500)

        return RequestHandler

    def bind(self) -> ThreadingHTTPServer:
        """Bind the listening socket. Port 0 picks a free port."""
        handler = self._create_handler()
        self._httpd = ThreadingHTTPServer((self.host, self.port), handler)
        self.port = self._httpd.server_address[1]
        return self._httpd

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self):
        """Start the HTTP server (blocking)."""
        httpd = self._httpd or self.bind()
        logger.info(f"Ledger server starting on {self.host}:{self.port}")
        print(f"Ledger server running on {self.url}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\nShutting down...")
        finally:
            httpd.server_close()

    def start_background(self) -> threading.Thread:
        """Start the server in a background thread."""
        httpd = self._httpd or self.bind()
        thread = threading.Thread(target=httpd.serve_forever)
        thread.daemon = True
        thread.start()
        logger.info(f"Ledger server running in background on {self.url}")
        return thread

    def shutdown(self):
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Asset ledger server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8080, help="Port to bind to")
    parser.add_argument("--data-dir", default=os.environ.get("ASSETLEDGER_DIR", "./ledger"),
                        help="Ledger data directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    with Ledger(Path(args.data_dir)) as ledger:
        LedgerServer(ledger, host=args.host, port=args.port).start()


if __name__ == "__main__":
    main()
