"""
Static file server for ``rna build --watch --serve``.
"""

import logging
import threading
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from rna.core.errors import RnaError

logger = logging.getLogger(__name__)


class QuietHandler(SimpleHTTPRequestHandler):
    """Request handler logging through ``logging`` instead of stderr."""

    def log_message(self, format: str, *args) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class StaticServer:
    """
    Serve a directory over HTTP from a daemon thread.

    Usage:
        server = StaticServer(Path("public"), port=3000)
        server.start()
        ...
        server.stop()
    """

    def __init__(self, directory: Path, host: str = "127.0.0.1", port: int = 3000):
        self.directory = Path(directory).resolve()
        self.host = host
        self.port = port
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        handler = partial(QuietHandler, directory=str(self.directory))
        try:
            self._server = ThreadingHTTPServer((self.host, self.port), handler)
        except OSError as e:
            raise RnaError(f"Cannot serve on port {self.port}: {e.strerror}") from e
        # Port 0 binds a free port
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.debug("Serving %s at %s", self.directory, self.url)

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None
