"""Serve a finished repository over HTTP.

Only the files an apt client fetches are exposed. The server never
writes to the tree and must not run against a build in progress.
"""

from __future__ import annotations

import functools
import logging
import mimetypes
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import TYPE_CHECKING, Any

from typing_extensions import override

from aptify.apt.build_repo import SIGNING_KEY_NAME

if TYPE_CHECKING:
    from aptify.utils import StrPath

logger = logging.getLogger("aptify")

ALLOWED_PREFIXES = ("/dists/", "/pool/")
ALLOWED_FILES = (f"/{SIGNING_KEY_NAME}",)

mimetypes.add_type("application/vnd.debian.binary-package", ".deb")
mimetypes.add_type("application/pgp-keys", ".asc")
mimetypes.add_type("application/pgp-signature", ".gpg")


class RepoHandler(SimpleHTTPRequestHandler):
    """Read-only handler for `dists/`, `pool/` and the signing key."""

    server_version = "aptify"
    sys_version = ""

    def _is_allowed(self) -> bool:
        path = self.path.split("?", 1)[0].split("#", 1)[0]
        if ".." in path.split("/"):
            return False
        return path in ALLOWED_FILES or path.startswith(ALLOWED_PREFIXES)

    @override
    def do_GET(self) -> None:  # noqa: N802
        if not self._is_allowed():
            self.send_error(HTTPStatus.NOT_FOUND)
            return
        super().do_GET()

    @override
    def do_HEAD(self) -> None:  # noqa: N802
        if not self._is_allowed():
            self.send_error(HTTPStatus.NOT_FOUND)
            return
        super().do_HEAD()

    @override
    def list_directory(self, path: Any) -> None:
        self.send_error(HTTPStatus.FORBIDDEN, "Directory listing disabled")

    @override
    def end_headers(self) -> None:
        if self.path.startswith("/pool/"):
            self.send_header("Cache-Control", "public, max-age=31536000, immutable")
        else:
            self.send_header("Cache-Control", "public, max-age=300")
        super().end_headers()

    @override
    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.info("%s - %s", self.address_string(), format % args)


def make_server(
    repo: StrPath, host: str = "localhost", port: int = 8080
) -> ThreadingHTTPServer:
    """Create (but do not start) a server for the repository at `repo`."""
    repo = Path(repo)
    if not repo.is_dir():
        raise FileNotFoundError(f"Repository directory {repo} does not exist")
    handler = functools.partial(RepoHandler, directory=str(repo))
    return ThreadingHTTPServer((host, port), handler)


def serve(repo: StrPath, host: str = "localhost", port: int = 8080) -> None:
    """Serve the repository at `repo` until interrupted."""
    with make_server(repo, host, port) as httpd:
        logger.info("Serving %s on http://%s:%d/", repo, host, httpd.server_port)
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down")


__all__ = ["RepoHandler", "make_server", "serve"]
