"""
WSGI reverse proxy in front of the PHP server.

The live-reload server wraps this app and injects its reload script into
HTML responses, so every page served through the proxy refreshes itself
when the deployed plugin changes.

WordPress emits absolute URLs for its configured site address. Text
responses and Location headers have the upstream origin rewritten to the
proxy's public origin so navigation stays on the proxy.
"""

import logging
from typing import Iterable, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

# Headers that describe a single connection and must not be forwarded
HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

REWRITE_CONTENT_TYPES = ("text/", "application/javascript", "application/json", "application/xml")


class ProxyApp:
    """
    Forward WSGI requests to an upstream HTTP server with httpx.

    Args:
        upstream: Upstream origin, e.g. "http://localhost:8080"
        public_origin: Origin clients use, e.g. "http://localhost:3000"
        client: httpx.Client to use (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        upstream: str,
        public_origin: str,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.upstream = upstream.rstrip("/")
        self.public_origin = public_origin.rstrip("/")
        self.client = client or httpx.Client(timeout=None, follow_redirects=False)

    def close(self) -> None:
        self.client.close()

    def __call__(self, environ: dict, start_response) -> Iterable[bytes]:
        method = environ.get("REQUEST_METHOD", "GET")
        url = self.upstream + self._request_path(environ)

        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        body = environ["wsgi.input"].read(length) if length > 0 else b""

        try:
            response = self.client.request(
                method, url, headers=self._request_headers(environ), content=body
            )
        except httpx.HTTPError as e:
            logger.warning(f"Upstream request failed: {method} {url}: {e}")
            message = f"wpsync proxy: upstream {self.upstream} unavailable ({e})\n".encode()
            start_response(
                "502 Bad Gateway",
                [("Content-Type", "text/plain; charset=utf-8"), ("Content-Length", str(len(message)))],
            )
            return [message]

        content = response.content
        content_type = response.headers.get("content-type", "")
        if content_type.startswith(REWRITE_CONTENT_TYPES):
            content = self.rewrite(content)

        headers = []
        for name, value in response.headers.multi_items():
            lowered = name.lower()
            if lowered in HOP_BY_HOP or lowered in ("content-length", "content-encoding"):
                continue
            if lowered == "location":
                value = self.rewrite(value.encode("latin-1")).decode("latin-1")
            headers.append((name, value))
        headers.append(("Content-Length", str(len(content))))

        start_response(f"{response.status_code} {response.reason_phrase}", headers)
        return [content]

    def rewrite(self, content: bytes) -> bytes:
        """Replace the upstream origin with the public origin."""
        upstream = self.upstream.encode("latin-1")
        public = self.public_origin.encode("latin-1")
        content = content.replace(upstream, public)
        # WordPress escapes slashes in JSON/inline scripts
        return content.replace(upstream.replace(b"/", b"\\/"), public.replace(b"/", b"\\/"))

    @staticmethod
    def _request_path(environ: dict) -> str:
        raw = (environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")) or "/"
        path = quote(raw.encode("latin-1"), safe="/:@!$&'()*+,;=-._~%")
        query = environ.get("QUERY_STRING")
        return f"{path}?{query}" if query else path

    def _request_headers(self, environ: dict) -> list[tuple[str, str]]:
        headers = []
        for key, value in environ.items():
            if key.startswith("HTTP_"):
                name = key[5:].replace("_", "-").lower()
            elif key in ("CONTENT_TYPE", "CONTENT_LENGTH") and value:
                name = key.replace("_", "-").lower()
            else:
                continue
            if name in HOP_BY_HOP or name in ("host", "accept-encoding"):
                continue
            headers.append((name, value))
        headers.append(("host", httpx.URL(self.upstream).netloc.decode("ascii")))
        return headers
