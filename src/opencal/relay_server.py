from __future__ import annotations

import argparse
import json
import logging
import os
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

import requests
from dotenv import load_dotenv

from .config import CONFIG_PATH_DEFAULT, load_config, resolve_source_url

logger = logging.getLogger(__name__)

RELAY_PATH = "/api/calendar"

HttpGet = Callable[..., requests.Response]


class CalendarRelayHandler(BaseHTTPRequestHandler):
    """Same-origin relay: ``GET /api/calendar?url=...`` or ``?id=...``.

    An ``id`` is resolved to a feed URL from the server environment, so the
    real feed URL never has to reach the client.
    """

    http_get: HttpGet = requests.get
    timeout: float = 20

    def _send_json(self, status: int, payload: dict[str, Any]) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_calendar(self, text: str) -> None:
        body = text.encode("utf-8")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/calendar; charset=utf-8")
        self.send_header("Cache-Control", "no-store, max-age=0")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.info("%s - %s", self.address_string(), format % args)

    def do_GET(self) -> None:  # noqa: N802
        parts = urlsplit(self.path)
        if parts.path != RELAY_PATH:
            self._send_json(HTTPStatus.NOT_FOUND, {"error": "not_found"})
            return

        query = parse_qs(parts.query)
        target_url = query.get("url", [""])[0]
        source_id = query.get("id", [""])[0]
        if source_id:
            target_url = resolve_source_url(source_id, fallback=target_url)

        if not target_url:
            self._send_json(HTTPStatus.BAD_REQUEST, {"error": "Missing url or id parameter"})
            return

        try:
            resp = type(self).http_get(target_url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Error fetching calendar %s: %s", source_id or target_url, exc)
            self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": "Internal Server Error"})
            return

        if not resp.ok:
            self._send_json(resp.status_code, {"error": f"Failed to fetch calendar: {resp.reason}"})
            return

        resp.encoding = "utf-8"
        self._send_calendar(resp.text)


def build_server(host: str = "127.0.0.1", port: int = 8765) -> ThreadingHTTPServer:
    return ThreadingHTTPServer((host, port), CalendarRelayHandler)


def run_server(host: str = "127.0.0.1", port: int = 8765) -> None:
    server = build_server(host, port)
    print(f"OpenCal calendar relay listening on http://{host}:{port}{RELAY_PATH}")
    server.serve_forever()


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    ap = argparse.ArgumentParser(description="OpenCal same-origin calendar feed relay")
    ap.add_argument("--config", default=CONFIG_PATH_DEFAULT)
    ap.add_argument("--host", default=os.environ.get("OPENCAL_RELAY_HOST"))
    ap.add_argument("--port", type=int, default=os.environ.get("OPENCAL_RELAY_PORT"))
    ap.add_argument("--log-level", default=os.environ.get("OPENCAL_LOG_LEVEL", "INFO"))
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    cfg = load_config(args.config)
    CalendarRelayHandler.timeout = cfg.fetch_timeout_seconds
    run_server(host=args.host or cfg.relay.host, port=int(args.port or cfg.relay.port))


if __name__ == "__main__":
    main()
