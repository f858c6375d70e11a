from __future__ import annotations

import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Type

from gitops_promoter.errors import PayloadError
from gitops_promoter.webhook import EventDispatcher

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook"
LIVENESS_PATH = "/live"


def make_handler(dispatcher: EventDispatcher) -> Type[BaseHTTPRequestHandler]:
    class WebhookHandler(BaseHTTPRequestHandler):
        def _reply(self, status: HTTPStatus, text: str) -> None:
            payload = text.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def do_GET(self) -> None:
            if self.path == LIVENESS_PATH:
                self._reply(HTTPStatus.OK, "Ok")
                return
            self._reply(HTTPStatus.NOT_FOUND, "Not found")

        def do_POST(self) -> None:
            if self.path != WEBHOOK_PATH:
                self._reply(HTTPStatus.NOT_FOUND, "Not found")
                return
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length)
            try:
                dispatcher.receive_webhook(dict(self.headers.items()), body)
            except PayloadError as exc:
                self._reply(HTTPStatus.BAD_REQUEST, str(exc))
                return
            self._reply(HTTPStatus.OK, "OK")

        def log_message(self, format: str, *args) -> None:
            logger.debug("[http] %s %s", self.address_string(), format % args)

    return WebhookHandler


def serve(dispatcher: EventDispatcher, host: str = "0.0.0.0", port: int = 8080) -> None:
    server = ThreadingHTTPServer((host, port), make_handler(dispatcher))
    logger.info("[http] listening on %s:%s", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("[http] shutting down")
    finally:
        server.server_close()
        dispatcher.shutdown()
