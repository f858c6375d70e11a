from __future__ import annotations

import threading
import urllib.error
import urllib.request
from http.server import ThreadingHTTPServer

import pytest

from gitops_promoter.errors import SignatureError
from gitops_promoter.server import make_handler


class StubDispatcher:
    def __init__(self, reject: bool = False) -> None:
        self.reject = reject
        self.received = []

    def receive_webhook(self, headers, body):
        if self.reject:
            raise SignatureError("payload signature does not match")
        self.received.append((headers, body))


@pytest.fixture
def running_server():
    servers = []

    def start(dispatcher):
        server = ThreadingHTTPServer(("127.0.0.1", 0), make_handler(dispatcher))
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append(server)
        return f"http://127.0.0.1:{server.server_address[1]}"

    yield start
    for server in servers:
        server.shutdown()
        server.server_close()


def test_liveness(running_server) -> None:
    base = running_server(StubDispatcher())
    with urllib.request.urlopen(f"{base}/live") as response:
        assert response.status == 200
        assert response.read() == b"Ok"


def test_webhook_accepts_delivery(running_server) -> None:
    dispatcher = StubDispatcher()
    base = running_server(dispatcher)
    request = urllib.request.Request(
        f"{base}/webhook",
        data=b'{"zen": "hi"}',
        headers={"X-GitHub-Event": "ping"},
        method="POST",
    )
    with urllib.request.urlopen(request) as response:
        assert response.status == 200

    ((headers, body),) = dispatcher.received
    assert body == b'{"zen": "hi"}'
    assert {k.lower(): v for k, v in headers.items()}["x-github-event"] == "ping"


def test_webhook_rejects_bad_signature(running_server) -> None:
    base = running_server(StubDispatcher(reject=True))
    request = urllib.request.Request(f"{base}/webhook", data=b"{}", method="POST")
    with pytest.raises(urllib.error.HTTPError) as excinfo:
        urllib.request.urlopen(request)
    assert excinfo.value.code == 400


def test_unknown_path_is_404(running_server) -> None:
    base = running_server(StubDispatcher())
    with pytest.raises(urllib.error.HTTPError) as excinfo:
        urllib.request.urlopen(f"{base}/nope")
    assert excinfo.value.code == 404
