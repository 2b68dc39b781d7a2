"""End-to-end tests for MaskFS.

These tests run the full stack: configuration, mask compilation, the
request pipeline and the threaded HTTP server, talking to it over a real
socket.
"""

import http.client
import threading
import time

import pytest

from maskfs.infrastructure.config_manager import ConfigManager
from maskfs.main import MaskFSMain
from maskfs.server.transport import serve


@pytest.fixture
def live_server(sample_config, logger):
    """Start MaskFS on an ephemeral port and stop it afterwards."""
    config = ConfigManager(environ={})
    config.load_dict(sample_config)

    controller = MaskFSMain(config, logger)
    controller.initialize_components()
    server = controller.create_server()

    thread = threading.Thread(
        target=serve,
        args=(server, controller.shutdown_event),
        kwargs={"grace": 1.0, "poll_interval": 0.05},
    )
    thread.start()
    yield server
    controller.shutdown_event.set()
    thread.join(timeout=5)


def get(server, path, method="GET"):
    conn = http.client.HTTPConnection("127.0.0.1", server.port, timeout=5)
    try:
        conn.request(method, path)
        response = conn.getresponse()
        return response.status, response.read()
    finally:
        conn.close()


class TestServingScenario:
    """A Go tree served with its secrets hidden."""

    def test_visible_source(self, live_server):
        status, body = get(live_server, "/files/main.go")

        assert status == 200
        assert body == b"package main\n"

    def test_hidden_secret(self, live_server):
        status, body = get(live_server, "/files/secrets/key.go")

        assert status == 404
        assert body == b"404 Not Found\n"

    def test_non_matching_file_is_hidden(self, live_server):
        assert get(live_server, "/files/README.md")[0] == 404

    def test_root_listing(self, live_server):
        status, body = get(live_server, "/files/")

        assert status == 200
        assert b'href="/files/main.go"' in body
        assert b"secrets" not in body
        assert b"README.md" not in body

    def test_traversal(self, live_server):
        assert get(live_server, "/files/%2e%2e/outside.go")[0] == 400

    def test_post(self, live_server):
        assert get(live_server, "/files/main.go", method="POST")[0] == 405

    def test_health(self, live_server):
        assert get(live_server, "/") == (200, b"")

    def test_masked_and_missing_are_identical(self, live_server):
        """A client cannot tell a masked file from one that does not exist."""
        assert get(live_server, "/files/secrets/key.go") == get(live_server, "/files/secrets/nope.go")
        assert get(live_server, "/files/README.md") == get(live_server, "/files/NOPE.md")


class TestShutdown:
    """Graceful shutdown with a request in flight."""

    def test_in_flight_request_completes(self, sample_config, logger, serve_root):
        config = ConfigManager(environ={})
        config.load_dict(sample_config)
        controller = MaskFSMain(config, logger)
        controller.initialize_components()
        server = controller.create_server()

        entered = threading.Event()
        real_route = controller.pipeline.route

        def slow_route(method, path):
            entered.set()
            time.sleep(0.3)
            return real_route(method, path)

        controller.pipeline.route = slow_route

        runner = threading.Thread(
            target=serve,
            args=(server, controller.shutdown_event),
            kwargs={"grace": 5.0, "poll_interval": 0.05},
        )
        runner.start()

        results = []
        client = threading.Thread(target=lambda: results.append(get(server, "/files/main.go")))
        client.start()
        assert entered.wait(5)

        controller.shutdown_event.set()
        runner.join(timeout=10)
        client.join(timeout=5)

        assert results == [(200, b"package main\n")]
        assert server.active_requests == 0
