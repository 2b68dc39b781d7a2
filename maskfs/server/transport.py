#!/usr/bin/env python3
"""Threaded HTTP transport for the request pipeline.

This module provides:
- MaskFSServer: ThreadingHTTPServer with one thread per connection and a
  count of in-flight requests for graceful shutdown
- MaskFSRequestHandler: adapts pipeline responses to HTTP, streaming files
  with Range support
- serve(): runs the server on a background thread until stopped, then
  drains in-flight requests for a bounded grace period

Example:
    >>> server = MaskFSServer(("", 9888), pipeline)
    >>> serve(server, stop_event, grace=5.0)
"""

import mimetypes
import os
import threading
import uuid
from datetime import datetime, timezone
from email.utils import format_datetime
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, List, Optional, Tuple

from maskfs.core.constants import MASKFS_VERSION, RFC3339_FORMAT, Limits
from maskfs.infrastructure.logger import Logger, get_logger
from maskfs.server.pipeline import RequestPipeline, Response


class RangeNotSatisfiableError(Exception):
    """Requested byte range lies outside the file."""


def parse_range(header: Optional[str], size: int) -> Optional[Tuple[int, int]]:
    """Parse a single-range ``Range`` header.

    Headers this server does not handle (other units, multiple ranges,
    malformed values) are ignored and the whole file is served.

    Args:
        header: Value of the Range header, if any
        size: File size in bytes

    Returns:
        Inclusive ``(start, end)`` byte offsets, or None to serve everything

    Raises:
        RangeNotSatisfiableError: If the range is well-formed but unsatisfiable
    """
    if not header:
        return None

    unit, _, ranges = header.strip().partition("=")
    if unit.strip().lower() != "bytes" or "," in ranges:
        return None

    first, sep, last = ranges.strip().partition("-")
    if not sep:
        return None

    try:
        if first == "":
            suffix = int(last)
            if suffix <= 0 or size == 0:
                raise RangeNotSatisfiableError(header)
            return max(0, size - suffix), size - 1

        start = int(first)
        end = int(last) if last else size - 1
    except ValueError:
        return None

    if start < 0:
        return None
    if start >= size:
        raise RangeNotSatisfiableError(header)
    if end < start:
        return None

    return start, min(end, size - 1)


def http_date(mod_time: str) -> str:
    """Convert an Entry timestamp to an HTTP date."""
    parsed = datetime.strptime(mod_time, RFC3339_FORMAT).replace(tzinfo=timezone.utc)
    return format_datetime(parsed, usegmt=True)


class MaskFSRequestHandler(BaseHTTPRequestHandler):
    """Serves one connection by handing each request to the pipeline."""

    server_version = f"MaskFS/{MASKFS_VERSION}"
    server: "MaskFSServer"

    def _dispatch(self) -> None:
        logger = self.server.logger
        self._headers_started = False

        with logger.add_context(request_id=uuid.uuid4().hex[:8]):
            try:
                response = self.server.pipeline.route(self.command, self.path)
                if response.is_file:
                    self._send_file(response)
                else:
                    self._send(response)
            except (BrokenPipeError, ConnectionResetError):
                logger.debug("Client disconnected", path=self.path)
            except Exception as e:
                # One failing request must never take the listener down
                logger.exception("Unhandled error while serving request", e, path=self.path)
                if not self._headers_started:
                    self._send(Response.error(HTTPStatus.INTERNAL_SERVER_ERROR))

    def __getattr__(self, name: str):
        # Every verb reaches the pipeline, which answers 405 for unsupported ones
        if name.startswith("do_"):
            return self._dispatch
        raise AttributeError(name)

    def _start(self, status: HTTPStatus, headers: Dict[str, str]) -> None:
        self._headers_started = True
        self.send_response(status)
        for name, value in headers.items():
            self.send_header(name, value)
        self.end_headers()

    def _send(self, response: Response) -> None:
        headers = dict(response.headers)
        headers["Content-Length"] = str(len(response.body))
        self._start(response.status, headers)
        if self.command != "HEAD" and response.body:
            self.wfile.write(response.body)

    def _send_file(self, response: Response) -> None:
        entry = response.entry

        try:
            f = open(response.file_path, "rb")
        except OSError:
            # Vanished or became unreadable after it was resolved
            self._send(Response.error(HTTPStatus.NOT_FOUND))
            return

        with f:
            size = os.fstat(f.fileno()).st_size
            content_type, _ = mimetypes.guess_type(entry.name)
            headers = {
                "Content-Type": content_type or "application/octet-stream",
                "Last-Modified": http_date(entry.mod_time),
                "Accept-Ranges": "bytes",
            }

            try:
                byte_range = parse_range(self.headers.get("Range"), size)
            except RangeNotSatisfiableError:
                error = Response.error(HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE)
                error.headers["Content-Range"] = f"bytes */{size}"
                self._send(error)
                return

            if byte_range is None:
                status, start, length = HTTPStatus.OK, 0, size
            else:
                start, end = byte_range
                status, length = HTTPStatus.PARTIAL_CONTENT, end - start + 1
                headers["Content-Range"] = f"bytes {start}-{end}/{size}"

            headers["Content-Length"] = str(length)
            self._start(status, headers)

            if self.command == "HEAD":
                return

            f.seek(start)
            remaining = length
            while remaining > 0:
                chunk = f.read(min(Limits.STREAM_CHUNK_SIZE, remaining))
                if not chunk:
                    break
                self.wfile.write(chunk)
                remaining -= len(chunk)

    def log_request(self, code="-", size="-") -> None:
        if isinstance(code, HTTPStatus):
            code = code.value
        self.server.logger.debug(
            "Request served",
            client=self.address_string(),
            request=self.requestline,
            status=code,
        )

    def log_error(self, format: str, *args) -> None:
        self.server.logger.warning(format % args, client=self.address_string())


class MaskFSServer(ThreadingHTTPServer):
    """HTTP server that tracks in-flight requests.

    Each connection runs on its own daemon thread. :meth:`drain` waits for
    the running ones to finish.
    """

    daemon_threads = True
    block_on_close = False

    def __init__(
        self,
        address: Tuple[str, int],
        pipeline: RequestPipeline,
        logger: Optional[Logger] = None,
    ):
        """Bind the server.

        Args:
            address: (host, port) to listen on; port 0 picks a free port
            pipeline: Request pipeline shared by every request thread
            logger: Logger instance

        Raises:
            OSError: If the address cannot be bound
        """
        self.pipeline = pipeline
        self.logger = logger or get_logger()
        self._active = 0
        self._idle = threading.Condition()
        super().__init__(address, MaskFSRequestHandler)

    @property
    def port(self) -> int:
        return self.server_address[1]

    @property
    def active_requests(self) -> int:
        with self._idle:
            return self._active

    def process_request(self, request, client_address) -> None:
        # Counted before the thread starts so drain() cannot miss it
        with self._idle:
            self._active += 1
        try:
            super().process_request(request, client_address)
        except Exception:
            self._finished()
            raise

    def process_request_thread(self, request, client_address) -> None:
        try:
            super().process_request_thread(request, client_address)
        finally:
            self._finished()

    def _finished(self) -> None:
        with self._idle:
            self._active -= 1
            if self._active == 0:
                self._idle.notify_all()

    def drain(self, timeout: float) -> bool:
        """Wait for in-flight requests to finish.

        Args:
            timeout: Maximum seconds to wait

        Returns:
            True if no request is still running
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._active == 0, timeout=timeout)


def serve(
    server: MaskFSServer,
    stop_event: threading.Event,
    grace: float = Limits.DEFAULT_SHUTDOWN_GRACE,
    poll_interval: float = 0.5,
) -> None:
    """Serve until stopped, then shut down gracefully.

    The server loop runs on a background thread while the calling thread
    waits for ``stop_event`` or for the loop to fail.

    Args:
        server: Bound server
        stop_event: Set to request shutdown
        grace: Seconds to wait for in-flight requests before closing
        poll_interval: Seconds between checks of the stop event

    Raises:
        Exception: Whatever made the server loop fail
    """
    logger = server.logger
    failures: List[BaseException] = []

    def _run() -> None:
        try:
            server.serve_forever(poll_interval=poll_interval)
        except Exception as e:
            failures.append(e)
            stop_event.set()

    thread = threading.Thread(target=_run, name="maskfs-server", daemon=True)
    thread.start()
    logger.info("Server listening", port=server.port)

    while not stop_event.wait(poll_interval):
        pass

    logger.debug("Shutting down server")
    # Only a loop that is still running can acknowledge shutdown()
    if not failures:
        server.shutdown()
    thread.join()

    if not server.drain(grace):
        logger.warning("Abandoning in-flight requests", count=server.active_requests, grace=grace)
    server.server_close()

    if failures:
        logger.error("Server error", error=str(failures[0]))
        raise failures[0]

    logger.info("Server stopped")
