#!/usr/bin/env python3
"""Request pipeline for masked file serving.

Each request goes through the same steps:
1. Method check (GET and HEAD only)
2. Percent-decoding and normalisation inside the serving root
3. Entry resolution
4. Mask check
5. Dispatch to a directory listing or a file response

The pipeline is transport-agnostic: it returns :class:`Response` objects and
never raises. A masked path gets exactly the same response as a missing one.

Example:
    >>> pipeline = RequestPipeline("/srv/data", GlobMask.from_text("**/*.md"))
    >>> pipeline.route("GET", "/files/README.md").status
    <HTTPStatus.OK: 200>
"""

import os
import posixpath
import re
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Dict, Optional
from urllib.parse import unquote_to_bytes, urlsplit

from maskfs.core.constants import ALLOWED_METHODS, FILES_PREFIX, ROOT_ROUTE, FSPath
from maskfs.index.entry import Entry, EntryNotFoundError, resolve_entry
from maskfs.index.listing import ListingError, build_listing, collect_children, render_listing
from maskfs.infrastructure.logger import Logger, get_logger
from maskfs.rules.engine import Mask

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class RequestError(Exception):
    """Base class for errors that map to an HTTP status."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.status.phrase
        super().__init__(self.message)

    def to_response(self) -> "Response":
        """Build the client-facing response.

        The body depends on the status only, never on the message, so two
        errors with the same status are indistinguishable to the client.
        """
        return Response.error(self.status)


class BadRequestError(RequestError):
    status = HTTPStatus.BAD_REQUEST


class NotFoundError(RequestError):
    status = HTTPStatus.NOT_FOUND


class MethodNotAllowedError(RequestError):
    status = HTTPStatus.METHOD_NOT_ALLOWED

    def to_response(self) -> "Response":
        response = super().to_response()
        response.headers["Allow"] = ", ".join(ALLOWED_METHODS)
        return response


class InternalServerError(RequestError):
    status = HTTPStatus.INTERNAL_SERVER_ERROR


@dataclass
class Response:
    """Transport-independent HTTP response.

    For file responses ``body`` is empty and ``file_path`` names the file the
    transport should stream.
    """

    status: HTTPStatus
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    entry: Optional[Entry] = None
    file_path: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.file_path is not None

    @classmethod
    def error(cls, status: HTTPStatus) -> "Response":
        body = f"{status.value} {status.phrase}\n".encode("utf-8")
        return cls(
            status=status,
            body=body,
            headers={
                "Content-Type": "text/plain; charset=utf-8",
                "X-Content-Type-Options": "nosniff",
            },
        )

    @classmethod
    def html(cls, text: str) -> "Response":
        return cls(
            status=HTTPStatus.OK,
            body=text.encode("utf-8", errors="replace"),
            headers={"Content-Type": "text/html; charset=utf-8"},
        )


def decode_path(raw_path: str) -> str:
    """Percent-decode a URL path.

    Bytes that are not valid UTF-8 are kept as surrogate escapes, the same
    way ``os.fsdecode`` represents undecodable file names.

    Raises:
        BadRequestError: On malformed escapes or NUL bytes
    """
    if _BAD_ESCAPE.search(raw_path):
        raise BadRequestError(f"Malformed percent-encoding in {raw_path!r}")

    decoded = unquote_to_bytes(raw_path)
    if b"\0" in decoded:
        raise BadRequestError("Path contains NUL byte")

    return decoded.decode("utf-8", errors="surrogateescape")


def normalize_path(path: str) -> FSPath:
    """Canonicalise a decoded path relative to the serving root.

    Leading slashes carry no meaning: every path is root-relative.

    Raises:
        BadRequestError: If the path reduces to the root or climbs above it
    """
    normalized = posixpath.normpath(path.lstrip("/") or ".")
    if normalized == ".":
        raise BadRequestError("Path reduces to the serving root")
    if normalized == ".." or normalized.startswith("../"):
        raise BadRequestError(f"Path escapes the serving root: {path!r}")
    return normalized


class RequestPipeline:
    """Resolves, masks, and dispatches file requests.

    The pipeline holds no per-request state, so one instance serves every
    request thread concurrently.
    """

    def __init__(self, root: str, mask: Mask, logger: Optional[Logger] = None):
        """Initialize the pipeline.

        Args:
            root: Serving root directory
            mask: Visibility policy applied to every lookup and listing
            logger: Logger instance
        """
        self.root = os.path.realpath(root)
        self.mask = mask
        self.logger = logger or get_logger()

    def route(self, method: str, url_path: str) -> Response:
        """Handle a full request path.

        Args:
            method: HTTP method
            url_path: Request target; the query string is ignored

        Returns:
            Response for the client
        """
        path = urlsplit(url_path).path

        if path == ROOT_ROUTE:
            try:
                self._check_method(method)
            except RequestError as e:
                return self._fail(e)
            return Response(status=HTTPStatus.OK)

        if path == FILES_PREFIX.rstrip("/"):
            try:
                self._check_method(method)
            except RequestError as e:
                return self._fail(e)
            return Response(status=HTTPStatus.MOVED_PERMANENTLY, headers={"Location": FILES_PREFIX})

        if path.startswith(FILES_PREFIX):
            return self.handle(method, path[len(FILES_PREFIX):])

        return self._fail(NotFoundError(f"No route for {path!r}"))

    def handle(self, method: str, raw_path: str) -> Response:
        """Handle a request below the file route.

        Args:
            method: HTTP method
            raw_path: URL path after the ``/files/`` prefix, still escaped

        Returns:
            Response for the client
        """
        self.logger.debug("Handling request", method=method, path=raw_path)
        try:
            self._check_method(method)

            # An empty remainder is the root listing route
            fs_path = normalize_path(decode_path(raw_path)) if raw_path else ""
            entry = self._resolve(fs_path)

            if entry.is_dir:
                return self._list_directory(entry)

            return Response(
                status=HTTPStatus.OK,
                entry=entry,
                file_path=os.path.join(self.root, *entry.fs_path.split("/")),
            )

        except RequestError as e:
            return self._fail(e)

    def _check_method(self, method: str) -> None:
        if method not in ALLOWED_METHODS:
            raise MethodNotAllowedError(f"Method {method} not allowed")

    def _resolve(self, fs_path: FSPath) -> Entry:
        """Resolve a path and apply the mask.

        Raises:
            NotFoundError: If the path is missing or masked
        """
        try:
            entry = resolve_entry(self.root, fs_path)
        except EntryNotFoundError as e:
            raise NotFoundError(str(e))

        # The root is only ever listed; its children carry the mask
        if not entry.is_root and self.mask.masked(entry):
            raise NotFoundError(f"Entry {fs_path!r} is masked")

        self.logger.debug("Resolved entry", path=entry.fs_path, is_dir=entry.is_dir)
        return entry

    def _list_directory(self, directory: Entry) -> Response:
        try:
            children = collect_children(self.root, directory, self.mask, logger=self.logger)
            listing = build_listing(directory, children)
            return Response.html(render_listing(listing))
        except ListingError as e:
            raise InternalServerError(e.message)

    def _fail(self, error: RequestError) -> Response:
        if error.status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            self.logger.error("Request failed", status=error.status.value, reason=error.message)
        else:
            self.logger.debug("Request rejected", status=error.status.value, reason=error.message)
        return error.to_response()
