#!/usr/bin/env python3
"""Entry resolution for served paths.

An :class:`Entry` is the metadata of one path below the serving root,
together with the URL it is served under. Entries are built fresh for every
lookup and never cached.

Example:
    >>> entry = resolve_entry("/srv/data", "docs/index.md")
    >>> entry.link_path
    '/files/docs/index.md'
"""

import os
import posixpath
import stat
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote, unquote

from maskfs.core.constants import FILES_PREFIX, RFC3339_FORMAT, ErrorCode, FSPath, LinkPath


class EntryNotFoundError(Exception):
    """Path cannot be resolved below the serving root.

    Raised uniformly for missing files, permission errors, and any other
    stat failure, so callers cannot tell them apart.
    """

    def __init__(self, path: str, error_code: ErrorCode = ErrorCode.NOT_FOUND):
        self.path = path
        self.error_code = error_code
        super().__init__(f"Entry not found: {path!r}")


@dataclass(frozen=True)
class Entry:
    """File or directory metadata for serving and listing."""

    name: str
    size: int
    mode: int
    mod_time: str  # RFC 3339, UTC
    is_dir: bool
    fs_path: FSPath  # Relative to the serving root, no leading slash
    link_path: LinkPath  # URL-escaped path for HTML links

    @property
    def is_root(self) -> bool:
        return self.fs_path == ""

    @property
    def mode_string(self) -> str:
        """Permission bits rendered like ``ls -l`` (e.g. ``-rw-r--r--``)."""
        return stat.filemode(self.mode)


def make_link(path: FSPath) -> LinkPath:
    """Build the URL a root-relative path is served under.

    Each segment is percent-escaped on its own, so unquoting the link minus
    the route prefix gives back ``path`` exactly.
    """
    segments = [quote(segment, safe="", errors="surrogateescape") for segment in path.split("/")]
    return FILES_PREFIX + "/".join(segments)


def link_to_path(link: LinkPath) -> FSPath:
    """Invert :func:`make_link`."""
    if not link.startswith(FILES_PREFIX):
        raise ValueError(f"Link is not under {FILES_PREFIX}: {link!r}")
    return unquote(link[len(FILES_PREFIX):], errors="surrogateescape")


def format_mod_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(RFC3339_FORMAT)


def _within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def resolve_entry(root: str, path: FSPath) -> Entry:
    """Stat a root-relative path and build its Entry.

    An empty path (or ``.``) resolves the serving root itself, with
    ``fs_path`` ``""`` and link ``/files/``.

    Args:
        root: Serving root directory
        path: Path relative to root, POSIX separators, no leading slash

    Returns:
        Entry for the path

    Raises:
        EntryNotFoundError: If the path cannot be resolved inside root
    """
    normalized = posixpath.normpath(path) if path else "."
    if normalized == ".." or normalized.startswith(("/", "../")):
        raise EntryNotFoundError(path)
    if normalized == ".":
        normalized = ""

    real_root = os.path.realpath(root)
    full_path = os.path.join(real_root, *normalized.split("/")) if normalized else real_root

    try:
        # Symlinks may not lead out of the serving root
        if not _within(os.path.realpath(full_path), real_root):
            raise EntryNotFoundError(path, ErrorCode.PERMISSION_DENIED)
        st = os.stat(full_path)
    except (OSError, ValueError):
        raise EntryNotFoundError(path)

    return Entry(
        name=posixpath.basename(normalized) or ".",
        size=st.st_size,
        mode=st.st_mode,
        mod_time=format_mod_time(st.st_mtime),
        is_dir=stat.S_ISDIR(st.st_mode),
        fs_path=normalized,
        link_path=make_link(normalized),
    )
