#!/usr/bin/env python3
"""Directory listings.

This module turns a directory's visible children into an HTML page:
- Enumerating and resolving immediate children, dropping masked ones
- Sorting children by name so listings are deterministic
- Rendering with a Jinja2 template

Masking happens in :func:`collect_children` only. The template renders
whatever it is given.
"""

import os
import posixpath
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

import jinja2

from maskfs.core.constants import ErrorCode
from maskfs.index.entry import Entry, EntryNotFoundError, make_link, resolve_entry
from maskfs.infrastructure.logger import Logger, get_logger

if TYPE_CHECKING:
    from maskfs.rules.engine import Mask


class ListingError(Exception):
    """Directory listing could not be built or rendered."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


@dataclass(frozen=True)
class Listing:
    """Render model for one directory page."""

    directory: Entry
    entries: Tuple[Entry, ...]
    parent_link: Optional[str] = None

    @property
    def title(self) -> str:
        return f"/{self.directory.fs_path}"


def collect_children(
    root: str, directory: Entry, mask: "Mask", logger: Optional[Logger] = None
) -> List[Entry]:
    """Resolve the visible immediate children of a directory.

    Children that cannot be resolved (e.g. dangling symlinks) or that the
    mask hides are dropped.

    Args:
        root: Serving root directory
        directory: Directory entry to enumerate
        mask: Visibility policy
        logger: Logger for dropped children

    Returns:
        Visible child entries, in enumeration order

    Raises:
        ListingError: If the directory cannot be read
    """
    log = logger or get_logger()
    full_path = os.path.join(os.path.realpath(root), *directory.fs_path.split("/"))

    try:
        names = os.listdir(full_path)
    except OSError as e:
        raise ListingError(f"Failed to read directory {directory.fs_path!r}: {e}")

    children: List[Entry] = []
    for name in names:
        child_path = posixpath.join(directory.fs_path, name) if directory.fs_path else name
        try:
            entry: Optional[Entry] = resolve_entry(root, child_path)
        except EntryNotFoundError:
            entry = None

        if mask.masked(entry):
            log.debug("Dropping child from listing", path=child_path)
            continue

        children.append(entry)

    return children


def parent_link_for(directory: Entry) -> Optional[str]:
    """Link to the parent directory, or None for the serving root."""
    if directory.is_root:
        return None
    return make_link(posixpath.dirname(directory.fs_path))


def build_listing(directory: Optional[Entry], children: Sequence[Optional[Entry]]) -> Listing:
    """Build the render model for a directory page.

    Args:
        directory: The directory being listed
        children: Its visible children

    Returns:
        Listing with children sorted by name

    Raises:
        ListingError: If the directory or any child is None
    """
    if directory is None:
        raise ListingError("invalid directory referenced")
    for child in children:
        if child is None:
            raise ListingError("invalid entry referenced")

    entries = tuple(sorted(children, key=lambda entry: entry.name))
    return Listing(directory=directory, entries=entries, parent_link=parent_link_for(directory))


LISTING_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Directory listing for {{ listing.title }}</title>
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Helvetica, Arial, sans-serif; }
        .container { max-width: 1200px; margin: 0 auto; padding: 20px; }
        table { width: 100%; border-collapse: collapse; }
        th, td { text-align: left; padding: 12px; border-bottom: 1px solid #ddd; }
        th { background-color: #f8f9fa; }
        tr:hover { background-color: #f5f5f5; }
        a { color: #0366d6; text-decoration: none; }
        a:hover { text-decoration: underline; }
    </style>
</head>
<body>
    <div class="container">
        <h1>Directory listing for {{ listing.title }}</h1>
        <table>
            <thead>
                <tr><th>Name</th><th>Size</th><th>Mode</th><th>Modified</th></tr>
            </thead>
            <tbody>
                {%- if listing.parent_link is not none %}
                <tr><td><a href="{{ listing.parent_link }}">..</a></td><td>-</td><td>-</td><td>-</td></tr>
                {%- endif %}
                {%- for entry in listing.entries %}
                <tr>
                    <td><a href="{{ entry.link_path }}">{{ entry.name }}{% if entry.is_dir %}/{% endif %}</a></td>
                    <td>{% if entry.is_dir %}-{% else %}{{ entry.size }}{% endif %}</td>
                    <td>{{ entry.mode_string }}</td>
                    <td>{{ entry.mod_time }}</td>
                </tr>
                {%- endfor %}
            </tbody>
        </table>
    </div>
</body>
</html>
"""

_environment = jinja2.Environment(autoescape=True, undefined=jinja2.StrictUndefined)


def render_listing(listing: Listing, template: str = LISTING_TEMPLATE) -> str:
    """Render a listing to HTML.

    Args:
        listing: Sorted, already-masked render model
        template: Jinja2 template source

    Returns:
        HTML document

    Raises:
        ListingError: If the template fails to compile or render
    """
    try:
        return _environment.from_string(template).render(listing=listing)
    except jinja2.TemplateError as e:
        raise ListingError(f"Template error: {e}")
