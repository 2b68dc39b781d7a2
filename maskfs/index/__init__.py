"""MaskFS Index - entry resolution and directory listings."""

from .entry import Entry, EntryNotFoundError, link_to_path, make_link, resolve_entry
from .listing import (
    Listing,
    ListingError,
    build_listing,
    collect_children,
    render_listing,
)

__all__ = [
    "Entry",
    "EntryNotFoundError",
    "link_to_path",
    "make_link",
    "resolve_entry",
    "Listing",
    "ListingError",
    "build_listing",
    "collect_children",
    "render_listing",
]
