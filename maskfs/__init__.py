"""MaskFS - serve a directory tree over HTTP behind a visibility mask."""

from maskfs.core.constants import MASKFS_VERSION

__version__ = MASKFS_VERSION
