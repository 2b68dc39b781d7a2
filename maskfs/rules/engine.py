#!/usr/bin/env python3
"""Mask strategies for entry visibility.

The request pipeline depends only on the :class:`Mask` interface, so other
strategies can replace the glob rules without touching request handling.

Example:
    >>> mask = GlobMask.from_text("**/*.md")
    >>> mask.masked(None)
    True
"""

from abc import ABC, abstractmethod
from typing import Optional

from maskfs.core.constants import RuleText
from maskfs.index.entry import Entry
from maskfs.infrastructure.logger import Logger
from maskfs.rules.patterns import RuleSet


class Mask(ABC):
    """Decides whether an entry is hidden."""

    @abstractmethod
    def masked(self, entry: Optional[Entry]) -> bool:
        """Check if an entry should be hidden.

        Implementations must return True for ``None``: an entry that could
        not be resolved is never shown.

        Args:
            entry: Resolved entry, or None

        Returns:
            True if the entry is masked
        """

    def visible(self, entry: Optional[Entry]) -> bool:
        return not self.masked(entry)


class GlobMask(Mask):
    """Mask backed by a compiled :class:`RuleSet`."""

    def __init__(self, rules: RuleSet):
        self.rules = rules

    @classmethod
    def from_text(cls, text: RuleText, logger: Optional[Logger] = None) -> "GlobMask":
        return cls(RuleSet.build(text, logger=logger))

    def masked(self, entry: Optional[Entry]) -> bool:
        # Fail closed: nothing unresolved is ever visible
        if entry is None:
            return True

        return not self.rules.is_visible(entry.fs_path, entry.is_dir)

    def __repr__(self) -> str:
        return f"GlobMask({self.rules!r})"
