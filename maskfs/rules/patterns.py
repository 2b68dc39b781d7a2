#!/usr/bin/env python3
"""Pattern matching for mask rules.

Mask rules use .gitignore syntax, but with the meaning inverted: a pattern
selects paths to *include*, and a negated pattern (leading ``!``) hides
them again. This module provides:
- Per-line rule parsing (blank lines and ``#`` comments are skipped)
- Gitignore glob semantics via ``pathspec`` (``*``, ``**``, anchoring ``/``)
- Directory-only rules (trailing ``/``)
- Last-match-wins evaluation in declaration order

Example:
    >>> rules = RuleSet.build("**/*.go\\n!**/vendor/")
    >>> rules.is_visible("cmd/main.go", is_dir=False)
    True
    >>> rules.is_visible("vendor/lib.go", is_dir=False)
    False
"""

import posixpath
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from pathspec.patterns.gitwildmatch import GitWildMatchPattern, GitWildMatchPatternError

from maskfs.core.constants import FSPath, Polarity, RuleText
from maskfs.infrastructure.logger import Logger, get_logger


@dataclass(frozen=True)
class Rule:
    """A single mask rule.

    ``compiled`` is ``None`` when the line could not be compiled; such a rule
    is inert and never matches.
    """

    pattern: str
    polarity: Polarity
    dir_only: bool = False
    line: int = 0
    compiled: Optional[GitWildMatchPattern] = None

    @property
    def inert(self) -> bool:
        return self.compiled is None or self.compiled.include is None

    def matches(self, path: str) -> bool:
        """Check if a normalised match path matches this rule.

        Args:
            path: Root-relative POSIX path; directories carry a trailing ``/``

        Returns:
            True if the rule's pattern matches the path
        """
        if self.inert:
            return False
        return self.compiled.match_file(path) is not None


def parse_rule(line: str, line_number: int = 0) -> Optional[Rule]:
    """Parse one line of rule text.

    Args:
        line: Raw rule line
        line_number: 1-based line number, kept for diagnostics

    Returns:
        A Rule, or None for blank lines and comments. A line the glob
        compiler rejects still yields a Rule, but an inert one.
    """
    text = line.strip()
    if not text or text.startswith("#"):
        return None

    body = text[1:] if text.startswith("!") else text
    polarity = Polarity.EXCLUDE if text.startswith("!") else Polarity.INCLUDE
    dir_only = body.endswith("/")

    try:
        compiled: Optional[GitWildMatchPattern] = GitWildMatchPattern(text)
    except GitWildMatchPatternError:
        compiled = None

    return Rule(
        pattern=text,
        polarity=polarity,
        dir_only=dir_only,
        line=line_number,
        compiled=compiled,
    )


def to_match_path(path: str, is_dir: bool) -> Optional[str]:
    """Normalise a path for matching.

    Paths are always treated as root-relative: a leading ``/`` carries no
    meaning. Returns None for paths that are empty or climb above the root.
    """
    if not path:
        return None

    normalized = posixpath.normpath(path.lstrip("/"))
    if normalized in (".", "..") or normalized.startswith("../"):
        return None

    return normalized + "/" if is_dir else normalized


class RuleSet:
    """Ordered, immutable collection of mask rules.

    A path is visible only if at least one rule matches it, and the last
    matching rule in declaration order has INCLUDE polarity. The rule
    sequence is never reordered or deduplicated.
    """

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: Tuple[Rule, ...] = tuple(rules)

    @classmethod
    def build(cls, text: RuleText, logger: Optional[Logger] = None) -> "RuleSet":
        """Compile newline-delimited rule text.

        Parsing is lenient: a line that cannot be compiled becomes an inert
        rule and a warning is logged, so construction never fails on the
        content of individual lines.

        Args:
            text: Rule text, one gitignore-style pattern per line
            logger: Logger for parse warnings

        Returns:
            Compiled RuleSet
        """
        log = logger or get_logger()
        rules: List[Rule] = []

        for number, line in enumerate(text.split("\n"), start=1):
            rule = parse_rule(line, number)
            if rule is None:
                continue
            if rule.inert:
                log.warning("Mask rule matches nothing", line=number, pattern=rule.pattern)
            rules.append(rule)

        log.debug("Compiled mask rules", count=len(rules))
        return cls(rules)

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    @property
    def inert_rules(self) -> List[Rule]:
        return [rule for rule in self._rules if rule.inert]

    def matching_rules(self, path: FSPath, is_dir: bool) -> List[Rule]:
        """Get every rule matching the path, in declaration order.

        Args:
            path: Root-relative path
            is_dir: Whether the path names a directory

        Returns:
            List of matching rules (empty for unnormalisable paths)
        """
        match_path = to_match_path(path, is_dir)
        if match_path is None:
            return []
        return [rule for rule in self._rules if rule.matches(match_path)]

    def is_visible(self, path: FSPath, is_dir: bool) -> bool:
        """Decide whether a path is visible.

        Args:
            path: Root-relative path
            is_dir: Whether the path names a directory

        Returns:
            True if the last matching rule includes the path
        """
        match_path = to_match_path(path, is_dir)
        if match_path is None:
            return False

        for rule in reversed(self._rules):
            if rule.matches(match_path):
                return rule.polarity is Polarity.INCLUDE

        return False

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleSet({[rule.pattern for rule in self._rules]!r})"
