"""MaskFS Rules System.

This module provides the visibility policy:
- RuleSet: Ordered gitignore-style include rules, last match wins
- Mask: Single-method visibility interface used by the request pipeline
- GlobMask: Mask backed by a RuleSet

Rules select the files and directories to expose. Anything no rule
includes is hidden.
"""

from .engine import GlobMask, Mask
from .patterns import Rule, RuleSet, parse_rule, to_match_path

__all__ = [
    # Pattern matching
    "Rule",
    "RuleSet",
    "parse_rule",
    "to_match_path",
    # Masks
    "Mask",
    "GlobMask",
]
