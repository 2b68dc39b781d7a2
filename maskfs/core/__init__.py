"""MaskFS Core - Shared constants and input validation.

Import specific names from submodules:
    from maskfs.core import constants
    from maskfs.core import validators
"""

from maskfs.core import constants, validators

__all__ = [
    "constants",
    "validators",
]
