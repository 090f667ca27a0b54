"""Error taxonomy for a conversion run.

Every error is fatal for the run it occurs in. Storage failures during the
final write are not wrapped: the underlying ``OSError`` reaches the caller.
"""

from __future__ import annotations
from typing import Sequence


class ConvertError(Exception):
    """Base class for conversion failures."""


class UnknownOption(ConvertError, ValueError):
    """A caller option outside the recognized set."""

    def __init__(self, option: str, allowed: Sequence[str]) -> None:
        self.option = option
        self.allowed = tuple(allowed)
        super().__init__(f"Unknown option: {option}. Allowed options: {', '.join(self.allowed)}")


class MalformedScene(ConvertError):
    """Required scene substructure is missing or inconsistent."""


class IndexOverflow(ConvertError):
    """An index does not fit the 16-bit index format."""

    def __init__(self, value: int, limit: int) -> None:
        self.value = int(value)
        self.limit = int(limit)
        super().__init__(f"Index value {self.value} outside 16-bit range [0, {self.limit}]")
