"""Per-slot request tokens for discarding stale async results."""

from enum import Enum
from typing import Dict


class RequestSlot(Enum):
    """Independent categories of in-flight requests."""
    DETAIL = "detail"
    CROSS_LANGUAGE = "cross_language"
    RELATED = "related"
    SEARCH = "search"
    AUDIO = "audio"


class SlotTokens:
    """
    Monotonic counter per slot.

    A request captures the token returned by issue(); its result is applied
    only if is_current() still holds when it resolves. Abandoned requests
    are left to finish in the background and ignored.
    """

    def __init__(self):
        self._tokens: Dict[RequestSlot, int] = {slot: 0 for slot in RequestSlot}

    def issue(self, slot: RequestSlot) -> int:
        self._tokens[slot] += 1
        return self._tokens[slot]

    def current(self, slot: RequestSlot) -> int:
        return self._tokens[slot]

    def is_current(self, slot: RequestSlot, token: int) -> bool:
        return self._tokens[slot] == token

    def invalidate(self, *slots: RequestSlot) -> None:
        """Make every outstanding request in the given slots (default: all) stale."""
        for slot in slots or tuple(RequestSlot):
            self._tokens[slot] += 1
