#############################
# Helper functions
#############################
import uuid
from typing import Callable

IdFactory = Callable[[], str]


def new_id() -> str:
    """Return a fresh client-side record id."""
    return uuid.uuid4().hex


def pluralize(count: int, singular: str, plural: str) -> str:
    """Return ``singular`` when ``count`` is one, otherwise ``plural`` formatted with ``count``."""
    if count == 1:
        return singular
    return plural.format(count=count)
