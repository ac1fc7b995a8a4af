"""Identifier generation for locally created entities."""

from typing import Iterable
from ulid import ULID


def generate_local_id(prefix: str, existing: Iterable[str] = ()) -> str:
    """
    Generate a prefixed ULID (e.g. ``prop_01J...``).

    Regenerates until the id does not collide with any of ``existing``.
    """
    taken = set(existing)
    while True:
        candidate = f"{prefix}_{ULID()}"
        if candidate not in taken:
            return candidate
