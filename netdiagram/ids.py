"""
Identifier generation for topology entities.

Ids are minted through an injectable generator so that entity creation can be
made deterministic (tests) or collision resistant (default, UUID based).
"""

import itertools
import uuid
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .exceptions import IdGenerationError


MAX_ID_ATTEMPTS = 100


class IdGenerator(ABC):
    """Produces raw ids for a prefix. Uniqueness is checked by the caller."""

    @abstractmethod
    def next_id(self, prefix: str = "") -> str:
        ...


class UuidIdGenerator(IdGenerator):
    """Random UUID4 ids, e.g. ``device-3f2a...``."""

    def next_id(self, prefix: str = "") -> str:
        raw = uuid.uuid4().hex
        return f"{prefix}-{raw}" if prefix else raw


class SequentialIdGenerator(IdGenerator):
    """Monotonic counter ids, e.g. ``device-1``, ``intf-2``."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)

    def next_id(self, prefix: str = "") -> str:
        value = next(self._counter)
        return f"{prefix}-{value}" if prefix else str(value)


default_generator = UuidIdGenerator()


def generate_id(prefix: str = "") -> str:
    """Generate an id from the default generator."""
    return default_generator.next_id(prefix)


def generate_unique_id(
    prefix: str,
    existing_ids: Iterable[str],
    generator: Optional[IdGenerator] = None,
    max_attempts: int = MAX_ID_ATTEMPTS
) -> str:
    """
    Generate an id that does not collide with ``existing_ids``.

    Args:
        prefix: Entity prefix ("device", "conn", "intf", ...)
        existing_ids: Ids already in use
        generator: Id source (default generator if None)
        max_attempts: Attempts before giving up

    Returns:
        A fresh id

    Raises:
        IdGenerationError: If every attempt collided
    """
    generator = generator or default_generator
    taken = existing_ids if isinstance(existing_ids, (set, frozenset)) else set(existing_ids)

    for _ in range(max_attempts):
        candidate = generator.next_id(prefix)
        if candidate not in taken:
            return candidate

    raise IdGenerationError(
        f"Failed to generate unique id for '{prefix}' after {max_attempts} attempts"
    )
