"""
Identifier generation for clients, budgets, stories and activities

Ids are UUIDv7-shaped: the first 48 bits carry a millisecond timestamp,
so ids created later sort later. The store still orders stories by
creation time explicitly; the ordering of ids is a convenience for logs.
"""

import secrets
import time
import uuid
from typing import Protocol


class IdFactory(Protocol):
    """Protocol for ID generation strategies"""

    def generate(self) -> str:
        """Generate a new unique ID"""
        ...


def generate_id() -> str:
    """
    Generate a time-ordered UUID string

    Layout: 48-bit unix ms timestamp | version 7 | 12 random bits |
    variant 0b10 | 62 random bits.
    """
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    value = (timestamp_ms << 80) | (0x7 << 76) | (secrets.randbits(12) << 64)
    value |= (0b10 << 62) | secrets.randbits(62)
    return str(uuid.UUID(int=value))


class DefaultIdFactory:
    """Default ID factory using time-ordered UUIDs"""

    def generate(self) -> str:
        return generate_id()


class SequentialIdFactory:
    """
    Deterministic ID factory for tests and fixtures

    Produces "<prefix>-0001", "<prefix>-0002", ...
    """

    def __init__(self, prefix: str = "id") -> None:
        self.prefix = prefix
        self._counter = 0

    def generate(self) -> str:
        self._counter += 1
        return f"{self.prefix}-{self._counter:04d}"


default_id_factory = DefaultIdFactory()
