"""Repository implementations."""

from botfleet.infrastructure.persistence.repositories.in_memory import (
    InMemoryInstanceRepository,
)


__all__ = [
    "InMemoryInstanceRepository",
]
