"""Repository layer for meshforge.

Provides data access abstractions for persisted entities.
"""

from meshforge.repositories.key_value import KeyValueRepository

__all__ = [
    "KeyValueRepository",
]
