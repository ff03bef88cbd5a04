"""Error types raised by the repository layer.

Copyright (c) Bryn Gwalad 2025
"""

from typing import Any, Optional


class RepositoryError(Exception):
    """Base class for failures surfaced by a repository operation."""

    def __init__(self, message: str, entity: Optional[str] = None, entity_id: Any = None):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.entity_id = entity_id


class NotFoundError(RepositoryError):
    """The requested id does not exist (update/delete paths only)."""


class ConstraintViolationError(RepositoryError):
    """A uniqueness, foreign key or required-field rule was violated."""


class DependencyIntegrityError(RepositoryError):
    """A Category cannot be deleted while Items still reference it."""
