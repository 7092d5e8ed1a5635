"""Exceptions and warnings raised by the NodeStack engine and its collaborators."""
from __future__ import annotations


class InvalidStatusError(ValueError):
    """An introduction carries a status outside the closed enumeration."""

    def __init__(self, value: object, introduction_id: int | None = None):
        self.value = value
        self.introduction_id = introduction_id
        where = f" on introduction {introduction_id}" if introduction_id is not None else ""
        super().__init__(f"Unknown introduction status {value!r}{where}")


class InvalidTransitionError(ValueError):
    """A status change is not allowed for the acting role."""


class JobAlreadyRunningError(RuntimeError):
    """A bulk job was started while another run is still active."""


class MissingReferenceWarning(UserWarning):
    """A snapshot row lacks a relation needed for a founder-scoped aggregation."""
