"""
core/errors.py
────────────────────────────────────────────────────────────────────────
Domain error taxonomy.  Core and service code raise these; `main.py`
translates them to HTTP responses in one place.
"""
from __future__ import annotations


class CoreError(Exception):
    """Base class for every error the core raises on purpose."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(CoreError):
    """Referenced recipe, plan or shopping-list item does not exist."""


class Unauthorized(CoreError):
    """Caller is not the owner of the plan / author of the recipe."""


class ValidationFailure(CoreError):
    """Input is well-formed JSON but semantically unusable."""


class UpstreamUnavailable(CoreError):
    """Document store or cache store call failed."""

    def __init__(self, message: str, *, upstream: str) -> None:
        super().__init__(message)
        self.upstream = upstream  # "store" | "cache"
