"""
Domain exceptions raised by the scoreboard core, the tournament service and the routes.

The API layer maps them to HTTP responses in ``api.middleware``:

    InvalidArgumentError -> 400
    NotFoundError        -> 404
    ConflictError        -> 409
"""
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for errors the caller can act on."""

    code = "domain_error"
    status_code = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class InvalidArgumentError(DomainError, ValueError):
    code = "invalid_argument"
    status_code = 400


class InvalidSideError(InvalidArgumentError):
    code = "invalid_side"

    def __init__(self, token: str) -> None:
        super().__init__(f"Unknown side {token!r}; expected 'home' or 'away'", side=token)
        self.token = token


class NotFoundError(DomainError, LookupError):
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: Any) -> None:
        super().__init__(f"{resource} {identifier} not found", resource=resource, id=identifier)
        self.resource = resource
        self.identifier = identifier


class ConflictError(DomainError):
    code = "conflict"
    status_code = 409
