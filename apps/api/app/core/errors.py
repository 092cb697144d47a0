"""
Domain error taxonomy.

Each error is an HTTPException carrying the envelope fields in `detail`, so
services can raise them directly and the app-level handler renders them.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException


class DomainError(HTTPException):
    http_status = 400
    default_code = "bad_request"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        self.code = code or self.default_code
        self.message = message
        super().__init__(
            status_code=self.http_status,
            detail={"error": self.code, "message": message, "details": details or {}},
        )


class InvalidStateError(DomainError):
    """Operation attempted on a post/roster in the wrong state."""

    http_status = 409
    default_code = "invalid_state"


class AuthorizationError(DomainError):
    http_status = 403
    default_code = "forbidden"


class ValidationError(DomainError):
    http_status = 422
    default_code = "validation_error"


class NotFoundError(DomainError):
    http_status = 404
    default_code = "not_found"


class ConsistencyViolation(DomainError):
    """The application predicate and the storage policy disagreed. Always a defect."""

    http_status = 500
    default_code = "consistency_violation"
