# carebase/core/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class CarebaseError(RuntimeError):
    """
    Base for every expected, recoverable failure raised by the services.
    Each subclass carries a stable machine-readable ``code`` and the HTTP
    status the API layer answers with.
    """

    code = "ERROR"
    http_status = 400

    def __init__(self, msg: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(msg)
        self.msg = msg
        self.details = details or {}


class NotFoundError(CarebaseError):
    code = "NOT_FOUND"
    http_status = 404


class ForbiddenError(CarebaseError):
    code = "FORBIDDEN"
    http_status = 403


class InvalidStateError(CarebaseError):
    code = "INVALID_STATE"
    http_status = 409


class InvalidInputError(CarebaseError):
    code = "INVALID_INPUT"
    http_status = 400


class OverDispenseError(InvalidInputError):
    code = "OVER_DISPENSE"


class ExpiredError(CarebaseError):
    code = "INVITE_EXPIRED"
    http_status = 410


class ConflictError(CarebaseError):
    code = "CONFLICT"
    http_status = 409

    def __init__(self, msg: str, *, retryable: bool = False,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(msg, details=details)
        self.retryable = retryable
