"""Service error taxonomy.

Domain services raise one of the ``ServiceError`` subclasses below. Each
carries an ``ErrorKind`` and a human-readable message; the API layer turns
the kind into an HTTP status via ``status_for``.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    validation = "validation"
    unauthenticated = "unauthenticated"
    forbidden = "forbidden"
    not_found = "not_found"
    conflict = "conflict"
    internal = "internal"


_STATUS_BY_KIND = {
    ErrorKind.validation: 400,
    ErrorKind.unauthenticated: 401,
    ErrorKind.forbidden: 403,
    ErrorKind.not_found: 404,
    ErrorKind.conflict: 409,
    ErrorKind.internal: 500,
}


class ServiceError(Exception):
    kind: ErrorKind = ErrorKind.internal

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return status_for(self.kind)


class InvalidInput(ServiceError):
    kind = ErrorKind.validation


class Unauthenticated(ServiceError):
    kind = ErrorKind.unauthenticated


class Forbidden(ServiceError):
    kind = ErrorKind.forbidden


class NotFound(ServiceError):
    kind = ErrorKind.not_found


class Conflict(ServiceError):
    kind = ErrorKind.conflict


class InternalError(ServiceError):
    kind = ErrorKind.internal


def status_for(kind: ErrorKind) -> int:
    return _STATUS_BY_KIND[kind]
