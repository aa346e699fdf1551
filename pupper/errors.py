"""Error taxonomy shared by the registries, orchestration and HTTP layer."""

from __future__ import annotations


class PupperError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PupperError):
    status_code = 400


class AuthenticationError(PupperError):
    status_code = 401


class ForbiddenError(PupperError):
    status_code = 403


class NotFoundError(PupperError):
    status_code = 404


class ConflictError(PupperError):
    status_code = 409


class InternalError(PupperError):
    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
