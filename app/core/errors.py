from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer failures that map onto an HTTP status.

    Services raise these typed so callers can decide on user-facing wording;
    the API layer renders them through a single exception handler.
    """

    status_code: int = 400
    error_code: str = 'bad_request'

    def __init__(self, message: str, *, detail: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class UnauthorizedError(ServiceError):
    status_code = 401
    error_code = 'unauthorized'


class ForbiddenError(ServiceError):
    status_code = 403
    error_code = 'forbidden'


class NotFoundError(ServiceError):
    status_code = 404
    error_code = 'not_found'


class AlreadyLoggedOutError(NotFoundError):
    error_code = 'already_logged_out'

    def __init__(self, user_id: int) -> None:
        super().__init__('User is already logged out', detail={'user_id': user_id})
        self.user_id = user_id


class ConflictError(ServiceError):
    status_code = 409
    error_code = 'conflict'


class ServerError(ServiceError):
    status_code = 500
    error_code = 'internal'


class TokenError(UnauthorizedError):
    kind: str = 'INVALID'


class TokenInvalidError(TokenError):
    kind = 'INVALID'

    def __init__(self, message: str = 'invalid token') -> None:
        super().__init__(message)


class TokenExpiredError(TokenError):
    kind = 'EXPIRED'

    def __init__(self, message: str = 'token expired') -> None:
        super().__init__(message)


__all__ = [
    'ServiceError',
    'UnauthorizedError',
    'ForbiddenError',
    'NotFoundError',
    'AlreadyLoggedOutError',
    'ConflictError',
    'ServerError',
    'TokenError',
    'TokenInvalidError',
    'TokenExpiredError',
]
