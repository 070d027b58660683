from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from fastapi.security.utils import get_authorization_scheme_param
from loguru import logger
from sqlmodel import Session

from app.core.errors import (
    NotFoundError,
    ServiceError,
    TokenExpiredError,
    TokenInvalidError,
    UnauthorizedError,
)
from app.core.security import ACCESS_TOKEN_TYPE, subject_id
from app.services.session_service import SessionService


@dataclass
class GuardDecision:
    allowed: bool
    claims: Optional[dict[str, Any]] = None
    authorization: Optional[str] = None

    @property
    def refreshed(self) -> bool:
        return self.authorization is not None


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    scheme, token = get_authorization_scheme_param(authorization)
    if scheme.lower() != 'bearer' or not token:
        return None
    return token


class AuthGuard:
    """Per-request authentication decision.

    A valid access token is accepted as is. An access token that is correctly
    signed but expired is exchanged for a new one through the user's stored
    refresh token; the decision then carries the rewritten ``Authorization``
    value. Every failure is reported as ``UnauthorizedError`` with a short,
    fixed message; the underlying cause is only logged.
    """

    def __init__(self, sessions: SessionService) -> None:
        self.sessions = sessions
        self.codec = sessions.codec

    def check(self, session: Session, authorization: Optional[str], is_public: bool = False) -> GuardDecision:
        if is_public:
            return GuardDecision(allowed=True)

        token = extract_bearer_token(authorization)
        if token is None:
            raise UnauthorizedError('token missing')

        try:
            claims = self.codec.verify(token, expected_type=ACCESS_TOKEN_TYPE)
        except TokenExpiredError:
            return self._refresh(session, token)
        except TokenInvalidError:
            raise UnauthorizedError('invalid token')

        self._require_logged_in(session, subject_id(claims))
        return GuardDecision(allowed=True, claims=claims)

    def _require_logged_in(self, session: Session, user_id: int) -> None:
        try:
            self.sessions.get_refresh_token(session, user_id)
        except NotFoundError:
            raise UnauthorizedError('user is not logged in')
        except Exception:
            logger.exception('Credential lookup failed (userId: {})', user_id)
            raise UnauthorizedError('invalid token')

    def _refresh(self, session: Session, expired_token: str) -> GuardDecision:
        try:
            user_id = self.codec.decode_subject_ignoring_expiry(expired_token)
        except ServiceError:
            raise UnauthorizedError('invalid token')

        try:
            stored = self.sessions.get_refresh_token(session, user_id)
        except NotFoundError:
            logger.warning('Refresh token is missing (userId: {})', user_id)
            raise UnauthorizedError('refresh token missing')
        except Exception:
            logger.exception('Refresh token lookup failed (userId: {})', user_id)
            raise UnauthorizedError('invalid refresh token')

        try:
            new_token = self.sessions.refresh_access_token(session, stored.token)
            claims = self.codec.verify(new_token, expected_type=ACCESS_TOKEN_TYPE)
        except ServiceError as exc:
            logger.warning('Silent refresh failed (userId: {} / error: {})', user_id, exc.message)
            raise UnauthorizedError('invalid refresh token') from exc
        except Exception as exc:
            logger.exception('Silent refresh failed (userId: {})', user_id)
            raise UnauthorizedError('invalid refresh token') from exc

        logger.info('Expired access token replaced in-request (userId: {})', user_id)
        return GuardDecision(allowed=True, claims=claims, authorization=f'Bearer {new_token}')
