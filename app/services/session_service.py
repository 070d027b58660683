from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlmodel import Session

from app.core.clock import utc_now
from app.core.config import Settings
from app.core.errors import (
    AlreadyLoggedOutError,
    NotFoundError,
    UnauthorizedError,
)
from app.core.events import SESSION_LOGGED_OUT, EventBus
from app.core.security import REFRESH_TOKEN_TYPE, TokenCodec, subject_id, verify_password
from app.db.session import atomic
from app.models.access_token import AccessToken
from app.models.refresh_token import RefreshToken
from app.models.user import User
from app.services import credential_store
from app.services.user_locks import UserLockRegistry
from app.services.user_service import find_user_by_email, lock_user_row


@dataclass
class LoginResult:
    user: User
    access_token: str
    refresh_token: str


class SessionService:
    """Login, logout and silent refresh for one user at a time.

    A user is logged in exactly when they hold a live refresh token row. Every
    state change for a user runs under that user's lock and inside a single
    transaction, so concurrent logins, refreshes and logouts for the same user
    cannot interleave.
    """

    def __init__(self, codec: TokenCodec, locks: UserLockRegistry, events: EventBus) -> None:
        self.codec = codec
        self.locks = locks
        self.events = events

    @classmethod
    def from_settings(cls, config: Settings, events: EventBus, clock=utc_now) -> 'SessionService':
        return cls(
            TokenCodec.from_settings(config, clock=clock),
            UserLockRegistry(timeout=config.AUTH_LOCK_TIMEOUT_SECONDS),
            events,
        )

    def login(
        self,
        session: Session,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginResult:
        user = find_user_by_email(session, email)
        if user is None:
            logger.warning('Failed to login (email: {} / error: account not found)', email)
            raise UnauthorizedError('Account not found')
        if not verify_password(password, user.hashed_password):
            logger.warning('Failed to login (userId: {} / error: wrong password)', user.id)
            raise UnauthorizedError('Wrong password')
        if not user.is_active:
            raise UnauthorizedError('Account is disabled')

        with self.locks.hold(user.id):
            with atomic(session):
                lock_user_row(session, user.id)
                access_token, access_expires = self.codec.issue_access_token(user.id, user.email, user.roles)
                refresh_token, refresh_expires = self.codec.issue_refresh_token(user.id)
                credential_store.save_access_token(session, user.id, access_token, access_expires)
                credential_store.save_refresh_token(
                    session,
                    user.id,
                    refresh_token,
                    refresh_expires,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
        logger.info('Signed in as user (user: {} / userId: {})', user.email, user.id)
        return LoginResult(user=user, access_token=access_token, refresh_token=refresh_token)

    def logout(self, session: Session, user_id: int) -> None:
        missing: list[str] = []
        with self.locks.hold(user_id):
            with atomic(session):
                lock_user_row(session, user_id)
                try:
                    credential_store.delete_access_token(session, user_id)
                except NotFoundError:
                    missing.append('access')
                try:
                    credential_store.delete_refresh_token(session, user_id)
                except NotFoundError:
                    missing.append('refresh')
        if missing:
            logger.warning(
                'Failed to logout (userId: {} / error: This user is not logged in, missing: {})',
                user_id,
                ', '.join(missing),
            )
            raise AlreadyLoggedOutError(user_id)
        logger.info('User logged out (userId: {})', user_id)
        self.events.emit(SESSION_LOGGED_OUT, user_id=user_id)

    def refresh_access_token(self, session: Session, refresh_token: str) -> str:
        try:
            claims = self.codec.verify(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
            user_id = subject_id(claims)
            with self.locks.hold(user_id):
                with atomic(session):
                    user = lock_user_row(session, user_id)
                    stored = credential_store.find_refresh_token_by_user_id(session, user_id)
                    if stored.token != refresh_token:
                        raise UnauthorizedError('Refresh token superseded')
                    if user is None:
                        raise UnauthorizedError('User not found')
                    access_token, expires_at = self.codec.issue_access_token(user.id, user.email, user.roles)
                    credential_store.save_access_token(session, user.id, access_token, expires_at)
        except (UnauthorizedError, NotFoundError) as exc:
            logger.warning('Failed to refresh access token (error: {})', exc.message)
            raise UnauthorizedError('Invalid refresh token') from exc
        logger.info('Access token refreshed (userId: {})', user_id)
        return access_token

    def get_refresh_token(self, session: Session, user_id: int) -> RefreshToken:
        return credential_store.find_refresh_token_by_user_id(session, user_id)

    def get_access_token(self, session: Session, user_id: int) -> AccessToken:
        return credential_store.find_access_token_by_user_id(session, user_id)
