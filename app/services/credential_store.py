"""Persistence for the single live access token and refresh token of each user.

Saving a token replaces whatever token of the same kind the user already has.
The delete and the insert run in one transaction so a user is never left with
zero or two live rows of a kind. Callers may wrap several calls in an outer
``atomic`` block; the writes then commit or roll back together.
"""
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.errors import ConflictError, NotFoundError
from app.db.session import atomic
from app.models.access_token import AccessToken
from app.models.refresh_token import RefreshToken


def save_access_token(session: Session, user_id: int, token: str, expires_at: datetime) -> AccessToken:
    try:
        with atomic(session):
            session.exec(delete(AccessToken).where(AccessToken.user_id == user_id))
            record = AccessToken(user_id=user_id, token=token, expires_at=expires_at)
            session.add(record)
            session.flush()
    except IntegrityError as exc:
        logger.warning('Failed to save access token (userId: {} / error: Such access token already exists)', user_id)
        raise ConflictError('Such access token already exists', detail={'user_id': user_id}) from exc
    logger.debug('Access token saved (userId: {})', user_id)
    return record


def save_refresh_token(
    session: Session,
    user_id: int,
    token: str,
    expires_at: datetime,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> RefreshToken:
    try:
        with atomic(session):
            session.exec(delete(RefreshToken).where(RefreshToken.user_id == user_id))
            record = RefreshToken(
                user_id=user_id,
                token=token,
                expires_at=expires_at,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            session.add(record)
            session.flush()
    except IntegrityError as exc:
        logger.warning('Failed to save refresh token (userId: {} / error: Such refresh token already exists)', user_id)
        raise ConflictError('Such refresh token already exists', detail={'user_id': user_id}) from exc
    logger.debug('Refresh token saved (userId: {})', user_id)
    return record


def delete_access_token(session: Session, user_id: int) -> None:
    with atomic(session):
        result = session.exec(delete(AccessToken).where(AccessToken.user_id == user_id))
        if not result.rowcount:
            raise NotFoundError('Such access token not found', detail={'user_id': user_id})
    logger.debug('Access token deleted (userId: {})', user_id)


def delete_refresh_token(session: Session, user_id: int) -> None:
    with atomic(session):
        result = session.exec(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        if not result.rowcount:
            raise NotFoundError('Such refresh token not found', detail={'user_id': user_id})
    logger.debug('Refresh token deleted (userId: {})', user_id)


def find_access_token_by_user_id(session: Session, user_id: int) -> AccessToken:
    record = session.exec(select(AccessToken).where(AccessToken.user_id == user_id)).first()
    if record is None:
        raise NotFoundError('Such access token not found', detail={'user_id': user_id})
    return record


def find_refresh_token_by_user_id(session: Session, user_id: int) -> RefreshToken:
    record = session.exec(select(RefreshToken).where(RefreshToken.user_id == user_id)).first()
    if record is None:
        raise NotFoundError('Such refresh token not found', detail={'user_id': user_id})
    return record


def list_access_tokens(session: Session, limit: int = 100, offset: int = 0) -> list[AccessToken]:
    statement = select(AccessToken).order_by(AccessToken.id).offset(offset).limit(limit)
    return list(session.exec(statement).all())


def list_refresh_tokens(session: Session, limit: int = 100, offset: int = 0) -> list[RefreshToken]:
    statement = select(RefreshToken).order_by(RefreshToken.id).offset(offset).limit(limit)
    return list(session.exec(statement).all())
