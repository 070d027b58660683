from functools import lru_cache
from typing import Any, Callable, Optional

from fastapi import Depends, Request
from loguru import logger
from sqlmodel import Session

from app.api.guards import AuthGuard
from app.core.config import settings
from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.events import event_bus
from app.core.security import subject_id
from app.db.session import engine, get_session
from app.models.user import User
from app.services.block_service import has_enforceable_block
from app.services.block_sweeper import BlockSweeper
from app.services.session_service import SessionService

PUBLIC_ROUTE_ATTR = '__public_route__'


def public(endpoint: Callable) -> Callable:
    setattr(endpoint, PUBLIC_ROUTE_ATTR, True)
    return endpoint


def is_public_route(request: Request) -> bool:
    endpoint = request.scope.get('endpoint')
    return bool(getattr(endpoint, PUBLIC_ROUTE_ATTR, False))


@lru_cache
def get_session_service() -> SessionService:
    return SessionService.from_settings(settings, event_bus)


@lru_cache
def get_block_sweeper() -> BlockSweeper:
    return BlockSweeper.from_settings(settings, engine)


def _rewrite_authorization(request: Request, value: str) -> None:
    headers = [(key, raw) for key, raw in request.scope['headers'] if key.lower() != b'authorization']
    headers.append((b'authorization', value.encode('latin-1')))
    request.scope['headers'] = headers
    # Request caches a Headers view of the scope
    request.__dict__.pop('_headers', None)


def authenticate_request(
    request: Request,
    session: Session = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
) -> Optional[dict[str, Any]]:
    decision = AuthGuard(sessions).check(
        session,
        request.headers.get('authorization'),
        is_public=is_public_route(request),
    )
    if decision.refreshed:
        _rewrite_authorization(request, decision.authorization)
    request.state.auth = decision.claims
    return decision.claims


def enforce_account_block(
    request: Request,
    claims: Optional[dict[str, Any]] = Depends(authenticate_request),
    session: Session = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
) -> Optional[User]:
    if is_public_route(request):
        return None
    if claims is None:
        raise UnauthorizedError('User is not authorized')

    user = session.get(User, subject_id(claims))
    if user is None:
        raise UnauthorizedError('User not found')
    if not user.is_blocked:
        return user
    if has_enforceable_block(session, user.id, sessions.codec.now()):
        logger.warning('User #{} is blocked', user.id)
        raise ForbiddenError('account blocked')
    logger.info('User #{} is not blocked anymore', user.id)
    return user


def get_current_user(user: Optional[User] = Depends(enforce_account_block)) -> User:
    if user is None:
        raise UnauthorizedError('User is not authorized')
    return user


def require_roles(*roles: str) -> Callable[..., dict[str, Any]]:
    required = set(roles)

    def _check_roles(claims: Optional[dict[str, Any]] = Depends(authenticate_request)) -> dict[str, Any]:
        if claims is None:
            raise UnauthorizedError('User is not authorized')
        if not required.intersection(claims.get('roles') or []):
            raise ForbiddenError('insufficient role')
        return claims

    return _check_roles
