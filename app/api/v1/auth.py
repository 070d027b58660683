from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session
from app.api.deps import get_current_user, get_session_service, public
from app.db.session import get_session
from app.models.user import User
from app.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    RefreshRequest,
    RegisterRequest,
)
from app.schemas.user import UserOut
from app.services.session_service import SessionService
from app.services.user_service import create_user, to_user_out

router = APIRouter(prefix='/auth', tags=['auth'])


@router.post('/register', response_model=UserOut, status_code=status.HTTP_201_CREATED)
@public
def register(payload: RegisterRequest, session: Session = Depends(get_session)) -> UserOut:
    user = create_user(session, payload.email, payload.password)
    return to_user_out(user)


@router.post('/login', response_model=LoginResponse)
@public
def login(
    payload: LoginRequest,
    request: Request,
    session: Session = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
) -> LoginResponse:
    ip_address = request.client.host if request.client else None
    user_agent = request.headers.get('user-agent')
    result = sessions.login(
        session,
        payload.email,
        payload.password,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return LoginResponse(
        id=result.user.id,
        email=result.user.email,
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        ip_address=ip_address,
        user_agent=user_agent,
    )


@router.post('/refresh', response_model=AccessTokenResponse)
@public
def refresh(
    payload: RefreshRequest,
    session: Session = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
) -> AccessTokenResponse:
    access_token = sessions.refresh_access_token(session, payload.refresh_token)
    return AccessTokenResponse(access_token=access_token)


@router.delete('/logout', response_model=LogoutResponse)
def logout(
    session: Session = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
    user: User = Depends(get_current_user),
) -> LogoutResponse:
    user_id = user.id
    sessions.logout(session, user_id)
    return LogoutResponse(user_id=user_id)
