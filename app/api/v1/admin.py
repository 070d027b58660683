from typing import Optional
from fastapi import APIRouter, Depends
from sqlmodel import Session
from app.api.deps import get_block_sweeper, get_current_user, get_session_service, require_roles
from app.db.session import get_session
from app.models.enums import UserRole
from app.models.user import User
from app.schemas.block import BlockCreate, BlockRecordOut, SweepOut, UnblockCreate, UnblockResult
from app.schemas.token import AccessTokenOut, RefreshTokenOut
from app.services.block_service import block_user, list_block_records, unblock_user
from app.services.block_sweeper import BlockSweeper
from app.services.session_service import SessionService

router = APIRouter(
    prefix='/admin',
    tags=['admin'],
    dependencies=[Depends(require_roles(UserRole.ADMIN.value))],
)


@router.post('/users/{user_id}/block', response_model=BlockRecordOut, status_code=201)
def block(
    user_id: int,
    payload: BlockCreate,
    session: Session = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
    admin: User = Depends(get_current_user),
) -> BlockRecordOut:
    record = block_user(
        session,
        admin,
        user_id,
        reason=payload.reason,
        duration_minutes=payload.duration_minutes,
        notes=payload.notes,
        now=sessions.codec.now(),
    )
    return BlockRecordOut.model_validate(record)


@router.post('/users/{user_id}/unblock', response_model=UnblockResult)
def unblock(
    user_id: int,
    payload: UnblockCreate,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_user),
) -> UnblockResult:
    count = unblock_user(session, admin, user_id, reason=payload.reason, notes=payload.notes)
    return UnblockResult(user_id=user_id, deactivated_records=count)


@router.get('/users/{user_id}/blocks', response_model=list[BlockRecordOut])
def list_blocks(
    user_id: int,
    active_only: bool = False,
    limit: Optional[int] = 100,
    offset: int = 0,
    session: Session = Depends(get_session),
) -> list[BlockRecordOut]:
    records = list_block_records(session, user_id, active_only=active_only, limit=limit, offset=offset)
    return [BlockRecordOut.model_validate(record) for record in records]


@router.get('/tokens/access/{user_id}', response_model=AccessTokenOut)
def get_access_token(
    user_id: int,
    session: Session = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
) -> AccessTokenOut:
    return AccessTokenOut.model_validate(sessions.get_access_token(session, user_id))


@router.get('/tokens/refresh/{user_id}', response_model=RefreshTokenOut)
def get_refresh_token(
    user_id: int,
    session: Session = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
) -> RefreshTokenOut:
    return RefreshTokenOut.model_validate(sessions.get_refresh_token(session, user_id))


@router.post('/blocks/sweep', response_model=SweepOut)
def sweep_blocks(sweeper: BlockSweeper = Depends(get_block_sweeper)) -> SweepOut:
    result = sweeper.run_once()
    return SweepOut(
        updated_records=result.updated_records,
        unblocked_users=result.unblocked_users,
        failed_records=result.failed_records,
        skipped=result.skipped,
    )
