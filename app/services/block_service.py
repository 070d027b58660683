from datetime import datetime, timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import func, update
from sqlmodel import Session, select

from app.core.clock import utc_now
from app.core.errors import ConflictError, ForbiddenError
from app.db.session import atomic
from app.models.block_record import BlockRecord, UnblockRecord
from app.models.user import User
from app.services.user_service import get_user_by_id, is_admin


def block_user(
    session: Session,
    admin: User,
    user_id: int,
    reason: str,
    duration_minutes: int,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> BlockRecord:
    user = get_user_by_id(session, user_id)
    if user.is_blocked:
        raise ConflictError('This user is already blocked', detail={'user_id': user_id})
    if is_admin(user):
        raise ForbiddenError('This user is admin', detail={'user_id': user_id})

    blocked_at = now or utc_now()
    with atomic(session):
        user.is_blocked = True
        session.add(user)
        record = BlockRecord(
            user_id=user.id,
            admin_id=admin.id,
            reason=reason,
            notes=notes,
            is_active=True,
            blocked_at=blocked_at,
            block_duration_minutes=duration_minutes,
            unblock_at=blocked_at + timedelta(minutes=duration_minutes),
        )
        session.add(record)
    session.refresh(record)
    logger.info(
        'User successfully blocked (userId: {} / blockId: {} / adminId: {} / minutes: {})',
        user_id,
        record.id,
        admin.id,
        duration_minutes,
    )
    return record


def unblock_user(
    session: Session,
    admin: User,
    user_id: int,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
) -> int:
    user = get_user_by_id(session, user_id)
    if not user.is_blocked:
        raise ConflictError('This user is not blocked', detail={'user_id': user_id})

    with atomic(session):
        result = session.exec(
            update(BlockRecord)
            .where((BlockRecord.user_id == user_id) & (BlockRecord.is_active.is_(True)))
            .values(is_active=False)
        )
        user.is_blocked = False
        session.add(user)
        if reason or notes:
            session.add(UnblockRecord(user_id=user_id, admin_id=admin.id, reason=reason, notes=notes))
    logger.info('User successfully unblocked (userId: {} / adminId: {})', user_id, admin.id)
    return result.rowcount or 0


def list_block_records(
    session: Session,
    user_id: Optional[int] = None,
    active_only: bool = False,
    limit: Optional[int] = 100,
    offset: int = 0,
) -> list[BlockRecord]:
    statement = select(BlockRecord)
    if user_id is not None:
        statement = statement.where(BlockRecord.user_id == user_id)
    if active_only:
        statement = statement.where(BlockRecord.is_active.is_(True))
    statement = statement.order_by(BlockRecord.id)
    if offset:
        statement = statement.offset(offset)
    if limit is not None:
        statement = statement.limit(limit)
    return list(session.exec(statement).all())


def count_active_blocks(session: Session, user_id: int) -> int:
    statement = select(func.count()).select_from(BlockRecord).where(
        (BlockRecord.user_id == user_id) & (BlockRecord.is_active.is_(True))
    )
    return session.exec(statement).one()


def has_enforceable_block(session: Session, user_id: int, now: Optional[datetime] = None) -> bool:
    """Whether the user holds an active block whose duration has not elapsed.

    Read only. A lapsed record that is still flagged active does not count;
    flipping it is left to the sweeper.
    """
    statement = select(BlockRecord.id).where(
        (BlockRecord.user_id == user_id)
        & (BlockRecord.is_active.is_(True))
        & (BlockRecord.unblock_at >= (now or utc_now()))
    )
    return session.exec(statement.limit(1)).first() is not None


def list_active_expired_block_records(session: Session, now: Optional[datetime] = None) -> list[BlockRecord]:
    statement = (
        select(BlockRecord)
        .where((BlockRecord.is_active.is_(True)) & (BlockRecord.unblock_at < (now or utc_now())))
        .order_by(BlockRecord.id)
    )
    return list(session.exec(statement).all())


def deactivate_block_record(session: Session, block_id: int) -> None:
    """Flip one record to inactive; a record that is already inactive is a conflict."""
    with atomic(session):
        result = session.exec(
            update(BlockRecord)
            .where((BlockRecord.id == block_id) & (BlockRecord.is_active.is_(True)))
            .values(is_active=False)
        )
        if not result.rowcount:
            raise ConflictError('This block record is already inactive', detail={'block_id': block_id})
