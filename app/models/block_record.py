from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Field, SQLModel

from app.core.clock import ensure_utc, utc_now
from app.models.base import CreatedAtModel, IDModel, utc_datetime_type


class BlockRecord(IDModel, SQLModel, table=True):
    __tablename__ = 'user_blocks'

    user_id: int = Field(foreign_key='users.id', index=True)
    admin_id: Optional[int] = Field(default=None, foreign_key='users.id')
    reason: str
    notes: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    blocked_at: datetime = Field(
        default_factory=utc_now,
        sa_type=utc_datetime_type(),
        sa_column_kwargs={"nullable": False},
    )
    block_duration_minutes: int
    unblock_at: datetime = Field(sa_type=utc_datetime_type(), sa_column_kwargs={"nullable": False}, index=True)

    def expires_at(self) -> datetime:
        return ensure_utc(self.blocked_at) + timedelta(minutes=self.block_duration_minutes)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at() < now

    def is_enforceable(self, now: datetime) -> bool:
        return self.is_active and not self.is_expired(now)


class UnblockRecord(IDModel, CreatedAtModel, SQLModel, table=True):
    __tablename__ = 'user_unblocks'

    user_id: int = Field(foreign_key='users.id', index=True)
    admin_id: Optional[int] = Field(default=None, foreign_key='users.id')
    reason: Optional[str] = None
    notes: Optional[str] = None
