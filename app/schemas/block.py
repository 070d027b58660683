from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class BlockCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    duration_minutes: int = Field(..., ge=1)
    notes: Optional[str] = Field(default=None, max_length=2000)


class UnblockCreate(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=2000)


class BlockRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    admin_id: Optional[int] = None
    reason: str
    notes: Optional[str] = None
    is_active: bool
    blocked_at: datetime
    block_duration_minutes: int
    unblock_at: datetime


class UnblockResult(BaseModel):
    user_id: int
    deactivated_records: int


class SweepOut(BaseModel):
    updated_records: list[int]
    unblocked_users: list[int]
    failed_records: list[int]
    skipped: bool = False
