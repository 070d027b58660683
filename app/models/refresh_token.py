from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from app.models.base import CreatedAtModel, IDModel, utc_datetime_type


class RefreshToken(IDModel, CreatedAtModel, SQLModel, table=True):
    __tablename__ = 'refresh_tokens'

    user_id: int = Field(foreign_key='users.id', index=True, unique=True)
    token: str = Field(unique=True)
    expires_at: datetime = Field(sa_type=utc_datetime_type(), sa_column_kwargs={"nullable": False})
    ip_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=512)
