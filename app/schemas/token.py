from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class AccessTokenOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    token: str
    expires_at: datetime
    created_at: datetime


class RefreshTokenOut(AccessTokenOut):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
