from app.models.base import IDModel, CreatedAtModel, TimestampModel
from app.models.user import User
from app.models.access_token import AccessToken
from app.models.refresh_token import RefreshToken
from app.models.block_record import BlockRecord, UnblockRecord

__all__ = [
    'IDModel',
    'CreatedAtModel',
    'TimestampModel',
    'User',
    'AccessToken',
    'RefreshToken',
    'BlockRecord',
    'UnblockRecord',
]
