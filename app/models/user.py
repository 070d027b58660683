from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from app.models.base import IDModel, TimestampModel
from app.models.enums import UserRole


def _default_roles() -> list[str]:
    return [UserRole.USER.value]


class User(IDModel, TimestampModel, SQLModel, table=True):
    __tablename__ = 'users'

    email: str = Field(index=True, unique=True)
    hashed_password: str
    roles: list[str] = Field(default_factory=_default_roles, sa_column=Column(JSON, nullable=False))
    is_active: bool = True
    is_blocked: bool = Field(default=False, index=True)
