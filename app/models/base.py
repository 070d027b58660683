from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.dialects.mysql import DATETIME as MySQLDateTime
from sqlmodel import Field, SQLModel

from app.core.clock import utc_now


def utc_datetime_type():
    return DateTime(timezone=True).with_variant(MySQLDateTime(fsp=6), "mysql")


class IDModel(SQLModel):
    id: Optional[int] = Field(default=None, primary_key=True)


class CreatedAtModel(SQLModel):
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=utc_datetime_type(),
        sa_column_kwargs={"nullable": False},
    )


class TimestampModel(CreatedAtModel):
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=utc_datetime_type(),
        sa_column_kwargs={"nullable": False, "onupdate": utc_now},
    )
