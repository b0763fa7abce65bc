from datetime import datetime
from sqlmodel import Field, SQLModel, DateTime
from sqlalchemy.orm import declared_attr
from invoicedesk.common.utils.datetime import get_current_datetime


class TimestampMixin:
    """Mixin to add created_at and updated_at fields to models"""
    created_at: datetime = Field(
        default_factory=get_current_datetime,
        sa_type=DateTime(timezone=True), nullable=False, index=True)
    updated_at: datetime = Field(
        default_factory=get_current_datetime,
        sa_type=DateTime(timezone=True), nullable=False)

    def touch(self, now: datetime | None = None) -> None:
        self.updated_at = now or get_current_datetime()


class BaseModel(SQLModel):
    """Base model for all table models; table names are the lowercased class name"""
    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()
