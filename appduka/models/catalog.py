import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, Enum, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appduka.db import Base


class AppStatus(enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class CatalogApp(Base):
    __tablename__ = "apps"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    version: Mapped[str | None] = mapped_column(String(60))
    category: Mapped[str | None] = mapped_column(String(120))
    size: Mapped[str | None] = mapped_column(String(60))
    icon_url: Mapped[str | None] = mapped_column(Text)
    apk_url: Mapped[str | None] = mapped_column(Text)
    short_description: Mapped[str | None] = mapped_column(Text)
    full_description: Mapped[str | None] = mapped_column(Text)
    screenshots: Mapped[list[str] | None] = mapped_column(JSON, default=list)
    status: Mapped[AppStatus] = mapped_column(
        Enum(AppStatus, name="app_status"), default=AppStatus.pending, nullable=False
    )

    reviews = relationship("Review", back_populates="app", cascade="all, delete-orphan")
