import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appduka.db import Base


class ProfileRole(enum.Enum):
    user = "user"
    developer = "developer"
    admin = "admin"


class Profile(Base):
    __tablename__ = "profiles"

    # Subject issued by the identity provider; never generated locally.
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str | None] = mapped_column(String(120))
    role: Mapped[ProfileRole] = mapped_column(
        Enum(ProfileRole, name="app_role"), default=ProfileRole.user, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    reviews = relationship("Review", back_populates="profile", cascade="all, delete-orphan")
