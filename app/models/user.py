from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.common import CreatedAtMixin, UUIDPrimaryKeyMixin

ROLE_ADMIN = 1
ROLE_SUPERVISOR = 2
ROLE_TECHNICIAN = 3


class User(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """Application user; owned by the maintenance side, read here for targeting."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    role: Mapped[int] = mapped_column(Integer, nullable=False, default=ROLE_TECHNICIAN, index=True)
    department: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    device_tokens = relationship("DeviceToken", back_populates="user", cascade="all, delete-orphan")
    push_settings = relationship("UserPushSettings", back_populates="user", uselist=False, cascade="all, delete-orphan")
