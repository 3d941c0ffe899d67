from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.common import CreatedAtMixin, UpdatedAtMixin, UUIDPrimaryKeyMixin

# notification types that carry their own opt-out column
PREFERENCE_TYPES = ("emergency", "long_repair", "completed", "pm_schedule")


class UserPushSettings(UUIDPrimaryKeyMixin, CreatedAtMixin, UpdatedAtMixin, Base):
    __tablename__ = "user_push_settings"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    emergency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    long_repair: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    pm_schedule: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="push_settings")
