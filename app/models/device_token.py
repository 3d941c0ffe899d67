from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.common import CreatedAtMixin, UpdatedAtMixin, UUIDPrimaryKeyMixin, utcnow


class DeviceToken(UUIDPrimaryKeyMixin, CreatedAtMixin, UpdatedAtMixin, Base):
    __tablename__ = "user_fcm_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "fcm_token", name="uq_user_fcm_tokens_user_token"),
        CheckConstraint("device_type IN ('web', 'android', 'ios')", name="ck_user_fcm_tokens_device_type"),
    )

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    fcm_token: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    device_type: Mapped[str] = mapped_column(String(16), nullable=False, default="web")
    device_info: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="device_tokens")
