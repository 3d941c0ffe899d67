from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.common import CreatedAtMixin, UUIDPrimaryKeyMixin, utcnow


class NotificationLog(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """One append-only row per dispatch invocation."""

    __tablename__ = "notification_logs"

    type: Mapped[str] = mapped_column(String(32), nullable=False, default="info", index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    target_tokens_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    target_users: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    target_roles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    target_departments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_broadcast: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
