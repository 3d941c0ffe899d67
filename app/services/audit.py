import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session, sessionmaker

from app.db.session import get_session_factory, session_scope
from app.models.notification_log import NotificationLog
from app.services.push_types import DispatchResult, NotificationPayload, TargetSpec

logger = logging.getLogger(__name__)


class AuditLogger:
    """Appends one notification_logs row per dispatch. Never raises."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory

    def record(
        self,
        target: TargetSpec,
        payload: NotificationPayload,
        result: DispatchResult,
    ) -> None:
        try:
            entry = NotificationLog(
                type=target.notification_type or "info",
                title=payload.title,
                body=payload.body,
                data=dict(payload.data),
                target_tokens_count=len(target.tokens),
                target_users=list(target.user_ids),
                target_roles=list(target.roles),
                target_departments=list(target.departments),
                is_broadcast=target.broadcast,
                success_count=result.success_count,
                failure_count=result.failure_count,
                errors=result.error_messages(),
                sent_at=datetime.now(UTC),
            )
            with session_scope(self._session_factory or get_session_factory()) as db:
                db.add(entry)
        except Exception:
            logger.exception("Failed to write notification log for '%s'", payload.title)
