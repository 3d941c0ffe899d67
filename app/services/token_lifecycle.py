import logging

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from app.db.session import get_session_factory, session_scope
from app.models.device_token import DeviceToken
from app.services.push_types import DispatchResult

logger = logging.getLogger(__name__)


class TokenLifecycleManager:
    """Deactivates registrations the gateway reported as permanently dead."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory

    def reconcile_failures(self, result: DispatchResult) -> int:
        tokens = result.permanently_invalid_tokens()
        if not tokens:
            return 0

        with session_scope(self._session_factory or get_session_factory()) as db:
            outcome = db.execute(
                update(DeviceToken)
                .where(DeviceToken.fcm_token.in_(tokens), DeviceToken.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            deactivated = outcome.rowcount or 0

        if deactivated:
            logger.info("Deactivated %d invalid FCM token registration(s).", deactivated)
        return deactivated
