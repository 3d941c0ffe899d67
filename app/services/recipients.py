import logging
from collections.abc import Iterable

from sqlalchemy import Select, and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.db.session import get_session_factory
from app.models.device_token import DeviceToken
from app.models.push_settings import PREFERENCE_TYPES, UserPushSettings
from app.models.user import User
from app.services.push_types import ResolutionError, TargetSpec

logger = logging.getLogger(__name__)


class RecipientResolver:
    """Expands a TargetSpec into the deduplicated list of live registration tokens."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory or get_session_factory()

    def resolve(self, target: TargetSpec) -> list[str]:
        tokens: list[str] = []
        try:
            with self.session_factory() as db:
                if target.tokens:
                    tokens.extend(self._explicit_tokens(db, target.tokens))
                if target.user_ids:
                    stmt = self._preference_filtered(target).where(DeviceToken.user_id.in_(target.user_ids))
                    tokens.extend(db.scalars(stmt).all())
                if target.roles:
                    stmt = self._preference_filtered(target).where(User.role.in_(target.roles))
                    tokens.extend(db.scalars(stmt).all())
                if target.departments:
                    stmt = self._preference_filtered(target).where(User.department.in_(target.departments))
                    tokens.extend(db.scalars(stmt).all())
                if target.broadcast:
                    tokens.extend(db.scalars(self._preference_filtered(target)).all())
        except SQLAlchemyError as exc:
            logger.error("Registration store query failed: %s", exc)
            raise ResolutionError(f"Failed to query device tokens: {exc}") from exc

        resolved = list(dict.fromkeys(token for token in tokens if token))
        logger.info("Resolved %d device token(s) for dispatch.", len(resolved))
        return resolved

    def _explicit_tokens(self, db: Session, tokens: Iterable[str]) -> list[str]:
        requested = list(dict.fromkeys(token for token in tokens if token))
        if not requested:
            return []
        rows = db.execute(
            select(DeviceToken.fcm_token, DeviceToken.is_active).where(DeviceToken.fcm_token.in_(requested))
        ).all()
        known = {row.fcm_token for row in rows}
        active = {row.fcm_token for row in rows if row.is_active}
        # tokens the store has never seen are sent as given
        return [token for token in requested if token not in known or token in active]

    def _preference_filtered(self, target: TargetSpec) -> Select:
        stmt = (
            select(DeviceToken.fcm_token)
            .join(User, User.id == DeviceToken.user_id)
            .outerjoin(UserPushSettings, UserPushSettings.user_id == DeviceToken.user_id)
            .where(DeviceToken.is_active.is_(True))
        )
        allowed = UserPushSettings.enabled.is_(True)
        if target.notification_type in PREFERENCE_TYPES:
            allowed = and_(allowed, getattr(UserPushSettings, target.notification_type).is_(True))
        return stmt.where(or_(UserPushSettings.id.is_(None), allowed))
