import logging
from concurrent.futures import ThreadPoolExecutor

import httpx
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, get_settings
from app.db.session import get_session_factory
from app.models.device_token import DeviceToken
from app.schemas.push import PushNotificationRequest, PushSendResponse, PushStatusResponse
from app.services.audit import AuditLogger
from app.services.credentials import CredentialManager, ServiceAccount
from app.services.dispatch import DispatchEngine
from app.services.push_types import (
    CredentialError,
    DispatchResult,
    InvalidPushRequest,
    NotificationPayload,
    ServiceCredential,
    TargetSpec,
)
from app.services.recipients import RecipientResolver
from app.services.token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)


class PushService:
    """Runs one push invocation: resolve, authenticate, fan out, reconcile, audit.

    Only request validation, credential and resolution failures abort a call.
    Per-recipient failures are reported as counts, and reconciliation or audit
    failures are logged without touching the result.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        session_factory: sessionmaker[Session] | None = None,
        credentials: CredentialManager | None = None,
        engine: DispatchEngine | None = None,
        resolver: RecipientResolver | None = None,
        lifecycle: TokenLifecycleManager | None = None,
        audit: AuditLogger | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session_factory = session_factory
        self.resolver = resolver or RecipientResolver(session_factory)
        self.lifecycle = lifecycle or TokenLifecycleManager(session_factory)
        self.audit = audit or AuditLogger(session_factory)
        self.credentials = credentials
        self.engine = engine

        if self.credentials is None:
            try:
                account = ServiceAccount.from_file(self.settings.service_account_path, self.settings)
            except CredentialError as exc:
                logger.info("Push notifications disabled: %s", exc)
            else:
                self.credentials = CredentialManager(account, settings=self.settings, http_client=http_client)

        if self.engine is None and self.credentials is not None:
            self.engine = DispatchEngine(
                self.credentials.project_id,
                settings=self.settings,
                http_client=http_client,
            )

    @property
    def enabled(self) -> bool:
        return self.credentials is not None and self.engine is not None

    def send(self, request: PushNotificationRequest) -> PushSendResponse:
        target = request.to_target()
        if target.is_empty():
            raise InvalidPushRequest("At least one of token, tokens, user_ids, roles, departments or broadcast is required")
        payload = request.to_payload()

        tokens = self.resolver.resolve(target)
        if not tokens:
            logger.info("Push skipped: no active device tokens for the requested targets.")
            self._finish(target, payload, DispatchResult.empty())
            return PushSendResponse(success=True, sent=0, failed=0, total=0, message="No device tokens to notify.")

        # the credential is only requested once there is someone to send to
        credential = self._get_credential()

        logger.info("Sending push '%s' to %d device token(s).", payload.title, len(tokens))
        result = self.engine.dispatch(tokens, payload, credential)
        if result.credential_rejected:
            logger.warning("FCM rejected the cached access token; it will be refreshed on the next send.")
            self.credentials.invalidate()
        self._finish(target, payload, result)

        errors = result.error_messages()
        return PushSendResponse(
            success=True,
            sent=result.success_count,
            failed=result.failure_count,
            total=result.requested_token_count,
            errors=errors or None,
        )

    def status(self) -> PushStatusResponse:
        with (self._session_factory or get_session_factory())() as db:
            active_tokens = db.scalar(
                select(func.count()).select_from(DeviceToken).where(DeviceToken.is_active.is_(True))
            ) or 0
        return PushStatusResponse(
            enabled=self.enabled,
            project_id=self.credentials.project_id if self.credentials else None,
            fcm_service_account_json=str(self.settings.service_account_path),
            credentials_exists=self.settings.service_account_path.exists(),
            credential_cached=bool(self.credentials and self.credentials.cached),
            active_tokens=active_tokens,
            max_workers=self.settings.push_max_workers,
        )

    def _get_credential(self) -> ServiceCredential:
        if not self.enabled:
            raise CredentialError("push_service_disabled_or_missing_credentials")
        return self.credentials.get_credential()

    def _reconcile(self, result: DispatchResult) -> int:
        try:
            return self.lifecycle.reconcile_failures(result)
        except Exception:
            logger.exception("Failed to deactivate invalid FCM tokens")
            return 0

    def _finish(self, target: TargetSpec, payload: NotificationPayload, result: DispatchResult) -> None:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="push-finish") as pool:
            reconciled = pool.submit(self._reconcile, result)
            audited = pool.submit(self.audit.record, target, payload, result)
        try:
            audited.result()
        except Exception:
            logger.exception("Failed to write notification log for '%s'", payload.title)
        deactivated = reconciled.result()
        if deactivated:
            logger.info("Push reconciliation deactivated %d token(s).", deactivated)
