import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import httpx

from app.core.config import Settings, get_settings
from app.services.fcm import build_message, classify_error_response, is_auth_rejection, message_id_from
from app.services.push_types import (
    DispatchOutcome,
    DispatchResult,
    ErrorKind,
    NotificationPayload,
    ServiceCredential,
)

logger = logging.getLogger(__name__)


def _short(token: str) -> str:
    return f"{token[:12]}..." if len(token) > 12 else token


class DispatchEngine:
    """Sends one gateway message per token on a bounded worker pool."""

    def __init__(
        self,
        project_id: str,
        *,
        settings: Settings | None = None,
        http_client: httpx.Client | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.project_id = project_id
        self.max_workers = max(1, max_workers or self.settings.push_max_workers)
        self._http = http_client or httpx.Client(timeout=self.settings.fcm_send_timeout_seconds)

    @property
    def send_url(self) -> str:
        return self.settings.fcm_send_url_template.format(project_id=self.project_id)

    def dispatch(
        self,
        tokens: Sequence[str],
        payload: NotificationPayload,
        credential: ServiceCredential,
    ) -> DispatchResult:
        unique_tokens = list(dict.fromkeys(token for token in tokens if token))
        if not unique_tokens:
            return DispatchResult.empty()

        workers = min(self.max_workers, len(unique_tokens))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="push-send") as pool:
            futures = [pool.submit(self._send_one, token, payload, credential) for token in unique_tokens]
            outcomes = [self._collect(token, future) for token, future in zip(unique_tokens, futures)]

        result = DispatchResult.from_outcomes(outcomes)
        logger.info(
            "Push dispatch finished: sent=%d failed=%d total=%d.",
            result.success_count,
            result.failure_count,
            result.requested_token_count,
        )
        return result

    def _collect(self, token: str, future) -> DispatchOutcome:
        try:
            return future.result()
        except Exception as exc:
            logger.exception("Unexpected error while sending push to token=%s", _short(token))
            return DispatchOutcome(
                token=token,
                success=False,
                error_kind=ErrorKind.UNKNOWN,
                raw_message=f"token:{_short(token)} {exc}",
            )

    def _send_one(
        self,
        token: str,
        payload: NotificationPayload,
        credential: ServiceCredential,
    ) -> DispatchOutcome:
        message = build_message(token, payload, self.settings)
        try:
            response = self._http.post(
                self.send_url,
                json=message,
                headers={"Authorization": f"Bearer {credential.access_token}"},
                timeout=self.settings.fcm_send_timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            logger.warning("FCM send timed out for token=%s: %s", _short(token), exc)
            return DispatchOutcome(
                token=token,
                success=False,
                error_kind=ErrorKind.NETWORK,
                raw_message=f"token:{_short(token)} timeout: {exc}",
            )
        except httpx.HTTPError as exc:
            logger.warning("FCM send transport error for token=%s: %s", _short(token), exc)
            return DispatchOutcome(
                token=token,
                success=False,
                error_kind=ErrorKind.NETWORK,
                raw_message=f"token:{_short(token)} network: {exc}",
            )

        if response.is_success:
            message_id = message_id_from(response)
            if message_id:
                return DispatchOutcome(token=token, success=True, message_id=message_id)
            return DispatchOutcome(
                token=token,
                success=False,
                error_kind=ErrorKind.UNKNOWN,
                raw_message=f"token:{_short(token)} HTTP {response.status_code}: response without message id",
            )

        kind, raw = classify_error_response(response)
        if kind.is_permanent:
            logger.info("FCM token is invalid/unregistered token=%s kind=%s", _short(token), kind.value)
        else:
            logger.warning("FCM send failed for token=%s kind=%s: %s", _short(token), kind.value, raw)
        return DispatchOutcome(
            token=token,
            success=False,
            error_kind=kind,
            raw_message=f"token:{_short(token)} {raw}",
            auth_rejected=is_auth_rejection(response),
        )
