import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import httpx
import jwt

from app.core.config import Settings, get_settings
from app.core.security import JWT_BEARER_GRANT_TYPE, create_service_account_assertion
from app.services.push_types import CredentialError, ServiceCredential

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class ServiceAccount:
    client_email: str
    private_key: str
    project_id: str
    token_uri: str = DEFAULT_TOKEN_URI
    private_key_id: str | None = None

    @classmethod
    def from_file(cls, path: Path, settings: Settings | None = None) -> "ServiceAccount":
        settings = settings or get_settings()
        if not path.exists():
            raise CredentialError(f"FCM service account is missing ({path})")
        try:
            info = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CredentialError(f"FCM service account is unreadable ({path}): {exc}") from exc
        return cls.from_info(info, settings)

    @classmethod
    def from_info(cls, info: dict, settings: Settings | None = None) -> "ServiceAccount":
        settings = settings or get_settings()
        missing = [key for key in ("client_email", "private_key") if not info.get(key)]
        project_id = settings.fcm_project_id or info.get("project_id")
        if not project_id:
            missing.append("project_id")
        if missing:
            raise CredentialError(f"FCM service account is missing fields: {', '.join(missing)}")
        return cls(
            client_email=info["client_email"],
            private_key=info["private_key"],
            project_id=project_id,
            token_uri=settings.fcm_token_uri or info.get("token_uri") or DEFAULT_TOKEN_URI,
            private_key_id=info.get("private_key_id"),
        )


class CredentialManager:
    """Exchanges a signed service-account assertion for a gateway access token.

    The issued credential is cached for the lifetime of the instance and reused
    until it gets within ``safety_margin`` seconds of expiry. The exchange runs
    under the cache lock so callers racing on a miss share a single exchange.
    """

    def __init__(
        self,
        account: ServiceAccount,
        *,
        settings: Settings | None = None,
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or get_settings()
        self.account = account
        self.safety_margin = self.settings.fcm_credential_safety_margin_seconds
        self._http = http_client or httpx.Client(timeout=self.settings.fcm_token_timeout_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: ServiceCredential | None = None

    @property
    def project_id(self) -> str:
        return self.account.project_id

    @property
    def cached(self) -> ServiceCredential | None:
        return self._cached

    def get_credential(self) -> ServiceCredential:
        with self._lock:
            cached = self._cached
            if cached is not None and cached.is_fresh(self._clock(), self.safety_margin):
                return cached
            credential = self._exchange()
            self._cached = credential
            return credential

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None

    def _sign_assertion(self, now: float) -> str:
        try:
            return create_service_account_assertion(
                issuer=self.account.client_email,
                audience=self.account.token_uri,
                scope=self.settings.fcm_scope,
                private_key=self.account.private_key,
                key_id=self.account.private_key_id,
                issued_at=datetime.fromtimestamp(now, UTC),
                expires_seconds=self.settings.fcm_assertion_lifetime_seconds,
            )
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise CredentialError(f"Failed to sign service account assertion: {exc}") from exc

    def _exchange(self) -> ServiceCredential:
        now = self._clock()
        assertion = self._sign_assertion(now)
        try:
            response = self._http.post(
                self.account.token_uri,
                data={"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion},
                timeout=self.settings.fcm_token_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            logger.warning("OAuth2 token exchange failed for %s: %s", self.account.client_email, exc)
            raise CredentialError(f"Token endpoint unreachable: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "OAuth2 token endpoint rejected assertion for %s: status=%s",
                self.account.client_email,
                response.status_code,
            )
            raise CredentialError(f"Token endpoint error: {response.status_code} - {response.text[:200]}")

        try:
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as exc:
            raise CredentialError(f"Malformed token endpoint response: {exc}") from exc

        logger.info("Obtained FCM access token valid for %d seconds.", expires_in)
        return ServiceCredential(access_token=access_token, expires_at=now + expires_in)
