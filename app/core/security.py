import hmac
from datetime import UTC, datetime, timedelta

import jwt

from app.core.config import get_settings

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_ALGORITHM = "RS256"


def create_service_account_assertion(
    *,
    issuer: str,
    audience: str,
    scope: str,
    private_key: str,
    key_id: str | None = None,
    issued_at: datetime | None = None,
    expires_seconds: int | None = None,
) -> str:
    now = issued_at or datetime.now(UTC)
    lifetime = timedelta(seconds=expires_seconds or get_settings().fcm_assertion_lifetime_seconds)
    payload = {
        "iss": issuer,
        "sub": issuer,
        "aud": audience,
        "scope": scope,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    headers = {"kid": key_id} if key_id else None
    return jwt.encode(payload, private_key, algorithm=ASSERTION_ALGORITHM, headers=headers)


def verify_api_key(candidate: str) -> bool:
    expected = get_settings().push_api_key
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))
