"""FCM HTTP v1 wire format: message envelopes and error classification."""

from urllib.parse import urljoin

import httpx

from app.core.config import Settings
from app.services.push_types import ErrorKind, NotificationPayload

FCM_ERROR_TYPE = "type.googleapis.com/google.firebase.fcm.v1.FcmError"

_ERROR_CODE_KINDS = {
    "UNREGISTERED": ErrorKind.NOT_REGISTERED,
    "SENDER_ID_MISMATCH": ErrorKind.INVALID_REGISTRATION,
    "QUOTA_EXCEEDED": ErrorKind.QUOTA_EXCEEDED,
    "UNAVAILABLE": ErrorKind.NETWORK,
}

# Last-resort substring markers for error payloads without a usable code,
# including the legacy HTTP API names.
_NOT_REGISTERED_MARKERS = (
    "notregistered",
    "registration-token-not-registered",
    "requested entity was not found",
    "unregistered",
)
_INVALID_REGISTRATION_MARKERS = (
    "invalidregistration",
    "not a valid fcm registration token",
    "invalid registration token",
    "mismatchsenderid",
)
_QUOTA_MARKERS = (
    "quota_exceeded",
    "quota exceeded",
    "messagerateexceeded",
    "devicemessagerateexceeded",
)


def resolve_link(payload: NotificationPayload, settings: Settings) -> str:
    url = payload.data.get("url") or "/"
    if settings.push_link_base_url:
        return urljoin(settings.push_link_base_url, url)
    return url


def build_message(token: str, payload: NotificationPayload, settings: Settings) -> dict:
    link = resolve_link(payload, settings)
    high = payload.priority == "high"

    notification = {"title": payload.title, "body": payload.body}
    if payload.image:
        notification["image"] = payload.image

    data = {str(key): str(value) for key, value in payload.data.items() if value is not None}
    data["click_action"] = link

    webpush_notification = {"icon": settings.push_icon, "badge": settings.push_badge}
    if payload.data.get("tag"):
        webpush_notification["tag"] = payload.data["tag"]
    webpush_headers = {"Urgency": "high" if high else "normal"}
    if payload.ttl_seconds is not None:
        webpush_headers["TTL"] = str(payload.ttl_seconds)

    android = {"priority": "HIGH" if high else "NORMAL"}
    if payload.ttl_seconds is not None:
        android["ttl"] = f"{payload.ttl_seconds}s"
    if payload.collapse_key:
        android["collapse_key"] = payload.collapse_key

    apns_headers = {"apns-priority": "10" if high else "5"}
    if payload.collapse_key:
        apns_headers["apns-collapse-id"] = payload.collapse_key

    return {
        "message": {
            "token": token,
            "notification": notification,
            "data": data,
            "webpush": {
                "headers": webpush_headers,
                "notification": webpush_notification,
                "fcm_options": {"link": link},
            },
            "android": android,
            "apns": {"headers": apns_headers},
        }
    }


def _error_body(response: httpx.Response) -> dict:
    try:
        payload = response.json()
    except ValueError:
        return {}
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return payload["error"]
    return {}


def _fcm_error_code(error: dict) -> str | None:
    for detail in error.get("details") or []:
        if isinstance(detail, dict) and detail.get("@type") == FCM_ERROR_TYPE and detail.get("errorCode"):
            return str(detail["errorCode"])
    status = error.get("status")
    return str(status) if status else None


def _classify_text(text: str) -> ErrorKind:
    lowered = text.lower()
    if any(marker in lowered for marker in _NOT_REGISTERED_MARKERS):
        return ErrorKind.NOT_REGISTERED
    if any(marker in lowered for marker in _INVALID_REGISTRATION_MARKERS):
        return ErrorKind.INVALID_REGISTRATION
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return ErrorKind.QUOTA_EXCEEDED
    return ErrorKind.UNKNOWN


def classify_error_response(response: httpx.Response) -> tuple[ErrorKind, str]:
    """Map a non-successful gateway response to an ErrorKind and a readable message.

    The structured ``FcmError.errorCode`` wins, then the canonical ``status``.
    ``INVALID_ARGUMENT`` only counts as a dead registration when the message
    names the token, because a malformed payload reports the same status for
    every recipient. Text matching is used only when no code decides.
    """
    error = _error_body(response)
    code = _fcm_error_code(error)
    message = str(error.get("message") or response.text or f"HTTP {response.status_code}")
    raw = f"{code}: {message}" if code else f"HTTP {response.status_code}: {message}"

    if code in _ERROR_CODE_KINDS:
        return _ERROR_CODE_KINDS[code], raw
    if code == "INVALID_ARGUMENT":
        lowered = message.lower()
        if "registration token" in lowered or "message.token" in lowered:
            return ErrorKind.INVALID_REGISTRATION, raw
        return ErrorKind.UNKNOWN, raw
    if response.status_code == 429:
        return ErrorKind.QUOTA_EXCEEDED, raw
    return _classify_text(message), raw


def is_auth_rejection(response: httpx.Response) -> bool:
    """True when the gateway refused the bearer token rather than the message."""
    if response.status_code == 401:
        return True
    return _error_body(response).get("status") == "UNAUTHENTICATED"


def message_id_from(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and payload.get("name"):
        return str(payload["name"])
    return None
