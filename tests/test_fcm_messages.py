import httpx
import pytest

from app.services.fcm import build_message, classify_error_response, is_auth_rejection, message_id_from
from app.services.push_types import ErrorKind, InvalidPushRequest, NotificationPayload
from tests.conftest import fcm_error


def _payload(**overrides) -> NotificationPayload:
    values = {"title": "Emergency repair", "body": "[EQ-001] spindle stopped"}
    values.update(overrides)
    return NotificationPayload(**values)


def test_build_message_defaults(settings):
    message = build_message("tok-1", _payload(), settings)["message"]

    assert message["token"] == "tok-1"
    assert message["notification"] == {"title": "Emergency repair", "body": "[EQ-001] spindle stopped"}
    assert message["data"] == {"click_action": "/"}
    assert message["webpush"]["fcm_options"] == {"link": "/"}
    assert message["webpush"]["notification"] == {"icon": settings.push_icon, "badge": settings.push_badge}
    assert message["webpush"]["headers"] == {"Urgency": "high"}
    assert message["android"] == {"priority": "HIGH"}
    assert message["apns"] == {"headers": {"apns-priority": "10"}}


def test_build_message_carries_options_and_data(settings):
    payload = _payload(
        image="https://cdn.example/eq.png",
        data={"type": "pm_schedule", "url": "/pm/schedules/42", "tag": "pm-42"},
        priority="normal",
        ttl_seconds=600,
        collapse_key="pm-42",
    )

    message = build_message("tok-1", payload, settings)["message"]

    assert message["notification"]["image"] == "https://cdn.example/eq.png"
    assert message["data"] == {
        "type": "pm_schedule",
        "url": "/pm/schedules/42",
        "tag": "pm-42",
        "click_action": "/pm/schedules/42",
    }
    assert message["webpush"]["notification"]["tag"] == "pm-42"
    assert message["webpush"]["headers"] == {"Urgency": "normal", "TTL": "600"}
    assert message["android"] == {"priority": "NORMAL", "ttl": "600s", "collapse_key": "pm-42"}
    assert message["apns"]["headers"] == {"apns-priority": "5", "apns-collapse-id": "pm-42"}


def test_link_is_joined_to_configured_base(settings):
    settings = settings.model_copy(update={"push_link_base_url": "https://cmms.example.com/"})
    message = build_message("tok-1", _payload(data={"url": "/maintenance/monitor"}), settings)["message"]

    assert message["webpush"]["fcm_options"]["link"] == "https://cmms.example.com/maintenance/monitor"


def test_payload_requires_title_and_body():
    with pytest.raises(InvalidPushRequest, match="title"):
        _payload(title="  ")
    with pytest.raises(InvalidPushRequest, match="body"):
        _payload(body="")


@pytest.mark.parametrize(
    ("status_code", "payload", "expected"),
    [
        (404, fcm_error(404, "NOT_FOUND", "Requested entity was not found.", "UNREGISTERED"), ErrorKind.NOT_REGISTERED),
        (403, fcm_error(403, "PERMISSION_DENIED", "SenderId mismatch", "SENDER_ID_MISMATCH"), ErrorKind.INVALID_REGISTRATION),
        (
            400,
            fcm_error(400, "INVALID_ARGUMENT", "The registration token is not a valid FCM registration token", "INVALID_ARGUMENT"),
            ErrorKind.INVALID_REGISTRATION,
        ),
        (400, fcm_error(400, "INVALID_ARGUMENT", "Invalid value at 'message.data'", "INVALID_ARGUMENT"), ErrorKind.UNKNOWN),
        (429, fcm_error(429, "RESOURCE_EXHAUSTED", "Quota exceeded", "QUOTA_EXCEEDED"), ErrorKind.QUOTA_EXCEEDED),
        (429, {}, ErrorKind.QUOTA_EXCEEDED),
        (503, fcm_error(503, "UNAVAILABLE", "Service unavailable", "UNAVAILABLE"), ErrorKind.NETWORK),
        (500, fcm_error(500, "INTERNAL", "Internal error"), ErrorKind.UNKNOWN),
        (401, fcm_error(401, "UNAUTHENTICATED", "Request had invalid authentication credentials"), ErrorKind.UNKNOWN),
    ],
)
def test_classify_structured_errors(status_code, payload, expected):
    kind, raw = classify_error_response(httpx.Response(status_code, json=payload))
    assert kind is expected
    assert raw


def test_classify_falls_back_to_legacy_markers():
    kind, raw = classify_error_response(httpx.Response(400, text="Error=NotRegistered"))
    assert kind is ErrorKind.NOT_REGISTERED
    assert raw.startswith("HTTP 400")

    kind, _ = classify_error_response(httpx.Response(400, json={"error": {"message": "InvalidRegistration"}}))
    assert kind is ErrorKind.INVALID_REGISTRATION


def test_message_id_from_success_response():
    assert message_id_from(httpx.Response(200, json={"name": "projects/p/messages/1"})) == "projects/p/messages/1"
    assert message_id_from(httpx.Response(200, json={})) is None
    assert message_id_from(httpx.Response(200, text="ok")) is None


def test_auth_rejection_is_detected_separately_from_token_errors():
    assert is_auth_rejection(httpx.Response(401, json=fcm_error(401, "UNAUTHENTICATED", "Invalid credentials")))
    assert is_auth_rejection(httpx.Response(401, text="Unauthorized"))
    assert not is_auth_rejection(
        httpx.Response(404, json=fcm_error(404, "NOT_FOUND", "Requested entity was not found.", "UNREGISTERED"))
    )
