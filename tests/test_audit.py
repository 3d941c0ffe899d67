from sqlalchemy import select

from app.models.notification_log import NotificationLog
from app.services.audit import AuditLogger
from app.services.push_types import DispatchOutcome, DispatchResult, ErrorKind, NotificationPayload, TargetSpec


def test_record_appends_summary_row(session_factory):
    target = TargetSpec(
        tokens=("t1",),
        user_ids=("u1",),
        roles=(1, 2),
        departments=("maintenance",),
        notification_type="emergency",
    )
    payload = NotificationPayload(title="Emergency repair", body="EQ-001", data={"equipment_code": "EQ-001"})
    result = DispatchResult.from_outcomes(
        [
            DispatchOutcome(token="t1", success=True, message_id="m1"),
            DispatchOutcome(token="t2", success=False, error_kind=ErrorKind.NOT_REGISTERED, raw_message="token:t2 UNREGISTERED"),
            DispatchOutcome(token="t3", success=False, error_kind=ErrorKind.NETWORK),
        ]
    )

    AuditLogger(session_factory).record(target, payload, result)

    with session_factory() as db:
        rows = db.scalars(select(NotificationLog)).all()
    assert len(rows) == 1
    row = rows[0]
    assert row.type == "emergency"
    assert row.title == "Emergency repair"
    assert row.body == "EQ-001"
    assert row.data == {"equipment_code": "EQ-001"}
    assert row.target_tokens_count == 1
    assert row.target_users == ["u1"]
    assert row.target_roles == [1, 2]
    assert row.target_departments == ["maintenance"]
    assert row.is_broadcast is False
    assert row.success_count == 1
    assert row.failure_count == 2
    assert row.errors == ["token:t2 UNREGISTERED"]
    assert row.sent_at is not None


def test_record_failure_is_logged_and_swallowed(caplog):
    def broken_factory():
        raise RuntimeError("audit store is down")

    payload = NotificationPayload(title="t", body="b")

    AuditLogger(broken_factory).record(TargetSpec(broadcast=True), payload, DispatchResult.empty())

    assert "Failed to write notification log" in caplog.text


def test_record_entry_build_failure_is_logged_and_swallowed(session_factory, monkeypatch, caplog):
    import app.services.audit as audit_module

    def broken_entry(**kwargs):
        raise ValueError("unserializable notification data")

    monkeypatch.setattr(audit_module, "NotificationLog", broken_entry)

    AuditLogger(session_factory).record(TargetSpec(broadcast=True), NotificationPayload(title="t", body="b"), DispatchResult.empty())

    assert "Failed to write notification log" in caplog.text
