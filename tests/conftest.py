import json
import threading
import time
from pathlib import Path
from urllib.parse import parse_qsl

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

TOKEN_URI = "https://oauth2.test/token"
PROJECT_ID = "demo-project"
FCM_ERROR_TYPE = "type.googleapis.com/google.firebase.fcm.v1.FcmError"


def fcm_error(status_code: int, status: str, message: str, error_code: str | None = None) -> dict:
    error: dict = {"code": status_code, "message": message, "status": status}
    if error_code:
        error["details"] = [{"@type": FCM_ERROR_TYPE, "errorCode": error_code}]
    return {"error": error}


class FakeGateway:
    """Plays both the OAuth2 token endpoint and the FCM send endpoint."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.token_requests: list[dict[str, str]] = []
        self.sends: list[dict] = []
        self.failures: dict[str, tuple[int, dict]] = {}
        self.transport_errors: dict[str, type[httpx.TransportError]] = {}
        self.token_endpoint_error: type[httpx.TransportError] | None = None
        self.token_endpoint_status = 200
        self.expires_in = 3600
        self.exchange_delay = 0.0
        self.send_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def fail(self, token: str, status_code: int, payload: dict) -> None:
        self.failures[token] = (status_code, payload)

    def sent_tokens(self) -> list[str]:
        return [send["message"]["token"] for send in self.sends]

    def handler(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URI:
            return self._token(request)
        return self._send(request)

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.content.decode("utf-8")))
        with self.lock:
            self.token_requests.append(form)
            number = len(self.token_requests)
        if self.exchange_delay:
            time.sleep(self.exchange_delay)
        if self.token_endpoint_error is not None:
            raise self.token_endpoint_error("token endpoint unreachable", request=request)
        if self.token_endpoint_status != 200:
            return httpx.Response(self.token_endpoint_status, json={"error": "invalid_grant"})
        return httpx.Response(
            200,
            json={"access_token": f"access-{number}", "expires_in": self.expires_in, "token_type": "Bearer"},
        )

    def _send(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        token = body["message"]["token"]
        with self.lock:
            self.sends.append({**body, "authorization": request.headers.get("authorization")})
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.send_delay:
                time.sleep(self.send_delay)
            if token in self.transport_errors:
                raise self.transport_errors[token]("send failed", request=request)
            if token in self.failures:
                status_code, payload = self.failures[token]
                return httpx.Response(status_code, json=payload)
            return httpx.Response(200, json={"name": f"projects/{PROJECT_ID}/messages/{token}"})
        finally:
            with self.lock:
                self.in_flight -= 1


@pytest.fixture(scope="session")
def rsa_key_pair() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    return private_pem, public_pem


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_file.as_posix()}")
    monkeypatch.setenv("FCM_SERVICE_ACCOUNT_JSON", str(tmp_path / "missing_fcm.json"))
    monkeypatch.setenv("PUSH_API_KEY", "test-service-key")
    monkeypatch.setenv("PUSH_MAX_WORKERS", "4")

    from app.core.config import clear_settings_cache, get_settings

    clear_settings_cache()
    yield get_settings()
    clear_settings_cache()


@pytest.fixture()
def session_factory(settings):
    from app import models  # noqa: F401
    from app.db.base import Base
    from app.db.session import get_engine, get_session_factory, reset_engine

    reset_engine()
    Base.metadata.create_all(bind=get_engine())
    yield get_session_factory()
    Base.metadata.drop_all(bind=get_engine())
    reset_engine()


@pytest.fixture()
def service_account_info(rsa_key_pair) -> dict:
    private_pem, _ = rsa_key_pair
    return {
        "type": "service_account",
        "project_id": PROJECT_ID,
        "private_key_id": "key-1",
        "private_key": private_pem,
        "client_email": "push-sender@demo-project.iam.gserviceaccount.com",
        "token_uri": TOKEN_URI,
    }


@pytest.fixture()
def service_account(settings, service_account_info):
    from app.services.credentials import ServiceAccount

    return ServiceAccount.from_info(service_account_info, settings)


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def credential_manager(settings, service_account, gateway):
    from app.services.credentials import CredentialManager

    return CredentialManager(service_account, settings=settings, http_client=gateway.client())


@pytest.fixture()
def push_service(settings, session_factory, credential_manager, gateway):
    from app.services.dispatch import DispatchEngine
    from app.services.push import PushService

    engine = DispatchEngine(PROJECT_ID, settings=settings, http_client=gateway.client())
    return PushService(
        settings=settings,
        session_factory=session_factory,
        credentials=credential_manager,
        engine=engine,
    )


def add_user(db, *, role: int = 3, department: str | None = "maintenance", tokens=(), inactive_tokens=(), **prefs):
    from app.models.device_token import DeviceToken
    from app.models.push_settings import UserPushSettings
    from app.models.user import User

    user = User(name="tester", role=role, department=department)
    db.add(user)
    db.flush()
    for token in tokens:
        db.add(DeviceToken(user_id=user.id, fcm_token=token, device_type="web"))
    for token in inactive_tokens:
        db.add(DeviceToken(user_id=user.id, fcm_token=token, device_type="android", is_active=False))
    if prefs:
        db.add(UserPushSettings(user_id=user.id, **prefs))
    db.commit()
    return user.id


def token_states(session_factory) -> dict[str, bool]:
    from sqlalchemy import select

    from app.models.device_token import DeviceToken

    with session_factory() as db:
        rows = db.execute(select(DeviceToken.fcm_token, DeviceToken.is_active)).all()
    return {row.fcm_token: row.is_active for row in rows}
