from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

Priority = Literal["high", "normal"]


class PushDispatchError(Exception):
    """Base class for failures that abort a whole dispatch invocation."""


class InvalidPushRequest(PushDispatchError):
    pass


class CredentialError(PushDispatchError):
    pass


class ResolutionError(PushDispatchError):
    pass


class ErrorKind(str, Enum):
    NONE = "none"
    INVALID_REGISTRATION = "invalid_registration"
    NOT_REGISTERED = "not_registered"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK = "network"
    UNKNOWN = "unknown"

    @property
    def is_permanent(self) -> bool:
        return self in (ErrorKind.INVALID_REGISTRATION, ErrorKind.NOT_REGISTERED)


@dataclass(frozen=True)
class ServiceCredential:
    access_token: str
    expires_at: float  # unix timestamp, seconds

    def is_fresh(self, now: float, safety_margin: float) -> bool:
        return now < self.expires_at - safety_margin


@dataclass(frozen=True)
class TargetSpec:
    tokens: tuple[str, ...] = ()
    user_ids: tuple[str, ...] = ()
    roles: tuple[int, ...] = ()
    departments: tuple[str, ...] = ()
    broadcast: bool = False
    notification_type: str | None = None

    def is_empty(self) -> bool:
        return not (self.tokens or self.user_ids or self.roles or self.departments or self.broadcast)


@dataclass(frozen=True)
class NotificationPayload:
    title: str
    body: str
    image: str | None = None
    data: dict[str, str] = field(default_factory=dict)
    priority: Priority = "high"
    ttl_seconds: int | None = None
    collapse_key: str | None = None

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise InvalidPushRequest("notification.title is required")
        if not self.body or not self.body.strip():
            raise InvalidPushRequest("notification.body is required")
        if self.priority not in ("high", "normal"):
            raise InvalidPushRequest(f"Unsupported priority: {self.priority}")


@dataclass(frozen=True)
class DispatchOutcome:
    token: str
    success: bool
    error_kind: ErrorKind = ErrorKind.NONE
    raw_message: str = ""
    message_id: str | None = None
    auth_rejected: bool = False


@dataclass(frozen=True)
class DispatchResult:
    requested_token_count: int
    success_count: int
    failure_count: int
    outcomes: tuple[DispatchOutcome, ...] = ()

    @classmethod
    def empty(cls) -> "DispatchResult":
        return cls(requested_token_count=0, success_count=0, failure_count=0)

    @classmethod
    def from_outcomes(cls, outcomes: list[DispatchOutcome]) -> "DispatchResult":
        succeeded = sum(1 for outcome in outcomes if outcome.success)
        return cls(
            requested_token_count=len(outcomes),
            success_count=succeeded,
            failure_count=len(outcomes) - succeeded,
            outcomes=tuple(outcomes),
        )

    @property
    def failures(self) -> list[DispatchOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    @property
    def credential_rejected(self) -> bool:
        return any(outcome.auth_rejected for outcome in self.outcomes)

    def permanently_invalid_tokens(self) -> list[str]:
        return list(dict.fromkeys(outcome.token for outcome in self.failures if outcome.error_kind.is_permanent))

    def error_messages(self) -> list[str]:
        return [outcome.raw_message for outcome in self.failures if outcome.raw_message]
