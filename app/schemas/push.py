from typing import Literal

from pydantic import BaseModel, Field

from app.services.push_types import NotificationPayload, TargetSpec


class NotificationContent(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=2000)
    image: str | None = Field(default=None, max_length=1024)


class PushOptions(BaseModel):
    priority: Literal["high", "normal"] = "high"
    ttl: int | None = Field(default=None, ge=0, le=2_419_200)
    collapse_key: str | None = Field(default=None, max_length=64)


class PushNotificationRequest(BaseModel):
    token: str | None = None
    tokens: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)
    roles: list[int] = Field(default_factory=list)
    departments: list[str] = Field(default_factory=list)
    broadcast: bool = False

    notification: NotificationContent
    data: dict[str, str | int | float | bool | None] = Field(default_factory=dict)
    options: PushOptions = Field(default_factory=PushOptions)

    def to_target(self) -> TargetSpec:
        tokens = [self.token] if self.token else []
        tokens.extend(self.tokens)
        notification_type = self.data.get("type")
        return TargetSpec(
            tokens=tuple(dict.fromkeys(token for token in tokens if token)),
            user_ids=tuple(self.user_ids),
            roles=tuple(self.roles),
            departments=tuple(self.departments),
            broadcast=self.broadcast,
            notification_type=str(notification_type) if notification_type else None,
        )

    def to_payload(self) -> NotificationPayload:
        return NotificationPayload(
            title=self.notification.title,
            body=self.notification.body,
            image=self.notification.image,
            data={key: str(value) for key, value in self.data.items() if value is not None},
            priority=self.options.priority,
            ttl_seconds=self.options.ttl,
            collapse_key=self.options.collapse_key,
        )


class PushSendResponse(BaseModel):
    success: bool
    sent: int = 0
    failed: int = 0
    total: int = 0
    errors: list[str] | None = None
    message: str | None = None


class PushErrorResponse(BaseModel):
    success: bool = False
    error: str


class PushStatusResponse(BaseModel):
    enabled: bool
    project_id: str | None
    fcm_service_account_json: str
    credentials_exists: bool
    credential_cached: bool
    active_tokens: int
    max_workers: int
