from app.models.device_token import DeviceToken
from app.models.notification_log import NotificationLog
from app.models.push_settings import UserPushSettings
from app.models.user import User

__all__ = [
    "User",
    "DeviceToken",
    "UserPushSettings",
    "NotificationLog",
]
