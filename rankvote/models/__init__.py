from rankvote.models.api_key import ApiKey
from rankvote.models.ballot import Ballot
from rankvote.models.contest import Contest
from rankvote.models.contest_notification_state import ContestNotificationState
from rankvote.models.contest_recurrence import ContestRecurrence
from rankvote.models.notification_channel import NotificationChannel

__all__ = [
    "Contest",
    "ContestRecurrence",
    "ContestNotificationState",
    "Ballot",
    "NotificationChannel",
    "ApiKey",
]
