from datetime import datetime

from rankvote.services.notifications.transport import post_json
from rankvote.timeutils import isoformat, utcnow


def serialize_payload(payload):
    return {
        key: isoformat(value) if isinstance(value, datetime) else value
        for key, value in payload.items()
    }


def send(config, event_type, payload):
    body = {
        "event_type": event_type,
        "timestamp": isoformat(utcnow()),
        "data": serialize_payload(payload),
    }
    return post_json(config["url"], body, headers=config.get("headers") or {})
