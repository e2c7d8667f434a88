"""Routing contract between contest lifecycle events and delivery channels.

Callers hand ``dispatch`` a channel row, one of ``EVENT_TYPES`` and a payload
dict (title, vote/results URLs, winner or tied options, ballot count, optional
close time). Delivery problems come back as ``False``; nothing here raises.
"""

import logging
import re

from rankvote.services.notifications import discord, email, slack, webhook

logger = logging.getLogger(__name__)

EVENT_TYPES = ("vote_created", "vote_opened", "vote_closed", "runoff_required")

CHANNEL_SENDERS = {
    "discord": discord.send,
    "slack": slack.send,
    "webhook": webhook.send,
    "email": email.send,
}


def dispatch(channel, event_type, payload):
    if channel is None:
        return False

    if event_type not in EVENT_TYPES:
        logger.error("Unknown notification event type: %s", event_type)
        return False

    sender = CHANNEL_SENDERS.get(channel.type)
    if sender is None:
        logger.error("Unknown notification channel type: %s", channel.type)
        return False

    try:
        sent = bool(sender(channel.config or {}, event_type, payload))
    except Exception:
        logger.exception(
            "Notification %s via channel %s raised during delivery", event_type, channel.id
        )
        return False

    if sent:
        logger.info("Sent %s notification via channel %s", event_type, channel.id)
    return sent


_DISCORD_WEBHOOK = re.compile(
    r"^https://(?:canary\.|ptb\.)?discord(?:app)?\.com/api/webhooks/\d+/[\w-]+$"
)
_SLACK_WEBHOOK = re.compile(r"^https://hooks\.slack\.com/")
_HTTP_URL = re.compile(r"^https?://\S+$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_channel_config(channel_type, config):
    """Return an error message for an invalid channel config, or None."""
    if channel_type not in CHANNEL_SENDERS:
        return "Invalid integration type. Must be: discord, slack, webhook, or email"
    if not isinstance(config, dict):
        return "Config must be an object"

    if channel_type == "discord":
        if not config.get("webhook_url"):
            return "Discord integration requires webhook_url in config"
        if not _DISCORD_WEBHOOK.match(config["webhook_url"]):
            return "Invalid Discord webhook URL format"
    elif channel_type == "slack":
        if not config.get("webhook_url"):
            return "Slack integration requires webhook_url in config"
        if not _SLACK_WEBHOOK.match(config["webhook_url"]):
            return "Invalid Slack webhook URL format"
    elif channel_type == "webhook":
        if not config.get("url") or not _HTTP_URL.match(config["url"]):
            return "Webhook integration requires a valid url in config"
        headers = config.get("headers")
        if headers is not None and not (
            isinstance(headers, dict)
            and all(isinstance(value, str) for value in headers.values())
        ):
            return "Webhook headers must be an object of strings"
    else:
        recipients = config.get("recipients")
        if not isinstance(recipients, list) or not recipients:
            return "Email integration requires a non-empty recipients list"
        if not all(isinstance(item, str) and _EMAIL.match(item) for item in recipients):
            return "Email recipients must be valid addresses"

    return None


def redact_config(channel):
    config = dict(channel.config or {})
    for key in ("webhook_url", "url"):
        if config.get(key):
            config[key] = config[key][:30] + "..."
    if config.get("headers"):
        config["headers"] = {name: "***" for name in config["headers"]}
    return config


__all__ = [
    "EVENT_TYPES",
    "CHANNEL_SENDERS",
    "dispatch",
    "validate_channel_config",
    "redact_config",
]
