import logging
import smtplib
from email.message import EmailMessage

from flask import current_app

from rankvote.timeutils import isoformat

logger = logging.getLogger(__name__)

SUBJECTS = {
    "vote_created": "New vote: {title}",
    "vote_opened": "Voting open: {title}",
    "vote_closed": "Voting closed: {title}",
    "runoff_required": "Runoff required: {title}",
}


def build_body(event_type, payload):
    lines = []
    if event_type == "vote_closed":
        lines.append(f"Voting has ended for {payload['title']}.")
        if payload.get("winner"):
            lines.append(f"Winner: {payload['winner']}")
        else:
            lines.append("Result: tie or no clear winner")
        lines.append(f"Total votes: {payload.get('total_ballots', 0)}")
    elif event_type == "runoff_required":
        lines.append(f"The previous round of {payload['title']} ended in a pure tie.")
        lines.append(f"Tied options: {', '.join(payload.get('tied_options', []))}")
        lines.append(f"Cast your runoff vote here: {payload['vote_url']}")
    else:
        lines.append(f"Voting is open for {payload['title']}.")
        lines.append(f"Cast your vote here: {payload['vote_url']}")

    if payload.get("auto_close_at"):
        lines.append(f"Voting closes at {isoformat(payload['auto_close_at'])}.")
    lines.append(f"Results: {payload['results_url']}")
    return "\n\n".join(lines)


def send(config, event_type, payload):
    app_config = current_app.config
    if not app_config["MAIL_USERNAME"] or not app_config["MAIL_PASSWORD"]:
        logger.warning("Email channel used but mail credentials are not configured")
        return False

    msg = EmailMessage()
    msg["Subject"] = SUBJECTS[event_type].format(title=payload["title"])
    msg["From"] = app_config["MAIL_DEFAULT_SENDER"]
    msg["To"] = ", ".join(config["recipients"])
    msg.set_content(build_body(event_type, payload))

    timeout = app_config.get("NOTIFICATION_TIMEOUT_SECONDS", 10)
    try:
        with smtplib.SMTP(
            app_config["MAIL_SERVER"], app_config["MAIL_PORT"], timeout=timeout
        ) as server:
            if app_config["MAIL_USE_TLS"]:
                server.starttls()
            server.login(app_config["MAIL_USERNAME"], app_config["MAIL_PASSWORD"])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("Notification email failed: %s", exc)
        return False

    logger.info("Notification email sent to %s", msg["To"])
    return True
