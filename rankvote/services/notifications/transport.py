import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)


def post_json(url, body, headers=None):
    """POST ``body`` as JSON and report whether the endpoint accepted it.

    Timeouts, connection errors and non-2xx responses all come back as
    ``False`` so callers can leave their one-shot flags unset and retry.
    """
    request_headers = {"Content-Type": "application/json"}
    if headers:
        request_headers.update(headers)

    timeout = current_app.config.get("NOTIFICATION_TIMEOUT_SECONDS", 10)
    try:
        response = requests.post(url, json=body, headers=request_headers, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Notification POST failed: %s", exc)
        return False

    if not response.ok:
        logger.warning(
            "Notification POST rejected: %s - %s", response.status_code, response.text[:500]
        )
        return False

    return True
