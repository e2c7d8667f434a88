from urllib.parse import quote

from flask import current_app

from rankvote.services.security import generate_vote_link_token


def absolute_url(path):
    base_url = current_app.config["BASE_URL"].rstrip("/")
    base_path = (current_app.config.get("BASE_PATH") or "").rstrip("/")
    if base_path and not base_path.startswith("/"):
        base_path = f"/{base_path}"
    if base_path and base_url.endswith(base_path):
        base_path = ""
    return f"{base_url}{base_path}{path}"


def results_url(contest_id):
    return absolute_url(f"/v/{contest_id}/results")


def vote_url(contest_id, signed=True):
    url = absolute_url(f"/v/{contest_id}")
    if signed:
        url = f"{url}?token={quote(generate_vote_link_token(contest_id))}"
    return url
