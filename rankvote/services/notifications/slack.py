from rankvote.services.notifications.transport import post_json
from rankvote.timeutils import isoformat

HEADERS = {
    "vote_created": "New Vote: {title}",
    "vote_opened": "Voting Open: {title}",
    "vote_closed": "Voting Closed: {title}",
    "runoff_required": "Runoff Required: {title}",
}


def _button(text, url, primary=False):
    button = {"type": "button", "text": {"type": "plain_text", "text": text}, "url": url}
    if primary:
        button["style"] = "primary"
    return button


def build_blocks(event_type, payload):
    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": HEADERS[event_type].format(title=payload["title"])},
        }
    ]

    if event_type == "vote_closed":
        winner = payload.get("winner") or "Tie or no clear winner"
        blocks.append(
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Winner:*\n{winner}"},
                    {"type": "mrkdwn", "text": f"*Total Votes:*\n{payload.get('total_ballots', 0)}"},
                ],
            }
        )
        blocks.append(
            {
                "type": "actions",
                "elements": [_button("View Full Results", payload["results_url"], primary=True)],
            }
        )
        return blocks

    if event_type == "runoff_required":
        tied = ", ".join(payload.get("tied_options", []))
        blocks.append(
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"The previous round tied between *{tied}*."},
            }
        )
    else:
        blocks.append(
            {"type": "section", "text": {"type": "mrkdwn", "text": "Voting is now open!"}}
        )

    blocks.append(
        {
            "type": "actions",
            "elements": [
                _button("Cast Vote", payload["vote_url"], primary=True),
                _button("View Results", payload["results_url"]),
            ],
        }
    )

    if payload.get("auto_close_at"):
        blocks.append(
            {
                "type": "context",
                "elements": [
                    {"type": "mrkdwn", "text": f"Voting closes {isoformat(payload['auto_close_at'])}"}
                ],
            }
        )
    return blocks


def send(config, event_type, payload):
    return post_json(config["webhook_url"], {"blocks": build_blocks(event_type, payload)})
