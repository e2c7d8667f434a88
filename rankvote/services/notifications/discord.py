import calendar

from rankvote.services.notifications.transport import post_json
from rankvote.timeutils import isoformat, utcnow

DISCORD_COLORS = {
    "primary": 0x5865F2,
    "success": 0x57F287,
    "warning": 0xFEE75C,
}


def _relative_time(value):
    return f"<t:{calendar.timegm(value.utctimetuple())}:R>"


def _link_fields(payload):
    return [
        {"name": "Vote", "value": f"[Cast your vote]({payload['vote_url']})", "inline": True},
        {"name": "Results", "value": f"[View results]({payload['results_url']})", "inline": True},
    ]


def _created_embed(payload):
    fields = _link_fields(payload)
    if payload.get("auto_close_at"):
        fields.append(
            {"name": "Voting Closes", "value": _relative_time(payload["auto_close_at"]), "inline": False}
        )
    return {
        "title": f"New Vote: {payload['title']}",
        "description": "A new voting session has started!",
        "color": DISCORD_COLORS["primary"],
        "fields": fields,
    }


def _opened_embed(payload):
    embed = _created_embed(payload)
    embed["title"] = f"Voting Open: {payload['title']}"
    embed["description"] = "Voting is now open!"
    return embed


def _closed_embed(payload):
    fields = []
    if payload.get("winner"):
        fields.append({"name": "Winner", "value": payload["winner"], "inline": True})
    elif payload.get("tied_options"):
        fields.append(
            {"name": "Result", "value": f"Tie: {', '.join(payload['tied_options'])}", "inline": True}
        )
    else:
        fields.append({"name": "Result", "value": "Tie or no clear winner", "inline": True})
    fields.append({"name": "Total Votes", "value": str(payload.get("total_ballots", 0)), "inline": True})
    fields.append(
        {
            "name": "Full Results",
            "value": f"[View detailed results]({payload['results_url']})",
            "inline": False,
        }
    )
    return {
        "title": f"Voting Closed: {payload['title']}",
        "description": "Voting has ended!",
        "color": DISCORD_COLORS["success"],
        "fields": fields,
    }


def _runoff_embed(payload):
    fields = [
        {"name": "Tied Options", "value": ", ".join(payload.get("tied_options", [])), "inline": False},
        {"name": "Runoff Vote", "value": f"[Cast runoff vote]({payload['vote_url']})", "inline": True},
        {
            "name": "Runoff Results",
            "value": f"[Track runoff results]({payload['results_url']})",
            "inline": True,
        },
    ]
    if payload.get("source_results_url"):
        fields.append(
            {
                "name": "Previous Round",
                "value": f"[View tied round results]({payload['source_results_url']})",
                "inline": False,
            }
        )
    if payload.get("auto_close_at"):
        fields.append(
            {"name": "Runoff Closes", "value": _relative_time(payload["auto_close_at"]), "inline": False}
        )
    return {
        "title": f"Runoff Required: {payload['title']}",
        "description": "The previous round ended in a pure tie. A runoff vote is now open.",
        "color": DISCORD_COLORS["warning"],
        "fields": fields,
    }


EMBED_BUILDERS = {
    "vote_created": _created_embed,
    "vote_opened": _opened_embed,
    "vote_closed": _closed_embed,
    "runoff_required": _runoff_embed,
}


def send(config, event_type, payload):
    embed = EMBED_BUILDERS[event_type](payload)
    embed["timestamp"] = isoformat(utcnow())
    return post_json(config["webhook_url"], {"embeds": [embed]})
