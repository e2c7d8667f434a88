from rankvote.services.links import results_url
from rankvote.timeutils import isoformat


def serialize_contest(contest, include_ballot_count=True):
    data = {
        "id": contest.id,
        "title": contest.title,
        "options": list(contest.options),
        "voterNamesRequired": contest.voter_names_required,
        "hasVotingSecret": contest.voting_secret_hash is not None,
        "createdAt": isoformat(contest.created_at),
        "closedAt": isoformat(contest.closed_at),
        "autoCloseAt": isoformat(contest.auto_close_at),
        "isClosed": contest.is_closed,
        "channelId": contest.channel_id,
        "sourceContestId": contest.source_contest_id,
        "tieRunoffContestId": contest.tie_runoff_contest_id,
        "resultsUrl": results_url(contest.id),
        "recurrence": None,
    }

    recurrence = contest.recurrence
    if recurrence is not None:
        data["recurrence"] = {
            "groupId": recurrence.group_id,
            "periodDays": recurrence.period_days,
            "voteDurationHours": recurrence.vote_duration_hours,
            "startAt": isoformat(recurrence.start_at),
            "idFormat": recurrence.id_format,
            "active": recurrence.active,
        }

    if include_ballot_count:
        data["ballotCount"] = len(contest.ballots)
    return data


def serialize_ballot(ballot):
    return {
        "id": ballot.id,
        "rankings": list(ballot.rankings),
        "voterName": ballot.voter_name,
        "createdAt": isoformat(ballot.created_at),
    }


def serialize_channel(channel, redacted_config):
    return {
        "id": channel.id,
        "name": channel.name,
        "type": channel.type,
        "config": redacted_config,
        "createdAt": isoformat(channel.created_at),
    }


def serialize_api_key(api_key):
    return {
        "id": api_key.id,
        "name": api_key.name,
        "prefix": api_key.prefix,
        "createdAt": isoformat(api_key.created_at),
        "lastUsedAt": isoformat(api_key.last_used_at),
    }
