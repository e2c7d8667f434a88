"""Contest lifecycle actions shared by the scheduler and the admin routes.

Every mutation here re-checks its precondition in the ``UPDATE`` itself so a
concurrent request or a second worker cannot close, notify or link twice.
"""

import logging
from datetime import timedelta

from rankvote.extensions import db
from rankvote.models import ContestNotificationState
from rankvote.services import contests, notifications
from rankvote.services.contest_id import MAX_ID_LENGTH, build_contest_id, unique_contest_id
from rankvote.services.contests import ContestValidationError
from rankvote.services.links import results_url, vote_url
from rankvote.services.voting import tabulate_contest
from rankvote.timeutils import utcnow

logger = logging.getLogger(__name__)

RUNOFF_SUFFIX = "-runoff"


class TieRunoffRejected(Exception):
    def __init__(self, reason, code):
        super().__init__(reason)
        self.reason = reason
        self.code = code


def build_payload(contest, result=None, source=None):
    payload = {
        "title": contest.title,
        "vote_url": vote_url(contest.id),
        "results_url": results_url(contest.id),
        "auto_close_at": contest.auto_close_at,
    }
    if result is not None:
        payload["winner"] = result["winner"]
        payload["tied_options"] = result["tied_options"]
        payload["total_ballots"] = result["total_ballots"]
    else:
        payload["total_ballots"] = len(contest.ballots)
    if source is not None:
        payload["source_results_url"] = results_url(source.id)
    return payload


def _notify_once(contest, event_type, flag, payload, now):
    if not notifications.dispatch(contest.channel, event_type, payload):
        logger.warning(
            "Delivery of %s for contest %s failed; will retry", event_type, contest.id
        )
        return False
    if not contests.claim_notification_flag(contest.id, flag, now):
        logger.info("Flag %s for contest %s was already set", flag, contest.id)
    return True


def notify_created(contest, now=None):
    """Announce a contest that is open at creation; counts as its open notification."""
    if contest.channel is None or contest.is_closed:
        return False
    if contest.recurrence is not None and contest.recurrence.start_at > (now or utcnow()):
        return False
    return _notify_once(
        contest, "vote_created", "open_notified_at", build_payload(contest), now or utcnow()
    )


def notify_opened(contest, now=None):
    db.session.refresh(contest.notification_state)
    if contest.is_closed or contest.notification_state.open_notified_at is not None:
        return False
    return _notify_once(
        contest, "vote_opened", "open_notified_at", build_payload(contest), now or utcnow()
    )


def notify_closed(contest, now=None):
    db.session.refresh(contest.notification_state)
    if not contest.is_closed or contest.notification_state.closed_notified_at is not None:
        return False
    payload = build_payload(contest, result=tabulate_contest(contest))
    return _notify_once(contest, "vote_closed", "closed_notified_at", payload, now or utcnow())


def mark_tie_checked(contest_id, now=None):
    return contests.claim_notification_flag(contest_id, "tie_runoff_checked_at", now)


def _runoff_id(source):
    prefix = source.id[: MAX_ID_LENGTH - len(RUNOFF_SUFFIX)].rstrip("-")
    return unique_contest_id(f"{prefix}{RUNOFF_SUFFIX}", contests.contest_exists)


def _runoff_auto_close(source, now):
    if source.auto_close_at is None:
        return None
    duration = source.auto_close_at - source.created_at
    if duration <= timedelta(0):
        return None
    return now + duration


def trigger_tie_runoff(contest_id, now=None, require_channel=False):
    """Open a runoff between the options a closed contest tied on.

    Raises ``TieRunoffRejected`` when the contest is missing, still open,
    already linked, or did not end in a tie. The link on the source contest is
    claimed before the runoff is inserted, in the same transaction.
    """
    now = now or utcnow()
    source = contests.get_contest(contest_id)
    if source is None:
        raise TieRunoffRejected("Vote not found", "not_found")
    if not source.is_closed:
        raise TieRunoffRejected("Vote must be closed before a runoff", "not_closed")
    if source.tie_runoff_contest_id:
        raise TieRunoffRejected(
            f"Runoff already created: {source.tie_runoff_contest_id}", "already_linked"
        )
    if require_channel and source.channel_id is None:
        raise TieRunoffRejected("Vote has no notification channel", "no_channel")
    if not source.ballots:
        raise TieRunoffRejected("Vote has no ballots", "no_ballots")

    result = tabulate_contest(source)
    if result["winner"] is not None or len(result["tied_options"]) < 2:
        raise TieRunoffRejected("Vote did not end in a tie", "not_a_tie")

    runoff_id = _runoff_id(source)
    claimed = (
        ContestNotificationState.query.filter(
            ContestNotificationState.contest_id == source.id,
            ContestNotificationState.tie_runoff_contest_id.is_(None),
        )
        .update(
            {"tie_runoff_contest_id": runoff_id, "tie_runoff_checked_at": now},
            synchronize_session=False,
        )
    )
    if claimed != 1:
        db.session.rollback()
        raise TieRunoffRejected("Runoff already created", "already_linked")

    runoff = contests.new_contest(
        runoff_id,
        f"{source.title} (Runoff)",
        result["tied_options"],
        admin_secret_hash=source.admin_secret_hash,
        voting_secret_hash=source.voting_secret_hash,
        voter_names_required=source.voter_names_required,
        auto_close_at=_runoff_auto_close(source, now),
        channel_id=source.channel_id,
        source_contest_id=source.id,
        created_at=now,
    )
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Created runoff %s for tied contest %s", runoff.id, source.id)

    if runoff.channel is not None:
        payload = build_payload(runoff, result=result, source=source)
        if not notifications.dispatch(runoff.channel, "runoff_required", payload):
            logger.warning("Runoff notification for contest %s was not delivered", runoff.id)
    return runoff


def next_start_at(recurrence):
    return recurrence.start_at + timedelta(days=recurrence.period_days)


def next_auto_close_at(start_at, vote_duration_hours):
    return start_at + timedelta(hours=vote_duration_hours)


def create_successor(previous, now=None):
    """Copy a recurring contest forward into its next period."""
    now = now or utcnow()
    recurrence = previous.recurrence
    if recurrence is None or not recurrence.active:
        raise ContestValidationError("Recurrence is not active")
    if contests.has_open_in_group(recurrence.group_id):
        raise ContestValidationError("Recurrence group already has an open vote", status=409)

    start_at = next_start_at(recurrence)
    auto_close_at = next_auto_close_at(start_at, recurrence.vote_duration_hours)
    contest_id = unique_contest_id(
        build_contest_id(
            previous.title, close_at=auto_close_at, start_at=start_at, fmt=recurrence.id_format
        ),
        contests.contest_exists,
    )

    successor = contests.new_contest(
        contest_id,
        previous.title,
        previous.options,
        admin_secret_hash=previous.admin_secret_hash,
        voting_secret_hash=previous.voting_secret_hash,
        voter_names_required=previous.voter_names_required,
        auto_close_at=auto_close_at,
        channel_id=previous.channel_id,
        recurrence={
            "group_id": recurrence.group_id,
            "period_days": recurrence.period_days,
            "vote_duration_hours": recurrence.vote_duration_hours,
            "start_at": start_at,
            "id_format": recurrence.id_format,
        },
        created_at=now,
    )
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(
        "Spawned contest %s for recurrence group %s", successor.id, recurrence.group_id
    )
    return successor


def trigger_next_instance(group_id, now=None):
    """Start the next instance of a group now, closing the current one if open."""
    now = now or utcnow()
    latest = contests.latest_in_group(group_id)
    if latest is None:
        raise ContestValidationError("Recurrence group not found", status=404)
    if not latest.recurrence.active:
        raise ContestValidationError("Recurrence group is stopped")

    if not latest.is_closed:
        contests.close_contest(latest.id, now)
    return create_successor(latest, now)
