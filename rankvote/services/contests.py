import uuid
from datetime import timedelta

from flask import current_app
from sqlalchemy import distinct, func

from rankvote.extensions import db
from rankvote.models import (
    Ballot,
    Contest,
    ContestNotificationState,
    ContestRecurrence,
    NotificationChannel,
)
from rankvote.services.contest_id import (
    build_contest_id,
    canonicalize_contest_id,
    generate_contest_id,
    is_valid_contest_id,
    unique_contest_id,
    validate_id_format,
)
from rankvote.services.security import generate_secret, hash_secret
from rankvote.timeutils import utcnow

MAX_TITLE_LENGTH = 200
MAX_OPTION_LENGTH = 200
MAX_VOTER_NAME_LENGTH = 200
MIN_PERIOD_DAYS = 7
MIN_DURATION_HOURS = 1


class ContestValidationError(ValueError):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


def get_contest(contest_id):
    if not contest_id:
        return None
    return db.session.get(Contest, canonicalize_contest_id(contest_id))


def contest_exists(contest_id):
    return db.session.get(Contest, contest_id) is not None


def clean_title(title):
    title = (title or "").strip() if isinstance(title, str) else ""
    if not title:
        raise ContestValidationError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ContestValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def clean_options(options, minimum=2):
    if not isinstance(options, list):
        raise ContestValidationError("Options must be a list")

    cleaned = []
    seen = set()
    for option in options:
        if not isinstance(option, str):
            raise ContestValidationError("Options must be strings")
        option = option.strip()
        if not option:
            continue
        if len(option) > MAX_OPTION_LENGTH:
            raise ContestValidationError(
                f"Options must be at most {MAX_OPTION_LENGTH} characters"
            )
        if option.lower() in seen:
            raise ContestValidationError(f"Duplicate option: {option}")
        seen.add(option.lower())
        cleaned.append(option)

    if len(cleaned) < minimum:
        raise ContestValidationError(f"At least {minimum} options are required")
    return cleaned


def _validate_recurrence(recurrence):
    period_days = recurrence.get("period_days")
    duration_hours = recurrence.get("vote_duration_hours")
    start_at = recurrence.get("start_at")
    id_format = recurrence.get("id_format") or None

    if id_format is not None and not isinstance(id_format, str):
        raise ContestValidationError("recurrenceIdFormat must be a string")

    if not isinstance(period_days, int) or isinstance(period_days, bool):
        raise ContestValidationError("periodDays must be a whole number")
    if period_days < MIN_PERIOD_DAYS:
        raise ContestValidationError(f"periodDays must be at least {MIN_PERIOD_DAYS}")
    if not isinstance(duration_hours, int) or isinstance(duration_hours, bool):
        raise ContestValidationError("voteDurationHours must be a whole number")
    if duration_hours < MIN_DURATION_HOURS:
        raise ContestValidationError(
            f"voteDurationHours must be at least {MIN_DURATION_HOURS}"
        )
    if duration_hours > period_days * 24:
        raise ContestValidationError("voteDurationHours cannot exceed the recurrence period")
    if start_at is None:
        raise ContestValidationError("recurrenceStartAt is required for recurring votes")

    if id_format is not None:
        unknown = validate_id_format(id_format)
        if unknown:
            raise ContestValidationError(
                f"Unknown tokens in recurrenceIdFormat: {', '.join(unknown)}"
            )

    return {
        "group_id": recurrence.get("group_id") or uuid.uuid4().hex,
        "period_days": period_days,
        "vote_duration_hours": duration_hours,
        "start_at": start_at,
        "id_format": id_format,
    }


def new_contest(
    contest_id,
    title,
    options,
    admin_secret_hash,
    voting_secret_hash=None,
    voter_names_required=True,
    auto_close_at=None,
    channel_id=None,
    recurrence=None,
    source_contest_id=None,
    created_at=None,
):
    """Add a contest with its owned sub-records to the session without committing."""
    contest = Contest(
        id=contest_id,
        title=title,
        options=list(options),
        admin_secret_hash=admin_secret_hash,
        voting_secret_hash=voting_secret_hash,
        voter_names_required=voter_names_required,
        created_at=created_at or utcnow(),
        auto_close_at=auto_close_at,
        channel_id=channel_id,
        source_contest_id=source_contest_id,
    )
    contest.notification_state = ContestNotificationState()
    if recurrence:
        contest.recurrence = ContestRecurrence(
            group_id=recurrence["group_id"],
            period_days=recurrence["period_days"],
            vote_duration_hours=recurrence["vote_duration_hours"],
            start_at=recurrence["start_at"],
            id_format=recurrence.get("id_format"),
            active=True,
        )
    db.session.add(contest)
    return contest


def create_contest(
    title,
    options,
    contest_id=None,
    admin_secret=None,
    voting_secret=None,
    voter_names_required=True,
    auto_close_at=None,
    channel_id=None,
    recurrence=None,
    now=None,
):
    """Validate and persist a new contest.

    Returns ``(contest, admin_secret)``; the plaintext admin secret is only
    available here since just its hash is stored.
    """
    now = now or utcnow()
    title = clean_title(title)
    options = clean_options(options)

    for field, value in (
        ("id", contest_id),
        ("adminSecret", admin_secret),
        ("votingSecret", voting_secret),
    ):
        if value is not None and not isinstance(value, str):
            raise ContestValidationError(f"{field} must be a string")

    if auto_close_at is not None and auto_close_at <= now:
        raise ContestValidationError("autoCloseAt must be in the future")

    if channel_id is not None and db.session.get(NotificationChannel, channel_id) is None:
        raise ContestValidationError("Notification channel not found")

    recurrence_fields = None
    if recurrence is not None:
        recurrence_fields = _validate_recurrence(recurrence)
        max_groups = current_app.config["MAX_ACTIVE_RECURRING_GROUPS"]
        if count_active_recurring_groups() >= max_groups:
            raise ContestValidationError(
                f"Recurring vote limit reached ({max_groups} active groups)"
            )
        if auto_close_at is None:
            auto_close_at = recurrence_fields["start_at"] + timedelta(
                hours=recurrence_fields["vote_duration_hours"]
            )

    if contest_id:
        contest_id = canonicalize_contest_id(contest_id.strip())
        if not is_valid_contest_id(contest_id):
            raise ContestValidationError(
                "Vote id must be 3-32 characters of lowercase letters, digits or dashes"
            )
        if contest_exists(contest_id):
            raise ContestValidationError("Vote id is already taken", status=409)
    elif recurrence_fields is not None:
        contest_id = unique_contest_id(
            build_contest_id(
                title,
                close_at=auto_close_at,
                start_at=recurrence_fields["start_at"],
                fmt=recurrence_fields["id_format"],
            ),
            contest_exists,
        )
    else:
        contest_id = generate_contest_id()
        while contest_exists(contest_id):
            contest_id = generate_contest_id()

    admin_secret = admin_secret or generate_secret()
    contest = new_contest(
        contest_id,
        title,
        options,
        admin_secret_hash=hash_secret(admin_secret),
        voting_secret_hash=hash_secret(voting_secret) if voting_secret else None,
        voter_names_required=voter_names_required,
        auto_close_at=auto_close_at,
        channel_id=channel_id,
        recurrence=recurrence_fields,
        created_at=now,
    )
    db.session.commit()
    current_app.logger.info("Created contest %s", contest.id)
    return contest, admin_secret


def close_contest(contest_id, now=None):
    """Close the contest unless it is already closed; returns whether it closed."""
    closed = (
        Contest.query.filter(Contest.id == contest_id, Contest.closed_at.is_(None))
        .update({"closed_at": now or utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    return closed == 1


def close_if_expired(contest, now=None):
    now = now or utcnow()
    if contest.is_closed or contest.auto_close_at is None or contest.auto_close_at > now:
        return False
    closed = close_contest(contest.id, now)
    db.session.refresh(contest)
    return closed


def reopen_contest(contest, now=None):
    now = now or utcnow()
    if not contest.is_closed:
        raise ContestValidationError("Vote is already open")
    if len(contest.options) < 2:
        raise ContestValidationError("At least 2 options are required")
    if contest.recurrence is not None and has_open_in_group(contest.recurrence.group_id):
        raise ContestValidationError("Recurrence group already has an open vote", status=409)

    contest.closed_at = None
    if contest.auto_close_at is not None and contest.auto_close_at <= now:
        contest.auto_close_at = None

    # Ballots can change while reopened, so an unlinked contest is checked for a tie again.
    state = contest.notification_state
    if state is not None and state.tie_runoff_contest_id is None:
        state.tie_runoff_checked_at = None

    db.session.commit()
    return contest


def rename_contest(contest, title):
    contest.title = clean_title(title)
    db.session.commit()
    return contest


def update_options(contest, options):
    """Replace the option list, stripping removed options from existing ballots."""
    options = clean_options(options)
    allowed = set(options)

    truncated = 0
    for ballot in contest.ballots:
        kept = [option for option in ballot.rankings if option in allowed]
        if kept != ballot.rankings:
            ballot.rankings = kept
            truncated += 1

    contest.options = options
    db.session.commit()

    if truncated:
        current_app.logger.warning(
            "Options changed on contest %s; truncated %s ballot(s)", contest.id, truncated
        )
    return truncated


def append_options(contest, custom_options):
    """Add write-in options not already present (case-insensitive); returns the added ones."""
    if not custom_options:
        return []
    if not isinstance(custom_options, list):
        raise ContestValidationError("customOptions must be a list")

    existing = {option.lower() for option in contest.options}
    added = []
    for option in custom_options:
        if not isinstance(option, str):
            raise ContestValidationError("customOptions must be strings")
        option = option.strip()
        if not option or option.lower() in existing:
            continue
        if len(option) > MAX_OPTION_LENGTH:
            raise ContestValidationError(
                f"Options must be at most {MAX_OPTION_LENGTH} characters"
            )
        existing.add(option.lower())
        added.append(option)

    if added:
        contest.options = list(contest.options) + added
    return added


def delete_contest(contest):
    db.session.delete(contest)
    db.session.commit()


def validate_rankings(contest, rankings):
    if not isinstance(rankings, list) or not rankings:
        raise ContestValidationError("Rankings must be a non-empty list")
    if not all(isinstance(option, str) for option in rankings):
        raise ContestValidationError("Rankings must be option labels")
    if len(set(rankings)) != len(rankings):
        raise ContestValidationError("Rankings cannot repeat an option")

    unknown = [option for option in rankings if option not in contest.options]
    if unknown:
        raise ContestValidationError(f"Unknown option: {unknown[0]}")
    return list(rankings)


def create_ballot(contest, rankings, voter_name="", custom_options=None, now=None):
    now = now or utcnow()
    close_if_expired(contest, now)
    if contest.is_closed:
        raise ContestValidationError("Voting is closed for this vote", status=403)

    voter_name = (voter_name or "").strip() if isinstance(voter_name, str) else ""
    if contest.voter_names_required and not voter_name:
        raise ContestValidationError("Voter name is required")
    if len(voter_name) > MAX_VOTER_NAME_LENGTH:
        raise ContestValidationError(
            f"Voter name must be at most {MAX_VOTER_NAME_LENGTH} characters"
        )

    try:
        append_options(contest, custom_options)
        rankings = validate_rankings(contest, rankings)
    except ContestValidationError:
        db.session.rollback()
        raise

    ballot = Ballot(
        contest_id=contest.id, rankings=rankings, voter_name=voter_name, created_at=now
    )
    db.session.add(ballot)
    db.session.commit()
    return ballot


def list_ballots(contest):
    return Ballot.query.filter_by(contest_id=contest.id).order_by(Ballot.id).all()


def delete_ballot(contest, ballot_id):
    deleted = Ballot.query.filter_by(contest_id=contest.id, id=ballot_id).delete(
        synchronize_session=False
    )
    db.session.commit()
    return deleted == 1


def claim_notification_flag(contest_id, field, now=None):
    """Set a one-shot flag if it is still unset; returns whether this call set it."""
    column = getattr(ContestNotificationState, field)
    updated = ContestNotificationState.query.filter(
        ContestNotificationState.contest_id == contest_id, column.is_(None)
    ).update({field: now or utcnow()}, synchronize_session=False)
    db.session.commit()
    return updated == 1


def due_auto_close(now):
    return (
        Contest.query.filter(
            Contest.closed_at.is_(None),
            Contest.auto_close_at.isnot(None),
            Contest.auto_close_at <= now,
        )
        .order_by(Contest.auto_close_at)
        .all()
    )


def due_close_notification():
    return (
        Contest.query.join(ContestNotificationState)
        .filter(
            Contest.closed_at.isnot(None),
            Contest.channel_id.isnot(None),
            ContestNotificationState.closed_notified_at.is_(None),
        )
        .order_by(Contest.closed_at)
        .all()
    )


def due_open_notification(now):
    return (
        Contest.query.join(ContestNotificationState)
        .join(ContestRecurrence)
        .filter(
            Contest.closed_at.is_(None),
            Contest.channel_id.isnot(None),
            ContestRecurrence.start_at <= now,
            ContestNotificationState.open_notified_at.is_(None),
        )
        .order_by(ContestRecurrence.start_at)
        .all()
    )


def due_tie_runoff():
    has_ballots = db.session.query(Ballot.id).filter(Ballot.contest_id == Contest.id).exists()
    return (
        Contest.query.join(ContestNotificationState)
        .filter(
            Contest.closed_at.isnot(None),
            Contest.channel_id.isnot(None),
            ContestNotificationState.tie_runoff_contest_id.is_(None),
            ContestNotificationState.tie_runoff_checked_at.is_(None),
            has_ballots,
        )
        .order_by(Contest.closed_at)
        .all()
    )


def due_recurrence_spawn(now, limit=None):
    """Latest closed instances of active groups whose next period has started."""
    rows = (
        ContestRecurrence.query.filter_by(active=True)
        .order_by(ContestRecurrence.group_id, ContestRecurrence.start_at.desc())
        .all()
    )

    latest_by_group = {}
    open_groups = set()
    for recurrence in rows:
        latest_by_group.setdefault(recurrence.group_id, recurrence)
        if not recurrence.contest.is_closed:
            open_groups.add(recurrence.group_id)

    due = []
    for group_id, recurrence in latest_by_group.items():
        if group_id in open_groups:
            continue
        if recurrence.start_at + timedelta(days=recurrence.period_days) <= now:
            due.append(recurrence.contest)

    due.sort(key=lambda contest: contest.recurrence.start_at)
    if limit is not None:
        due = due[:limit]
    return due


def count_active_recurring_groups():
    return (
        db.session.query(func.count(distinct(ContestRecurrence.group_id)))
        .filter(ContestRecurrence.active.is_(True))
        .scalar()
        or 0
    )


def latest_in_group(group_id):
    recurrence = (
        ContestRecurrence.query.filter_by(group_id=group_id)
        .order_by(ContestRecurrence.start_at.desc())
        .first()
    )
    return recurrence.contest if recurrence else None


def has_open_in_group(group_id):
    return (
        db.session.query(ContestRecurrence.contest_id)
        .join(Contest)
        .filter(ContestRecurrence.group_id == group_id, Contest.closed_at.is_(None))
        .first()
        is not None
    )


def stop_recurrence_group(group_id):
    stopped = ContestRecurrence.query.filter_by(group_id=group_id, active=True).update(
        {"active": False}, synchronize_session=False
    )
    db.session.commit()
    return stopped


def close_expired_contests(now=None):
    now = now or utcnow()
    closed = 0
    for contest_id in [contest.id for contest in due_auto_close(now)]:
        if close_contest(contest_id, now):
            closed += 1
    return closed


def live_contests_paginated(page=1, per_page=20):
    return (
        Contest.query.filter(Contest.closed_at.is_(None))
        .order_by(Contest.created_at.desc(), Contest.id)
        .paginate(page=page, per_page=per_page, error_out=False)
    )
