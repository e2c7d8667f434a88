from datetime import datetime, timedelta

import pytest

from rankvote.models import Ballot, Contest, ContestRecurrence
from rankvote.services import contests, lifecycle
from rankvote.services.contest_id import is_valid_contest_id
from rankvote.services.contests import ContestValidationError
from rankvote.services.security import verify_secret

NOW = datetime(2026, 3, 2, 12, 0, 0)


def _recurrence(start_at=NOW, period_days=7, duration=24, id_format=None):
    return {
        "period_days": period_days,
        "vote_duration_hours": duration,
        "start_at": start_at,
        "id_format": id_format,
    }


def test_create_contest_hashes_secrets_and_creates_state(db_session):
    contest, admin_secret = contests.create_contest(
        "Team Lunch", ["Pizza", "Tacos"], voting_secret="let-me-vote", now=NOW
    )

    assert is_valid_contest_id(contest.id)
    assert len(contest.id) == 8
    assert verify_secret(admin_secret, contest.admin_secret_hash)
    assert verify_secret("let-me-vote", contest.voting_secret_hash)
    assert contest.notification_state is not None
    assert contest.recurrence is None


def test_options_must_be_unique_ignoring_case(db_session):
    with pytest.raises(ContestValidationError, match="Duplicate option"):
        contests.create_contest("Lunch", ["Pizza", "pizza "], now=NOW)


def test_needs_two_non_empty_options(db_session):
    with pytest.raises(ContestValidationError, match="At least 2"):
        contests.create_contest("Lunch", ["Pizza", "  "], now=NOW)


def test_auto_close_must_be_in_the_future(db_session):
    with pytest.raises(ContestValidationError, match="future"):
        contests.create_contest(
            "Lunch", ["Pizza", "Tacos"], auto_close_at=NOW - timedelta(minutes=1), now=NOW
        )


def test_requested_id_is_canonicalized_and_collisions_are_409(db_session):
    contest, _ = contests.create_contest("Lunch", ["Pizza", "Tacos"], contest_id="Team-Lunch", now=NOW)
    assert contest.id == "team-lunch"

    with pytest.raises(ContestValidationError) as excinfo:
        contests.create_contest("Lunch", ["Pizza", "Tacos"], contest_id="team-lunch", now=NOW)
    assert excinfo.value.status == 409


def test_invalid_requested_id_is_rejected(db_session):
    with pytest.raises(ContestValidationError, match="Vote id"):
        contests.create_contest("Lunch", ["Pizza", "Tacos"], contest_id="a!", now=NOW)


def test_recurring_contest_uses_template_id_and_start_window(db_session):
    contest, _ = contests.create_contest(
        "Friday Lunch",
        ["Pizza", "Tacos"],
        recurrence=_recurrence(start_at=datetime(2026, 3, 6, 12, 0, 0)),
        now=NOW,
    )

    assert contest.id == "friday-lunch-03-07-2026"
    assert contest.auto_close_at == datetime(2026, 3, 7, 12, 0, 0)
    assert contest.recurrence.period_days == 7
    assert contest.recurrence.active is True
    assert len(contest.recurrence.group_id) == 32


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"period_days": 6}, "periodDays"),
        ({"duration": 0}, "voteDurationHours"),
        ({"start_at": None}, "recurrenceStartAt"),
        ({"id_format": "{title}-{week}"}, "Unknown tokens"),
    ],
)
def test_recurrence_validation(db_session, overrides, message):
    with pytest.raises(ContestValidationError, match=message):
        contests.create_contest("Weekly", ["A", "B"], recurrence=_recurrence(**overrides), now=NOW)


def test_new_recurrence_groups_are_refused_at_the_cap(app, db_session):
    app.config["MAX_ACTIVE_RECURRING_GROUPS"] = 1
    contests.create_contest("Weekly", ["A", "B"], recurrence=_recurrence(), now=NOW)

    with pytest.raises(ContestValidationError, match="limit reached"):
        contests.create_contest("Other", ["A", "B"], recurrence=_recurrence(), now=NOW)
    assert contests.count_active_recurring_groups() == 1


def test_close_contest_only_closes_once(db_session, contest_factory):
    contest = contest_factory()

    assert contests.close_contest(contest.id, NOW) is True
    assert contests.close_contest(contest.id, NOW + timedelta(hours=1)) is False
    assert db_session.get(Contest, contest.id).closed_at == NOW


def test_reopen_clears_expired_auto_close(db_session, contest_factory):
    contest = contest_factory(auto_close_at=NOW + timedelta(hours=1))
    contests.close_contest(contest.id, NOW + timedelta(hours=1))

    contests.reopen_contest(contest, now=NOW + timedelta(hours=2))

    assert contest.closed_at is None
    assert contest.auto_close_at is None


def test_reopen_an_open_contest_is_rejected(db_session, contest_factory):
    contest = contest_factory()

    with pytest.raises(ContestValidationError, match="already open"):
        contests.reopen_contest(contest)


def test_update_options_truncates_ballots(db_session, contest_factory):
    contest = contest_factory(
        ballots=[["Pizza", "Tacos", "Sushi"], ["Sushi", "Pizza"], ["Tacos"]]
    )

    truncated = contests.update_options(contest, ["Pizza", "Tacos", "Burgers"])

    assert truncated == 2
    rankings = [ballot.rankings for ballot in contests.list_ballots(contest)]
    assert rankings == [["Pizza", "Tacos"], ["Pizza"], ["Tacos"]]
    assert contest.options == ["Pizza", "Tacos", "Burgers"]


def test_append_options_deduplicates_ignoring_case(db_session, contest_factory):
    contest = contest_factory(options=("Pizza", "Tacos"))

    added = contests.append_options(contest, ["pizza", "Ramen", " ramen ", ""])

    assert added == ["Ramen"]
    assert contest.options == ["Pizza", "Tacos", "Ramen"]


def test_create_ballot_validates_rankings(db_session, contest_factory):
    contest = contest_factory()

    with pytest.raises(ContestValidationError, match="repeat"):
        contests.create_ballot(contest, ["Pizza", "Pizza"], now=NOW)
    with pytest.raises(ContestValidationError, match="Unknown option"):
        contests.create_ballot(contest, ["Pizza", "Ramen"], now=NOW)
    with pytest.raises(ContestValidationError, match="non-empty"):
        contests.create_ballot(contest, [], now=NOW)


def test_create_ballot_with_write_in(db_session, contest_factory):
    contest = contest_factory()

    ballot = contests.create_ballot(
        contest, ["Ramen", "Pizza"], custom_options=["Ramen"], now=NOW
    )

    assert ballot.rankings == ["Ramen", "Pizza"]
    assert "Ramen" in db_session.get(Contest, contest.id).options


def test_rejected_ballot_does_not_keep_write_ins(db_session, contest_factory):
    contest = contest_factory()

    with pytest.raises(ContestValidationError):
        contests.create_ballot(contest, ["Ramen", "Ramen"], custom_options=["Ramen"], now=NOW)

    assert "Ramen" not in db_session.get(Contest, contest.id).options


def test_voter_name_required_when_configured(db_session, contest_factory):
    contest = contest_factory(voter_names_required=True)

    with pytest.raises(ContestValidationError, match="Voter name"):
        contests.create_ballot(contest, ["Pizza"], voter_name="  ", now=NOW)

    ballot = contests.create_ballot(contest, ["Pizza"], voter_name="Sam", now=NOW)
    assert ballot.voter_name == "Sam"


def test_ballots_after_auto_close_are_refused(db_session, contest_factory):
    contest = contest_factory(auto_close_at=NOW + timedelta(hours=1))

    with pytest.raises(ContestValidationError) as excinfo:
        contests.create_ballot(contest, ["Pizza"], now=NOW + timedelta(hours=2))

    assert excinfo.value.status == 403
    assert db_session.get(Contest, contest.id).is_closed


def test_delete_contest_cascades_to_ballots(db_session, contest_factory):
    contest = contest_factory(ballots=[["Pizza"], ["Tacos"]])
    contest_id = contest.id

    contests.delete_contest(contest)

    assert db_session.get(Contest, contest_id) is None
    assert Ballot.query.filter_by(contest_id=contest_id).count() == 0


def test_delete_ballot_scoped_to_contest(db_session, contest_factory):
    contest = contest_factory(ballots=[["Pizza"]])
    other = contest_factory(title="Other")
    ballot_id = contests.list_ballots(contest)[0].id

    assert contests.delete_ballot(other, ballot_id) is False
    assert contests.delete_ballot(contest, ballot_id) is True


def test_due_auto_close_lists_only_expired_open_contests(db_session, contest_factory):
    expired = contest_factory(title="Expired", auto_close_at=NOW + timedelta(hours=1))
    contest_factory(title="Later", auto_close_at=NOW + timedelta(days=2))
    contest_factory(title="Forever")

    due = contests.due_auto_close(NOW + timedelta(hours=3))

    assert [contest.id for contest in due] == [expired.id]


def test_due_recurrence_spawn_picks_latest_closed_instance(db_session):
    contest, _ = contests.create_contest("Weekly", ["A", "B"], recurrence=_recurrence(), now=NOW)

    assert contests.due_recurrence_spawn(NOW + timedelta(days=8)) == []

    contests.close_contest(contest.id, NOW + timedelta(days=1))
    assert contests.due_recurrence_spawn(NOW + timedelta(days=6)) == []
    due = contests.due_recurrence_spawn(NOW + timedelta(days=7))
    assert [item.id for item in due] == [contest.id]


def test_stop_recurrence_group(db_session):
    contest, _ = contests.create_contest("Weekly", ["A", "B"], recurrence=_recurrence(), now=NOW)
    group_id = contest.recurrence.group_id

    assert contests.stop_recurrence_group(group_id) == 1
    assert contests.stop_recurrence_group(group_id) == 0
    assert ContestRecurrence.query.filter_by(group_id=group_id, active=True).count() == 0
    assert contests.count_active_recurring_groups() == 0


def test_close_expired_contests(db_session, contest_factory):
    contest_factory(title="One", auto_close_at=NOW + timedelta(minutes=5))
    contest_factory(title="Two", auto_close_at=NOW + timedelta(minutes=10))

    assert contests.close_expired_contests(NOW + timedelta(hours=1)) == 2
    assert contests.close_expired_contests(NOW + timedelta(hours=1)) == 0


def test_live_contests_paginated(db_session, contest_factory):
    for index in range(3):
        contest_factory(title=f"Poll {index}", now=NOW + timedelta(minutes=index))
    contest_factory(title="Closed", closed=True)

    page = contests.live_contests_paginated(page=1, per_page=2)

    assert page.total == 3
    assert [contest.title for contest in page.items] == ["Poll 2", "Poll 1"]


def test_reopen_refuses_a_second_open_vote_in_the_group(db_session):
    first, _ = contests.create_contest("Weekly", ["A", "B"], recurrence=_recurrence(), now=NOW)
    contests.close_contest(first.id, NOW + timedelta(days=1))
    successor = lifecycle.create_successor(first, NOW + timedelta(days=7))

    with pytest.raises(ContestValidationError) as excinfo:
        contests.reopen_contest(first, now=NOW + timedelta(days=7))

    assert excinfo.value.status == 409
    db_session.expire_all()
    assert db_session.get(Contest, first.id).is_closed
    assert not db_session.get(Contest, successor.id).is_closed


def test_reopen_a_recurring_vote_when_the_group_is_idle(db_session):
    contest, _ = contests.create_contest("Weekly", ["A", "B"], recurrence=_recurrence(), now=NOW)
    contests.close_contest(contest.id, NOW + timedelta(hours=2))

    contests.reopen_contest(contest, now=NOW + timedelta(hours=3))

    assert contest.closed_at is None


@pytest.mark.parametrize(
    "field",
    ["contest_id", "admin_secret", "voting_secret"],
)
def test_non_string_secrets_and_ids_are_rejected(db_session, field):
    with pytest.raises(ContestValidationError, match="must be a string"):
        contests.create_contest("Lunch", ["A", "B"], now=NOW, **{field: 12345})


def test_non_string_id_format_is_rejected(db_session):
    with pytest.raises(ContestValidationError, match="recurrenceIdFormat"):
        contests.create_contest("Weekly", ["A", "B"], recurrence=_recurrence(id_format=5), now=NOW)
