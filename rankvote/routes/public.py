from flask import jsonify, redirect, request, url_for
from flask_login import current_user

from rankvote.auth import bearer_token
from rankvote.extensions import db
from rankvote.routes.serializers import serialize_ballot, serialize_contest
from rankvote.services import contests, lifecycle
from rankvote.services.contest_id import canonicalize_contest_id
from rankvote.services.contests import ContestValidationError
from rankvote.services.links import vote_url
from rankvote.services.security import verify_secret, verify_vote_link_token
from rankvote.services.voting import tabulate_contest
from rankvote.timeutils import parse_datetime


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _whole_number(value):
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def _is_contest_admin(contest):
    if current_user.is_authenticated:
        return True
    return verify_secret(bearer_token(request), contest.admin_secret_hash)


def _can_vote(contest, data):
    if contest.voting_secret_hash is None:
        return True
    if verify_secret(data.get("votingSecret"), contest.voting_secret_hash):
        return True
    token = data.get("token") or request.args.get("token")
    return verify_vote_link_token(token, contest.id)


def _validation_error(exc):
    return jsonify({"error": exc.message}), exc.status


def register_public_routes(app):
    @app.route("/v/<contest_id>")
    def vote_link(contest_id):
        return redirect(url_for("get_vote", contest_id=contest_id, token=request.args.get("token")))

    @app.route("/v/<contest_id>/results")
    def results_link(contest_id):
        return redirect(url_for("get_results", contest_id=contest_id))

    @app.route("/api/votes", methods=["POST"])
    def create_vote():
        data = _json_body()

        channel_id = data.get("channelId")
        if channel_id is not None and not current_user.is_authenticated:
            return jsonify({"error": "Admin authorization is required to attach a channel"}), 401

        auto_close_at = None
        if data.get("autoCloseAt"):
            auto_close_at = parse_datetime(data["autoCloseAt"])
            if auto_close_at is None:
                return jsonify({"error": "autoCloseAt must be an ISO-8601 datetime"}), 400

        recurrence = None
        if data.get("recurrenceEnabled"):
            start_at = parse_datetime(data.get("recurrenceStartAt"))
            if data.get("recurrenceStartAt") and start_at is None:
                return jsonify({"error": "recurrenceStartAt must be an ISO-8601 datetime"}), 400
            recurrence = {
                "period_days": _whole_number(data.get("periodDays")),
                "vote_duration_hours": _whole_number(data.get("voteDurationHours")),
                "start_at": start_at,
                "id_format": data.get("recurrenceIdFormat"),
            }

        try:
            contest, admin_secret = contests.create_contest(
                data.get("title"),
                data.get("options"),
                contest_id=data.get("id"),
                admin_secret=data.get("adminSecret"),
                voting_secret=data.get("votingSecret"),
                voter_names_required=bool(data.get("voterNamesRequired", True)),
                auto_close_at=auto_close_at,
                channel_id=channel_id,
                recurrence=recurrence,
            )
        except ContestValidationError as exc:
            return _validation_error(exc)

        if contest.channel is not None:
            lifecycle.notify_created(contest)

        response = serialize_contest(contest)
        response["adminSecret"] = admin_secret
        response["voteUrl"] = vote_url(contest.id)
        return jsonify(response), 201

    @app.route("/api/votes/<contest_id>", methods=["GET"])
    def get_vote(contest_id):
        canonical = canonicalize_contest_id(contest_id)
        if canonical != contest_id:
            return redirect(url_for("get_vote", contest_id=canonical), code=301)

        contest = contests.get_contest(contest_id)
        if contest is None:
            return jsonify({"error": "Vote not found"}), 404
        contests.close_if_expired(contest)
        return jsonify(serialize_contest(contest)), 200

    @app.route("/api/votes/<contest_id>", methods=["PATCH"])
    def update_vote(contest_id):
        contest = contests.get_contest(contest_id)
        if contest is None:
            return jsonify({"error": "Vote not found"}), 404
        if not _is_contest_admin(contest):
            return jsonify({"error": "Invalid admin secret"}), 403

        data = _json_body()
        action = data.get("action")
        try:
            if action == "close":
                if not contests.close_contest(contest.id):
                    return jsonify({"error": "Vote is already closed"}), 400
            elif action == "reopen":
                contests.reopen_contest(contest)
            elif action == "updateOptions":
                truncated = contests.update_options(contest, data.get("options"))
                response = serialize_contest(contest)
                response["truncatedBallots"] = truncated
                return jsonify(response), 200
            elif action == "rename":
                contests.rename_contest(contest, data.get("title"))
            else:
                return jsonify({"error": "Invalid action"}), 400
        except ContestValidationError as exc:
            db.session.rollback()
            return _validation_error(exc)

        return jsonify(serialize_contest(contest)), 200

    @app.route("/api/votes/<contest_id>", methods=["DELETE"])
    def delete_vote(contest_id):
        contest = contests.get_contest(contest_id)
        if contest is None:
            return jsonify({"error": "Vote not found"}), 404
        if not _is_contest_admin(contest):
            return jsonify({"error": "Invalid admin secret"}), 403

        try:
            contests.delete_contest(contest)
            return jsonify({"success": True}), 200
        except Exception:
            db.session.rollback()
            app.logger.exception("Could not delete vote %s", contest_id)
            return jsonify({"error": "Database error: Could not delete vote"}), 500

    @app.route("/api/votes/<contest_id>/ballots", methods=["POST"])
    def submit_ballot(contest_id):
        contest = contests.get_contest(contest_id)
        if contest is None:
            return jsonify({"error": "Vote not found"}), 404

        data = _json_body()
        if not _can_vote(contest, data):
            return jsonify({"error": "Invalid voting secret"}), 403

        try:
            ballot = contests.create_ballot(
                contest,
                data.get("rankings"),
                voter_name=data.get("voterName"),
                custom_options=data.get("customOptions"),
            )
        except ContestValidationError as exc:
            return _validation_error(exc)

        return jsonify(serialize_ballot(ballot)), 201

    @app.route("/api/votes/<contest_id>/ballots", methods=["GET"])
    def list_vote_ballots(contest_id):
        contest = contests.get_contest(contest_id)
        if contest is None:
            return jsonify({"error": "Vote not found"}), 404
        if not _is_contest_admin(contest):
            return jsonify({"error": "Invalid admin secret"}), 403

        ballots = contests.list_ballots(contest)
        return jsonify({"ballots": [serialize_ballot(ballot) for ballot in ballots]}), 200

    @app.route("/api/votes/<contest_id>/ballots/<int:ballot_id>", methods=["DELETE"])
    def delete_vote_ballot(contest_id, ballot_id):
        contest = contests.get_contest(contest_id)
        if contest is None:
            return jsonify({"error": "Vote not found"}), 404
        if not _is_contest_admin(contest):
            return jsonify({"error": "Invalid admin secret"}), 403

        if not contests.delete_ballot(contest, ballot_id):
            return jsonify({"error": "Ballot not found"}), 404
        return jsonify({"success": True}), 200

    @app.route("/api/votes/<contest_id>/results", methods=["GET"])
    def get_results(contest_id):
        contest = contests.get_contest(contest_id)
        if contest is None:
            return jsonify({"error": "Vote not found"}), 404
        contests.close_if_expired(contest)

        ballots = contests.list_ballots(contest)
        return (
            jsonify(
                {
                    "vote": serialize_contest(contest, include_ballot_count=False),
                    "results": tabulate_contest(contest),
                    "ballots": [serialize_ballot(ballot) for ballot in ballots],
                }
            ),
            200,
        )
