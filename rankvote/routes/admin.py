from flask import jsonify, request
from flask_login import login_required

from rankvote.extensions import db
from rankvote.models import ApiKey
from rankvote.routes.serializers import serialize_api_key, serialize_contest
from rankvote.services import contests, lifecycle
from rankvote.services.contests import ContestValidationError
from rankvote.services.lifecycle import TieRunoffRejected
from rankvote.services.scheduler import get_scheduler
from rankvote.services.security import api_key_prefix, generate_api_key, hash_secret

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def register_admin_routes(app):
    @app.route("/api/admin/votes", methods=["GET"])
    @login_required
    def admin_list_votes():
        page = max(request.args.get("page", 1, type=int), 1)
        per_page = min(
            max(request.args.get("perPage", DEFAULT_PAGE_SIZE, type=int), 1), MAX_PAGE_SIZE
        )

        closed = contests.close_expired_contests()
        if closed:
            app.logger.info("Closed %s expired vote(s) before listing", closed)

        pagination = contests.live_contests_paginated(page=page, per_page=per_page)
        return (
            jsonify(
                {
                    "votes": [serialize_contest(contest) for contest in pagination.items],
                    "page": pagination.page,
                    "perPage": pagination.per_page,
                    "total": pagination.total,
                    "pages": pagination.pages,
                }
            ),
            200,
        )

    @app.route("/api/admin/votes/<contest_id>", methods=["PATCH"])
    @login_required
    def admin_update_vote(contest_id):
        contest = contests.get_contest(contest_id)
        if contest is None:
            return jsonify({"error": "Vote not found"}), 404

        action = (request.get_json(silent=True) or {}).get("action")
        if action == "close":
            if not contests.close_contest(contest.id):
                return jsonify({"error": "Vote is already closed"}), 400
            return jsonify(serialize_contest(contest)), 200

        if action == "reopen":
            try:
                contests.reopen_contest(contest)
            except ContestValidationError as exc:
                db.session.rollback()
                return jsonify({"error": exc.message}), exc.status
            return jsonify(serialize_contest(contest)), 200

        if action == "triggerTieBreaker":
            try:
                runoff = lifecycle.trigger_tie_runoff(contest.id)
            except TieRunoffRejected as exc:
                return jsonify({"error": exc.reason, "code": exc.code}), 400
            return jsonify({"runoff": serialize_contest(runoff)}), 201

        return jsonify({"error": "Invalid action"}), 400

    @app.route("/api/admin/votes/<contest_id>", methods=["DELETE"])
    @login_required
    def admin_delete_vote(contest_id):
        contest = contests.get_contest(contest_id)
        if contest is None:
            return jsonify({"error": "Vote not found"}), 404

        try:
            contests.delete_contest(contest)
            return jsonify({"success": True}), 200
        except Exception:
            db.session.rollback()
            app.logger.exception("Could not delete vote %s", contest_id)
            return jsonify({"error": "Database error: Could not delete vote"}), 500

    @app.route("/api/admin/recurrence/<group_id>/stop", methods=["POST"])
    @login_required
    def admin_stop_recurrence(group_id):
        if not contests.stop_recurrence_group(group_id):
            return jsonify({"error": "Active recurrence group not found"}), 404
        return jsonify({"success": True, "groupId": group_id}), 200

    @app.route("/api/admin/recurrence/<group_id>/next", methods=["POST"])
    @login_required
    def admin_next_recurrence(group_id):
        try:
            successor = lifecycle.trigger_next_instance(group_id)
        except ContestValidationError as exc:
            return jsonify({"error": exc.message}), exc.status
        return jsonify(serialize_contest(successor)), 201

    @app.route("/api/admin/scheduler", methods=["GET"])
    @login_required
    def admin_scheduler_status():
        scheduler = get_scheduler(app)
        return jsonify({"status": scheduler.status(), "limits": scheduler.limits()}), 200

    @app.route("/api/admin/scheduler/<action>", methods=["POST"])
    @login_required
    def admin_scheduler_action(action):
        scheduler = get_scheduler(app)
        if action == "start":
            changed = scheduler.start()
        elif action == "stop":
            changed = scheduler.stop()
        elif action == "tick":
            summary = scheduler.tick()
            return jsonify({"skipped": summary is None, "summary": summary}), 200
        else:
            return jsonify({"error": "Invalid scheduler action"}), 400
        return jsonify({"changed": changed, "status": scheduler.status()}), 200

    @app.route("/api/admin/api-keys", methods=["GET"])
    @login_required
    def admin_list_api_keys():
        api_keys = ApiKey.query.order_by(ApiKey.created_at.desc()).all()
        return jsonify({"apiKeys": [serialize_api_key(key) for key in api_keys]}), 200

    @app.route("/api/admin/api-keys", methods=["POST"])
    @login_required
    def admin_create_api_key():
        name = ((request.get_json(silent=True) or {}).get("name") or "").strip()
        if len(name) > 200:
            return jsonify({"error": "Name must be at most 200 characters"}), 400

        raw_key = generate_api_key()
        api_key = ApiKey(
            prefix=api_key_prefix(raw_key), key_hash=hash_secret(raw_key), name=name or None
        )
        try:
            db.session.add(api_key)
            db.session.commit()
        except Exception:
            db.session.rollback()
            app.logger.exception("Could not create API key")
            return jsonify({"error": "Database error: Could not create API key"}), 500

        response = serialize_api_key(api_key)
        response["key"] = raw_key
        return jsonify(response), 201

    @app.route("/api/admin/api-keys/<int:api_key_id>", methods=["DELETE"])
    @login_required
    def admin_delete_api_key(api_key_id):
        api_key = db.session.get(ApiKey, api_key_id)
        if api_key is None:
            return jsonify({"error": "API key not found"}), 404

        db.session.delete(api_key)
        db.session.commit()
        return jsonify({"success": True}), 200
