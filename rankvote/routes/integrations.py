from flask import jsonify, request
from flask_login import login_required

from rankvote.extensions import db
from rankvote.models import Contest, NotificationChannel
from rankvote.routes.serializers import serialize_channel
from rankvote.services.notifications import redact_config, validate_channel_config


def _serialize(channel):
    return serialize_channel(channel, redact_config(channel))


def register_integration_routes(app):
    @app.route("/api/integrations", methods=["GET"])
    @login_required
    def list_integrations():
        channels = NotificationChannel.query.order_by(NotificationChannel.created_at.desc()).all()
        return jsonify({"integrations": [_serialize(channel) for channel in channels]}), 200

    @app.route("/api/integrations", methods=["POST"])
    @login_required
    def create_integration():
        data = request.get_json(silent=True) or {}
        name = (data.get("name") or "").strip()
        channel_type = data.get("type")
        config = data.get("config")

        if not name:
            return jsonify({"error": "Name is required"}), 400
        error = validate_channel_config(channel_type, config)
        if error:
            return jsonify({"error": error}), 400

        channel = NotificationChannel(name=name, type=channel_type, config=config)
        try:
            db.session.add(channel)
            db.session.commit()
        except Exception:
            db.session.rollback()
            app.logger.exception("Could not create integration")
            return jsonify({"error": "Database error: Could not create integration"}), 500
        return jsonify(_serialize(channel)), 201

    @app.route("/api/integrations/<int:channel_id>", methods=["GET"])
    @login_required
    def get_integration(channel_id):
        channel = db.session.get(NotificationChannel, channel_id)
        if channel is None:
            return jsonify({"error": "Integration not found"}), 404
        return jsonify(_serialize(channel)), 200

    @app.route("/api/integrations/<int:channel_id>", methods=["PATCH"])
    @login_required
    def update_integration(channel_id):
        channel = db.session.get(NotificationChannel, channel_id)
        if channel is None:
            return jsonify({"error": "Integration not found"}), 404

        data = request.get_json(silent=True) or {}
        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                return jsonify({"error": "Name is required"}), 400
            channel.name = name
        if "config" in data:
            error = validate_channel_config(channel.type, data["config"])
            if error:
                db.session.rollback()
                return jsonify({"error": error}), 400
            channel.config = data["config"]

        db.session.commit()
        return jsonify(_serialize(channel)), 200

    @app.route("/api/integrations/<int:channel_id>", methods=["DELETE"])
    @login_required
    def delete_integration(channel_id):
        channel = db.session.get(NotificationChannel, channel_id)
        if channel is None:
            return jsonify({"error": "Integration not found"}), 404

        try:
            Contest.query.filter_by(channel_id=channel.id).update(
                {"channel_id": None}, synchronize_session=False
            )
            db.session.delete(channel)
            db.session.commit()
            return jsonify({"success": True}), 200
        except Exception:
            db.session.rollback()
            app.logger.exception("Could not delete integration %s", channel_id)
            return jsonify({"error": "Database error: Could not delete integration"}), 500
