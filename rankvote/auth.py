import secrets

from flask import current_app, jsonify
from flask_login import UserMixin

from rankvote.extensions import db, login_manager
from rankvote.models import ApiKey
from rankvote.services.security import api_key_prefix, verify_secret
from rankvote.timeutils import utcnow


class AdminPrincipal(UserMixin):
    def __init__(self, principal_id, api_key_id=None):
        self.id = principal_id
        self.api_key_id = api_key_id


def bearer_token(request):
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def find_api_key(token):
    for api_key in ApiKey.query.filter_by(prefix=api_key_prefix(token)).all():
        if verify_secret(token, api_key.key_hash):
            return api_key
    return None


def init_auth(app):
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_admin_from_request(request):
        token = bearer_token(request)
        if not token:
            return None

        admin_secret = current_app.config.get("ADMIN_SECRET")
        if admin_secret and secrets.compare_digest(token, admin_secret):
            return AdminPrincipal("admin")

        api_key = find_api_key(token)
        if api_key is None:
            return None

        api_key.last_used_at = utcnow()
        db.session.commit()
        return AdminPrincipal(f"api-key:{api_key.id}", api_key_id=api_key.id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized"}), 401
