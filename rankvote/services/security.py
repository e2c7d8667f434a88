import uuid

from flask import current_app
from itsdangerous import BadSignature, URLSafeSerializer
from werkzeug.security import check_password_hash, generate_password_hash

API_KEY_PREFIX_LENGTH = 12


def generate_secret():
    return uuid.uuid4().hex


def hash_secret(secret):
    return generate_password_hash(secret, method="pbkdf2:sha256")


def verify_secret(secret, secret_hash):
    if not secret or not secret_hash:
        return False
    return check_password_hash(secret_hash, secret)


def generate_api_key():
    return f"rcv_{uuid.uuid4().hex}"


def api_key_prefix(api_key):
    return api_key[:API_KEY_PREFIX_LENGTH]


def _vote_link_serializer():
    return URLSafeSerializer(current_app.config["SECRET_KEY"], salt="vote-link")


def generate_vote_link_token(contest_id):
    return _vote_link_serializer().dumps(contest_id)


def verify_vote_link_token(token, contest_id):
    if not token:
        return False
    try:
        return _vote_link_serializer().loads(token) == contest_id
    except BadSignature:
        return False
