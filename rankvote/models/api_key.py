from rankvote.extensions import db
from rankvote.timeutils import utcnow


class ApiKey(db.Model):
    __tablename__ = "api_keys"

    id = db.Column(db.Integer, primary_key=True)
    # First characters of the key, used to find candidates before hash checks.
    prefix = db.Column(db.String(12), nullable=False, index=True)
    key_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime, nullable=True)
