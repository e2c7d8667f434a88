from rankvote.extensions import db
from rankvote.timeutils import utcnow


class Ballot(db.Model):
    __tablename__ = "ballots"

    id = db.Column(db.Integer, primary_key=True)
    contest_id = db.Column(
        db.String(32), db.ForeignKey("contests.id"), nullable=False, index=True
    )
    rankings = db.Column(db.JSON, nullable=False, default=list)
    voter_name = db.Column(db.String(200), nullable=False, default="")
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
