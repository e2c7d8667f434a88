from rankvote.extensions import db


class ContestRecurrence(db.Model):
    __tablename__ = "contest_recurrences"

    contest_id = db.Column(
        db.String(32), db.ForeignKey("contests.id"), primary_key=True
    )
    group_id = db.Column(db.String(64), nullable=False, index=True)
    period_days = db.Column(db.Integer, nullable=False)
    vote_duration_hours = db.Column(db.Integer, nullable=False)
    start_at = db.Column(db.DateTime, nullable=False)
    id_format = db.Column(db.String(100), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)

    # One instance per group and start time; a concurrent double spawn fails here.
    __table_args__ = (
        db.UniqueConstraint("group_id", "start_at", name="uq_recurrence_group_start"),
    )
