from rankvote.extensions import db


class ContestNotificationState(db.Model):
    __tablename__ = "contest_notification_states"

    contest_id = db.Column(
        db.String(32), db.ForeignKey("contests.id"), primary_key=True
    )
    open_notified_at = db.Column(db.DateTime, nullable=True)
    closed_notified_at = db.Column(db.DateTime, nullable=True)
    tie_runoff_checked_at = db.Column(db.DateTime, nullable=True)
    tie_runoff_contest_id = db.Column(db.String(32), nullable=True)
