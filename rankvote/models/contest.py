from rankvote.extensions import db
from rankvote.timeutils import utcnow


class Contest(db.Model):
    __tablename__ = "contests"

    id = db.Column(db.String(32), primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    options = db.Column(db.JSON, nullable=False, default=list)
    admin_secret_hash = db.Column(db.String(255), nullable=False)
    voting_secret_hash = db.Column(db.String(255), nullable=True)
    voter_names_required = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    closed_at = db.Column(db.DateTime, nullable=True)
    auto_close_at = db.Column(db.DateTime, nullable=True)
    channel_id = db.Column(
        db.Integer, db.ForeignKey("notification_channels.id"), nullable=True
    )
    source_contest_id = db.Column(db.String(32), nullable=True)

    ballots = db.relationship(
        "Ballot",
        backref="contest",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Ballot.id",
    )
    recurrence = db.relationship(
        "ContestRecurrence",
        backref="contest",
        uselist=False,
        cascade="all, delete-orphan",
    )
    notification_state = db.relationship(
        "ContestNotificationState",
        backref="contest",
        uselist=False,
        cascade="all, delete-orphan",
    )
    channel = db.relationship("NotificationChannel", lazy=True)

    @property
    def is_closed(self):
        return self.closed_at is not None

    @property
    def tie_runoff_contest_id(self):
        state = self.notification_state
        return state.tie_runoff_contest_id if state else None
