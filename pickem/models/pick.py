import enum
from datetime import datetime, timezone

from pickem import db
from pickem.utils.timezone_utils import ensure_utc, get_utc_time


class PickStatus(str, enum.Enum):
    PENDING = "pending"
    CORRECT = "correct"
    INCORRECT = "incorrect"


class Pick(db.Model):
    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification
    user_id = db.Column(db.Integer, nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id"), nullable=False)
    week = db.Column(db.Integer, nullable=False)

    # Pick details (null team means no selection)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"))
    external_game_id = db.Column(db.String(50), index=True)
    locked_at_snapshot = db.Column(db.DateTime(timezone=True))

    # Results (written by reconciliation after the game is final)
    status = db.Column(
        db.Enum(
            PickStatus,
            name="pick_status",
            native_enum=False,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=PickStatus.PENDING,
    )
    score = db.Column(db.Integer, nullable=False, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    team = db.relationship("Team", foreign_keys=[team_id])
    game = db.relationship(
        "ScheduledGame",
        primaryjoin="foreign(Pick.external_game_id) == ScheduledGame.external_game_id",
        viewonly=True,
        uselist=False,
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("user_id", "group_id", "week", name="unique_user_group_week"),
        db.Index("idx_pick_group_week", "group_id", "week"),
        db.Index("idx_pick_user_group", "user_id", "group_id"),
        db.Index("idx_pick_game_status", "external_game_id", "status"),
    )

    def __repr__(self):
        return f'<Pick user_id={self.user_id} group_id={self.group_id} week={self.week} team={self.team.abbreviation if self.team else "none"}>'

    @property
    def effective_locks_at(self):
        """Lock time of the game this pick references.

        Falls back to the snapshot taken at submission when the game is no
        longer in the schedule registry.
        """
        if self.game is not None:
            return ensure_utc(self.game.locks_at)
        return ensure_utc(self.locked_at_snapshot)

    def is_locked(self, now=None):
        locks_at = self.effective_locks_at
        if locks_at is None:
            return False
        now = ensure_utc(now) if now else get_utc_time()
        return now >= locks_at

    @staticmethod
    def get_for_week(user_id, group_id, week):
        return Pick.query.filter_by(user_id=user_id, group_id=group_id, week=week).first()

    @staticmethod
    def find_team_usage(user_id, group_id, team_id, exclude_week=None):
        """Find a pick where this user already used the team in this group"""
        query = Pick.query.filter(
            Pick.user_id == user_id,
            Pick.group_id == group_id,
            Pick.team_id == team_id,
        )
        if exclude_week is not None:
            query = query.filter(Pick.week != exclude_week)
        return query.order_by(Pick.week).first()

    @staticmethod
    def used_team_ids(user_id, group_id, exclude_week=None):
        """Team ids this user has picked in this group"""
        query = db.session.query(Pick.team_id).filter(
            Pick.user_id == user_id,
            Pick.group_id == group_id,
            Pick.team_id.isnot(None),
        )
        if exclude_week is not None:
            query = query.filter(Pick.week != exclude_week)
        return {team_id for (team_id,) in query.all()}

    @staticmethod
    def get_user_picks(user_id, group_id):
        return (
            Pick.query.filter_by(user_id=user_id, group_id=group_id)
            .order_by(Pick.week)
            .all()
        )

    def to_dict(self, now=None):
        """Convert pick to dictionary for API responses"""
        locks_at = self.effective_locks_at
        return {
            "id": self.id,
            "user_id": self.user_id,
            "group_id": self.group_id,
            "week": self.week,
            "team_id": self.team_id,
            "team": self.team.to_dict() if self.team else None,
            "external_game_id": self.external_game_id,
            "status": self.status.value,
            "score": self.score,
            "locks_at": locks_at.isoformat() if locks_at else None,
            "is_locked": self.is_locked(now),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
