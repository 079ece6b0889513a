import enum
from datetime import datetime, timezone

from pickem import db
from pickem.errors import UndecidedGameError
from pickem.utils.timezone_utils import ensure_utc, format_game_time, get_utc_time


class GameStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"


class ScheduledGame(db.Model):
    __tablename__ = "scheduled_games"

    id = db.Column(db.Integer, primary_key=True)

    # Provider identification (natural key for upserts)
    external_game_id = db.Column(db.String(50), nullable=False, unique=True, index=True)
    week = db.Column(db.Integer, nullable=False)

    # Teams
    home_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    away_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    # Game timing
    kickoff_time = db.Column(db.DateTime(timezone=True), nullable=False)
    locks_at = db.Column(db.DateTime(timezone=True), nullable=False)
    wave = db.Column(db.Integer, nullable=False)

    # Outcome
    status = db.Column(
        db.Enum(
            GameStatus,
            name="game_status",
            native_enum=False,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=GameStatus.SCHEDULED,
    )
    winner_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"))
    is_tie = db.Column(db.Boolean, nullable=False, default=False)
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    home_team = db.relationship("Team", foreign_keys=[home_team_id], lazy="joined")
    away_team = db.relationship("Team", foreign_keys=[away_team_id], lazy="joined")
    winner_team = db.relationship("Team", foreign_keys=[winner_team_id])

    # Indexes
    __table_args__ = (
        db.Index("idx_scheduled_game_week", "week"),
        db.Index("idx_scheduled_game_status", "status"),
        db.CheckConstraint("home_team_id != away_team_id", name="different_teams"),
        db.CheckConstraint("wave IN (1, 2)", name="valid_wave"),
    )

    def __repr__(self):
        return f'<ScheduledGame {self.external_game_id} {self.away_team.abbreviation if self.away_team else "TBD"} @ {self.home_team.abbreviation if self.home_team else "TBD"} Week {self.week}>'

    @property
    def team_ids(self):
        return (self.home_team_id, self.away_team_id)

    @property
    def is_final(self):
        return self.status == GameStatus.FINAL

    @property
    def is_decided(self):
        """Final with a winner or a tie"""
        return self.is_final and (self.winner_team_id is not None or self.is_tie)

    def is_locked(self, now=None):
        """Check if picks for this game are locked"""
        now = ensure_utc(now) if now else get_utc_time()
        return now >= ensure_utc(self.locks_at)

    def winning_team_ids(self):
        """Set of team ids that count as winners for scoring.

        A tie counts both teams as winners.
        """
        if not self.is_final:
            raise UndecidedGameError(
                f"Game {self.external_game_id} is not final (status={self.status.value})"
            )
        if self.is_tie:
            return frozenset(self.team_ids)
        if self.winner_team_id is None:
            raise UndecidedGameError(
                f"Game {self.external_game_id} is final without a decided outcome"
            )
        return frozenset([self.winner_team_id])

    @staticmethod
    def get_by_external_id(external_game_id):
        return ScheduledGame.query.filter_by(
            external_game_id=str(external_game_id)
        ).first()

    @staticmethod
    def find_for_team_week(team_id, week):
        """Get the game a team plays in a given week (None on bye)"""
        return (
            ScheduledGame.query.filter(
                ScheduledGame.week == week,
                db.or_(
                    ScheduledGame.home_team_id == team_id,
                    ScheduledGame.away_team_id == team_id,
                ),
            )
            .order_by(ScheduledGame.kickoff_time)
            .first()
        )

    @staticmethod
    def get_games_for_week(week):
        """Get all games for a specific week in kickoff order"""
        return (
            ScheduledGame.query.filter_by(week=week)
            .order_by(ScheduledGame.kickoff_time)
            .all()
        )

    @staticmethod
    def current_week(default=1, max_week=18):
        """Lowest week that still has a game without a final result"""
        week = (
            db.session.query(db.func.min(ScheduledGame.week))
            .filter(ScheduledGame.status != GameStatus.FINAL)
            .scalar()
        )
        if week is not None:
            return week

        has_games = db.session.query(ScheduledGame.id).first() is not None
        return max_week if has_games else default

    def to_dict(self, now=None):
        """Convert game to dictionary for API responses"""
        return {
            "id": self.id,
            "external_game_id": self.external_game_id,
            "week": self.week,
            "wave": self.wave,
            "kickoff_time": ensure_utc(self.kickoff_time).isoformat(),
            "kickoff_display": format_game_time(self.kickoff_time),
            "locks_at": ensure_utc(self.locks_at).isoformat(),
            "is_locked": self.is_locked(now),
            "status": self.status.value,
            "home_team": self.home_team.to_dict() if self.home_team else None,
            "away_team": self.away_team.to_dict() if self.away_team else None,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "winner_team_id": self.winner_team_id,
            "is_tie": self.is_tie,
        }
