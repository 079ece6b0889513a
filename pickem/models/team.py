from datetime import datetime, timezone

from pickem import db


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)

    # Team identification
    name = db.Column(db.String(100), nullable=False, unique=True)
    abbreviation = db.Column(db.String(10), nullable=False, unique=True, index=True)

    # Visual elements
    logo_url = db.Column(db.String(500))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<Team {self.abbreviation}>"

    @staticmethod
    def normalize_name(name):
        """Normalize a provider display name for lookup"""
        return " ".join((name or "").split()).lower()

    @staticmethod
    def build_name_lookup():
        """Map normalized names and abbreviations to team ids"""
        lookup = {}
        for team in Team.query.all():
            lookup[Team.normalize_name(team.abbreviation)] = team.id
        # Full names win over abbreviations on collision
        for team in Team.query.all():
            lookup[Team.normalize_name(team.name)] = team.id
        return lookup

    @staticmethod
    def get_by_abbreviation(abbreviation):
        """Get team by abbreviation"""
        return Team.query.filter_by(abbreviation=abbreviation.upper()).first()

    @staticmethod
    def get_all():
        """Get all teams ordered by name"""
        return Team.query.order_by(Team.name).all()

    def to_dict(self):
        """Convert team to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "abbreviation": self.abbreviation,
            "logo_url": self.logo_url,
        }
