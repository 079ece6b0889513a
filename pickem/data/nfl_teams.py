"""
The 32 NFL teams, keyed by abbreviation

Names match the provider's displayName so schedule events resolve directly.
"""

import logging

from pickem import db
from pickem.models import Team
from pickem.utils.cache_utils import invalidate_model_cache

logger = logging.getLogger(__name__)

LOGO_URL = "https://a.espncdn.com/i/teamlogos/nfl/500/{code}.png"

NFL_TEAMS = [
    ("ARI", "Arizona Cardinals"),
    ("ATL", "Atlanta Falcons"),
    ("BAL", "Baltimore Ravens"),
    ("BUF", "Buffalo Bills"),
    ("CAR", "Carolina Panthers"),
    ("CHI", "Chicago Bears"),
    ("CIN", "Cincinnati Bengals"),
    ("CLE", "Cleveland Browns"),
    ("DAL", "Dallas Cowboys"),
    ("DEN", "Denver Broncos"),
    ("DET", "Detroit Lions"),
    ("GB", "Green Bay Packers"),
    ("HOU", "Houston Texans"),
    ("IND", "Indianapolis Colts"),
    ("JAX", "Jacksonville Jaguars"),
    ("KC", "Kansas City Chiefs"),
    ("LV", "Las Vegas Raiders"),
    ("LAC", "Los Angeles Chargers"),
    ("LAR", "Los Angeles Rams"),
    ("MIA", "Miami Dolphins"),
    ("MIN", "Minnesota Vikings"),
    ("NE", "New England Patriots"),
    ("NO", "New Orleans Saints"),
    ("NYG", "New York Giants"),
    ("NYJ", "New York Jets"),
    ("PHI", "Philadelphia Eagles"),
    ("PIT", "Pittsburgh Steelers"),
    ("SF", "San Francisco 49ers"),
    ("SEA", "Seattle Seahawks"),
    ("TB", "Tampa Bay Buccaneers"),
    ("TEN", "Tennessee Titans"),
    ("WAS", "Washington Commanders"),
]

# ESPN logo paths that differ from the abbreviation
LOGO_CODES = {"WAS": "wsh"}


def logo_url_for(abbreviation):
    code = LOGO_CODES.get(abbreviation, abbreviation.lower())
    return LOGO_URL.format(code=code)


def seed_teams():
    """Insert missing teams and refresh names and logos. Returns (created, updated)."""
    existing = {team.abbreviation: team for team in Team.query.all()}
    created = updated = 0

    for abbreviation, name in NFL_TEAMS:
        logo_url = logo_url_for(abbreviation)
        team = existing.get(abbreviation)

        if team is None:
            db.session.add(Team(name=name, abbreviation=abbreviation, logo_url=logo_url))
            created += 1
        elif team.name != name or team.logo_url != logo_url:
            team.name = name
            team.logo_url = logo_url
            updated += 1

    db.session.commit()
    if created or updated:
        invalidate_model_cache("Team")
    logger.info(f"Team registry seeded: {created} created, {updated} updated")
    return created, updated
