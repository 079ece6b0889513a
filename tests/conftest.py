"""Shared pytest fixtures and factories."""

from datetime import datetime, timedelta, timezone

import pytest

from pickem import create_app, db
from pickem.data.nfl_teams import seed_teams
from pickem.models import GameStatus, Group, Pick, PickStatus, ScheduledGame, Team
from pickem.utils.lock_policy import LockPolicy

# Thursday 2025-09-04, kickoff of the season opener (8:20 PM ET)
SEASON_OPENER = datetime(2025, 9, 5, 0, 20, tzinfo=timezone.utc)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def teams(app):
    seed_teams()
    return {team.abbreviation: team for team in Team.query.all()}


@pytest.fixture
def make_game(app):
    policy = LockPolicy()
    counter = {"next": 1000}

    def _make_game(
        home,
        away,
        week=1,
        kickoff=SEASON_OPENER,
        status=GameStatus.SCHEDULED,
        winner=None,
        is_tie=False,
        external_game_id=None,
    ):
        if external_game_id is None:
            counter["next"] += 1
            external_game_id = str(counter["next"])

        game = ScheduledGame(
            external_game_id=external_game_id,
            week=week,
            home_team_id=home.id,
            away_team_id=away.id,
            kickoff_time=kickoff,
            locks_at=policy.locks_at(kickoff),
            wave=policy.wave_for(kickoff),
            status=status,
            winner_team_id=winner.id if winner is not None else None,
            is_tie=is_tie,
        )
        db.session.add(game)
        db.session.commit()
        return game

    return _make_game


@pytest.fixture
def make_group(app):
    def _make_group(user_ids, name="League"):
        group = Group(name=name)
        db.session.add(group)
        db.session.flush()
        for user_id in user_ids:
            success, message = group.add_member(user_id)
            assert success, message
        db.session.commit()
        return group

    return _make_group


@pytest.fixture
def make_pick(app):
    """Insert a pick row directly, bypassing lock checks"""

    def _make_pick(user_id, group, game, team, status=PickStatus.PENDING, score=0):
        pick = Pick(
            user_id=user_id,
            group_id=group.id,
            week=game.week,
            team_id=team.id,
            external_game_id=game.external_game_id,
            locked_at_snapshot=game.locks_at,
            status=status,
            score=score,
        )
        db.session.add(pick)
        db.session.commit()
        return pick

    return _make_pick


def future(days=3):
    return datetime.now(timezone.utc) + timedelta(days=days)


def past(days=3):
    return datetime.now(timezone.utc) - timedelta(days=days)
