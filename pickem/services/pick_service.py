"""
Pick lifecycle: submit, change and clear weekly picks before they lock.

Every check runs before anything is written, so a rejected pick leaves the
database untouched.
"""

import logging

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from pickem import db
from pickem.errors import NoGameForTeamWeek, PickWindowClosed, TeamAlreadyUsed
from pickem.models import Pick, PickStatus, ScheduledGame, Team
from pickem.utils.cache_utils import invalidate_model_cache
from pickem.utils.timezone_utils import ensure_utc, get_utc_time

logger = logging.getLogger(__name__)


class PickService:
    def __init__(self, max_week=None):
        if max_week is None:
            max_week = (
                current_app.config.get("REGULAR_SEASON_WEEKS", 18)
                if has_app_context()
                else 18
            )
        self.max_week = max_week

    def _now(self, now):
        return ensure_utc(now) if now else get_utc_time()

    def _game_for(self, week, team_id):
        if not 1 <= week <= self.max_week:
            raise NoGameForTeamWeek(
                f"Week {week} is outside the regular season (1-{self.max_week}).",
                week=week,
                team_id=team_id,
            )
        game = ScheduledGame.find_for_team_week(team_id, week)
        if game is None:
            raise NoGameForTeamWeek(week=week, team_id=team_id)
        return game

    def _check_existing_unlocked(self, existing, now, team_id=None):
        if existing is not None and existing.is_locked(now):
            raise PickWindowClosed(
                "Your current pick for this week is already locked.",
                week=existing.week,
                team_id=team_id,
            )

    def submit_pick(self, user_id, group_id, week, team_id, now=None):
        """Create, change or clear (team_id=None) a user's pick for a week.

        Returns the stored Pick, or None when the pick was cleared.
        """
        if team_id is None:
            self.clear_pick(user_id, group_id, week, now=now)
            return None

        now = self._now(now)
        game = self._game_for(week, team_id)

        if game.is_locked(now):
            raise PickWindowClosed(week=week, team_id=team_id)

        existing = Pick.get_for_week(user_id, group_id, week)
        self._check_existing_unlocked(existing, now, team_id)

        used = Pick.find_team_usage(user_id, group_id, team_id, exclude_week=week)
        if used is not None:
            raise TeamAlreadyUsed(week=week, team_id=team_id, used_in_week=used.week)

        pick = self._store(existing, user_id, group_id, week, team_id, game)
        invalidate_model_cache("Pick")

        logger.info(
            f"User {user_id} picked team {team_id} for week {week} in group {group_id}"
        )
        return pick

    def _store(self, existing, user_id, group_id, week, team_id, game):
        pick = existing or Pick(user_id=user_id, group_id=group_id, week=week)
        self._apply(pick, team_id, game)
        if existing is None:
            db.session.add(pick)

        try:
            db.session.commit()
        except IntegrityError:
            # Someone inserted this (user, group, week) row first; last write wins
            db.session.rollback()
            pick = Pick.get_for_week(user_id, group_id, week)
            if pick is None:
                raise
            logger.info(
                f"Concurrent pick for user {user_id} week {week} in group {group_id}, updating"
            )
            self._apply(pick, team_id, game)
            db.session.commit()

        return pick

    @staticmethod
    def _apply(pick, team_id, game):
        pick.team_id = team_id
        pick.external_game_id = game.external_game_id
        pick.locked_at_snapshot = ensure_utc(game.locks_at)
        pick.status = PickStatus.PENDING
        pick.score = 0

    def clear_pick(self, user_id, group_id, week, now=None):
        """Delete the pick for a week. Returns whether a row was deleted."""
        now = self._now(now)
        existing = Pick.get_for_week(user_id, group_id, week)
        if existing is None:
            return False

        self._check_existing_unlocked(existing, now)

        db.session.delete(existing)
        db.session.commit()
        invalidate_model_cache("Pick")

        logger.info(f"User {user_id} cleared week {week} pick in group {group_id}")
        return True

    def available_teams_for_week(self, group_id, user_id, week, now=None):
        """Teams the user can still pick for this week, ordered by name"""
        now = self._now(now)

        # A locked pick for this week can no longer be changed
        existing = Pick.get_for_week(user_id, group_id, week)
        if existing is not None and existing.is_locked(now):
            return []

        used = Pick.used_team_ids(user_id, group_id, exclude_week=week)

        playing = set()
        for game in ScheduledGame.get_games_for_week(week):
            if not game.is_locked(now):
                playing.update(game.team_ids)

        available = playing - used
        if not available:
            return []
        return Team.query.filter(Team.id.in_(available)).order_by(Team.name).all()

    def selections_for_user(self, group_id, user_id, now=None):
        """One entry per regular season week, empty weeks included"""
        now = self._now(now)
        picks = {pick.week: pick for pick in Pick.get_user_picks(user_id, group_id)}

        selections = []
        for week in range(1, self.max_week + 1):
            pick = picks.get(week)
            if pick is None:
                selections.append(
                    {
                        "week": week,
                        "team_id": None,
                        "status": None,
                        "score": 0,
                        "locks_at": None,
                        "is_locked": False,
                    }
                )
                continue

            locks_at = pick.effective_locks_at
            selections.append(
                {
                    "week": week,
                    "team_id": pick.team_id,
                    "status": pick.status.value,
                    "score": pick.score,
                    "locks_at": locks_at.isoformat() if locks_at else None,
                    "is_locked": pick.is_locked(now),
                }
            )
        return selections

    def group_picks_for_week(self, group_id, week, viewer_id=None, now=None):
        """All picks in a group for a week.

        Other members' teams stay hidden until their pick has locked.
        """
        now = self._now(now)
        picks = (
            Pick.query.filter_by(group_id=group_id, week=week)
            .order_by(Pick.user_id)
            .all()
        )

        results = []
        for pick in picks:
            data = pick.to_dict(now)
            hidden = pick.user_id != viewer_id and not data["is_locked"]
            if hidden:
                data["team_id"] = None
                data["team"] = None
                data["external_game_id"] = None
            data["hidden"] = hidden
            results.append(data)
        return results
