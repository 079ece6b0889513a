"""
Scoring & reconciliation: resolves pending picks once their game is final.

Only rows that are still pending are written, so running a game twice is a
no-op. Each group is committed on its own. A group whose membership cannot be
read stays pending and is retried on the next pass; a single pick whose
numbers fall outside the scoring table stays pending without holding back the
rest of its group.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.errors import (
    ConsistencyError,
    MembershipUnavailableError,
    ScoringTableError,
    UndecidedGameError,
)
from pickem.models import GameStatus, Pick, PickStatus, ScheduledGame
from pickem.services.membership import DatabaseMembershipDirectory
from pickem.utils.cache_utils import invalidate_model_cache
from pickem.utils.scoring import calculate_pick_score

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    games_reconciled: int = 0
    picks_resolved: int = 0
    skipped_games: list = field(default_factory=list)

    def to_dict(self):
        return {
            "games_reconciled": self.games_reconciled,
            "picks_resolved": self.picks_resolved,
            "skipped_games": self.skipped_games,
        }


class ReconciliationEngine:
    def __init__(self, directory=None):
        self.directory = directory or DatabaseMembershipDirectory()

    def reconcile(self, external_game_id):
        """Resolve every pending pick on a final game. Returns picks resolved."""
        game = ScheduledGame.get_by_external_id(external_game_id)
        if game is None:
            raise UndecidedGameError(f"Game {external_game_id} is not in the schedule")

        winners = game.winning_team_ids()

        pending = (
            Pick.query.filter(
                Pick.external_game_id == game.external_game_id,
                Pick.status == PickStatus.PENDING,
                Pick.team_id.isnot(None),
            )
            .order_by(Pick.group_id, Pick.user_id)
            .all()
        )
        if not pending:
            return 0

        by_group = defaultdict(list)
        for pick in pending:
            by_group[pick.group_id].append(pick)

        resolved = 0
        for group_id, picks in by_group.items():
            resolved += self._reconcile_group(game, group_id, picks, winners)

        if resolved:
            invalidate_model_cache("Pick")

        logger.info(
            f"Game {game.external_game_id} (week {game.week}): resolved {resolved} of "
            f"{len(pending)} pending picks across {len(by_group)} groups"
        )
        return resolved

    def _reconcile_group(self, game, group_id, picks, winners):
        try:
            members = self.directory.list_members(group_id)
            group_size = self.directory.group_size(group_id)
        except MembershipUnavailableError as e:
            logger.warning(f"Skipping group {group_id} for game {game.external_game_id}: {e}")
            return 0

        member_ids = {member.user_id for member in members}
        shared_counts = self._shared_pick_counts(group_id, game.week, member_ids)

        resolved = 0
        for pick in picks:
            if pick.status != PickStatus.PENDING:
                continue

            is_correct = pick.team_id in winners
            shared = shared_counts[pick.team_id]
            if pick.user_id not in member_ids:
                # Former member: counts itself, never beyond the active group
                shared = min(shared + 1, max(group_size, 1))

            try:
                score = calculate_pick_score(
                    is_correct, max(group_size, 1), max(shared, 1)
                )
            except ScoringTableError as e:
                logger.error(
                    f"Scoring table error for pick {pick.id} in group {group_id}, "
                    f"game {game.external_game_id}: {e}"
                )
                continue

            pick.status = PickStatus.CORRECT if is_correct else PickStatus.INCORRECT
            pick.score = score
            resolved += 1

        if not resolved:
            return 0

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to store results for group {group_id}: {e}")
            return 0

        return resolved

    @staticmethod
    def _shared_pick_counts(group_id, week, member_ids):
        """How many active members picked each team this week"""
        rows = (
            db.session.query(Pick.user_id, Pick.team_id)
            .filter(
                Pick.group_id == group_id,
                Pick.week == week,
                Pick.team_id.isnot(None),
            )
            .all()
        )
        return Counter(team_id for user_id, team_id in rows if user_id in member_ids)

    def reconcile_finished_games(self):
        """Reconcile every final game that still has pending picks"""
        report = ReconcileReport()

        external_ids = [
            external_game_id
            for (external_game_id,) in db.session.query(ScheduledGame.external_game_id)
            .join(Pick, Pick.external_game_id == ScheduledGame.external_game_id)
            .filter(
                ScheduledGame.status == GameStatus.FINAL,
                Pick.status == PickStatus.PENDING,
                Pick.team_id.isnot(None),
            )
            .distinct()
            .order_by(ScheduledGame.external_game_id)
            .all()
        ]

        for external_game_id in external_ids:
            try:
                report.picks_resolved += self.reconcile(external_game_id)
                report.games_reconciled += 1
            except ConsistencyError as e:
                logger.warning(f"Skipping game {external_game_id}: {e}")
                report.skipped_games.append(external_game_id)

        if external_ids:
            logger.info(
                f"Reconciliation pass: {report.games_reconciled} games, "
                f"{report.picks_resolved} picks resolved, "
                f"{len(report.skipped_games)} games skipped"
            )
        return report
