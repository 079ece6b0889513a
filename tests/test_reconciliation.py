"""Tests for resolving picks on final games."""

from unittest.mock import MagicMock

import pytest

from pickem import db
from pickem.errors import MembershipUnavailableError, UndecidedGameError
from pickem.models import GameStatus, GroupMember, Pick, PickStatus
from pickem.services.membership import DatabaseMembershipDirectory, Member
from pickem.services.reconciliation import ReconciliationEngine


@pytest.fixture
def engine(app):
    return ReconciliationEngine()


def finish(game, winner=None, is_tie=False):
    game.status = GameStatus.FINAL
    game.winner_team_id = winner.id if winner is not None else None
    game.is_tie = is_tie
    db.session.commit()


def reload(pick):
    db.session.expire_all()
    return db.session.get(Pick, pick.id)


class TestReconcile:
    def test_shared_winning_pick_in_group_of_six(self, engine, teams, make_game, make_group, make_pick):
        """Three of six members share the winner: 6 points each"""
        group = make_group([1, 2, 3, 4, 5, 6])
        game = make_game(teams["KC"], teams["BUF"], week=3)
        winners = [make_pick(user_id, group, game, teams["KC"]) for user_id in (1, 2, 3)]
        losers = [make_pick(user_id, group, game, teams["BUF"]) for user_id in (4, 5)]
        finish(game, winner=teams["KC"])

        assert engine.reconcile(game.external_game_id) == 5

        for pick in winners:
            pick = reload(pick)
            assert pick.status == PickStatus.CORRECT
            assert pick.score == 6
        for pick in losers:
            pick = reload(pick)
            assert pick.status == PickStatus.INCORRECT
            assert pick.score == 0

    def test_tie_counts_both_teams_per_team(self, engine, teams, make_game, make_group, make_pick):
        """A tie makes both sides correct, sharing is counted per chosen team"""
        group = make_group([1, 2, 3, 4, 5])
        game = make_game(teams["NYG"], teams["WAS"], week=4)
        giants = [make_pick(user_id, group, game, teams["NYG"]) for user_id in (1, 2, 3)]
        commanders = make_pick(4, group, game, teams["WAS"])
        finish(game, is_tie=True)

        engine.reconcile(game.external_game_id)

        for pick in giants:
            pick = reload(pick)
            assert pick.status == PickStatus.CORRECT
            assert pick.score == 5  # bucket 4-5, three sharers
        commanders = reload(commanders)
        assert commanders.status == PickStatus.CORRECT
        assert commanders.score == 10

    def test_sole_correct_pick_in_small_group(self, engine, teams, make_game, make_group, make_pick):
        group = make_group([1, 2])
        game = make_game(teams["DET"], teams["GB"], week=5)
        pick = make_pick(1, group, game, teams["DET"])
        make_pick(2, group, game, teams["GB"])
        finish(game, winner=teams["DET"])

        engine.reconcile(game.external_game_id)

        assert reload(pick).score == 10

    def test_shared_count_never_exceeds_group_size(self, engine, teams, make_game, make_group, make_pick):
        # Every member of a three-person group on the winner: top of the <4 column
        group = make_group([1, 2, 3])
        game = make_game(teams["DET"], teams["GB"], week=5)
        picks = [make_pick(user_id, group, game, teams["DET"]) for user_id in (1, 2, 3)]
        finish(game, winner=teams["DET"])

        engine.reconcile(game.external_game_id)

        assert {reload(pick).score for pick in picks} == {4}

    def test_groups_are_scored_independently(self, engine, teams, make_game, make_group, make_pick):
        small = make_group([1, 2], name="Small")
        large = make_group([1, 2, 3, 4, 5, 6, 7, 8], name="Large")
        game = make_game(teams["SF"], teams["LAR"], week=6)
        in_small = make_pick(1, small, game, teams["SF"])
        in_large = [make_pick(user_id, large, game, teams["SF"]) for user_id in (1, 2)]
        finish(game, winner=teams["SF"])

        engine.reconcile(game.external_game_id)

        assert reload(in_small).score == 10
        assert {reload(pick).score for pick in in_large} == {9}

    def test_second_run_is_a_no_op(self, engine, teams, make_game, make_group, make_pick):
        group = make_group([1, 2, 3])
        game = make_game(teams["KC"], teams["BUF"], week=3)
        pick = make_pick(1, group, game, teams["KC"])
        finish(game, winner=teams["KC"])

        assert engine.reconcile(game.external_game_id) == 1
        first_update = reload(pick).updated_at

        assert engine.reconcile(game.external_game_id) == 0
        assert reload(pick).updated_at == first_update

    def test_resolved_picks_are_not_rewritten(self, engine, teams, make_game, make_group, make_pick):
        group = make_group([1, 2])
        game = make_game(teams["KC"], teams["BUF"], week=3)
        pick = make_pick(1, group, game, teams["KC"], status=PickStatus.INCORRECT, score=0)
        finish(game, winner=teams["KC"])

        assert engine.reconcile(game.external_game_id) == 0
        assert reload(pick).status == PickStatus.INCORRECT

    def test_game_not_final(self, engine, teams, make_game):
        game = make_game(teams["KC"], teams["BUF"], status=GameStatus.IN_PROGRESS)
        with pytest.raises(UndecidedGameError):
            engine.reconcile(game.external_game_id)

    def test_final_without_outcome(self, engine, teams, make_game):
        game = make_game(teams["KC"], teams["BUF"], status=GameStatus.FINAL)
        with pytest.raises(UndecidedGameError):
            engine.reconcile(game.external_game_id)

    def test_unknown_game(self, engine, app):
        with pytest.raises(UndecidedGameError):
            engine.reconcile("does-not-exist")

    def test_membership_failure_skips_only_that_group(self, teams, make_game, make_group, make_pick):
        healthy = make_group([1, 2], name="Healthy")
        broken = make_group([3, 4], name="Broken")
        game = make_game(teams["KC"], teams["BUF"], week=3)
        ok_pick = make_pick(1, healthy, game, teams["KC"])
        stuck_pick = make_pick(3, broken, game, teams["KC"])
        finish(game, winner=teams["KC"])

        database = DatabaseMembershipDirectory()
        directory = MagicMock()

        def list_members(group_id):
            if group_id == broken.id:
                raise MembershipUnavailableError(group_id, "directory timeout")
            return database.list_members(group_id)

        directory.list_members.side_effect = list_members
        directory.group_size.side_effect = database.group_size

        assert ReconciliationEngine(directory).reconcile(game.external_game_id) == 1
        assert reload(ok_pick).status == PickStatus.CORRECT
        assert reload(stuck_pick).status == PickStatus.PENDING

        # Directory recovers: the next pass picks up the skipped group
        assert ReconciliationEngine().reconcile(game.external_game_id) == 1
        assert reload(stuck_pick).status == PickStatus.CORRECT

    def test_table_error_leaves_group_pending(self, teams, make_game, make_group, make_pick):
        group = make_group([1, 2])
        game = make_game(teams["KC"], teams["BUF"], week=3)
        pick = make_pick(1, group, game, teams["KC"])
        finish(game, winner=teams["KC"])

        directory = MagicMock()
        directory.list_members.return_value = [Member(user_id, False) for user_id in range(1, 13)]
        directory.group_size.return_value = 12

        assert ReconciliationEngine(directory).reconcile(game.external_game_id) == 0
        assert reload(pick).status == PickStatus.PENDING

    def test_former_member_does_not_block_group(self, engine, teams, make_game, make_group, make_pick):
        """Everyone on the winner, one of them has since left the group"""
        group = make_group([1, 2, 3, 4])
        game = make_game(teams["KC"], teams["BUF"], week=3)
        picks = [make_pick(user_id, group, game, teams["KC"]) for user_id in (1, 2, 3, 4)]
        GroupMember.query.filter_by(group_id=group.id, user_id=4).first().deactivate()
        db.session.commit()
        finish(game, winner=teams["KC"])

        assert engine.reconcile(game.external_game_id) == 4

        for pick in picks:
            pick = reload(pick)
            assert pick.status == PickStatus.CORRECT
            assert pick.score == 4  # three active members share it in a group of three

    def test_former_member_pick_counts_itself(self, engine, teams, make_game, make_group, make_pick):
        group = make_group([1, 2, 3])
        game = make_game(teams["DET"], teams["GB"], week=5)
        make_pick(1, group, game, teams["GB"])
        departed = make_pick(3, group, game, teams["DET"])
        GroupMember.query.filter_by(group_id=group.id, user_id=3).first().deactivate()
        db.session.commit()
        finish(game, winner=teams["DET"])

        engine.reconcile(game.external_game_id)

        assert reload(departed).status == PickStatus.CORRECT
        assert reload(departed).score == 10

    def test_table_error_leaves_only_that_pick_pending(self, teams, make_game, make_group, make_pick):
        group = make_group([1, 2, 3, 4])
        game = make_game(teams["NYG"], teams["WAS"], week=4)
        alone = make_pick(1, group, game, teams["NYG"])
        crowded = [make_pick(user_id, group, game, teams["WAS"]) for user_id in (2, 3, 4)]
        finish(game, is_tie=True)

        # Directory reports fewer members than share the Commanders pick
        directory = MagicMock()
        directory.list_members.return_value = [Member(user_id, False) for user_id in (1, 2, 3, 4)]
        directory.group_size.return_value = 2

        assert ReconciliationEngine(directory).reconcile(game.external_game_id) == 1
        assert reload(alone).status == PickStatus.CORRECT
        assert reload(alone).score == 10
        assert {reload(pick).status for pick in crowded} == {PickStatus.PENDING}


class TestReconcileFinishedGames:
    def test_sweeps_final_games_with_pending_picks(self, engine, teams, make_game, make_group, make_pick):
        group = make_group([1, 2])
        final = make_game(teams["KC"], teams["BUF"], week=3)
        undecided = make_game(teams["PHI"], teams["DAL"], week=3)
        upcoming = make_game(teams["SF"], teams["LAR"], week=4)
        make_pick(1, group, final, teams["KC"])
        make_pick(2, group, undecided, teams["PHI"])
        make_pick(1, group, upcoming, teams["SF"])
        finish(final, winner=teams["KC"])
        undecided.status = GameStatus.FINAL
        db.session.commit()

        report = engine.reconcile_finished_games()

        assert report.games_reconciled == 1
        assert report.picks_resolved == 1
        assert report.skipped_games == [undecided.external_game_id]
        assert Pick.query.filter_by(status=PickStatus.PENDING).count() == 2

    def test_nothing_to_do(self, engine, app):
        report = engine.reconcile_finished_games()
        assert report.to_dict() == {"games_reconciled": 0, "picks_resolved": 0, "skipped_games": []}
