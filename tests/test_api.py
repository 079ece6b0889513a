"""Tests for the JSON API."""

from unittest.mock import patch

from conftest import future, past

from pickem.models import GameStatus, Pick, PickStatus
from pickem.services.schedule_sync import SyncReport


def put_pick(client, group_id, week, user_id, team_id):
    return client.put(
        f"/api/groups/{group_id}/picks/{week}",
        json={"user_id": user_id, "team_id": team_id},
    )


class TestReadEndpoints:
    def test_teams(self, client, teams):
        response = client.get("/api/teams")
        assert response.status_code == 200
        data = response.get_json()
        assert len(data) == 32
        assert data[0]["name"] == "Arizona Cardinals"

    def test_week_games(self, client, teams, make_game):
        make_game(teams["KC"], teams["BUF"], week=2, kickoff=future())
        response = client.get("/api/games/week/2")

        data = response.get_json()
        assert response.status_code == 200
        assert len(data["games"]) == 1
        assert data["games"][0]["home_team"]["abbreviation"] == "KC"
        assert data["games"][0]["is_locked"] is False

    def test_unknown_route_is_json_404(self, client, app):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.get_json()["success"] is False


class TestPickEndpoints:
    def test_submit_pick(self, client, teams, make_game, make_group):
        group = make_group([1, 2])
        make_game(teams["KC"], teams["BUF"], week=2, kickoff=future())

        response = put_pick(client, group.id, 2, 1, teams["KC"].id)

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["pick"]["team_id"] == teams["KC"].id
        assert data["pick"]["status"] == "pending"

    def test_bye_week_is_404(self, client, teams, make_game, make_group):
        group = make_group([1])
        make_game(teams["KC"], teams["BUF"], week=2, kickoff=future())

        response = put_pick(client, group.id, 2, 1, teams["SEA"].id)

        assert response.status_code == 404
        assert response.get_json()["error"] == "no_game_for_team_week"

    def test_locked_game_is_409(self, client, teams, make_game, make_group):
        group = make_group([1])
        make_game(teams["KC"], teams["BUF"], week=2, kickoff=past())

        response = put_pick(client, group.id, 2, 1, teams["KC"].id)

        assert response.status_code == 409
        assert response.get_json()["error"] == "pick_window_closed"
        assert Pick.query.count() == 0

    def test_team_already_used_is_409(self, client, teams, make_game, make_group):
        group = make_group([1])
        make_game(teams["KC"], teams["BUF"], week=2, kickoff=future(3))
        make_game(teams["KC"], teams["DEN"], week=3, kickoff=future(10))
        put_pick(client, group.id, 2, 1, teams["KC"].id)

        response = put_pick(client, group.id, 3, 1, teams["KC"].id)

        data = response.get_json()
        assert response.status_code == 409
        assert data["error"] == "team_already_used"
        assert data["used_in_week"] == 2

    def test_missing_user_id_is_400(self, client, teams, make_group):
        group = make_group([1])
        response = client.put(f"/api/groups/{group.id}/picks/2", json={"team_id": teams["KC"].id})
        assert response.status_code == 400

    def test_null_team_clears(self, client, teams, make_game, make_group):
        group = make_group([1])
        make_game(teams["KC"], teams["BUF"], week=2, kickoff=future())
        put_pick(client, group.id, 2, 1, teams["KC"].id)

        response = put_pick(client, group.id, 2, 1, None)

        assert response.status_code == 200
        assert response.get_json()["pick"] is None
        assert Pick.query.count() == 0

    def test_delete_pick(self, client, teams, make_game, make_group):
        group = make_group([1])
        make_game(teams["KC"], teams["BUF"], week=2, kickoff=future())
        put_pick(client, group.id, 2, 1, teams["KC"].id)

        response = client.delete(f"/api/groups/{group.id}/picks/2?user_id=1")

        assert response.status_code == 200
        assert response.get_json()["deleted"] is True

    def test_group_picks_hide_others(self, client, teams, make_game, make_group):
        group = make_group([1, 2])
        make_game(teams["KC"], teams["BUF"], week=2, kickoff=future())
        put_pick(client, group.id, 2, 1, teams["KC"].id)
        put_pick(client, group.id, 2, 2, teams["BUF"].id)

        response = client.get(f"/api/groups/{group.id}/picks/2?viewer_id=1")

        picks = {pick["user_id"]: pick for pick in response.get_json()["picks"]}
        assert picks[1]["team_id"] == teams["KC"].id
        assert picks[2]["hidden"] is True
        assert picks[2]["team_id"] is None

    def test_selections(self, client, teams, make_group):
        group = make_group([1])
        response = client.get(f"/api/groups/{group.id}/users/1/selections")
        assert len(response.get_json()["selections"]) == 18

    def test_available_teams(self, client, teams, make_game, make_group):
        group = make_group([1])
        make_game(teams["KC"], teams["BUF"], week=2, kickoff=future())

        response = client.get(f"/api/groups/{group.id}/users/1/available-teams/2")

        abbreviations = [team["abbreviation"] for team in response.get_json()["teams"]]
        assert abbreviations == ["BUF", "KC"]


class TestStandingsEndpoint:
    def test_standings(self, client, teams, make_game, make_group, make_pick):
        group = make_group([1, 2])
        game = make_game(teams["KC"], teams["BUF"], week=1, kickoff=past())
        make_pick(2, group, game, teams["KC"], status=PickStatus.CORRECT, score=10)

        response = client.get(f"/api/groups/{group.id}/standings")

        rows = response.get_json()["standings"]
        assert [row["user_id"] for row in rows] == [2, 1]
        assert rows[0]["total_score"] == 10
        assert rows[0]["rank"] == 1


class TestAdminEndpoints:
    def test_reconcile(self, client, teams, make_game, make_group, make_pick):
        group = make_group([1, 2])
        game = make_game(
            teams["KC"], teams["BUF"], week=1, kickoff=past(),
            status=GameStatus.FINAL, winner=teams["KC"],
        )
        make_pick(1, group, game, teams["KC"])

        response = client.post("/api/admin/reconcile")

        report = response.get_json()["report"]
        assert report["games_reconciled"] == 1
        assert report["picks_resolved"] == 1

    def test_sync_passes_weeks(self, client, app):
        with patch(
            "pickem.routes.api.routes.ScheduleSynchronizer.sync_schedule",
            return_value=SyncReport(weeks_synced=[3], created=16),
        ) as sync:
            response = client.post("/api/admin/sync", json={"weeks": [3]})

        sync.assert_called_once_with([3])
        assert response.get_json()["report"]["created"] == 16

    def test_sync_rejects_bad_weeks(self, client, app):
        response = client.post("/api/admin/sync", json={"weeks": ["soon"]})
        assert response.status_code == 400
