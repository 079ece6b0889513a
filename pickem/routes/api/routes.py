import logging

from flask import jsonify, request

from pickem.models import ScheduledGame, Team
from pickem.routes.api import bp
from pickem.services.pick_service import PickService
from pickem.services.reconciliation import ReconciliationEngine
from pickem.services.schedule_sync import ScheduleSynchronizer
from pickem.services.standings import standings
from pickem.utils.cache_utils import cached_route

logger = logging.getLogger(__name__)


def _int_arg(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@bp.route("/teams")
@cached_route(timeout=3600, key_prefix="teams", models=("Team",))  # Cache for 1 hour
def teams():
    """Get all teams"""
    return [team.to_dict() for team in Team.get_all()]


@bp.route("/games/week/<int:week>")
@cached_route(
    timeout=300, key_prefix="week_games", models=("ScheduledGame",)
)  # Cache for 5 minutes (shorter due to live updates)
def week_games(week):
    """Get games for a specific week"""
    games = ScheduledGame.get_games_for_week(week)
    return {"week": week, "games": [game.to_dict() for game in games]}


@bp.route("/groups/<int:group_id>/picks/<int:week>", methods=["PUT"])
def submit_pick(group_id, week):
    """Create, change or clear a pick (team_id null clears)"""
    data = request.get_json(silent=True) or {}
    user_id = _int_arg(data.get("user_id"))
    if user_id is None:
        return jsonify({"success": False, "error": "user_id is required"}), 400

    team_id = data.get("team_id")
    if team_id is not None:
        team_id = _int_arg(team_id)
        if team_id is None:
            return jsonify({"success": False, "error": "team_id must be an integer"}), 400

    pick = PickService().submit_pick(user_id, group_id, week, team_id)
    if pick is None:
        return jsonify({"success": True, "pick": None})
    return jsonify({"success": True, "pick": pick.to_dict()})


@bp.route("/groups/<int:group_id>/picks/<int:week>", methods=["DELETE"])
def clear_pick(group_id, week):
    """Clear a pick before it locks"""
    user_id = _int_arg(request.args.get("user_id"))
    if user_id is None:
        return jsonify({"success": False, "error": "user_id is required"}), 400

    deleted = PickService().clear_pick(user_id, group_id, week)
    return jsonify({"success": True, "deleted": deleted})


@bp.route("/groups/<int:group_id>/picks/<int:week>")
def group_picks(group_id, week):
    """Everyone's picks for a week; unlocked picks of others are hidden"""
    viewer_id = _int_arg(request.args.get("viewer_id"))
    picks = PickService().group_picks_for_week(group_id, week, viewer_id=viewer_id)
    return jsonify({"group_id": group_id, "week": week, "picks": picks})


@bp.route("/groups/<int:group_id>/users/<int:user_id>/selections")
def user_selections(group_id, user_id):
    """A user's pick for every week of the season"""
    selections = PickService().selections_for_user(group_id, user_id)
    return jsonify({"group_id": group_id, "user_id": user_id, "selections": selections})


@bp.route("/groups/<int:group_id>/users/<int:user_id>/available-teams/<int:week>")
def available_teams(group_id, user_id, week):
    """Teams the user can still pick this week"""
    teams = PickService().available_teams_for_week(group_id, user_id, week)
    return jsonify({"week": week, "teams": [team.to_dict() for team in teams]})


@bp.route("/groups/<int:group_id>/standings")
@cached_route(timeout=300, key_prefix="standings", models=("Pick",))  # Cache for 5 minutes
def group_standings(group_id):
    """Season standings for a group"""
    rows = standings(group_id)
    return {
        "group_id": group_id,
        "standings": [
            dict(row._asdict(), rank=rank) for rank, row in enumerate(rows, start=1)
        ],
    }


@bp.route("/admin/sync", methods=["POST"])
def admin_sync():
    """Run a schedule sync now"""
    data = request.get_json(silent=True) or {}
    weeks = data.get("weeks")
    if weeks is not None:
        if isinstance(weeks, int):
            weeks = [weeks]
        weeks = [_int_arg(week) for week in weeks]
        if not weeks or None in weeks:
            return jsonify({"success": False, "error": "weeks must be integers"}), 400

    report = ScheduleSynchronizer().sync_schedule(weeks)
    logger.info(f"Manual schedule sync: {report.to_dict()}")
    return jsonify({"success": not report.failed_weeks, "report": report.to_dict()})


@bp.route("/admin/reconcile", methods=["POST"])
def admin_reconcile():
    """Resolve pending picks on every final game"""
    report = ReconciliationEngine().reconcile_finished_games()
    return jsonify({"success": True, "report": report.to_dict()})
