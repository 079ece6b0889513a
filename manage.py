#!/usr/bin/env python3
"""
Wave Pick'em Management CLI

Command-line management for the pick'em service: database setup, team
seeding, schedule syncing, reconciliation and pick administration.
"""

import logging

import click
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pickem import create_app, db
from pickem.data.nfl_teams import seed_teams
from pickem.errors import ConsistencyError, PickValidationError
from pickem.models import GameStatus, Group, Pick, PickStatus, ScheduledGame, Team
from pickem.services.pick_service import PickService
from pickem.services.reconciliation import ReconciliationEngine
from pickem.services.schedule_sync import ScheduleSynchronizer
from pickem.services.standings import standings as group_standings

app = create_app()


@click.group()
def cli():
    """Wave Pick'em Management CLI"""
    pass


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command("init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Team Registry Commands
@cli.group()
def teams():
    """Team registry commands"""
    pass


@teams.command()
@with_appcontext
def seed():
    """Insert or refresh the 32 NFL teams"""
    try:
        created, updated = seed_teams()
        click.echo(f"✅ Teams seeded: {created} created, {updated} updated")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error seeding teams: {str(e)}")
        logging.error(f"Team seeding failed - SQL error: {e}")


@teams.command("list")
@with_appcontext
def list_teams():
    """List all teams"""
    all_teams = Team.get_all()
    if not all_teams:
        click.echo("No teams found. Run 'teams seed' first.")
        return

    click.echo("Teams:")
    for team in all_teams:
        click.echo(f"  {team.id:>3} {team.abbreviation:<4} {team.name}")


# Data Sync Commands
@cli.group()
def sync():
    """Data synchronization commands"""
    pass


@sync.command()
@click.option(
    "--week", "weeks", type=int, multiple=True, help="Week to sync (repeatable)"
)
@with_appcontext
def schedule(weeks):
    """Sync the schedule (all regular season weeks by default)"""
    label = ", ".join(str(week) for week in weeks) if weeks else "all weeks"
    click.echo(f"Syncing schedule ({label})...")

    report = ScheduleSynchronizer().sync_schedule(weeks or None)

    click.echo(
        f"  Created: {report.created}  Updated: {report.updated}  "
        f"Unchanged: {report.unchanged}  Skipped: {report.skipped}"
    )
    if report.failed_weeks:
        click.echo(f"❌ Failed weeks: {', '.join(str(w) for w in report.failed_weeks)}")
    else:
        click.echo(f"✅ Synced {len(report.weeks_synced)} weeks")


@sync.command()
@with_appcontext
def reconcile():
    """Resolve pending picks on final games"""
    click.echo("Reconciling finished games...")
    report = ReconciliationEngine().reconcile_finished_games()

    click.echo(
        f"✅ {report.games_reconciled} games reconciled, "
        f"{report.picks_resolved} picks resolved"
    )
    if report.skipped_games:
        click.echo(f"⚠️  Skipped games: {', '.join(report.skipped_games)}")


# Pick Commands
@cli.group()
def picks():
    """Pick administration commands"""
    pass


@picks.command()
@click.argument("group_id", type=int)
@click.argument("user_id", type=int)
@click.argument("week", type=int)
@click.argument("team")
@with_appcontext
def submit(group_id, user_id, week, team):
    """Submit a pick (TEAM is an abbreviation or team id)"""
    selected = (
        db.session.get(Team, int(team)) if team.isdigit() else Team.get_by_abbreviation(team)
    )
    if selected is None:
        click.echo(f"❌ Team {team} not found!")
        return

    try:
        PickService().submit_pick(user_id, group_id, week, selected.id)
        click.echo(f"✅ User {user_id} picked {selected.abbreviation} for week {week}")
    except PickValidationError as e:
        click.echo(f"❌ {e.message}")


@picks.command()
@click.argument("group_id", type=int)
@click.argument("user_id", type=int)
@click.argument("week", type=int)
@with_appcontext
def clear(group_id, user_id, week):
    """Clear a pick before it locks"""
    try:
        if PickService().clear_pick(user_id, group_id, week):
            click.echo(f"✅ Cleared week {week} pick for user {user_id}")
        else:
            click.echo(f"No week {week} pick for user {user_id}")
    except PickValidationError as e:
        click.echo(f"❌ {e.message}")


@cli.command()
@click.argument("group_id", type=int)
@with_appcontext
def standings(group_id):
    """Show standings for a group"""
    try:
        rows = group_standings(group_id)
    except ConsistencyError as e:
        click.echo(f"❌ {e}")
        return

    if not rows:
        click.echo("No members or picks yet.")
        return

    click.echo(f"🏆 Standings for group {group_id}")
    click.echo("=" * 40)
    for rank, row in enumerate(rows, start=1):
        click.echo(
            f"  {rank:>2}. user {row.user_id:<6} {row.total_score:>4} pts "
            f"({row.correct_picks}W {row.incorrect_picks}L {row.pending_picks} pending)"
        )


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏈 Wave Pick'em Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    click.echo(f"📅 Season: {app.config.get('SEASON_YEAR')}")
    click.echo(f"🔒 Lock policy: {app.config.get('LOCK_POLICY')}")

    team_count = Team.query.count()
    click.echo(f"🏟️  Teams: {team_count}")

    game_count = ScheduledGame.query.count()
    final_count = ScheduledGame.query.filter_by(status=GameStatus.FINAL).count()
    click.echo(f"🏈 Games: {final_count}/{game_count} completed")
    if game_count:
        click.echo(f"📆 Current week: {ScheduledGame.current_week()}")

    group_count = Group.query.count()
    click.echo(f"👥 Groups: {group_count}")

    pending = Pick.query.filter_by(status=PickStatus.PENDING).count()
    click.echo(f"⏳ Pending picks: {pending}")


if __name__ == "__main__":
    with app.app_context():
        cli()
