"""
Background scheduler for schedule syncing and pick reconciliation

Runs the synchronizer and the reconciliation engine on APScheduler jobs.
Both are idempotent, so a coalesced or overlapping run does no harm.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from pickem import db
from pickem.models import ScheduledGame
from pickem.services.reconciliation import ReconciliationEngine
from pickem.services.schedule_sync import ScheduleSynchronizer

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages the background sync and reconciliation jobs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.synchronizer = None
        self.engine = None
        self.is_running = False
        self.sync_stats = self._empty_stats()

        if app:
            self.init_app(app)

    @staticmethod
    def _empty_stats():
        return {
            "last_sync": None,
            "total_syncs": 0,
            "successful_syncs": 0,
            "failed_syncs": 0,
            "last_error": None,
            "games_updated": 0,
            "picks_resolved": 0,
        }

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        with app.app_context():
            self.synchronizer = ScheduleSynchronizer()
            self.engine = ReconciliationEngine()

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        self.scheduler.remove_all_jobs()
        self._add_core_jobs()
        self.scheduler.start()
        self.is_running = True

        logger.info("Scheduler started successfully")

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Scheduler stopped")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        """Add core scheduled jobs"""
        interval = self.app.config.get("LIVE_SYNC_INTERVAL_SECONDS", 90)

        # Scores for the week in play, then resolve anything that went final
        self.scheduler.add_job(
            func=self._sync_live_scores,
            trigger=IntervalTrigger(seconds=interval),
            id="sync_live_scores",
            name="Sync Live Scores",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=30,
        )

        # Weekly schedule update (Tuesday 6 AM UTC)
        self.scheduler.add_job(
            func=self._weekly_schedule_sync,
            trigger=CronTrigger(day_of_week="tue", hour=6, minute=0),
            id="weekly_schedule_sync",
            name="Weekly Schedule Update",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        # Retry groups skipped by earlier passes
        self.scheduler.add_job(
            func=self._reconcile_sweep,
            trigger=CronTrigger(minute=0),  # Top of every hour
            id="reconcile_sweep",
            name="Hourly Reconciliation Sweep",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        logger.info("Core scheduled jobs added")

    def _current_weeks(self):
        max_week = self.app.config.get("REGULAR_SEASON_WEEKS", 18)
        week = ScheduledGame.current_week(max_week=max_week)
        return sorted({max(week - 1, 1), week})

    def _sync_live_scores(self):
        """Sync the current and previous week, then reconcile"""
        with self.app.app_context():
            try:
                report = self.synchronizer.sync_schedule(self._current_weeks())
                result = self.engine.reconcile_finished_games()

                self._update_stats(
                    not report.failed_weeks, report.changed, result.picks_resolved
                )
                if report.failed_weeks:
                    self.sync_stats["last_error"] = (
                        f"Failed weeks: {report.failed_weeks}"
                    )

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in live score sync: {e}", exc_info=True)

    def _weekly_schedule_sync(self):
        """Full regular season schedule refresh"""
        with self.app.app_context():
            try:
                logger.info("Running weekly schedule sync...")
                report = self.synchronizer.sync_schedule()

                self._update_stats(not report.failed_weeks, report.changed)
                if report.failed_weeks:
                    self.sync_stats["last_error"] = (
                        f"Failed weeks: {report.failed_weeks}"
                    )
                    logger.warning(
                        f"Weekly schedule sync issues: failed weeks {report.failed_weeks}"
                    )
                else:
                    logger.info(f"Weekly schedule sync completed: {report.to_dict()}")

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in weekly schedule sync: {e}", exc_info=True)

    def _reconcile_sweep(self):
        with self.app.app_context():
            try:
                result = self.engine.reconcile_finished_games()
                self._update_stats(True, picks_resolved=result.picks_resolved)

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in reconciliation sweep: {e}", exc_info=True)

    def _update_stats(self, success, games_updated=0, picks_resolved=0):
        """Update sync statistics"""
        self.sync_stats["last_sync"] = datetime.now(timezone.utc)
        self.sync_stats["total_syncs"] += 1

        if success:
            self.sync_stats["successful_syncs"] += 1
            self.sync_stats["games_updated"] += games_updated
            self.sync_stats["picks_resolved"] += picks_resolved
            self.sync_stats["last_error"] = None
        else:
            self.sync_stats["failed_syncs"] += 1

        # Reset counters periodically
        if self.sync_stats["total_syncs"] > 10000:
            last_sync = self.sync_stats["last_sync"]
            self.sync_stats = self._empty_stats()
            self.sync_stats["last_sync"] = last_sync

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = getattr(job, "next_run_time", None)
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.sync_stats)
        if stats["last_sync"]:
            stats["last_sync"] = stats["last_sync"].isoformat()

        status = {"is_running": self.is_running, "jobs": jobs, "stats": stats}
        if self.synchronizer:
            status["rate_limit"] = self.synchronizer.get_rate_limit_status()
        return status

    def force_sync(self, sync_type="live"):
        """Manually trigger a job"""
        jobs = {
            "live": self._sync_live_scores,
            "weekly": self._weekly_schedule_sync,
            "reconcile": self._reconcile_sweep,
        }
        if sync_type not in jobs:
            return False, f"Unknown sync type: {sync_type}"

        jobs[sync_type]()
        if self.sync_stats["last_error"]:
            return False, f"Manual {sync_type} sync failed: {self.sync_stats['last_error']}"
        return True, f"Manual {sync_type} sync completed"


# Global scheduler instance
scheduler_service = SchedulerService()
