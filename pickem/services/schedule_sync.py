import logging
import time
from dataclasses import dataclass, field
from functools import wraps

import requests
from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.errors import (
    FeedUnavailableError,
    MalformedFeedError,
    UnknownTeamError,
    UpstreamDataError,
)
from pickem.models import GameStatus, ScheduledGame, Team
from pickem.utils.cache_utils import invalidate_model_cache
from pickem.utils.lock_policy import LockPolicy
from pickem.utils.timezone_utils import ensure_utc, parse_provider_time

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://site.api.espn.com/apis/site/v2/sports/football/nfl"
REGULAR_SEASON_TYPE = 2

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Decorator to handle API rate limiting with exponential backoff
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            for attempt in range(max_retries):
                try:
                    response = func(self, *args, **kwargs)

                    # Check for rate limiting
                    if hasattr(response, "status_code"):
                        if response.status_code == 429:  # Too Many Requests
                            retry_after = float(
                                response.headers.get(
                                    "Retry-After",
                                    base_delay * (backoff_factor**attempt),
                                )
                            )
                            logger.warning(
                                f"Rate limited. Waiting {retry_after}s before retry {attempt + 1}/{max_retries}"
                            )
                            self._sleep(retry_after)
                            continue
                        elif response.status_code >= 500:  # Server errors
                            delay = base_delay * (backoff_factor**attempt)
                            logger.warning(
                                f"Server error {response.status_code}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                            )
                            self._sleep(delay)
                            continue

                    return response

                except requests.exceptions.RequestException as e:
                    delay = base_delay * (backoff_factor**attempt)
                    logger.warning(
                        f"Request failed: {e}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )
                    if attempt < max_retries - 1:
                        self._sleep(delay)
                    else:
                        raise FeedUnavailableError(str(e)) from e

            raise FeedUnavailableError(f"Max retries ({max_retries}) exceeded")

        return wrapper

    return decorator


@dataclass
class ParsedGame:
    external_game_id: str
    week: int
    home_team_id: int
    away_team_id: int
    kickoff_time: object
    status: GameStatus
    winner_team_id: int = None
    is_tie: bool = False
    home_score: int = None
    away_score: int = None


@dataclass
class SyncReport:
    weeks_synced: list = field(default_factory=list)
    failed_weeks: list = field(default_factory=list)
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0

    def record(self, outcome):
        setattr(self, outcome, getattr(self, outcome) + 1)

    @property
    def changed(self):
        return self.created + self.updated

    def to_dict(self):
        return {
            "weeks_synced": self.weeks_synced,
            "failed_weeks": self.failed_weeks,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
        }


class ScheduleSynchronizer:
    """
    Pulls the regular season schedule from the provider and upserts it into
    the schedule registry, one week at a time. A failing week or an
    unrecognized team never stops the rest of the run.
    """

    def __init__(self, api_base_url=None, season_year=None, lock_policy=None, max_week=None):
        config = current_app.config if has_app_context() else {}

        self.api_base_url = (
            api_base_url or config.get("NFL_API_BASE_URL") or DEFAULT_API_BASE_URL
        )
        self.season_year = season_year or config.get("SEASON_YEAR")
        self.max_week = max_week or config.get("REGULAR_SEASON_WEEKS", 18)
        self.lock_policy = lock_policy or LockPolicy.from_config()

        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "Wave-Pickem/1.0"})

        # Rate limiting configuration
        self.request_count = 0
        self.last_request_time = 0
        self.min_request_interval = 0.5  # Minimum 500ms between requests
        self.max_requests_per_minute = 60  # Conservative limit
        self.request_timestamps = []

    def _sleep(self, seconds):
        time.sleep(seconds)

    def _enforce_rate_limit(self):
        """Enforce rate limiting before making requests"""
        current_time = time.time()

        # Remove timestamps older than 1 minute
        self.request_timestamps = [
            ts for ts in self.request_timestamps if current_time - ts < 60
        ]

        # Check if we're at the request limit
        if len(self.request_timestamps) >= self.max_requests_per_minute:
            sleep_time = 60 - (current_time - self.request_timestamps[0])
            if sleep_time > 0:
                logger.info(f"Rate limit reached. Sleeping for {sleep_time:.1f}s")
                self._sleep(sleep_time)
                self.request_timestamps = []

        # Enforce minimum interval between requests
        time_since_last = current_time - self.last_request_time
        if time_since_last < self.min_request_interval:
            self._sleep(self.min_request_interval - time_since_last)

        # Update tracking
        self.last_request_time = time.time()
        self.request_timestamps.append(self.last_request_time)
        self.request_count += 1

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, url, params=None):
        """Make API request with rate limiting; retries are handled by the decorator"""
        self._enforce_rate_limit()
        return self.session.get(url, params=params, timeout=30)

    def fetch_week(self, week):
        """Fetch the raw provider events for one week"""
        url = f"{self.api_base_url}/scoreboard"
        params = {"seasontype": REGULAR_SEASON_TYPE, "week": week}
        if self.season_year:
            params["dates"] = self.season_year

        response = self._make_api_request(url, params=params)

        if not 200 <= response.status_code < 300:
            raise FeedUnavailableError(
                f"Week {week} request failed with HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedFeedError(f"Week {week} response is not JSON") from e

        events = data.get("events") if isinstance(data, dict) else None
        if not isinstance(events, list):
            raise MalformedFeedError(f"Week {week} response has no events list")

        return events

    def parse_event(self, event, week, team_lookup):
        """Turn one provider event into a ParsedGame.

        Any event whose shape we don't recognize raises MalformedFeedError so
        the caller can skip it and carry on with the rest of the week.
        """
        try:
            return self._parse_event(event, week, team_lookup)
        except (AttributeError, TypeError, ValueError) as e:
            raise MalformedFeedError(f"Event has an unexpected shape: {e}") from e

    def _parse_event(self, event, week, team_lookup):
        try:
            external_game_id = str(event["id"])
            competition = event["competitions"][0]
            competitors = competition["competitors"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedFeedError(f"Event missing id or competitors: {e}") from e

        if not isinstance(competitors, list) or len(competitors) != 2:
            raise MalformedFeedError(f"Event {external_game_id} needs two competitors")
        if not all(isinstance(competitor, dict) for competitor in competitors):
            raise MalformedFeedError(f"Event {external_game_id} has malformed competitors")

        event_week = (event.get("week") or {}).get("number") or week

        home = away = None
        for competitor in competitors:
            if competitor.get("homeAway") == "home":
                home = competitor
            elif competitor.get("homeAway") == "away":
                away = competitor
        if home is None or away is None:
            # Fall back to provider order: home first
            home, away = competitors[0], competitors[1]

        home_team_id = self._resolve_team(home, team_lookup)
        away_team_id = self._resolve_team(away, team_lookup)

        try:
            kickoff_time = parse_provider_time(event.get("date") or competition.get("date"))
        except (AttributeError, ValueError) as e:
            raise MalformedFeedError(f"Event {external_game_id} has a bad kickoff time") from e
        if kickoff_time is None:
            raise MalformedFeedError(f"Event {external_game_id} has no kickoff time")

        status_type = (event.get("status") or competition.get("status") or {}).get(
            "type"
        ) or {}
        if status_type.get("completed"):
            status = GameStatus.FINAL
        elif status_type.get("state") == "in":
            status = GameStatus.IN_PROGRESS
        else:
            status = GameStatus.SCHEDULED

        home_score = self._parse_score(home)
        away_score = self._parse_score(away)

        winner_team_id = None
        is_tie = False
        if status == GameStatus.FINAL:
            if home.get("winner"):
                winner_team_id = home_team_id
            elif away.get("winner"):
                winner_team_id = away_team_id
            elif home_score is not None and away_score is not None:
                # No winner flag; go by the final score
                if home_score > away_score:
                    winner_team_id = home_team_id
                elif away_score > home_score:
                    winner_team_id = away_team_id
                else:
                    is_tie = True

        return ParsedGame(
            external_game_id=external_game_id,
            week=int(event_week),
            home_team_id=home_team_id,
            away_team_id=away_team_id,
            kickoff_time=kickoff_time,
            status=status,
            winner_team_id=winner_team_id,
            is_tie=is_tie,
            home_score=home_score,
            away_score=away_score,
        )

    def _resolve_team(self, competitor, team_lookup):
        team = competitor.get("team") or {}
        for key in ("displayName", "name", "abbreviation"):
            name = team.get(key)
            if not name:
                continue
            team_id = team_lookup.get(Team.normalize_name(name))
            if team_id is not None:
                return team_id
        raise UnknownTeamError(team.get("displayName") or team.get("name"))

    @staticmethod
    def _parse_score(competitor):
        score = competitor.get("score")
        if score in (None, ""):
            return None
        if isinstance(score, dict):
            score = score.get("value")
        try:
            return int(float(score))
        except (TypeError, ValueError):
            return None

    def upsert_game(self, parsed):
        """Create or update a game; returns CREATED, UPDATED or UNCHANGED"""
        game = ScheduledGame.get_by_external_id(parsed.external_game_id)

        if game is None:
            game = ScheduledGame(
                external_game_id=parsed.external_game_id,
                week=parsed.week,
                home_team_id=parsed.home_team_id,
                away_team_id=parsed.away_team_id,
                kickoff_time=parsed.kickoff_time,
                locks_at=self.lock_policy.locks_at(parsed.kickoff_time),
                wave=self.lock_policy.wave_for(parsed.kickoff_time),
                status=parsed.status,
                winner_team_id=parsed.winner_team_id,
                is_tie=parsed.is_tie,
                home_score=parsed.home_score,
                away_score=parsed.away_score,
            )
            db.session.add(game)
            return CREATED

        changes = {}

        if ensure_utc(game.kickoff_time) != parsed.kickoff_time:
            logger.info(
                f"Game {game.external_game_id} rescheduled: "
                f"{ensure_utc(game.kickoff_time).isoformat()} -> {parsed.kickoff_time.isoformat()}"
            )
            changes["kickoff_time"] = parsed.kickoff_time
            changes["locks_at"] = self.lock_policy.locks_at(parsed.kickoff_time)
            changes["wave"] = self.lock_policy.wave_for(parsed.kickoff_time)

        for attr in ("week", "home_team_id", "away_team_id", "home_score", "away_score"):
            value = getattr(parsed, attr)
            if value is not None and getattr(game, attr) != value:
                changes[attr] = value

        if game.is_final and parsed.status != GameStatus.FINAL:
            # Provider flapped; a final result is never withdrawn
            logger.warning(
                f"Ignoring status {parsed.status.value} for final game {game.external_game_id}"
            )
        else:
            if game.status != parsed.status:
                changes["status"] = parsed.status
            if parsed.status == GameStatus.FINAL:
                if game.winner_team_id != parsed.winner_team_id:
                    if game.is_decided:
                        logger.warning(
                            f"Winner of final game {game.external_game_id} changed "
                            f"from {game.winner_team_id} to {parsed.winner_team_id}"
                        )
                    changes["winner_team_id"] = parsed.winner_team_id
                if game.is_tie != parsed.is_tie:
                    changes["is_tie"] = parsed.is_tie

        if not changes:
            return UNCHANGED

        for attr, value in changes.items():
            setattr(game, attr, value)
        return UPDATED

    def sync_week(self, week, team_lookup, seen, report):
        """Fetch and upsert a single week; failures are isolated to this week"""
        try:
            events = self.fetch_week(week)
        except UpstreamDataError as e:
            logger.warning(f"Skipping week {week}: {e}")
            report.failed_weeks.append(week)
            return

        for event in events:
            try:
                parsed = self.parse_event(event, week, team_lookup)
            except UpstreamDataError as e:
                logger.warning(f"Skipping game in week {week}: {e}")
                report.skipped += 1
                continue

            # Providers occasionally repeat an event within a run
            if parsed.external_game_id in seen:
                continue
            seen.add(parsed.external_game_id)

            report.record(self.upsert_game(parsed))

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to store week {week} games: {e}")
            report.failed_weeks.append(week)
            return

        report.weeks_synced.append(week)

    def sync_schedule(self, weeks=None):
        """Sync the given weeks (default: the whole regular season)"""
        weeks = list(weeks) if weeks else list(range(1, self.max_week + 1))
        report = SyncReport()

        team_lookup = Team.build_name_lookup()
        if not team_lookup:
            logger.error("Team registry is empty; seed teams before syncing the schedule")
            report.failed_weeks = weeks
            return report

        logger.info(f"Starting schedule sync for weeks {weeks[0]}-{weeks[-1]}")
        seen = set()

        for week in weeks:
            self.sync_week(week, team_lookup, seen, report)

        if report.changed:
            invalidate_model_cache("ScheduledGame")

        logger.info(
            f"Schedule sync finished: {report.created} created, {report.updated} updated, "
            f"{report.unchanged} unchanged, {report.skipped} skipped, "
            f"failed weeks: {report.failed_weeks or 'none'}"
        )
        return report

    def get_rate_limit_status(self):
        """Get current rate limit status"""
        current_time = time.time()
        self.request_timestamps = [
            ts for ts in self.request_timestamps if current_time - ts < 60
        ]

        return {
            "total_requests": self.request_count,
            "requests_last_minute": len(self.request_timestamps),
            "max_requests_per_minute": self.max_requests_per_minute,
            "min_request_interval": self.min_request_interval,
        }
