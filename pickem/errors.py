"""
Error taxonomy for the pick lifecycle and scoring subsystem.

PickValidationError   - reported to the caller, never retried, never partially applied
UpstreamDataError     - isolated per week or per game during a schedule sync and logged
ConsistencyError      - skipped during reconciliation and retried on the next pass
"""


class PickemError(Exception):
    """Base class for all pick'em errors"""


class PickValidationError(PickemError):
    """A pick submission was rejected"""

    code = "invalid_pick"
    http_status = 400
    default_message = "This pick is not allowed."

    def __init__(self, message=None, week=None, team_id=None):
        self.message = message or self.default_message
        self.week = week
        self.team_id = team_id
        super().__init__(self.message)

    def to_dict(self):
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "week": self.week,
            "team_id": self.team_id,
        }


class NoGameForTeamWeek(PickValidationError):
    code = "no_game_for_team_week"
    http_status = 404
    default_message = "No game found for this team and week. Are they on bye?"


class PickWindowClosed(PickValidationError):
    code = "pick_window_closed"
    http_status = 409
    default_message = "Picks are locked for this matchup."


class TeamAlreadyUsed(PickValidationError):
    code = "team_already_used"
    http_status = 409
    default_message = "You've already used this team."

    def __init__(self, message=None, week=None, team_id=None, used_in_week=None):
        self.used_in_week = used_in_week
        if message is None and used_in_week is not None:
            message = f"You've already used this team in week {used_in_week}."
        super().__init__(message, week=week, team_id=team_id)

    def to_dict(self):
        data = super().to_dict()
        data["used_in_week"] = self.used_in_week
        return data


class UpstreamDataError(PickemError):
    """The schedule provider returned something we cannot use"""


class FeedUnavailableError(UpstreamDataError):
    """The provider could not be reached or answered with a non-2xx status"""


class MalformedFeedError(UpstreamDataError):
    """The provider payload is missing required fields"""


class UnknownTeamError(UpstreamDataError):
    """A provider team name has no match in the team registry"""

    def __init__(self, team_name):
        self.team_name = team_name
        super().__init__(f"Unknown team name: {team_name!r}")


class ConsistencyError(PickemError):
    """Reconciliation cannot proceed yet; retry on the next pass"""


class UndecidedGameError(ConsistencyError):
    """The game is not final or has no decided outcome"""


class MembershipUnavailableError(ConsistencyError):
    """Group membership could not be read"""

    def __init__(self, group_id, reason=None):
        self.group_id = group_id
        message = f"Membership unavailable for group {group_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ScoringTableError(ConsistencyError, ValueError):
    """The scoring table was indexed outside its valid range"""
