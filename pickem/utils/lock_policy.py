"""
Pick deadline rules.

Every week is split into two waves by the day a game is played (in the
schedule timezone):

    Wave 1 - Thursday, Friday, Saturday
    Wave 2 - Sunday, Monday (and any other day)

A deployment uses exactly one lock policy:

    kickoff_offset - a game locks a fixed number of minutes before kickoff
    wave_deadline  - a game locks at its wave's deadline (Thursday evening for
                     Wave 1, Sunday early afternoon for Wave 2), never later
                     than kickoff
"""

from datetime import datetime, timedelta

from flask import current_app, has_app_context

from pickem.utils.timezone_utils import ensure_utc, get_schedule_timezone

KICKOFF_OFFSET = "kickoff_offset"
WAVE_DEADLINE = "wave_deadline"
LOCK_POLICIES = (KICKOFF_OFFSET, WAVE_DEADLINE)

WAVE_1 = 1
WAVE_2 = 2

# datetime.weekday(): Monday=0 ... Sunday=6
THURSDAY = 3
SATURDAY = 5
SUNDAY = 6

DEFAULT_OFFSET_MINUTES = 30
DEFAULT_WAVE1_DEADLINE = "19:45"
DEFAULT_WAVE2_DEADLINE = "12:30"


def classify_wave(kickoff_time, tz=None):
    """Return the wave (1 or 2) a kickoff belongs to"""
    tz = tz or get_schedule_timezone()
    local_kickoff = ensure_utc(kickoff_time).astimezone(tz)

    if THURSDAY <= local_kickoff.weekday() <= SATURDAY:
        return WAVE_1
    return WAVE_2


def _parse_clock(value):
    hours, minutes = value.split(":")
    return int(hours), int(minutes)


def wave_deadline(kickoff_time, tz=None, wave1_deadline=None, wave2_deadline=None):
    """Deadline for the wave containing this kickoff, as an aware UTC datetime"""
    tz = tz or get_schedule_timezone()
    local_kickoff = ensure_utc(kickoff_time).astimezone(tz)
    wave = classify_wave(kickoff_time, tz)

    if wave == WAVE_1:
        days_back = local_kickoff.weekday() - THURSDAY
        hours, minutes = _parse_clock(wave1_deadline or DEFAULT_WAVE1_DEADLINE)
    else:
        # Sunday -> 0, Monday -> 1, Tuesday -> 2, Wednesday -> 3
        days_back = (local_kickoff.weekday() - SUNDAY) % 7
        hours, minutes = _parse_clock(wave2_deadline or DEFAULT_WAVE2_DEADLINE)

    deadline_date = local_kickoff.date() - timedelta(days=days_back)
    naive_deadline = datetime(
        deadline_date.year, deadline_date.month, deadline_date.day, hours, minutes
    )
    deadline = tz.localize(naive_deadline)

    return ensure_utc(deadline)


def compute_locks_at(kickoff_time, policy=KICKOFF_OFFSET, offset_minutes=None, **wave_kwargs):
    """Derive the lock time for a game from its kickoff"""
    kickoff_time = ensure_utc(kickoff_time)

    if policy == KICKOFF_OFFSET:
        if offset_minutes is None:
            offset_minutes = DEFAULT_OFFSET_MINUTES
        return kickoff_time - timedelta(minutes=offset_minutes)

    if policy == WAVE_DEADLINE:
        # Thanksgiving and other early games kick off before the wave deadline
        return min(wave_deadline(kickoff_time, **wave_kwargs), kickoff_time)

    raise ValueError(f"Unknown lock policy: {policy}")


class LockPolicy:
    """Lock policy bound to the application's configuration"""

    def __init__(
        self,
        policy=KICKOFF_OFFSET,
        offset_minutes=DEFAULT_OFFSET_MINUTES,
        wave1_deadline=DEFAULT_WAVE1_DEADLINE,
        wave2_deadline=DEFAULT_WAVE2_DEADLINE,
        tz=None,
    ):
        if policy not in LOCK_POLICIES:
            raise ValueError(f"Unknown lock policy: {policy}")
        self.policy = policy
        self.offset_minutes = offset_minutes
        self.wave1_deadline = wave1_deadline
        self.wave2_deadline = wave2_deadline
        self.tz = tz

    @classmethod
    def from_config(cls):
        if not has_app_context():
            return cls()

        config = current_app.config
        return cls(
            policy=config.get("LOCK_POLICY", KICKOFF_OFFSET),
            offset_minutes=config.get("LOCK_OFFSET_MINUTES", DEFAULT_OFFSET_MINUTES),
            wave1_deadline=config.get("WAVE1_DEADLINE", DEFAULT_WAVE1_DEADLINE),
            wave2_deadline=config.get("WAVE2_DEADLINE", DEFAULT_WAVE2_DEADLINE),
            tz=get_schedule_timezone(),
        )

    def wave_for(self, kickoff_time):
        return classify_wave(kickoff_time, self.tz)

    def locks_at(self, kickoff_time):
        if self.policy == KICKOFF_OFFSET:
            return compute_locks_at(
                kickoff_time, KICKOFF_OFFSET, offset_minutes=self.offset_minutes
            )
        return compute_locks_at(
            kickoff_time,
            WAVE_DEADLINE,
            tz=self.tz,
            wave1_deadline=self.wave1_deadline,
            wave2_deadline=self.wave2_deadline,
        )

    def __repr__(self):
        return f"<LockPolicy {self.policy}>"
