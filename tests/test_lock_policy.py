"""Tests for wave classification and lock time derivation."""

from datetime import datetime, timedelta, timezone

import pytest
import pytz

from pickem.utils.lock_policy import (
    KICKOFF_OFFSET,
    WAVE_1,
    WAVE_2,
    WAVE_DEADLINE,
    LockPolicy,
    classify_wave,
    compute_locks_at,
    wave_deadline,
)

EASTERN = pytz.timezone("America/New_York")


def eastern(year, month, day, hour, minute=0):
    return EASTERN.localize(datetime(year, month, day, hour, minute)).astimezone(timezone.utc)


class TestClassifyWave:
    def test_thursday_night_is_wave_one(self):
        assert classify_wave(eastern(2025, 9, 4, 20, 20), EASTERN) == WAVE_1

    def test_saturday_is_wave_one(self):
        assert classify_wave(eastern(2025, 12, 20, 16, 30), EASTERN) == WAVE_1

    def test_sunday_is_wave_two(self):
        assert classify_wave(eastern(2025, 9, 7, 13, 0), EASTERN) == WAVE_2

    def test_monday_night_is_wave_two(self):
        assert classify_wave(eastern(2025, 9, 8, 20, 15), EASTERN) == WAVE_2

    def test_uses_schedule_timezone_not_utc(self):
        # 00:20 UTC Friday is still Thursday night in New York
        kickoff = datetime(2025, 9, 5, 0, 20, tzinfo=timezone.utc)
        assert kickoff.weekday() == 4
        assert classify_wave(kickoff, EASTERN) == WAVE_1

    def test_naive_kickoff_treated_as_utc(self):
        assert classify_wave(datetime(2025, 9, 7, 17, 0), EASTERN) == WAVE_2


class TestWaveDeadline:
    def test_friday_game_locks_thursday_evening(self):
        deadline = wave_deadline(eastern(2025, 9, 5, 20, 15), EASTERN)
        assert deadline == eastern(2025, 9, 4, 19, 45)

    def test_monday_game_locks_sunday_afternoon(self):
        deadline = wave_deadline(eastern(2025, 9, 8, 20, 15), EASTERN)
        assert deadline == eastern(2025, 9, 7, 12, 30)

    def test_custom_deadlines(self):
        deadline = wave_deadline(
            eastern(2025, 9, 7, 16, 25), EASTERN, wave2_deadline="11:00"
        )
        assert deadline == eastern(2025, 9, 7, 11, 0)


class TestComputeLocksAt:
    def test_kickoff_offset_default_thirty_minutes(self):
        kickoff = eastern(2025, 9, 7, 13, 0)
        assert compute_locks_at(kickoff) == kickoff - timedelta(minutes=30)

    def test_kickoff_offset_custom(self):
        kickoff = eastern(2025, 9, 7, 13, 0)
        assert compute_locks_at(kickoff, KICKOFF_OFFSET, offset_minutes=10) == kickoff - timedelta(minutes=10)

    def test_wave_deadline_before_kickoff(self):
        kickoff = eastern(2025, 9, 7, 16, 25)
        locks_at = compute_locks_at(kickoff, WAVE_DEADLINE, tz=EASTERN)
        assert locks_at == eastern(2025, 9, 7, 12, 30)

    def test_wave_deadline_capped_at_kickoff(self):
        # Thanksgiving early game kicks off before the Thursday deadline
        kickoff = eastern(2025, 11, 27, 12, 30)
        assert compute_locks_at(kickoff, WAVE_DEADLINE, tz=EASTERN) == kickoff

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            compute_locks_at(eastern(2025, 9, 7, 13, 0), "first_pick_wins")


class TestLockPolicy:
    def test_rejects_unknown_policy(self):
        with pytest.raises(ValueError):
            LockPolicy(policy="never")

    def test_from_config_reads_app_settings(self, app):
        app.config["LOCK_POLICY"] = WAVE_DEADLINE
        app.config["WAVE2_DEADLINE"] = "12:00"

        policy = LockPolicy.from_config()
        kickoff = eastern(2025, 9, 7, 13, 0)

        assert policy.policy == WAVE_DEADLINE
        assert policy.locks_at(kickoff) == eastern(2025, 9, 7, 12, 0)
        assert policy.wave_for(kickoff) == WAVE_2

    def test_default_policy_offsets_kickoff(self, app):
        policy = LockPolicy.from_config()
        kickoff = eastern(2025, 9, 4, 20, 20)
        assert policy.locks_at(kickoff) == kickoff - timedelta(minutes=30)
