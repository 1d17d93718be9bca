"""Unit tests for auth/lockout.py -- the pure lockout decision functions.

Covers:
- Counter increments below the threshold never set a lock
- Reaching the threshold locks for exactly lock_minutes
- Only the timestamp gates rejection; an expired lock does not block
- reset() clears both fields
"""

from datetime import datetime, timedelta, timezone

from auth.lockout import LockoutPolicy, LockoutState

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_failures_below_threshold_do_not_lock():
    policy = LockoutPolicy(max_attempts=5, lock_minutes=30)
    state = LockoutState(0, None)
    for expected in range(1, 5):
        state = policy.register_failure(state.failed_attempts, NOW)
        assert state == LockoutState(expected, None)


def test_fifth_failure_locks_for_configured_duration():
    policy = LockoutPolicy(max_attempts=5, lock_minutes=30)
    state = policy.register_failure(4, NOW)
    assert state.failed_attempts == 5
    assert state.locked_until == NOW + timedelta(minutes=30)


def test_failure_after_expired_lock_relocks():
    """The counter is still past the threshold, so one more failure locks again."""
    policy = LockoutPolicy(max_attempts=5, lock_minutes=30)
    later = NOW + timedelta(hours=1)
    state = policy.register_failure(5, later)
    assert state == LockoutState(6, later + timedelta(minutes=30))


def test_is_locked_only_before_expiry():
    policy = LockoutPolicy()
    locked_until = NOW + timedelta(minutes=30)
    assert policy.is_locked(locked_until, NOW)
    assert policy.is_locked(locked_until, locked_until - timedelta(seconds=1))
    assert not policy.is_locked(locked_until, locked_until)
    assert not policy.is_locked(locked_until, locked_until + timedelta(minutes=1))


def test_no_lock_timestamp_never_blocks_even_with_high_counter():
    policy = LockoutPolicy()
    assert not policy.is_locked(None, NOW)


def test_lock_expiry_uses_custom_policy_values():
    policy = LockoutPolicy(max_attempts=3, lock_minutes=5)
    assert policy.lock_expiry(2, NOW) is None
    assert policy.lock_expiry(3, NOW) == NOW + timedelta(minutes=5)


def test_reset_clears_counter_and_lock():
    assert LockoutPolicy().reset() == LockoutState(0, None)
