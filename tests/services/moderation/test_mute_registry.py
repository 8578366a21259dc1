from datetime import timedelta

import pytest

from chatguard.services.moderation.exceptions import InvalidDurationError
from chatguard.services.moderation.mute_registry import DEFAULT_MUTE_SECONDS, MuteRegistry, parse_duration
from chatguard.utils.models import PERMANENT

T0 = 1_000_000_000


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("1h30m", 5400),
        ("30s", 30),
        ("2d", 172_800),
        ("1d2h3m4s", 93_784),
        ("1H 30M", 5400),
        ("permanent", None),
        ("PERMANENT", None),
        ("", DEFAULT_MUTE_SECONDS),
        (None, DEFAULT_MUTE_SECONDS),
        ("soon", DEFAULT_MUTE_SECONDS),
        (600, 600),
        (timedelta(minutes=5), 300),
    ],
)
def test_parse_duration(spec, expected):
    assert parse_duration(spec) == expected


@pytest.mark.parametrize("spec", ["1h30x", "5m!", "0s", "0h0m", 0, -5, True])
def test_parse_duration_rejects_invalid(spec):
    with pytest.raises(InvalidDurationError):
        parse_duration(spec)


def test_mute_and_expiry():
    registry = MuteRegistry()
    record = registry.mute("alice", "10m", "spam", T0)
    assert record.end_time == T0 + 600_000
    assert registry.is_muted("alice", T0 + 599_999)
    assert not registry.is_muted("alice", T0 + 600_000)
    assert "alice" not in registry


def test_permanent_mute():
    registry = MuteRegistry()
    record = registry.mute("alice", "permanent", "abuse", T0, issued_by="admin")
    assert record.end_time == PERMANENT
    assert record.permanent
    assert record.issued_by == "admin"
    assert registry.is_muted("alice", T0 + 10 ** 12)
    assert record.remaining_ms(T0) is None


def test_new_mute_overwrites():
    registry = MuteRegistry()
    registry.mute("alice", "1h", "first", T0)
    registry.mute("alice", "5m", "second", T0)
    record = registry.get("alice", T0)
    assert record.reason == "second"
    assert record.end_time == T0 + 300_000


def test_unmute_is_idempotent():
    registry = MuteRegistry()
    registry.mute("alice", "1h", "spam", T0)
    assert registry.unmute("alice") is True
    assert registry.unmute("alice") is False
    assert not registry.is_muted("alice", T0)


def test_invalid_duration_leaves_registry_untouched():
    registry = MuteRegistry()
    with pytest.raises(InvalidDurationError):
        registry.mute("alice", "1h30x", "spam", T0)
    assert registry.tracked_actors() == []


def test_prune_expired():
    registry = MuteRegistry()
    registry.mute("alice", "10s", "spam", T0)
    assert registry.prune("alice", T0 + 5_000) is False
    assert registry.prune("alice", T0 + 10_000) is True
    assert registry.prune("alice", T0 + 10_000) is False
