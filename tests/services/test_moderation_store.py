import pytest

from chatguard.services.moderation import EscalationEngine, ModerationHooks
from chatguard.services.moderation_store import ModerationStore
from chatguard.utils.keys import KeyFactory
from chatguard.utils.models import ModerationAction, MuteRecord, Violation, ViolationType

NOW = 1_700_000_000_000


@pytest.fixture
def store(redis):
    return ModerationStore(redis, retention_seconds=3600, max_log_entries=3)


@pytest.mark.asyncio
async def test_mute_roundtrip_with_ttl(store, redis):
    record = MuteRecord(actor_id="alice", end_time=NOW + 600_000, reason="spam", issued_at=NOW)
    await store.persist_mute(record)

    assert await store.load_mute("alice") == record
    ttl = await redis.pttl(KeyFactory.mute_record("alice"))
    assert 0 < ttl <= 600_000


@pytest.mark.asyncio
async def test_permanent_mute_has_no_ttl(store, redis):
    await store.persist_mute(MuteRecord(actor_id="alice", end_time=-1, issued_at=NOW))
    assert await redis.ttl(KeyFactory.mute_record("alice")) == -1


@pytest.mark.asyncio
async def test_corrupted_mute_is_deleted(store, redis):
    await redis.set(KeyFactory.mute_record("alice"), "{not json")
    assert await store.load_mute("alice") is None
    assert await redis.exists(KeyFactory.mute_record("alice")) == 0


@pytest.mark.asyncio
async def test_remove_mute(store):
    await store.persist_mute(MuteRecord(actor_id="alice", end_time=NOW + 60_000, issued_at=NOW))
    assert await store.remove_mute("alice") is True
    assert await store.remove_mute("alice") is False
    assert await store.load_mute("alice") is None


@pytest.mark.asyncio
async def test_load_active_mutes(store):
    await store.persist_mute(MuteRecord(actor_id="alice", end_time=NOW + 600_000, issued_at=NOW))
    await store.persist_mute(MuteRecord(actor_id="bob", end_time=NOW - 1_000, issued_at=NOW - 60_000))
    await store.persist_mute(MuteRecord(actor_id="carol", end_time=-1, issued_at=NOW))

    records = await store.load_active_mutes(NOW)
    assert sorted(r.actor_id for r in records) == ["alice", "carol"]


@pytest.mark.asyncio
async def test_violations_are_stored_in_order(store, redis):
    first = Violation.create("alice", ViolationType.SPAM, NOW)
    second = Violation.create("alice", ViolationType.ADVERTISING, NOW + 1)
    await store.persist_violation(first)
    await store.persist_violation(second)
    await redis.rpush(KeyFactory.actor_violations("alice"), "garbage")

    assert await store.get_violations("alice") == [first, second]
    assert 0 < await redis.ttl(KeyFactory.actor_violations("alice")) <= 3600


@pytest.mark.asyncio
async def test_history_is_newest_first_and_capped(store):
    for i, action in enumerate(["warn", "mute", "unmute", "ban"]):
        await store.record_action(ModerationAction(actor_id="alice", action=action, timestamp=NOW + i))

    history = await store.get_history("alice")
    assert [a.action for a in history] == ["ban", "unmute", "mute"]
    assert [a.action for a in await store.get_history("alice", limit=1)] == ["ban"]


@pytest.mark.asyncio
async def test_engine_persists_through_store_hooks(store, clock):
    hooks = ModerationHooks(
        persist_violation=store.persist_violation,
        persist_mute=store.persist_mute,
        remove_mute=store.remove_mute,
        record_action=store.record_action,
    )
    engine = EscalationEngine(clock=clock, hooks=hooks)

    await engine.evaluate("alice", "WIN FREE STUFF visit scam-site.com now")
    await engine.mute("bob", "1h", "manual", issued_by="mod")
    await engine.drain()

    violations = await store.get_violations("alice")
    assert [v.type for v in violations] == [ViolationType.ADVERTISING]
    assert [a.action for a in await store.get_history("alice")] == ["block"]

    restored = EscalationEngine(clock=clock)
    assert restored.restore_mutes(await store.load_active_mutes(clock.now_ms())) == 1
    assert restored.is_muted("bob")
