"""
Behavioural tests shared by every AlertStore implementation.

Each test runs against the in-memory store and the Redis store (backed by
fakeredis), plus a few Redis-specific checks on key layout and errors.
"""

from datetime import timedelta

import fakeredis
import pytest

from fillwatch.detection.lifecycle import create_lifecycle_evaluator
from fillwatch.interfaces.alert_store import (
    AlertNotFoundError,
    AlertStoreError,
    AlreadyResolvedError,
    DuplicateKeyError,
    ImmutableFieldError,
    StoreUnavailableError,
)
from fillwatch.models.alerts import AlertStatus, ResolutionReason, Severity
from fillwatch.storage.memory import InMemoryAlertStore
from fillwatch.storage.redis_client import RedisClient, RedisConnectionException
from fillwatch.storage.redis_store import RedisAlertStore

from tests.conftest import T0


@pytest.fixture
def fake_redis():
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def redis_client(fake_redis) -> RedisClient:
    return RedisClient(client=fake_redis, key_prefix="fillwatch")


@pytest.fixture(params=["memory", "redis"])
def alert_store(request, redis_client):
    if request.param == "memory":
        return InMemoryAlertStore()
    return RedisAlertStore(redis_client)


class TestCreateAndRead:
    async def test_create_then_get(self, alert_store, make_alert):
        alert = make_alert()

        await alert_store.create_alert(alert)
        stored = await alert_store.get_alert(alert.alert_id)

        assert stored.alert_id == alert.alert_id
        assert stored.severity == Severity.HIGH
        assert stored.created_at == T0
        assert stored.is_active

    async def test_get_missing_returns_none(self, alert_store):
        assert await alert_store.get_alert("nope") is None

    async def test_duplicate_id_rejected(self, alert_store, make_alert):
        alert = make_alert()
        await alert_store.create_alert(alert)

        with pytest.raises(DuplicateKeyError):
            await alert_store.create_alert(alert)

    async def test_active_filtered_by_subject(self, alert_store, make_alert):
        await alert_store.create_alert(make_alert("bin-A"))
        await alert_store.create_alert(make_alert("bin-B"))

        active = await alert_store.list_active_alerts(subject_id="bin-A")

        assert [a.subject_id for a in active] == ["bin-A"]

    async def test_history_newest_first_with_limit(self, alert_store, make_alert):
        for minutes in range(3):
            await alert_store.create_alert(
                make_alert(created_at=T0 + timedelta(minutes=minutes))
            )

        history = await alert_store.list_alerts(subject_id="bin-A", limit=2)

        assert [a.created_at for a in history] == [
            T0 + timedelta(minutes=2),
            T0 + timedelta(minutes=1),
        ]

    async def test_resolved_alerts_leave_active_listing(self, alert_store, make_alert):
        alert = make_alert()
        await alert_store.create_alert(alert)

        await alert_store.resolve_alert(alert.alert_id, ResolutionReason.AUTO, at=T0)

        assert await alert_store.list_active_alerts(subject_id="bin-A") == []
        resolved = await alert_store.list_alerts(status=AlertStatus.RESOLVED)
        assert [a.alert_id for a in resolved] == [alert.alert_id]
        assert len(await alert_store.list_alerts()) == 1


class TestUpdates:
    async def test_acknowledge(self, alert_store, make_alert):
        alert = make_alert()
        await alert_store.create_alert(alert)
        at = T0 + timedelta(minutes=1)

        updated = await alert_store.acknowledge_alert(alert.alert_id, "alice", at=at)

        assert updated.acknowledged
        assert updated.acknowledged_at == at
        assert (await alert_store.get_alert(alert.alert_id)).acknowledged_by == "alice"

    async def test_resolve_sets_reason_and_actor(self, alert_store, make_alert):
        alert = make_alert()
        await alert_store.create_alert(alert)

        resolved = await alert_store.resolve_alert(
            alert.alert_id,
            ResolutionReason.MANUAL,
            actor="bob",
            at=T0 + timedelta(minutes=5),
        )

        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolution_reason == ResolutionReason.MANUAL
        assert resolved.resolved_by == "bob"
        assert resolved.duration_seconds == 300

    async def test_resolved_is_terminal(self, alert_store, make_alert):
        alert = make_alert()
        await alert_store.create_alert(alert)
        await alert_store.resolve_alert(alert.alert_id, ResolutionReason.AUTO)

        with pytest.raises(AlreadyResolvedError):
            await alert_store.resolve_alert(alert.alert_id, ResolutionReason.MANUAL)
        with pytest.raises(AlreadyResolvedError):
            await alert_store.update_alert(alert.alert_id, {"acknowledged": True})

    async def test_immutable_fields_rejected(self, alert_store, make_alert):
        alert = make_alert()
        await alert_store.create_alert(alert)

        with pytest.raises(ImmutableFieldError) as exc_info:
            await alert_store.update_alert(alert.alert_id, {"severity": Severity.CRITICAL})

        assert exc_info.value.fields == ["severity"]
        assert (await alert_store.get_alert(alert.alert_id)).severity == Severity.HIGH

    async def test_unknown_field_rejected(self, alert_store, make_alert):
        alert = make_alert()
        await alert_store.create_alert(alert)

        with pytest.raises(AlertStoreError):
            await alert_store.update_alert(alert.alert_id, {"colour": "red"})

    async def test_update_missing_alert(self, alert_store):
        with pytest.raises(AlertNotFoundError):
            await alert_store.update_alert("nope", {"acknowledged": True})
        with pytest.raises(AlertNotFoundError):
            await alert_store.acknowledge_alert("nope", "alice")


class TestLifecycleOnStore:
    async def test_bin_a_escalation_and_clearing(self, alert_store, clock, make_snapshot):
        evaluator = create_lifecycle_evaluator(alert_store, clock=clock)

        await evaluator.evaluate_container(make_snapshot(fill=94))
        clock.advance(minutes=5)
        await evaluator.evaluate_container(make_snapshot(fill=97))
        clock.advance(minutes=5)
        await evaluator.evaluate_container(make_snapshot(fill=50))

        history = await alert_store.list_alerts(subject_id="bin-A")
        assert [(a.severity, a.status, a.resolution_reason) for a in history] == [
            (Severity.CRITICAL, AlertStatus.RESOLVED, ResolutionReason.AUTO),
            (Severity.HIGH, AlertStatus.RESOLVED, ResolutionReason.AUTO),
        ]
        assert history[0].replaces_alert_id == history[1].alert_id


class TestRedisLayout:
    async def test_keys_are_prefixed(self, redis_client, fake_redis, make_alert):
        store = RedisAlertStore(redis_client)
        alert = make_alert()

        await store.create_alert(alert)

        assert await fake_redis.exists(f"fillwatch:alert:{alert.alert_id}")
        assert await fake_redis.smembers("fillwatch:alerts:active") == {alert.alert_id}
        assert await fake_redis.smembers("fillwatch:alerts:by_subject:bin-A") == {
            alert.alert_id
        }

    async def test_resolution_updates_active_index(self, redis_client, fake_redis, make_alert):
        store = RedisAlertStore(redis_client)
        alert = make_alert()
        await store.create_alert(alert)

        await store.resolve_alert(alert.alert_id, ResolutionReason.AUTO)

        assert await fake_redis.smembers("fillwatch:alerts:active") == set()
        assert await fake_redis.sismember("fillwatch:alerts:all", alert.alert_id)

    async def test_unparsable_document_is_skipped(self, redis_client, fake_redis, make_alert):
        store = RedisAlertStore(redis_client)
        await store.create_alert(make_alert())
        await fake_redis.set("fillwatch:alert:broken", "{not json")
        await fake_redis.sadd("fillwatch:alerts:all", "broken")

        alerts = await store.list_alerts()

        assert len(alerts) == 1

    async def test_publishes_alert_changes(self, redis_client, make_alert, monkeypatch):
        published = []

        async def record(channel, message):
            published.append((channel, message))
            return 1

        monkeypatch.setattr(redis_client, "publish", record)
        store = RedisAlertStore(redis_client)
        alert = make_alert()

        await store.create_alert(alert)
        await store.acknowledge_alert(alert.alert_id, "alice")

        assert [c for c, _ in published] == ["updates:alerts", "updates:alerts"]
        assert alert.alert_id in published[0][1]

    async def test_publish_failure_does_not_fail_write(
        self, redis_client, make_alert, monkeypatch
    ):
        async def broken(channel, message):
            raise RedisConnectionException("gone")

        monkeypatch.setattr(redis_client, "publish", broken)
        store = RedisAlertStore(redis_client)
        alert = make_alert()

        assert await store.create_alert(alert) == alert
        assert await store.get_alert(alert.alert_id) is not None

    async def test_not_connected_is_store_unavailable(self):
        store = RedisAlertStore(RedisClient())

        with pytest.raises(RedisConnectionException):
            await store.list_active_alerts()
        with pytest.raises(StoreUnavailableError):
            await store.get_alert("bin-A:fill_level:high:0")

    async def test_disconnect_leaves_injected_client_open(self, redis_client, fake_redis):
        await redis_client.disconnect()

        assert not redis_client.is_connected
        assert await fake_redis.ping()

    async def test_ping(self, redis_client):
        assert await redis_client.ping()
        assert redis_client.key("alert", "x") == "fillwatch:alert:x"
