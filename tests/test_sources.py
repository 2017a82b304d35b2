"""Tests for the static and Redis container sources."""

from datetime import datetime, timezone

import fakeredis
import pytest

from fillwatch.config.models import ContainerConfig
from fillwatch.detection.lifecycle import create_lifecycle_evaluator
from fillwatch.models.alerts import SubjectType
from fillwatch.sources.redis_source import RedisContainerSource
from fillwatch.sources.static import StaticContainerSource
from fillwatch.storage.redis_client import RedisClient, RedisConnectionException


class TestStaticContainerSource:
    def test_from_config_skips_disabled(self):
        source = StaticContainerSource.from_config(
            [
                ContainerConfig(id="bin-A", name="Lobby bin", height=100),
                ContainerConfig(id="bin-D", height=100, enabled=False),
            ],
            default_fill_threshold=88,
        )

        snapshots = source._snapshots
        assert list(snapshots) == ["bin-A"]
        assert snapshots["bin-A"].fill_threshold == 88
        assert snapshots["bin-A"].distance is None

    def test_from_config_keeps_compartments(self):
        source = StaticContainerSource.from_config(
            [
                ContainerConfig(
                    id="bin-C-recycling",
                    type=SubjectType.COMPARTMENT,
                    parent_bin_id="bin-C",
                    height=80,
                    fill_threshold=85,
                )
            ]
        )

        snapshot = source._snapshots["bin-C-recycling"]
        assert snapshot.subject_type == SubjectType.COMPARTMENT
        assert snapshot.parent_bin_id == "bin-C"
        assert snapshot.fill_threshold == 85

    async def test_update_reading(self, source):
        at = datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)

        updated = source.update_reading("bin-A", distance=6, battery=81, reading_at=at)

        snapshots = await source.list_containers()
        assert snapshots == [updated]
        assert updated.distance == 6
        assert updated.battery == 81
        assert updated.reading_at == at
        assert updated.has_reading

    async def test_clear_reading(self, source):
        source.update_reading("bin-A", distance=6)
        source.update_reading("bin-A", distance=None)

        snapshots = await source.list_containers()
        assert not snapshots[0].has_reading

    def test_update_unknown_container(self, source):
        with pytest.raises(KeyError):
            source.update_reading("bin-Z", distance=1)

    async def test_remove_container(self, source):
        source.remove_container("bin-A")
        source.remove_container("bin-A")

        assert await source.list_containers() == []


@pytest.fixture
def fake_redis():
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def redis_source(fake_redis) -> RedisContainerSource:
    return RedisContainerSource(RedisClient(client=fake_redis), default_fill_threshold=90)


async def register(fake_redis, container_id, reading=None, **fields):
    await fake_redis.sadd("fillwatch:containers", container_id)
    if fields:
        await fake_redis.hset(f"fillwatch:container:{container_id}", mapping=fields)
    if reading is not None:
        await fake_redis.hset(f"fillwatch:reading:{fields['device_id']}", mapping=reading)


class TestRedisContainerSource:
    async def test_reads_container_with_reading(self, redis_source, fake_redis):
        await register(
            fake_redis,
            "bin-A",
            reading={"distance": "6", "battery": "77", "timestamp": "2025-01-06T08:00:00+00:00"},
            name="Lobby bin",
            height="100",
            fill_threshold="90",
            device_id="sensor-001",
            location="Lobby",
        )

        [snapshot] = await redis_source.list_containers()

        assert snapshot.container_id == "bin-A"
        assert snapshot.name == "Lobby bin"
        assert snapshot.height == 100
        assert snapshot.distance == 6
        assert snapshot.battery == 77
        assert snapshot.reading_at == datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)
        assert snapshot.location == "Lobby"

    async def test_missing_reading_has_no_distance(self, redis_source, fake_redis):
        await register(fake_redis, "bin-B", height="120", device_id="sensor-002")

        [snapshot] = await redis_source.list_containers()

        assert snapshot.distance is None
        assert snapshot.fill_threshold == 90
        assert not snapshot.has_reading

    async def test_unparsable_distance_is_no_reading(self, redis_source, fake_redis):
        await register(
            fake_redis,
            "bin-A",
            reading={"distance": "n/a"},
            height="100",
            device_id="sensor-001",
        )

        [snapshot] = await redis_source.list_containers()

        assert snapshot.distance is None

    @pytest.mark.parametrize("value", ["nan", "inf", "-Infinity"])
    async def test_non_finite_distance_is_no_reading(self, redis_source, fake_redis, value):
        await register(
            fake_redis,
            "bin-A",
            reading={"distance": value},
            height="100",
            device_id="sensor-001",
        )

        [snapshot] = await redis_source.list_containers()

        assert snapshot.distance is None
        assert not snapshot.has_reading

    async def test_disabled_container_left_out(self, redis_source, fake_redis):
        await register(fake_redis, "bin-A", height="100")
        await register(fake_redis, "bin-D", height="100", enabled="false")

        snapshots = await redis_source.list_containers()

        assert [s.container_id for s in snapshots] == ["bin-A"]

    async def test_missing_definition_yields_bare_snapshot(self, redis_source, fake_redis):
        await register(fake_redis, "bin-A", height="100")
        await register(fake_redis, "bin-ghost")

        snapshots = await redis_source.list_containers()

        assert [s.container_id for s in snapshots] == ["bin-A", "bin-ghost"]
        ghost = snapshots[1]
        assert ghost.height is None
        assert ghost.distance is None
        assert not ghost.has_height

    async def test_invalid_definition_yields_bare_snapshot(self, redis_source, fake_redis):
        await register(fake_redis, "bin-A", height="100")
        await register(fake_redis, "bin-X", name="Yard", height="100", type="dumpster")

        snapshots = await redis_source.list_containers()

        assert [s.container_id for s in snapshots] == ["bin-A", "bin-X"]
        invalid = snapshots[1]
        assert invalid.name == "Yard"
        assert invalid.height is None

    async def test_unreadable_definitions_reported_as_skipped(
        self, redis_source, fake_redis, store, clock
    ):
        await register(
            fake_redis,
            "bin-A",
            reading={"distance": "6"},
            height="100",
            device_id="sensor-001",
        )
        await register(fake_redis, "bin-ghost")
        await register(fake_redis, "bin-X", height="100", fill_threshold="150")
        evaluator = create_lifecycle_evaluator(store, clock=clock)

        report = await evaluator.evaluate_all(await redis_source.list_containers())

        assert [a.subject_id for a in report.created_alerts] == ["bin-A"]
        assert [(s.subject_id, s.reason) for s in report.skipped] == [
            ("bin-X", "invalid_config"),
            ("bin-ghost", "invalid_config"),
        ]
        assert report.failures == []

    async def test_compartment(self, redis_source, fake_redis):
        await register(
            fake_redis,
            "bin-C-recycling",
            type="compartment",
            parent_bin_id="bin-C",
            height="80",
            fill_threshold="85",
        )

        [snapshot] = await redis_source.list_containers()

        assert snapshot.subject_type == SubjectType.COMPARTMENT
        assert snapshot.parent_bin_id == "bin-C"
        assert snapshot.fill_threshold == 85

    async def test_not_connected(self):
        source = RedisContainerSource(RedisClient())

        with pytest.raises(RedisConnectionException):
            await source.list_containers()
