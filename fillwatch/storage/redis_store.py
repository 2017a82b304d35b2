"""
Redis-backed alert store.

Stores each alert as a JSON document with index sets for active alerts,
alerts per subject and the full history. Creation uses SET NX so duplicate
ids are detected atomically; updates use an optimistic WATCH/MULTI
transaction so the document and the active index never diverge.

Key Patterns (prefixed):
    - `alert:{alert_id}`: Alert JSON
    - `alerts:active`: Set of active alert ids
    - `alerts:by_subject:{subject_id}`: Set of alert ids for a subject
    - `alerts:all`: Set of every alert id

Example:
    >>> client = RedisClient(config)
    >>> await client.connect()
    >>> store = RedisAlertStore(client)
    >>> await store.create_alert(alert)
    >>> active = await store.list_active_alerts(subject_id="bin-A")
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError, WatchError

from fillwatch.interfaces.alert_store import (
    AlertNotFoundError,
    AlertStore,
    DuplicateKeyError,
    apply_alert_update,
)
from fillwatch.models.alerts import Alert, AlertKind, AlertStatus
from fillwatch.storage.redis_client import (
    RedisClient,
    RedisClientError,
    RedisOperationError,
)

logger = structlog.get_logger(__name__)

MAX_UPDATE_RETRIES = 5


class RedisAlertStore(AlertStore):
    """
    AlertStore persisting alerts in Redis.

    Resolved alerts stay in `alerts:all` and their subject set so the
    history can be listed; only `alerts:active` shrinks on resolution.

    Attributes:
        client: Connected RedisClient.
        publish_updates: Whether alert changes are published on `updates:alerts`.
    """

    KEY_ALERT = "alert"
    KEY_ALERTS_ACTIVE = "alerts:active"
    KEY_ALERTS_BY_SUBJECT = "alerts:by_subject"
    KEY_ALERTS_ALL = "alerts:all"

    def __init__(self, client: RedisClient, publish_updates: bool = True) -> None:
        self.client = client
        self.publish_updates = publish_updates

    def _alert_key(self, alert_id: str) -> str:
        """Generate Redis key for an alert."""
        return self.client.key(self.KEY_ALERT, alert_id)

    def _subject_key(self, subject_id: str) -> str:
        """Generate Redis key for the per-subject index."""
        return self.client.key(self.KEY_ALERTS_BY_SUBJECT, subject_id)

    @property
    def _active_key(self) -> str:
        return self.client.key(self.KEY_ALERTS_ACTIVE)

    @property
    def _all_key(self) -> str:
        return self.client.key(self.KEY_ALERTS_ALL)

    # =========================================================================
    # READS
    # =========================================================================

    async def list_active_alerts(
        self,
        subject_id: Optional[str] = None,
        kind: Optional[AlertKind] = None,
    ) -> List[Alert]:
        return await self.list_alerts(
            subject_id=subject_id,
            kind=kind,
            status=AlertStatus.ACTIVE,
        )

    async def list_alerts(
        self,
        subject_id: Optional[str] = None,
        kind: Optional[AlertKind] = None,
        status: Optional[AlertStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        redis = self.client.redis

        index_keys: List[str] = []
        if subject_id is not None:
            index_keys.append(self._subject_key(subject_id))
        if status == AlertStatus.ACTIVE:
            index_keys.append(self._active_key)
        if not index_keys:
            index_keys.append(self._all_key)

        try:
            if len(index_keys) == 1:
                alert_ids = await redis.smembers(index_keys[0])
            else:
                alert_ids = await redis.sinter(*index_keys)

            alerts = await self._fetch(alert_ids)

        except RedisError as e:
            logger.error(
                "alerts_retrieve_failed",
                subject_id=subject_id,
                status=status.value if status else None,
                error=str(e),
            )
            raise RedisOperationError(f"Failed to retrieve alerts: {e}") from e

        alerts = [
            a for a in alerts
            if (subject_id is None or a.subject_id == subject_id)
            and (kind is None or a.kind == kind)
            and (status is None or a.status == status)
        ]

        # Newest first
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        if limit is not None:
            alerts = alerts[:limit]

        logger.debug(
            "alerts_retrieved",
            subject_id=subject_id,
            status=status.value if status else None,
            count=len(alerts),
        )
        return alerts

    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        redis = self.client.redis

        try:
            data = await redis.get(self._alert_key(alert_id))
        except RedisError as e:
            logger.error("alert_retrieve_failed", alert_id=alert_id, error=str(e))
            raise RedisOperationError(f"Failed to retrieve alert {alert_id}: {e}") from e

        if data is None:
            logger.debug("alert_not_found", alert_id=alert_id)
            return None

        return Alert.model_validate_json(data)

    async def _fetch(self, alert_ids: Iterable[str]) -> List[Alert]:
        """Fetch and parse alert documents in one MGET."""
        ids = sorted(alert_ids)
        if not ids:
            return []

        values = await self.client.redis.mget([self._alert_key(aid) for aid in ids])

        alerts: List[Alert] = []
        for alert_id, data in zip(ids, values):
            if data is None:
                continue
            try:
                alerts.append(Alert.model_validate_json(data))
            except ValidationError as e:
                logger.warning("alert_parse_failed", alert_id=alert_id, error=str(e))
        return alerts

    # =========================================================================
    # WRITES
    # =========================================================================

    async def create_alert(self, alert: Alert) -> Alert:
        redis = self.client.redis
        key = self._alert_key(alert.alert_id)

        try:
            created = await redis.set(key, alert.model_dump_json(), nx=True)
            if not created:
                raise DuplicateKeyError(alert.alert_id)

            async with redis.pipeline(transaction=True) as pipe:
                pipe.sadd(self._all_key, alert.alert_id)
                pipe.sadd(self._subject_key(alert.subject_id), alert.alert_id)
                if alert.is_active:
                    pipe.sadd(self._active_key, alert.alert_id)
                await pipe.execute()

        except RedisError as e:
            logger.error("alert_store_failed", alert_id=alert.alert_id, error=str(e))
            raise RedisOperationError(f"Failed to store alert {alert.alert_id}: {e}") from e

        logger.debug(
            "alert_stored",
            alert_id=alert.alert_id,
            severity=alert.severity.value,
            is_active=alert.is_active,
        )
        await self._publish(alert)
        return alert

    async def update_alert(self, alert_id: str, fields: Dict[str, Any]) -> Alert:
        redis = self.client.redis
        key = self._alert_key(alert_id)

        try:
            for attempt in range(MAX_UPDATE_RETRIES):
                async with redis.pipeline(transaction=True) as pipe:
                    try:
                        await pipe.watch(key)
                        data = await pipe.get(key)
                        if data is None:
                            raise AlertNotFoundError(alert_id)

                        updated = apply_alert_update(
                            Alert.model_validate_json(data),
                            fields,
                        )

                        pipe.multi()
                        pipe.set(key, updated.model_dump_json())
                        if updated.is_active:
                            pipe.sadd(self._active_key, alert_id)
                        else:
                            pipe.srem(self._active_key, alert_id)
                        await pipe.execute()
                        break

                    except WatchError:
                        logger.debug("alert_update_conflict", alert_id=alert_id, attempt=attempt)
                        continue
            else:
                raise RedisOperationError(
                    f"Failed to update alert {alert_id}: too many concurrent modifications"
                )

        except RedisError as e:
            logger.error("alert_update_failed", alert_id=alert_id, error=str(e))
            raise RedisOperationError(f"Failed to update alert {alert_id}: {e}") from e

        logger.debug(
            "alert_updated",
            alert_id=alert_id,
            fields=sorted(fields),
            is_active=updated.is_active,
        )
        await self._publish(updated)
        return updated

    async def _publish(self, alert: Alert) -> None:
        """Publish an alert change for subscribers; failures are logged only."""
        if not self.publish_updates:
            return
        try:
            await self.client.publish(RedisClient.CHANNEL_ALERTS, alert.model_dump_json())
        except RedisClientError as e:
            logger.warning("alert_publish_failed", alert_id=alert.alert_id, error=str(e))


def create_redis_alert_store(client: RedisClient) -> RedisAlertStore:
    """
    Factory function to create a RedisAlertStore.

    Args:
        client: Connected RedisClient.

    Returns:
        RedisAlertStore: A new store instance.
    """
    return RedisAlertStore(client)
