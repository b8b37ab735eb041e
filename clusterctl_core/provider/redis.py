"""RoadCache Redis Provider - Redis-Backed Cluster Registry.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Set

import redis

from clusterctl_core.cluster.member import ClusterMember
from clusterctl_core.protocol.command import (
    CommandError,
    RemoteCommand,
    decode_envelope,
    encode_envelope,
    make_envelope,
)
from clusterctl_core.protocol.serializer import get_serializer
from clusterctl_core.provider.backend import (
    ClusterProvider,
    EnvelopeHandler,
    ProviderConfig,
    ProviderError,
    ServiceHandle,
    ServiceLookupError,
    TransportError,
)

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_pattern(text: str) -> str:
    """Escape Redis glob metacharacters so text matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


@dataclass
class RedisProviderConfig(ProviderConfig):
    """Redis-specific configuration.

    Attributes:
        host: Redis host
        port: Redis port
        db: Redis database number
        password: Redis password
        socket_timeout: Socket timeout
        socket_connect_timeout: Connection timeout
        max_connections: Connection pool size
        prefix: Key prefix
        listener_sleep: Seconds the pub/sub listener waits per poll
    """

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    max_connections: int = 10
    prefix: str = "clusterctl:"
    listener_sleep: float = 0.1


class RedisProvider(ClusterProvider):
    """Cluster provider using Redis as the registry and transport.

    Layout, with ``<ns>`` = prefix + cluster name:
    - ``<ns>:member:<id>``: member info, expires after member_ttl
    - ``<ns>:service:<name>:<id>``: service registration, same TTL
    - ``<ns>:channel:<name>``: pub/sub channel for broadcasts

    join() starts a keepalive thread that refreshes the keys every
    heartbeat_interval until shutdown(), so every process holding a
    provider stays counted, the control tool included. A member that
    dies without leaving drops out once its keys expire.

    Example:
        with RedisProvider(RedisProviderConfig(host="redis.local")) as provider:
            members = provider.enumerate_members()
    """

    def __init__(
        self,
        config: Optional[RedisProviderConfig] = None,
        local_member: Optional[ClusterMember] = None,
        client: Optional[Any] = None,
    ):
        """Initialize Redis provider.

        Args:
            config: Redis configuration
            local_member: Identity of this process
            client: Pre-built Redis client (skips pool creation)
        """
        super().__init__(config or RedisProviderConfig(), local_member)
        self.config: RedisProviderConfig
        self._client: Optional[Any] = client
        self._pool: Optional[Any] = None
        self._serializer = get_serializer(self.config.serializer)
        self._services: Set[str] = set()
        self._pubsub: Optional[Any] = None
        self._listener: Optional[Any] = None
        self._lock = threading.RLock()

    def _ensure_connected(self) -> Any:
        """Ensure Redis connection exists.

        Returns:
            Redis client
        """
        if self._client is not None:
            return self._client

        self._pool = redis.ConnectionPool(
            host=self.config.host,
            port=self.config.port,
            db=self.config.db,
            password=self.config.password,
            socket_timeout=self.config.socket_timeout,
            socket_connect_timeout=self.config.socket_connect_timeout,
            max_connections=self.config.max_connections,
            decode_responses=False,  # We handle serialization
        )
        self._client = redis.Redis(connection_pool=self._pool)
        logger.info(f"Using Redis at {self.config.host}:{self.config.port}")
        return self._client

    @property
    def namespace(self) -> str:
        return f"{self.config.prefix}{self.config.cluster_name}"

    def _member_key(self, member_id: str) -> str:
        return f"{self.namespace}:member:{member_id}"

    def _service_key(self, name: str, member_id: str) -> str:
        return f"{self.namespace}:service:{name}:{member_id}"

    def _channel(self, name: str) -> str:
        return f"{self.namespace}:channel:{name}"

    @property
    def _ttl_ms(self) -> int:
        return int(self.config.member_ttl * 1000)

    def join(self) -> None:
        try:
            client = self._ensure_connected()
            client.psetex(
                self._member_key(self._local.member_id),
                self._ttl_ms,
                self._serializer.serialize(self._local.to_dict()),
            )
        except redis.RedisError as e:
            self._stats.record_error(str(e))
            raise ProviderError(f"Failed to join cluster {self.config.cluster_name}: {e}") from e

        self.start_keepalive()
        logger.info(f"{self._local!r} joined cluster {self.config.cluster_name}")

    def heartbeat(self) -> None:
        """Refresh member and service registrations."""
        try:
            client = self._ensure_connected()
            pipe = client.pipeline()
            pipe.psetex(
                self._member_key(self._local.member_id),
                self._ttl_ms,
                self._serializer.serialize(self._local.to_dict()),
            )
            with self._lock:
                services = list(self._services)
            for name in services:
                pipe.psetex(self._service_key(name, self._local.member_id), self._ttl_ms, b"1")
            pipe.execute()
        except redis.RedisError as e:
            self._stats.record_error(str(e))
            raise ProviderError(f"Heartbeat failed: {e}") from e

    def _scan(self, pattern: str) -> List[bytes]:
        client = self._ensure_connected()
        return list(client.scan_iter(match=pattern, count=100))

    def enumerate_members(self) -> Set[ClusterMember]:
        self._stats.enumerations += 1
        try:
            keys = self._scan(f"{escape_pattern(self.namespace)}:member:*")
            values = self._ensure_connected().mget(keys) if keys else []
        except redis.RedisError as e:
            self._stats.record_error(str(e))
            raise ProviderError(f"Failed to enumerate members: {e}") from e

        members = set()
        for key, data in zip(keys, values):
            # Expired between SCAN and MGET
            if data is None:
                continue
            try:
                members.add(ClusterMember.from_dict(self._serializer.deserialize(data)))
            except Exception as e:
                logger.warning(f"Skipping unreadable member record {key!r}: {e}")
        return members

    def resolve_service(self, name: str) -> ServiceHandle:
        self._stats.lookups += 1
        prefix = self._service_key(name, "")
        try:
            keys = self._scan(f"{escape_pattern(prefix)}*")
        except redis.RedisError as e:
            self._stats.record_error(str(e))
            raise ServiceLookupError(name, str(e)) from e

        member_ids = set()
        for key in keys:
            key = key.decode() if isinstance(key, bytes) else key
            member_id = key[len(prefix):]
            # "<name>:<sub>:<id>" belongs to a different service
            if key.startswith(prefix) and member_id and ":" not in member_id:
                member_ids.add(member_id)

        if not member_ids:
            raise ServiceLookupError(name)
        return ServiceHandle(name=name, member_ids=frozenset(member_ids))

    def broadcast(
        self,
        handle: ServiceHandle,
        command: RemoteCommand,
        targets: Iterable[ClusterMember],
    ) -> None:
        envelope = make_envelope(
            command,
            sender=self._local.member_id,
            targets=(m.member_id for m in targets),
        )
        data = encode_envelope(envelope, self._serializer)

        try:
            receivers = self._ensure_connected().publish(self._channel(handle.name), data)
        except redis.RedisError as e:
            self._stats.record_error(str(e))
            raise TransportError(f"Broadcast on {handle.name} failed: {e}") from e

        self._stats.broadcasts += 1
        logger.debug(
            f"Published {command.kind.value} on {handle.name} "
            f"for {len(envelope.targets)} targets ({receivers} listeners)"
        )

    def register_service(self, name: str) -> None:
        try:
            self._ensure_connected().psetex(
                self._service_key(name, self._local.member_id), self._ttl_ms, b"1"
            )
        except redis.RedisError as e:
            self._stats.record_error(str(e))
            raise ProviderError(f"Failed to register service {name}: {e}") from e

        with self._lock:
            self._services.add(name)
        logger.info(f"{self._local!r} registered service {name}")

    def subscribe(self, service_name: str, handler: EnvelopeHandler) -> None:
        member_id = self._local.member_id

        def on_message(message: dict) -> None:
            try:
                envelope = decode_envelope(message["data"], self._serializer)
            except CommandError as e:
                logger.warning(f"Dropping message on {service_name}: {e}")
                return
            if not envelope.addressed_to(member_id):
                return
            self._stats.deliveries += 1
            try:
                handler(envelope)
            except Exception:
                logger.exception(f"Handler for {service_name} failed")

        with self._lock:
            if self._pubsub is None:
                self._pubsub = self._ensure_connected().pubsub(ignore_subscribe_messages=True)
            self._pubsub.subscribe(**{self._channel(service_name): on_message})
            if self._listener is None:
                self._listener = self._pubsub.run_in_thread(
                    sleep_time=self.config.listener_sleep,
                    daemon=True,
                    exception_handler=self._on_listener_error,
                )
        logger.debug(f"Subscribed to {self._channel(service_name)}")

    def _on_listener_error(self, error: Exception, pubsub: Any, thread: Any) -> None:
        if self._closed:
            thread.stop()
            return
        self._stats.record_error(str(error))
        logger.error(f"Pub/sub listener error: {error}")
        # Back off instead of spinning on a dead connection
        self._keepalive_stop.wait(self.config.listener_sleep)

    def _close(self) -> None:
        with self._lock:
            if self._listener is not None:
                self._listener.stop()
                # The worker may be inside get_message until its next poll
                if self._listener is not threading.current_thread():
                    self._listener.join(timeout=max(1.0, self.config.listener_sleep * 10))
                self._listener = None
            if self._pubsub is not None:
                self._pubsub.close()
                self._pubsub = None
            services = list(self._services)
            self._services.clear()

        if self._client is not None:
            keys = [self._member_key(self._local.member_id)]
            keys.extend(self._service_key(n, self._local.member_id) for n in services)
            try:
                self._client.delete(*keys)
            except redis.RedisError as e:
                logger.warning(f"Could not deregister {self._local!r}: {e}")

        if self._pool is not None:
            self._pool.disconnect()
            self._pool = None
            self._client = None

    def __repr__(self) -> str:
        return f"RedisProvider(host={self.config.host}, port={self.config.port})"


__all__ = ["RedisProvider", "RedisProviderConfig"]
