"""In-memory caches of Kafka topics and ACLs."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace

log = logging.getLogger(__name__)

_QUEUE_LIMIT = 100
_CONFIGURING = "CONFIGURING"


class NotFoundError(LookupError):
    """Raised when a cached object cannot be found."""

    status = 404

    def __init__(self, message):
        super().__init__(message)
        self.message = message


@dataclass
class KafkaTopic:
    """A Kafka topic as known to the cache."""

    topic_name: str = ""
    state: str = ""
    replication: int = 0
    partitions: int = 0


@dataclass
class KafkaACL:
    """A Kafka access control entry."""

    id: str = ""
    permission: str = ""
    topic: str = ""
    username: str = ""


class ACLCache:
    """Cache of Kafka ACLs per project and service.

    The client must offer ``kafka_acls.list(project, service)`` and
    ``kafka_acls.get(project, service, acl_id)``.
    """

    def __init__(self):
        self._acls: dict[tuple[str, str], dict[str, KafkaACL]] = {}
        self._lock = threading.Lock()

    def read(self, project, service, acl_id, client):
        """Return an ACL, filling the cache first and asking the API on a miss."""
        with self._lock:
            key = (project, service)
            if key not in self._acls:
                self._populate(project, service, client)
            cached = self._acls.get(key)
            if cached is None:
                raise NotFoundError(f"Cache miss on project/service: {project}/{service}")
            acl = cached.get(acl_id)
            if acl is not None:
                return replace(acl)
            log.info("Cache miss on ACL: %s, going live to Aiven API", acl_id)
            return client.kafka_acls.get(project, service, acl_id)

    def refresh(self, project, service, client):
        """Reload the ACLs of a service into the cache."""
        with self._lock:
            self._populate(project, service, client)

    def _populate(self, project, service, client):
        for acl in client.kafka_acls.list(project, service):
            self._acls.setdefault((project, service), {})[acl.id] = replace(acl)


class TopicCache:
    """Cache of Kafka topics per project and service, with a lookup queue."""

    def __init__(self):
        self._internal: dict[tuple[str, str], dict[str, KafkaTopic]] = {}
        self._in_queue: dict[tuple[str, str], list[str]] = {}
        self._lock = threading.RLock()

    def load_by_project_and_service_name(self, project_name, service_name):
        """Return ``(topics by name, found)``; topics is None when not found."""
        with self._lock:
            topics = self._internal.get((project_name, service_name))
            if topics is None:
                return None, False
            return {name: replace(topic) for name, topic in topics.items()}, True

    def load_by_topic_name(self, project_name, service_name, topic_name):
        """Return ``(topic, found)``; a missing topic comes back as CONFIGURING."""
        with self._lock:
            topics = self._internal.get((project_name, service_name))
            if topics is None:
                return KafkaTopic(state=_CONFIGURING), False
            topic = topics.get(topic_name)
            if topic is None:
                return KafkaTopic(state=_CONFIGURING), False
            log.debug("retrieved from a topic cache %r for a topic name %s", topic, topic_name)
            return replace(topic), True

    def delete_by_project_and_service_name(self, project_name, service_name):
        """Forget every topic of a service."""
        with self._lock:
            self._internal.pop((project_name, service_name), None)

    def store_by_project_and_service_name(self, project_name, service_name, topics):
        """Store topics and take them off the lookup queue."""
        if not topics:
            return
        log.debug(
            "Updating Kafka Topic cache for project %s and service %s ...",
            project_name,
            service_name,
        )
        key = (project_name, service_name)
        with self._lock:
            cached = self._internal.setdefault(key, {})
            for topic in topics:
                cached[topic.topic_name] = replace(topic)
                if key in self._in_queue:
                    self._in_queue[key] = [
                        name for name in self._in_queue[key] if name != topic.topic_name
                    ]

    def is_queue_empty(self, project_name, service_name):
        """Tell whether no queue was ever started for a service."""
        with self._lock:
            return (project_name, service_name) not in self._in_queue

    def add_to_queue(self, project_name, service_name, topic_name):
        """Queue a topic name unless it is queued or cached already."""
        key = (project_name, service_name)
        with self._lock:
            queued = topic_name in self._in_queue.get(key, [])
            cached = topic_name in self._internal.get(key, {})
            if not queued and not cached:
                self._in_queue.setdefault(key, []).append(topic_name)

    def get_queue(self, project_name, service_name):
        """Return the queued topic names; at most 99 once 100 are queued."""
        with self._lock:
            queue = self._in_queue.get((project_name, service_name), [])
            if len(queue) >= _QUEUE_LIMIT:
                return queue[: _QUEUE_LIMIT - 1]
            return list(queue)


_topic_cache: TopicCache | None = None
_topic_cache_lock = threading.Lock()


def new_topic_cache():
    """Create the shared topic cache once and return it."""
    global _topic_cache
    log.debug("Creating an instance of TopicCache ...")
    with _topic_cache_lock:
        if _topic_cache is None:
            _topic_cache = TopicCache()
    return _topic_cache


def get_topic_cache():
    """Return the shared topic cache, or None before it is created."""
    return _topic_cache