"""
Export dispatch queue.

Messages carry the job id plus the org and format they were queued for, so
workers can log and route before touching the database. Redis holds them
as JSON on a list; the in-memory queue is used by tests and local runs.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Optional, Protocol, Union

import redis
from redis import exceptions as redis_exceptions

from okrflow.db import ExportJobRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportMessage:
    job_id: str
    org_id: Optional[str] = None
    format: Optional[str] = None

    @classmethod
    def for_job(cls, job: ExportJobRecord) -> "ExportMessage":
        return cls(job_id=job.job_id, org_id=job.org_id, format=job.format)

    def encode(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    @classmethod
    def decode(cls, raw: Union[str, bytes]) -> Optional["ExportMessage"]:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        raw = raw.strip()
        if not raw:
            return None
        if not raw.startswith("{"):
            # Bare job id pushed by hand (e.g. redis-cli RPUSH).
            return cls(job_id=raw)
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Dropping malformed export message: %r", raw[:200])
            return None
        if not isinstance(data, dict) or not data.get("job_id"):
            logger.warning("Dropping export message without job_id: %r", raw[:200])
            return None
        return cls(job_id=data["job_id"], org_id=data.get("org_id"), format=data.get("format"))


class ExportQueue(Protocol):
    def publish(self, job: ExportJobRecord) -> ExportMessage:
        ...

    def next_message(
        self, *, block: bool = True, timeout: Optional[int] = None
    ) -> Optional[ExportMessage]:
        ...

    def pending(self) -> int:
        ...


@dataclass
class InMemoryExportQueue:
    messages: deque = field(default_factory=deque)

    def publish(self, job: ExportJobRecord) -> ExportMessage:
        message = ExportMessage.for_job(job)
        self.messages.append(message)
        return message

    def push_raw(self, raw: str) -> None:
        message = ExportMessage.decode(raw)
        if message:
            self.messages.append(message)

    def next_message(
        self, *, block: bool = True, timeout: Optional[int] = None
    ) -> Optional[ExportMessage]:
        if not self.messages:
            return None
        return self.messages.popleft()

    def pending(self) -> int:
        return len(self.messages)


@dataclass
class RedisExportQueue:
    url: str
    queue_key: str = "okrflow:exports"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _reconnect(self) -> None:
        self.client = redis.Redis.from_url(self.url)

    def publish(self, job: ExportJobRecord) -> ExportMessage:
        message = ExportMessage.for_job(job)
        self.client.rpush(self.queue_key, message.encode())
        return message

    def next_message(
        self, *, block: bool = True, timeout: Optional[int] = None
    ) -> Optional[ExportMessage]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                raw = result[1] if result else None
            else:
                raw = self.client.lpop(self.queue_key)
        except redis_exceptions.ConnectionError:
            # Idle connections get dropped by managed Redis; the DB fallback covers the gap.
            self._reconnect()
            return None
        if raw is None:
            return None
        return ExportMessage.decode(raw)

    def pending(self) -> int:
        try:
            return int(self.client.llen(self.queue_key))
        except redis_exceptions.ConnectionError:
            self._reconnect()
            return 0
