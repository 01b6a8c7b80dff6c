"""
Queue abstraction for background job dispatching.

Jobs are small JSON envelopes naming a background function and its payload.
Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

PROCESS_ALERTS_JOB = "process-transaction-alerts"
BATCH_ALERTS_JOB = "batch-process-alerts"


@dataclass
class Job:
    name: str
    payload: dict = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps({"name": self.name, "payload": self.payload})

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Job":
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        return cls(name=data["name"], payload=data.get("payload") or {})


class JobQueue(Protocol):
    """Minimal queue interface for dispatching jobs to workers."""

    def enqueue(self, job: Job) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[Job]:
        ...


@dataclass
class InMemoryJobQueue:
    """Simple FIFO queue for testing/dev."""

    items: list[Job] = field(default_factory=list)

    def enqueue(self, job: Job) -> None:
        self.items.append(job)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[Job]:
        if not self.items:
            return None
        return self.items.pop(0)


@dataclass
class RedisJobQueue:
    """Redis-backed queue using list push/pop operations."""

    url: str
    queue_key: str = "saveplus:jobs"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, job: Job) -> None:
        self.client.rpush(self.queue_key, job.to_json())

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[Job]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, raw = result
            else:
                raw = self.client.lpop(self.queue_key)
                if raw is None:
                    return None
            return Job.from_json(raw)
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis. Treat as empty queue
            # and allow the worker loop to retry.
            self.client = redis.Redis.from_url(self.url)
            return None
