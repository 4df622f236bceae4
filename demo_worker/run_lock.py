"""
Per-project run lock.

Stops two pipeline runs for the same project from overlapping (double
submission to the avatar provider, interleaved step writes). Backed by Redis
``SET key token NX EX ttl`` when Redis is reachable; otherwise an in-process
table guarded by a threading lock, which only protects a single worker.
"""

import time
import uuid
import logging
import threading
from typing import Dict, Optional, Tuple

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "demo:run:"

# Delete only if we still own the key
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def connect_redis(url: str):
    """Return a connected Redis client, or None if unset or unreachable."""
    if not url:
        return None
    client = redis.from_url(url, decode_responses=True)
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}; run lock falls back to memory")
        return None
    logger.info(f"Redis connected: {url[:30]}...")
    return client


class RunLock:
    def __init__(self, redis_client=None, ttl_seconds: int = 900):
        self._redis = redis_client
        self._ttl = ttl_seconds
        self._lock = threading.Lock()
        self._held: Dict[str, Tuple[str, float]] = {}  # key → (token, expires_at)

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    def acquire(self, project_id: str) -> Optional[str]:
        """Take the lock; returns an owner token, or None if someone holds it."""
        key = f"{KEY_PREFIX}{project_id}"
        token = uuid.uuid4().hex

        if self._redis is not None:
            try:
                ok = self._redis.set(key, token, nx=True, ex=self._ttl)
                return token if ok else None
            except redis.RedisError as e:
                logger.warning(f"Redis lock failed for {project_id}: {e}; using memory lock")

        now = time.monotonic()
        with self._lock:
            held = self._held.get(key)
            if held and held[1] > now:
                return None
            self._held[key] = (token, now + self._ttl)
            return token

    def release(self, project_id: str, token: str) -> None:
        key = f"{KEY_PREFIX}{project_id}"

        if self._redis is not None:
            try:
                self._redis.eval(_RELEASE_SCRIPT, 1, key, token)
            except redis.RedisError as e:
                logger.warning(f"Redis unlock failed for {project_id}: {e}")

        with self._lock:
            held = self._held.get(key)
            if held and held[0] == token:
                del self._held[key]
