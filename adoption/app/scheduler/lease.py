"""Poll leases - at most one poller at a time across processes."""

import logging
import uuid
from typing import Any, Protocol

import redis

logger = logging.getLogger(__name__)

DEFAULT_LEASE_KEY = "adoption:scheduler:poll-lease"

# Delete the key only if we still hold it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class PollLease(Protocol):
    """Cross-process poll lease."""

    def acquire(self) -> bool:
        """Try to take the lease. Returns False if another holder has it."""
        ...

    def release(self) -> None:
        """Give the lease back."""
        ...


class LocalPollLease:
    """Lease for a single process; the scheduler's own lock already serializes polls."""

    def acquire(self) -> bool:
        return True

    def release(self) -> None:
        return None


class RedisPollLease:
    """Redis ``SET NX EX`` lease.

    The TTL bounds how long a crashed holder can block other processes.
    """

    def __init__(self, client: Any, key: str = DEFAULT_LEASE_KEY, ttl_seconds: int = 300) -> None:
        self._client = client
        self._key = key
        self._ttl_seconds = ttl_seconds
        self._token: str | None = None

    @classmethod
    def from_url(cls, url: str, key: str = DEFAULT_LEASE_KEY, ttl_seconds: int = 300) -> "RedisPollLease":
        client = redis.from_url(url, decode_responses=True)  # type: ignore[no-untyped-call]
        return cls(client, key=key, ttl_seconds=ttl_seconds)

    def acquire(self) -> bool:
        token = str(uuid.uuid4())
        acquired = bool(self._client.set(self._key, token, nx=True, ex=self._ttl_seconds))
        if acquired:
            self._token = token
        else:
            logger.debug(f"Poll lease {self._key} held elsewhere")
        return acquired

    def release(self) -> None:
        if self._token is None:
            return
        self._client.eval(_RELEASE_SCRIPT, 1, self._key, self._token)
        self._token = None
