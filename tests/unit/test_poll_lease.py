"""Unit tests for poll leases."""

from typing import Any

from adoption.app.scheduler.lease import DEFAULT_LEASE_KEY, LocalPollLease, RedisPollLease


class FakeRedis:
    """Just enough of redis-py for SET NX EX and the release script."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def set(self, key: str, value: str, nx: bool = False, ex: int | None = None) -> bool | None:
        if nx and key in self.values:
            return None
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    def eval(self, script: str, numkeys: int, *args: Any) -> int:
        key, token = args
        if self.values.get(key) == token:
            del self.values[key]
            return 1
        return 0


def test_local_lease_always_acquires() -> None:
    lease = LocalPollLease()

    assert lease.acquire()
    lease.release()


def test_second_holder_is_refused() -> None:
    client = FakeRedis()
    first = RedisPollLease(client, ttl_seconds=30)
    second = RedisPollLease(client, ttl_seconds=30)

    assert first.acquire()
    assert not second.acquire()
    assert client.ttls[DEFAULT_LEASE_KEY] == 30


def test_release_frees_lease() -> None:
    client = FakeRedis()
    first = RedisPollLease(client)
    second = RedisPollLease(client)

    assert first.acquire()
    first.release()

    assert second.acquire()


def test_release_never_drops_foreign_lease() -> None:
    """Test a holder whose lease expired cannot delete the new holder's key."""
    client = FakeRedis()
    stale = RedisPollLease(client, key="lease")
    assert stale.acquire()

    # Lease expired and another process took it
    client.values["lease"] = "someone-else"
    stale.release()

    assert client.values["lease"] == "someone-else"


def test_release_without_acquire_is_noop() -> None:
    client = FakeRedis()

    RedisPollLease(client).release()

    assert client.values == {}
