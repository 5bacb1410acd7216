import pytest
from redis.exceptions import ResponseError, TimeoutError

from storefront_checkout import redis_client
from storefront_checkout.exceptions import DeviceStoreError
from storefront_checkout.redis_client import RedisClient


class DictRedis:
    """Stands in for redis.Redis over a shared dict"""
    data = {}

    def __init__(self, connection_pool=None):
        self.connection_pool = connection_pool

    def ping(self):
        return True

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, nx=False):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True


class TimingOutRedis(DictRedis):
    attempts = 0

    def get(self, key):
        TimingOutRedis.attempts += 1
        raise TimeoutError("read timed out")


class BrokenCommandRedis(DictRedis):
    def get(self, key):
        raise ResponseError("WRONGTYPE")


class UnreachableRedis(DictRedis):
    def ping(self):
        raise TimeoutError("connect timed out")


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(redis_client.time, "sleep", lambda seconds: None)
    DictRedis.data = {}
    TimingOutRedis.attempts = 0


def use(monkeypatch, cls):
    monkeypatch.setattr(redis_client.redis, "Redis", cls)


def test_get_and_set_if_absent(monkeypatch):
    use(monkeypatch, DictRedis)
    client = RedisClient()

    assert client.set("device:cart_user_id", "a", nx=True) is True
    assert client.set("device:cart_user_id", "b", nx=True) is False
    assert client.get("device:cart_user_id") == "a"


def test_timeouts_are_retried_then_reported(monkeypatch):
    use(monkeypatch, TimingOutRedis)
    client = RedisClient()

    with pytest.raises(DeviceStoreError):
        client.get("device:cart_user_id")
    assert TimingOutRedis.attempts == 3


def test_command_errors_are_not_retried(monkeypatch):
    use(monkeypatch, BrokenCommandRedis)
    client = RedisClient()

    with pytest.raises(DeviceStoreError):
        client.get("device:cart_user_id")


def test_connect_timeout_is_a_store_error(monkeypatch):
    use(monkeypatch, UnreachableRedis)

    with pytest.raises(DeviceStoreError):
        RedisClient()
