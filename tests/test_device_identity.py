import json

from redis.exceptions import TimeoutError as RedisTimeoutError

from storefront_checkout import redis_client
from storefront_checkout.device_identity import (
    DeviceIdentityProvider,
    FileDeviceStore,
    MemoryDeviceStore,
    RedisDeviceStore,
    build_device_store
)
from storefront_checkout.exceptions import DeviceStoreError


class BrokenStore:
    def get(self, key):
        raise DeviceStoreError("storage disabled")

    def set_if_absent(self, key, value):
        raise DeviceStoreError("storage disabled")


class FakeRedis:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, nx=False):
        if nx and key in self.data:
            return False
        self.data[key] = value
        return True


def test_repeated_calls_return_same_identity():
    provider = DeviceIdentityProvider(MemoryDeviceStore())

    first = provider.ensure_device_id()
    assert first
    assert provider.ensure_device_id() == first


def test_existing_identity_is_never_regenerated():
    store = MemoryDeviceStore({"cart_user_id": "existing-id"})

    assert DeviceIdentityProvider(store).ensure_device_id() == "existing-id"
    assert store.values["cart_user_id"] == "existing-id"


def test_identity_survives_a_new_provider(tmp_path):
    path = str(tmp_path / "profile" / "profile.json")

    first = DeviceIdentityProvider(FileDeviceStore(path)).ensure_device_id()
    second = DeviceIdentityProvider(FileDeviceStore(path)).ensure_device_id()

    assert first == second
    with open(path) as f:
        assert json.load(f)["cart_user_id"] == first


def test_file_store_keeps_other_profile_keys(tmp_path):
    path = tmp_path / "profile.json"
    path.write_text(json.dumps({"pseudo_session": "abc"}))

    DeviceIdentityProvider(FileDeviceStore(str(path))).ensure_device_id()

    assert json.loads(path.read_text())["pseudo_session"] == "abc"


def test_no_store_yields_empty_identity():
    assert DeviceIdentityProvider(None).ensure_device_id() == ""


def test_broken_store_yields_empty_identity():
    assert DeviceIdentityProvider(BrokenStore()).ensure_device_id() == ""


def test_concurrent_writer_wins():
    class RacingStore(MemoryDeviceStore):
        def set_if_absent(self, key, value):
            self.values[key] = "other-writer"
            return False

    assert DeviceIdentityProvider(RacingStore()).ensure_device_id() == "other-writer"


def test_redis_store_sets_only_when_absent():
    fake = FakeRedis()
    store = RedisDeviceStore(client=fake)

    first = DeviceIdentityProvider(store).ensure_device_id()
    second = DeviceIdentityProvider(RedisDeviceStore(client=fake)).ensure_device_id()

    assert first == second
    assert fake.data == {"device:cart_user_id": first}


def test_build_device_store_kinds():
    assert isinstance(build_device_store("memory"), MemoryDeviceStore)
    assert isinstance(build_device_store("file"), FileDeviceStore)
    assert isinstance(build_device_store("redis"), RedisDeviceStore)
    assert build_device_store("browser") is None


def test_undecodable_profile_is_treated_as_empty(tmp_path):
    path = tmp_path / "profile.json"
    path.write_bytes(b'{"cart_user_id": "\xff\xfe"}')

    device_id = DeviceIdentityProvider(FileDeviceStore(str(path))).ensure_device_id()

    assert device_id
    assert json.loads(path.read_text())["cart_user_id"] == device_id


def test_unreachable_redis_yields_empty_identity(monkeypatch):
    class UnreachableRedis:
        def __init__(self, connection_pool=None):
            pass

        def ping(self):
            raise RedisTimeoutError("connect timed out")

    monkeypatch.setattr(redis_client.redis, "Redis", UnreachableRedis)
    monkeypatch.setattr(redis_client, "_redis_client", None)

    assert DeviceIdentityProvider(RedisDeviceStore()).ensure_device_id() == ""
