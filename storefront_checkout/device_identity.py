"""
Device identity: a stable random token per device profile, used as the cart's
partition key when no authenticated user exists.
"""
import os
import json
import uuid
import logging
from typing import Dict, Optional, Protocol

from storefront_checkout.config import Config
from storefront_checkout.exceptions import DeviceStoreError
from storefront_checkout.redis_client import RedisClient, get_redis_client

logger = logging.getLogger(__name__)


class DeviceStore(Protocol):
    """Persistent key/value storage scoped to one device profile"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set_if_absent(self, key: str, value: str) -> bool:
        ...


class MemoryDeviceStore:
    """In-process store; lives as long as the object"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set_if_absent(self, key: str, value: str) -> bool:
        if (self.values.get(key) or "").strip():
            return False
        self.values[key] = value
        return True


class FileDeviceStore:
    """JSON profile file on local disk"""

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable device profile {self.path}: {e}")
            return {}
        except OSError as e:
            raise DeviceStoreError(f"Cannot read device profile {self.path}: {e}")
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return None if value is None else str(value)

    def set_if_absent(self, key: str, value: str) -> bool:
        data = self._read()
        if str(data.get(key) or "").strip():
            return False
        data[key] = value
        tmp_path = f"{self.path}.tmp"
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise DeviceStoreError(f"Cannot write device profile {self.path}: {e}")
        return True


class RedisDeviceStore:
    """Device profile kept in Redis, shared by every process of the profile"""

    def __init__(self, client: Optional[RedisClient] = None, prefix: str = "device:"):
        self._client = client
        self.prefix = prefix

    @property
    def client(self) -> RedisClient:
        if self._client is None:
            self._client = get_redis_client()
        return self._client

    def get(self, key: str) -> Optional[str]:
        return self.client.get(f"{self.prefix}{key}")

    def set_if_absent(self, key: str, value: str) -> bool:
        return self.client.set(f"{self.prefix}{key}", value, nx=True)


def build_device_store(kind: Optional[str] = None) -> Optional[DeviceStore]:
    """Create the configured store; None when the kind is unknown"""
    kind = (kind or Config.DEVICE_STORE).lower()
    if kind == "file":
        return FileDeviceStore(Config.DEVICE_PROFILE_PATH)
    if kind == "redis":
        return RedisDeviceStore()
    if kind == "memory":
        return MemoryDeviceStore()
    logger.warning(f"Unknown device store '{kind}', device identity unavailable")
    return None


class DeviceIdentityProvider:
    """Produces and persists the device identity"""

    def __init__(self, store: Optional[DeviceStore], key: Optional[str] = None):
        self.store = store
        self.key = key or Config.DEVICE_ID_KEY
        self._device_id: Optional[str] = None

    def ensure_device_id(self) -> str:
        """
        Return the persisted device identity, generating it on first use.

        Repeated calls return the same value. When there is no store, or the
        store cannot be used, returns an empty string; callers must treat that
        as "identity unavailable" and skip device-scoped operations.
        """
        if self._device_id:
            return self._device_id

        if self.store is None:
            logger.info("No device store available, device identity unavailable")
            return ""

        try:
            existing = (self.store.get(self.key) or "").strip()
            if existing:
                self._device_id = existing
                return existing

            candidate = str(uuid.uuid4())
            if self.store.set_if_absent(self.key, candidate):
                self._device_id = candidate
                return candidate

            # Another writer stored an identity first
            self._device_id = (self.store.get(self.key) or "").strip() or None
            return self._device_id or ""

        except DeviceStoreError as e:
            logger.warning(f"Device identity unavailable: {e}")
            return ""
