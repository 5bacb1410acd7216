from decimal import Decimal

import pytest

from storefront_checkout.config import Config

from helpers import FakeBackend, raw_item


@pytest.fixture(autouse=True)
def fixed_config(monkeypatch):
    monkeypatch.setattr(Config, "FETCH_INITIAL_BACKOFF", 0)
    monkeypatch.setattr(Config, "FETCH_MAX_BACKOFF", 0)
    monkeypatch.setattr(Config, "TAX_AMOUNT", Decimal("50"))
    monkeypatch.setattr(Config, "SHIPPING_AMOUNT", Decimal("100"))
    monkeypatch.setattr(Config, "REMOVAL_POLICY", "no-rollback")


@pytest.fixture
def fake_backend():
    return FakeBackend([raw_item()])


@pytest.fixture
def backend(fake_backend):
    return fake_backend.client()
