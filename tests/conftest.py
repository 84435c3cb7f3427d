from __future__ import annotations

import pytest

from stockledger.services.inventory import InventoryService


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "inventory.db"


@pytest.fixture
def service(db_path):
    return InventoryService(db_path, timeout=5.0)


@pytest.fixture
def add_product(service):
    """Receive stock with sensible defaults for the fields a test does not care about."""

    def _add(code="A1", **overrides):
        kwargs = {
            "name": f"Product {code}",
            "units": 10,
            "kilos": 5.0,
            "purchase_date": "2024-01-01",
            "registration_date": "2024-01-01",
            "expiration_date": "2024-06-01",
        }
        kwargs.update(overrides)
        return service.add_or_merge_product(code, **kwargs)

    return _add
