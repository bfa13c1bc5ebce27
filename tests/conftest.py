"""Shared fixtures for the personalization test suite."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from src.personalization.exceptions import StorageError
from src.personalization.models import Product
from src.personalization.service import PersonalizationService
from src.personalization.storage import InMemoryBlobStore

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


class FlakyBlobStore(InMemoryBlobStore):
    """In-memory store whose writes can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False
        self.fail_reads = False

    def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise StorageError(key, OSError("store unavailable"))
        return super().get(key)

    def set(self, key: str, blob: str) -> None:
        if self.fail_writes:
            raise StorageError(key, OSError("quota exceeded"))
        super().set(key, blob)

    def delete(self, key: str) -> None:
        if self.fail_writes:
            raise StorageError(key, OSError("quota exceeded"))
        super().delete(key)


class BrokenBackendStore(InMemoryBlobStore):
    """In-memory store whose backend raises raw OSErrors instead of StorageError."""

    def __init__(self, fail_reads: bool = False):
        super().__init__()
        self.fail_reads = fail_reads

    def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise OSError("device not ready")
        return super().get(key)

    def set(self, key: str, blob: str) -> None:
        raise OSError("quota exceeded")

    def delete(self, key: str) -> None:
        raise RuntimeError("backend offline")


def make_catalog() -> List[Product]:
    return [
        Product(id=1, name="Kashmiri Saffron", category="Spices", price=24.0, rating=4.5, featured=True),
        Product(id=2, name="Green Cardamom", category="Spices", price=9.5, rating=4.0),
        Product(id=3, name="California Almonds", category="Nuts", price=12.0, rating=4.8, featured=True),
        Product(id=4, name="Roasted Cashews", category="Nuts", price=14.0, rating=3.9),
        Product(id=5, name="Medjool Dates", category="Dry Fruits", price=18.0, rating=4.2, featured=True),
        Product(id=6, name="Chia Seeds", category="Superfoods", price=7.0, rating=4.7),
        Product(id=7, name="Festive Gift Box", category="Gift Boxes", price=45.0, rating=4.1, featured=True),
        Product(id=8, name="Organic Turmeric", category="Organic", price=6.0, rating=3.5),
    ]


@pytest.fixture
def catalog() -> List[Product]:
    return make_catalog()


@pytest.fixture
def store() -> FlakyBlobStore:
    return FlakyBlobStore()


@pytest.fixture
def service(store, catalog) -> PersonalizationService:
    return PersonalizationService(store, catalog=catalog, clock=fixed_clock)
