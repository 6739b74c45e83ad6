"""
Shared fixtures: an in-memory spreadsheet, a hand-driven clock and a store
wired to both.
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.memory import MemoryBackend
from core.field_map import FieldMappingTable
from core.store import SheetStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


USERS_GRID = [
    ["Email", "Password", "login_count"],
    ["a@b.com", "pw", "3"],
]

BOOKINGS_GRID = [
    ["Booking ID", "Event ID", "Package ID", "Booker Email", "Paid"],
    ["B1", "E1", "P1, P2", "x@y.com", "TRUE"],
    ["B2", "E2", "P3", "z@y.com", "false"],
    ["B3", "E1", "P2", "x@y.com", ""],
]

API_KEYS_GRID = [
    ["api_key", "status", "expiry_date", "role", "name", "allowed_sheets"],
    ["key-all", "active", "", "admin", "Portal", "all"],
    ["key-users", "active", "2999-01-01", "reader", "Users only", "Users,notifications"],
    ["key-old", "active", "2000-01-01", "reader", "Expired", ""],
    ["key-off", "inactive", "", "reader", "Disabled", ""],
]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return MemoryBackend(
        {
            "Users": USERS_GRID,
            "Bookings": BOOKINGS_GRID,
            "api_keys": API_KEYS_GRID,
            "notifications": [["booking_id", "seen", "user_id"]],
            "Empty": [["id", "name"]],
        }
    )


@pytest.fixture
def field_map():
    return FieldMappingTable(
        {
            "Bookings": {
                "booking_id": "Booking ID",
                "event_id": "Event ID",
                "package_id": "Package ID",
                "booker_email": "Booker Email",
                "paid": "Paid",
            }
        }
    )


@pytest.fixture
def store(backend, clock, field_map):
    return SheetStore(backend, field_map=field_map, cache_ttl=60, timer=clock)
