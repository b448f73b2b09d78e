"""
Pytest configuration and shared fakes for all tests.
This file is automatically loaded by pytest.
"""

import json
import os
import sys

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from feed.models import Tender
from feed.sse import FeedEvent
from storage.backends import MemoryBackend
from storage.snapshot_store import SnapshotStore

FRESH_MS = 2 * 60 * 1000
STALE_MS = 60 * 60 * 1000
T0 = 1_735_689_600_000   # 2025-01-01 00:00 UTC, epoch ms


class FakeClock:
    """Manually advanced epoch-millis clock."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeConnection:
    """Plays back a script of FeedEvents; an Exception in the script is raised."""

    def __init__(self, script) -> None:
        self.script = list(script)
        self.closed = False

    def events(self):
        for item in self.script:
            if self.closed:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def close(self) -> None:
        self.closed = True


class FakeClient:
    """Stands in for FeedClient; each open_feed() takes the next script."""

    def __init__(self, *scripts) -> None:
        self.scripts = list(scripts)
        self.opened = []
        self.connections = []

    def open_feed(self, run_id=None, date_range=None):
        self.opened.append((run_id, date_range))
        conn = FakeConnection(self.scripts.pop(0) if self.scripts else [])
        self.connections.append(conn)
        return conn


def tender(key, publish_date="2025-01-01", **fields):
    data = {"tender_id_str": key, "publish_date": publish_date, "tender_name": f"Tender {key}"}
    data.update(fields)
    return data


def report_dict(*groups):
    """report_dict(["Civil Works", [tender...]], ["Roads", [...]])"""
    return {
        "id": "run-1",
        "queries": [{"query_name": name, "tenders": list(ts)} for name, ts in groups],
    }


def initial_event(report: dict) -> FeedEvent:
    return FeedEvent(event="initial_data", data=json.dumps(report))


def batch_event(*tenders) -> FeedEvent:
    return FeedEvent(event="batch", data=json.dumps({"data": list(tenders)}))


def complete_event() -> FeedEvent:
    return FeedEvent(event="complete", data="{}")


def keys_of(report):
    return [t.tender_id_str for t in report.queries[0].tenders]


def make_tenders(*keys_and_dates):
    return [Tender.from_dict(tender(k, d)) for k, d in keys_and_dates]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend, clock):
    return SnapshotStore(
        backend,
        prefix="tenderiq_cache_v7_",
        fresh_ms=FRESH_MS,
        stale_ms=STALE_MS,
        max_records=100,
        clock=clock,
    )
