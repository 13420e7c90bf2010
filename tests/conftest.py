"""
Global test configuration and fixtures for the Kamailio exporter
"""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator, List

import pytest

from kamailio_exporter.kamailio.binrpc import Record, StructItem, TYPE_INT, TYPE_STRING, TYPE_STRUCT
from kamailio_exporter.kamailio.client import KamailioConnectionError
from kamailio_exporter.metrics.catalog import MetricCatalog


def make_struct(**members) -> Record:
    """Struct record from keyword members; ints become int records, the rest strings"""
    items = []
    for key, value in members.items():
        if isinstance(value, Record):
            items.append(StructItem(key, value))
        elif isinstance(value, int):
            items.append(StructItem(key, Record(TYPE_INT, value)))
        else:
            items.append(StructItem(key, Record(TYPE_STRING, str(value))))
    return Record(TYPE_STRUCT, tuple(items))


class FakeKamailioClient:
    """Stands in for KamailioRPCClient, answering from canned records"""

    def __init__(self, replies: Dict[str, object]):
        # command => list of records, or an exception instance to raise
        self.replies = replies
        self.calls: List[tuple] = []
        self.endpoint = "unix:/tmp/fake_ctl"

    def invoke(self, command, param=None):
        self.calls.append((command, param))
        reply = self.replies.get(command)
        if reply is None:
            raise KamailioConnectionError(f"{command}: no reply configured")
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def catalog() -> MetricCatalog:
    return MetricCatalog()


@pytest.fixture
def memory_records() -> List[Record]:
    """pkg.stats reply with two processes"""
    return [
        make_struct(entry=0, pid=123, rank=1, used=1000, free=500,
                    real_used=900, total_size=2000, total_frags=3),
        make_struct(entry=1, pid=124, rank=2, used=2000, free=600,
                    real_used=1900, total_size=4000, total_frags=7),
    ]


@pytest.fixture
def stats_records() -> List[Record]:
    """stats.fetch all reply"""
    return [
        make_struct(**{
            "core.rcv_requests": "42",
            "core.rcv_requests_invite": "17",
            "sl.200_replies": "10",
            "shmem.free_size": "65536",
            "tmx.active_transactions": "4",
            "tcp.connect_success": "8",
            "usrloc.registered_users": "12",
            "script.custom_total": "5",
            "script.Queue_Length": "3",
        })
    ]


@pytest.fixture
def fake_client(memory_records, stats_records) -> FakeKamailioClient:
    return FakeKamailioClient({
        "pkg.stats": memory_records,
        "stats.fetch": stats_records,
    })


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add 'unit' marker to all tests in unit test directories
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "network" in item.name.lower() or "socket" in item.name.lower():
            item.add_marker(pytest.mark.network)


@pytest.fixture
def struct_record():
    """Factory for struct records, see make_struct"""
    return make_struct


@pytest.fixture
def client_factory():
    """Factory for FakeKamailioClient instances"""
    return FakeKamailioClient
