import threading
from decimal import Decimal

import boto3
import pytest
from moto import mock_aws

from timeseries_statistics import StoreError, TimePartition

# 2023-11-14T22:13:20Z
T = 1_700_000_000

MINUTE_HOUR = (
    TimePartition("minute", "minute", 60),
    TimePartition("hour", "hour", 3600),
)


class FakeBackend:
    """In-memory stand-in for DynamoBackend with the same method surface."""

    def __init__(self, table_name="statistics", ensure_error=None, gate=None):
        self.table_name = table_name
        self.ensure_error = ensure_error
        self.gate = gate
        self.fail_on = set()
        self.items = {}
        self.calls = []
        self.ensure_calls = 0
        self._lock = threading.Lock()

    def ensure_table(self, timeout=6.0, poll_interval=1.0):
        self.ensure_calls += 1
        if self.gate is not None:
            self.gate.wait(5)
        if self.ensure_error is not None:
            raise self.ensure_error

    def increment(self, hash_key, range_key, amount, time_value):
        self.calls.append(("increment", hash_key, range_key))
        if hash_key in self.fail_on:
            raise StoreError(f"write to {hash_key} failed")
        with self._lock:
            item = self.items.setdefault(
                (hash_key, range_key),
                {"topic_period": hash_key, "time_partition": Decimal(range_key), "count": Decimal(0)},
            )
            item["count"] += amount
            item["time"] = time_value
            return item["count"]

    def query(self, hash_key, start, end):
        self.calls.append(("query", hash_key, start, end))
        if hash_key in self.fail_on:
            raise StoreError(f"query of {hash_key} failed")
        return [
            dict(item)
            for (hk, rk), item in sorted(self.items.items())
            if hk == hash_key and start <= rk <= end
        ]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def gate():
    return threading.Event()


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    for name in (
        "AWS_REGION",
        "STATISTICS_CONFIG",
        "STATISTICS_TABLE",
        "STATISTICS_ENDPOINT_URL",
        "STATISTICS_BILLING_MODE",
        "STATISTICS_PROVISIONING_TIMEOUT",
        "STATISTICS_POLL_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def dynamodb_client(aws_credentials):
    with mock_aws():
        yield boto3.client("dynamodb", region_name="us-east-1")
