import json
import os
from dataclasses import dataclass, fields, replace

import boto3

from .dynamo_backend import BILLING_MODES, DynamoBackend
from .exceptions import ConfigError
from .manager import TimeSeriesStatisticsManager

CONFIG_ENV = "STATISTICS_CONFIG"

# environment variable -> Settings field
ENV_OVERRIDES = {
    "STATISTICS_TABLE": "table",
    "AWS_DEFAULT_REGION": "region",
    "AWS_REGION": "region",
    "STATISTICS_ENDPOINT_URL": "endpoint_url",
    "STATISTICS_BILLING_MODE": "billing_mode",
    "STATISTICS_READ_CAPACITY": "read_capacity",
    "STATISTICS_WRITE_CAPACITY": "write_capacity",
    "STATISTICS_PROVISIONING_TIMEOUT": "provisioning_timeout",
    "STATISTICS_POLL_INTERVAL": "poll_interval",
}


@dataclass(frozen=True)
class Settings:
    table: str = "statistics"
    region: str = "us-east-1"
    endpoint_url: str = None
    billing_mode: str = "PROVISIONED"
    read_capacity: int = 5
    write_capacity: int = 5
    provisioning_timeout: float = 6.0
    poll_interval: float = 1.0

    def create_client(self):
        return boto3.client(
            "dynamodb",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
        )

    def create_backend(self, client=None):
        return DynamoBackend(
            table_name=self.table,
            client=client or self.create_client(),
            billing_mode=self.billing_mode,
            read_capacity=self.read_capacity,
            write_capacity=self.write_capacity,
        )

    def create_manager(self, client=None, **kwargs):
        return TimeSeriesStatisticsManager(
            backend=self.create_backend(client),
            provisioning_timeout=self.provisioning_timeout,
            poll_interval=self.poll_interval,
            **kwargs,
        )


def load_config(path):
    if not path or not os.path.exists(path):
        return {}
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as error:
            raise ConfigError(f"Invalid JSON in {path}: {error}") from error
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def _coerce(name, value):
    types = {f.name: f.type for f in fields(Settings)}
    if name not in types:
        raise ConfigError(f"Unknown setting: {name}")

    expected = types[name]
    if expected in (int, float, "int", "float"):
        kind = int if expected in (int, "int") else float
        try:
            value = kind(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Setting {name} must be a number, got {value!r}") from None
        if value <= 0:
            raise ConfigError(f"Setting {name} must be positive")
    return value


def load_settings(path=None, environ=None):
    """
    Build Settings from defaults, then a JSON config file, then environment
    variables. A missing config file is ignored.
    """
    environ = os.environ if environ is None else environ

    values = {}
    for key, value in load_config(path or environ.get(CONFIG_ENV)).items():
        values[key] = _coerce(key, value)

    for env_name, field_name in ENV_OVERRIDES.items():
        if environ.get(env_name):
            values[field_name] = _coerce(field_name, environ[env_name])

    settings = replace(Settings(), **values)
    if settings.billing_mode not in BILLING_MODES:
        raise ConfigError(f"Unsupported billing mode: {settings.billing_mode}")
    return settings
