"""
Time-series statistics on DynamoDB
"""

import logging

from .version import __version__
from .config import Settings, load_settings
from .dynamo_backend import DynamoBackend
from .exceptions import ConfigError, ManagerClosedError, ProvisioningError, StatisticsError, StoreError
from .helpers import get_manager, record_statistic, reset_manager
from .manager import TimeSeriesStatisticsManager
from .models import Statistic
from .partitions import DEFAULT_TIME_PARTITIONS, TimePartition

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "TimeSeriesStatisticsManager",
    "TimePartition",
    "DEFAULT_TIME_PARTITIONS",
    "Statistic",
    "DynamoBackend",
    "Settings",
    "load_settings",
    "get_manager",
    "record_statistic",
    "reset_manager",
    "StatisticsError",
    "ConfigError",
    "ProvisioningError",
    "ManagerClosedError",
    "StoreError",
    "__version__",
]
