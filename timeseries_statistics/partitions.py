from dataclasses import dataclass
from datetime import datetime, timezone

from .exceptions import ConfigError

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR

# Fields reset to their minimum when truncating to each unit
_TRUNCATE = {
    "minute": {"second": 0, "microsecond": 0},
    "hour": {"minute": 0, "second": 0, "microsecond": 0},
    "day": {"hour": 0, "minute": 0, "second": 0, "microsecond": 0},
    "month": {"day": 1, "hour": 0, "minute": 0, "second": 0, "microsecond": 0},
    "year": {"month": 1, "day": 1, "hour": 0, "minute": 0, "second": 0, "microsecond": 0},
}

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.000Z"


def to_datetime(timestamp):
    """
    Normalise epoch seconds or a datetime to an aware UTC datetime.
    Naive datetimes are taken to already be in UTC.
    """
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def to_epoch(timestamp):
    if isinstance(timestamp, datetime):
        return to_datetime(timestamp).timestamp()
    return timestamp


def format_bucket(bucket):
    return bucket.strftime(ISO_FORMAT)


@dataclass(frozen=True)
class TimePartition:
    """
    A named time granularity.

    ``unit`` picks the calendar truncation used to place a write in its
    bucket. ``interval`` is the bucket width in seconds and is only used to
    align query ranges, so it is approximate for months and years.
    """

    name: str
    unit: str
    interval: int

    def bucket_start(self, timestamp):
        return to_datetime(timestamp).replace(**_TRUNCATE[self.unit])

    def bucket_key(self, timestamp):
        return int(self.bucket_start(timestamp).timestamp())

    def floor(self, seconds):
        return int(to_epoch(seconds) // self.interval) * self.interval


DEFAULT_TIME_PARTITIONS = (
    TimePartition("minute", "minute", MINUTE),
    TimePartition("hour", "hour", HOUR),
    TimePartition("day", "day", DAY),
    TimePartition("month", "month", 30 * DAY),
    TimePartition("year", "year", 365 * DAY),
)


def validate_partitions(partitions):
    """Return the partitions as a tuple, raising ConfigError if the set is unusable."""
    partitions = tuple(partitions)
    if not partitions:
        raise ConfigError("At least one time partition is required")

    seen = set()
    for partition in partitions:
        if partition.unit not in _TRUNCATE:
            raise ConfigError(
                f"Unknown unit {partition.unit!r} for partition {partition.name!r}; "
                f"expected one of {', '.join(_TRUNCATE)}"
            )
        if partition.interval <= 0:
            raise ConfigError(f"Partition {partition.name!r} needs a positive interval")
        if "#" in partition.name:
            raise ConfigError(f"Partition name {partition.name!r} must not contain '#'")
        if partition.name in seen:
            raise ConfigError(f"Duplicate time partition name: {partition.name!r}")
        seen.add(partition.name)

    return partitions
