import logging
import time
from concurrent.futures import ThreadPoolExecutor

from .dynamo_backend import DynamoBackend
from .exceptions import ConfigError, ManagerClosedError
from .models import Statistic, topic_period
from .partitions import DEFAULT_TIME_PARTITIONS, format_bucket, to_epoch, validate_partitions

logger = logging.getLogger(__name__)


class TimeSeriesStatisticsManager:
    """
    Counts events per topic in minute/hour/day/month/year buckets.

    The table is provisioned on a worker thread as soon as the manager is
    built. Every read or write waits for that to finish; if it fails the
    manager stays failed and each call re-raises the ProvisioningError.

    A prebuilt ``backend`` carries its own table and client, so ``table`` is
    ignored and passing ``client`` as well is a ConfigError. After close()
    every operation raises ManagerClosedError.
    """

    def __init__(
        self,
        table="statistics",
        client=None,
        time_partitions=None,
        provisioning_timeout=6.0,
        poll_interval=1.0,
        calendar_range=False,
        backend=None,
    ):
        if backend is not None and client is not None:
            raise ConfigError("Pass either a backend or a client, not both")
        self.backend = backend or DynamoBackend(table_name=table, client=client)
        self._closed = False
        self.time_partitions = validate_partitions(
            DEFAULT_TIME_PARTITIONS if time_partitions is None else time_partitions
        )
        self._partitions_by_name = {p.name: p for p in self.time_partitions}
        self.calendar_range = calendar_range

        self._executor = ThreadPoolExecutor(
            max_workers=len(self.time_partitions),
            thread_name_prefix="timeseries-statistics",
        )
        self._ready = self._executor.submit(
            self.backend.ensure_table,
            timeout=provisioning_timeout,
            poll_interval=poll_interval,
        )
        self._ready.add_done_callback(self._log_ready)

    @property
    def table(self):
        return self.backend.table_name

    def _log_ready(self, future):
        error = future.exception()
        if error is not None:
            logger.error("Statistics table %s failed to initialise: %s", self.table, error)
        else:
            logger.debug("Statistics table %s is ready", self.table)

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def on_ready(self, timeout=None):
        """Block until the table is usable. Raises the provisioning error if it is not."""
        if self._closed:
            raise ManagerClosedError(f"Statistics manager for {self.table} is closed")
        self._ready.result(timeout=timeout)

    @property
    def ready(self):
        return self._ready.done() and self._ready.exception() is None

    @property
    def state(self):
        if not self._ready.done():
            return "pending"
        return "failed" if self._ready.exception() is not None else "ready"

    def close(self):
        self._closed = True
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_statistic(self, topic, timestamp=None, amount=1):
        """
        Increment ``topic`` in every time partition containing ``timestamp``.

        Writes go out one partition at a time in configured order; the first
        failure stops the rest and is raised as StoreError.
        """
        self.on_ready()

        if timestamp is None:
            timestamp = time.time()
        if amount is None:
            amount = 1

        for partition in self.time_partitions:
            bucket = partition.bucket_start(timestamp)
            self.backend.increment(
                topic_period(topic, partition.name),
                int(bucket.timestamp()),
                amount,
                format_bucket(bucket),
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_time_partition(self, period):
        try:
            return self._partitions_by_name[period]
        except KeyError:
            raise ConfigError(
                f"Unknown time partition {period!r}; configured: {', '.join(self._partitions_by_name)}"
            ) from None

    def _align(self, partition, timestamp):
        if self.calendar_range:
            return partition.bucket_key(timestamp)
        return partition.floor(timestamp)

    def get_statistics_period(self, topic, period, start_time, end_time):
        """Return the ``period`` buckets of ``topic`` between start_time and end_time, inclusive."""
        self.on_ready()

        partition = self.get_time_partition(period)
        start = self._align(partition, start_time)
        end = self._align(partition, end_time)

        items = self.backend.query(topic_period(topic, partition.name), start, end)
        return [Statistic.from_item(item) for item in items]

    def get_statistics(self, topic, start_time, end_time):
        """Query every configured partition concurrently and flatten the results."""
        self.on_ready()

        start_time = to_epoch(start_time)
        end_time = to_epoch(end_time)
        try:
            futures = [
                self._executor.submit(self.get_statistics_period, topic, partition.name, start_time, end_time)
                for partition in self.time_partitions
            ]
        except RuntimeError as error:
            raise ManagerClosedError(f"Statistics manager for {self.table} is closed") from error

        results = []
        for future in futures:
            results.extend(future.result())
        return results
