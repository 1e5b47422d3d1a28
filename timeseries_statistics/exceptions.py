class StatisticsError(Exception):
    """Base class for errors raised by timeseries_statistics."""


class ConfigError(StatisticsError, ValueError):
    """Invalid partition set, unknown partition name or bad settings."""


class ProvisioningError(StatisticsError):
    """The statistics table could not be created or never became ACTIVE."""


class StoreError(StatisticsError):
    """A single update or query against DynamoDB failed."""


class ManagerClosedError(StatisticsError):
    """The manager was closed and can no longer read or write."""
