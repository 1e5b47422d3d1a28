from dataclasses import asdict, dataclass
from decimal import Decimal

SEPARATOR = "#"


def topic_period(topic, period):
    return f"{topic}{SEPARATOR}{period}"


def clean_decimal(value):
    """Convert DynamoDB Decimal numbers to int (or float when fractional)."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


@dataclass(frozen=True)
class Statistic:
    topic: str
    period: str
    count: int
    time_partition: int

    @classmethod
    def from_item(cls, item):
        # Period names never contain the separator, topics may
        topic, _, period = item["topic_period"].rpartition(SEPARATOR)
        return cls(
            topic=topic,
            period=period,
            count=clean_decimal(item.get("count", 0)),
            time_partition=clean_decimal(item["time_partition"]),
        )

    def as_dict(self):
        return asdict(self)
