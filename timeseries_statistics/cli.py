import argparse
import json
import logging
import math
import sys
from datetime import datetime

from botocore.exceptions import BotoCoreError, ClientError

from .config import load_settings
from .exceptions import StatisticsError


def parse_timestamp(value):
    """Accept epoch seconds or an ISO-8601 timestamp (a trailing Z is UTC)."""
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise argparse.ArgumentTypeError(f"not a finite timestamp: {value!r}")
        return seconds
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a timestamp: {value!r}") from None


def build_parser():
    parser = argparse.ArgumentParser(
        prog="timeseries-statistics",
        description="Count events per topic in time buckets stored in DynamoDB",
    )
    parser.add_argument("--config", help="path to a JSON config file")
    parser.add_argument("--verbose", "-v", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("create-table", help="create the statistics table if needed")

    add = sub.add_parser("add", help="increment a topic")
    add.add_argument("topic")
    add.add_argument("--timestamp", type=parse_timestamp, default=None)
    add.add_argument("--amount", type=int, default=1)

    query = sub.add_parser("query", help="print counts for a topic as JSON")
    query.add_argument("topic")
    query.add_argument("--start", type=parse_timestamp, required=True)
    query.add_argument("--end", type=parse_timestamp, required=True)
    query.add_argument("--period", help="only this time partition")

    return parser


def create_table(settings, client=None):
    backend = settings.create_backend(client)

    if backend.describe_status() == "ACTIVE":
        print(f"✔ Table already exists: {settings.table}")
        return

    print(f"🛠 Creating table: {settings.table} ...")
    backend.ensure_table(timeout=settings.provisioning_timeout, poll_interval=settings.poll_interval)
    print(f"✔ Table {settings.table} is ACTIVE")


def main(argv=None, client=None):
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        settings = load_settings(args.config)

        if args.command == "create-table":
            create_table(settings, client=client)
            return 0

        with settings.create_manager(client=client) as manager:
            if args.command == "add":
                manager.add_statistic(args.topic, timestamp=args.timestamp, amount=args.amount)
                print(f"✔ Added {args.amount} to {args.topic}")
            else:
                if args.period:
                    stats = manager.get_statistics_period(args.topic, args.period, args.start, args.end)
                else:
                    stats = manager.get_statistics(args.topic, args.start, args.end)
                print(json.dumps([s.as_dict() for s in stats], indent=2))
    except (StatisticsError, ClientError, BotoCoreError) as error:
        print(f"✖ {error}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
