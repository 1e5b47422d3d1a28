import logging
import time

import boto3
from boto3.dynamodb.types import TypeDeserializer
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import ConfigError, ProvisioningError, StoreError

logger = logging.getLogger(__name__)

HASH_KEY = "topic_period"
RANGE_KEY = "time_partition"

BILLING_MODES = ("PROVISIONED", "PAY_PER_REQUEST")
TERMINAL_STATUSES = ("DELETING", "INACCESSIBLE_ENCRYPTION_CREDENTIALS")

_deserializer = TypeDeserializer()


def _error_code(error):
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


class DynamoBackend:
    """
    Reads and writes counter cells in a single DynamoDB table.

    Uses the low-level client only, so one instance can be shared between
    the provisioning thread and concurrent queries.
    """

    def __init__(
        self,
        table_name="statistics",
        client=None,
        region=None,
        billing_mode="PROVISIONED",
        read_capacity=5,
        write_capacity=5,
    ):
        if billing_mode not in BILLING_MODES:
            raise ConfigError(f"billing_mode must be one of {', '.join(BILLING_MODES)}")

        self.table_name = table_name
        self.client = client or boto3.client("dynamodb", region_name=region)
        self.billing_mode = billing_mode
        self.read_capacity = read_capacity
        self.write_capacity = write_capacity

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def describe_status(self):
        """Return the table status, or None when the table does not exist."""
        try:
            response = self.client.describe_table(TableName=self.table_name)
        except ClientError as error:
            if _error_code(error) == "ResourceNotFoundException":
                return None
            raise
        return response["Table"]["TableStatus"]

    def create_table(self):
        params = {
            "TableName": self.table_name,
            "AttributeDefinitions": [
                {"AttributeName": HASH_KEY, "AttributeType": "S"},
                {"AttributeName": RANGE_KEY, "AttributeType": "N"},
            ],
            "KeySchema": [
                {"AttributeName": HASH_KEY, "KeyType": "HASH"},
                {"AttributeName": RANGE_KEY, "KeyType": "RANGE"},
            ],
            "BillingMode": self.billing_mode,
        }
        if self.billing_mode == "PROVISIONED":
            params["ProvisionedThroughput"] = {
                "ReadCapacityUnits": self.read_capacity,
                "WriteCapacityUnits": self.write_capacity,
            }

        logger.info("Creating DynamoDB table %s", self.table_name)
        try:
            self.client.create_table(**params)
        except ClientError as error:
            # Someone else created it between our describe and create
            if _error_code(error) != "ResourceInUseException":
                raise
            logger.info("Table %s is already being created", self.table_name)

    def wait_until_active(self, timeout=6.0, poll_interval=1.0):
        deadline = time.monotonic() + timeout

        while time.monotonic() < deadline:
            try:
                status = self.client.describe_table(TableName=self.table_name)["Table"]["TableStatus"]
            except (ClientError, BotoCoreError) as error:
                logger.warning("Describing table %s failed, retrying: %s", self.table_name, error)
            else:
                if status == "ACTIVE":
                    return
                if status in TERMINAL_STATUSES:
                    raise ProvisioningError(f"Table {self.table_name} is in terminal status {status}")
                logger.info("Table %s is %s, waiting", self.table_name, status)

            time.sleep(poll_interval)

        raise ProvisioningError(f"Timed out waiting for table {self.table_name} to exist")

    def ensure_table(self, timeout=6.0, poll_interval=1.0):
        """Create the table if it is missing and wait until it is ACTIVE."""
        try:
            status = self.describe_status()
            if status == "ACTIVE":
                logger.info("Table %s already exists", self.table_name)
                return
            if status is None:
                self.create_table()
        except (ClientError, BotoCoreError) as error:
            logger.error("Error checking for the existence of the DynamoDB table %s: %s", self.table_name, error)
            raise ProvisioningError(f"Could not provision table {self.table_name}: {error}") from error

        self.wait_until_active(timeout=timeout, poll_interval=poll_interval)
        logger.info("Table %s is ACTIVE", self.table_name)

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def increment(self, hash_key, range_key, amount, time_value):
        """Atomically add ``amount`` to a cell's count and return the new count."""
        try:
            response = self.client.update_item(
                TableName=self.table_name,
                Key={
                    HASH_KEY: {"S": hash_key},
                    RANGE_KEY: {"N": str(range_key)},
                },
                UpdateExpression="ADD #count :incr SET #timestamp = :time",
                ExpressionAttributeNames={"#count": "count", "#timestamp": "time"},
                ExpressionAttributeValues={
                    ":incr": {"N": str(amount)},
                    ":time": {"S": time_value},
                },
                ReturnValues="UPDATED_NEW",
            )
        except (ClientError, BotoCoreError) as error:
            logger.error("Error updating %s at %s: %s", hash_key, range_key, error)
            raise StoreError(f"Could not update {hash_key} at {range_key}: {error}") from error

        attributes = response.get("Attributes", {})
        if "count" not in attributes:
            return None
        return _deserializer.deserialize(attributes["count"])

    def query(self, hash_key, start, end):
        """Return every item under ``hash_key`` with a range key in [start, end]."""
        params = {
            "TableName": self.table_name,
            "KeyConditionExpression": "#hk = :hk AND #rk BETWEEN :start AND :end",
            "ExpressionAttributeNames": {"#hk": HASH_KEY, "#rk": RANGE_KEY},
            "ExpressionAttributeValues": {
                ":hk": {"S": hash_key},
                ":start": {"N": str(start)},
                ":end": {"N": str(end)},
            },
        }

        items = []
        while True:
            try:
                response = self.client.query(**params)
            except (ClientError, BotoCoreError) as error:
                logger.error("Error querying %s between %s and %s: %s", hash_key, start, end, error)
                raise StoreError(f"Could not query {hash_key}: {error}") from error

            for raw in response.get("Items", []):
                items.append({k: _deserializer.deserialize(v) for k, v in raw.items()})

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            params["ExclusiveStartKey"] = last_key
