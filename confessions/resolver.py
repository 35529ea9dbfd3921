"""
AWS Lambda resolver for the confessions GraphQL API.

Handles createConfession and listConfessions for AppSync (or direct
invocation with an "operation" key). Every create runs the shared
moderation policy before the confession is written to DynamoDB.

Rejections are raised, not returned: the exception message carries the
error code ("PROFANITY: Inappropriate content detected"), which AppSync
passes to the caller as the GraphQL error message.
"""

import logging
import uuid
from functools import lru_cache
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from confessions.config import settings
from confessions.errors import ConfessionError, UpstreamServiceError
from confessions.logging_utils import setup_logging
from confessions.moderation import APPROVED, moderate
from confessions.sentiment import get_sentiment_analyzer
from confessions.utils import decode_page_token, encode_page_token, utc_timestamp

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

PUBLIC_FIELDS = ("id", "message", "createdAt", "status")


class ConfessionTable:
    """DynamoDB access for the confessions table."""

    def __init__(self, table, status_index: str = "status-createdAt-index"):
        self.table = table
        self.status_index = status_index

    def put(self, item: Dict[str, Any]) -> None:
        """Insert a new confession; existing ids are never overwritten."""
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(id)",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB put failed: {e}")
            raise UpstreamServiceError("Failed to save") from e

    def query_approved(self, limit: int, next_token: Optional[str] = None) -> Dict[str, Any]:
        """Approved confessions, newest first, via the status/createdAt index."""
        params = {
            "IndexName": self.status_index,
            "KeyConditionExpression": Key("status").eq(APPROVED),
            "ScanIndexForward": False,
            "Limit": limit,
        }
        start_key = decode_page_token(next_token)
        if start_key:
            params["ExclusiveStartKey"] = start_key

        try:
            result = self.table.query(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB query failed: {e}")
            raise UpstreamServiceError("Failed to fetch") from e

        return {
            "items": [_public(item) for item in result.get("Items", [])],
            "nextToken": encode_page_token(result.get("LastEvaluatedKey")),
        }


@lru_cache()
def get_table() -> ConfessionTable:
    dynamodb = boto3.resource("dynamodb", region_name=settings.AWS_REGION)
    return ConfessionTable(dynamodb.Table(settings.TABLE_NAME), settings.TABLE_STATUS_INDEX)


def _public(item: Dict[str, Any]) -> Dict[str, Any]:
    return {field: item.get(field) for field in PUBLIC_FIELDS}


# =============================================================================
# Operations
# =============================================================================

def create_confession(message: Any) -> Dict[str, Any]:
    """
    Moderate and store a confession.

    Raises:
        ConfessionError: validation, content-policy or storage failure
    """
    outcome = moderate(
        message,
        get_sentiment_analyzer(),
        threshold=settings.NEGATIVE_SENTIMENT_THRESHOLD,
        fail_open=settings.SENTIMENT_FAIL_OPEN,
    )

    confession = {
        "id": str(uuid.uuid4()),
        "message": outcome.message,
        "createdAt": utc_timestamp(),
        "status": APPROVED,
        "sentiment": outcome.sentiment or "NEUTRAL",
        "policyVersion": outcome.policy_version,
    }
    get_table().put(confession)

    logger.info(f"Confession saved: {confession['id']}")
    return _public(confession)


def list_confessions(limit: int = 50, next_token: Optional[str] = None) -> Dict[str, Any]:
    limit = max(1, min(int(limit), 100))
    return get_table().query_approved(limit, next_token)


# =============================================================================
# Handler
# =============================================================================

def handler(event: Dict[str, Any], context=None) -> Dict[str, Any]:
    """
    Lambda entry point.

    Accepts AppSync resolver events ({"arguments": {...}, "info": {"fieldName": ...}})
    and direct invocations ({"operation": "create" | "list", ...}).
    """
    info = event.get("info") or {}
    arguments = event.get("arguments") if isinstance(event.get("arguments"), dict) else event
    operation = event.get("operation") or info.get("fieldName")
    logger.info(f"Resolver invoked: operation={operation}")

    try:
        if operation in ("createConfession", "create"):
            return create_confession(arguments.get("message"))

        if operation in ("listConfessions", "list"):
            return list_confessions(
                limit=arguments.get("limit") or 50,
                next_token=arguments.get("nextToken"),
            )
    except ConfessionError as e:
        logger.info(f"Confession rejected: {e.code}")
        raise

    raise ValueError(f"Unknown operation: {operation}")
