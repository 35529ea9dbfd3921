"""
Confession backends.

DatabaseBackend screens sentiment and stores confessions in the SQL
database itself. AppSyncBackend forwards to the managed GraphQL API, where
the Lambda resolver applies the same moderation policy before writing to
DynamoDB.
"""

import logging
from functools import lru_cache
from typing import List, Optional, Tuple

from fastapi import Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from confessions.appsync import AppSyncClient
from confessions.config import settings
from confessions.errors import InvalidPageTokenError, UpstreamServiceError
from confessions.moderation import POLICY_VERSION, check_sentiment
from confessions.schemas import ConfessionOut
from confessions.sentiment import get_sentiment_analyzer
from confessions.storage import check_db_health, create_confession, get_db, list_confessions
from confessions.utils import decode_page_token, encode_page_token

logger = logging.getLogger(__name__)


class DatabaseBackend:
    """Store confessions in the SQL database."""

    name = "database"

    def __init__(self, db: Session, analyzer=None):
        self.db = db
        self.analyzer = analyzer

    async def create(self, message: str) -> ConfessionOut:
        """
        Screen sentiment and persist a message that passed the word filter.

        Raises:
            ToxicContentError: strongly negative sentiment
            SentimentServiceError: sentiment failure while fail-open is disabled
            UpstreamServiceError: the insert failed
        """
        # boto3 is blocking; keep it off the event loop
        sentiment = await run_in_threadpool(
            check_sentiment,
            message,
            self.analyzer,
            settings.NEGATIVE_SENTIMENT_THRESHOLD,
            settings.SENTIMENT_FAIL_OPEN,
        )

        confession = create_confession(
            self.db,
            message=message,
            sentiment=sentiment,
            policy_version=POLICY_VERSION,
        )
        if confession is None:
            raise UpstreamServiceError("Failed to store confession")

        return ConfessionOut(
            id=confession.id,
            message=confession.message,
            created_at=confession.created_at,
        )

    async def list(self, limit: int, next_token: Optional[str] = None) -> Tuple[List[ConfessionOut], Optional[str]]:
        cursor = decode_page_token(next_token)
        if cursor is not None and not (
            isinstance(cursor.get("createdAt"), str) and isinstance(cursor.get("seq"), int)
        ):
            raise InvalidPageTokenError()

        try:
            rows, next_cursor = list_confessions(self.db, limit=limit, cursor=cursor)
        except Exception as e:
            logger.error(f"Failed to list confessions: {e}")
            raise UpstreamServiceError("Failed to list confessions") from e

        items = [
            ConfessionOut(id=row.id, message=row.message, created_at=row.created_at)
            for row in rows
        ]
        return items, encode_page_token(next_cursor)

    def is_ready(self) -> Tuple[bool, Optional[str]]:
        if not check_db_health():
            return False, "Database not reachable or schema not applied"
        return True, None


class AppSyncBackend:
    """Forward confessions to the managed GraphQL API."""

    name = "appsync"

    def __init__(self, client: AppSyncClient):
        self.client = client

    async def create(self, message: str) -> ConfessionOut:
        confession = await self.client.create_confession(message)
        return ConfessionOut.model_validate(confession)

    async def list(self, limit: int, next_token: Optional[str] = None) -> Tuple[List[ConfessionOut], Optional[str]]:
        result = await self.client.list_confessions(limit=limit, next_token=next_token)
        items = [ConfessionOut.model_validate(item) for item in result["items"]]
        return items, result["nextToken"]

    def is_ready(self) -> Tuple[bool, Optional[str]]:
        if not self.client.is_configured:
            return False, "APPSYNC_ENDPOINT or APPSYNC_API_KEY not configured"
        return True, None


@lru_cache()
def get_appsync_client() -> AppSyncClient:
    return AppSyncClient(
        endpoint=settings.APPSYNC_ENDPOINT,
        api_key=settings.APPSYNC_API_KEY,
        timeout=settings.APPSYNC_TIMEOUT_SECONDS,
    )


def get_backend(
    db: Session = Depends(get_db),
    analyzer=Depends(get_sentiment_analyzer),
):
    """FastAPI dependency returning the configured confession backend."""
    if settings.CONFESSION_BACKEND == "appsync":
        return AppSyncBackend(get_appsync_client())
    return DatabaseBackend(db, analyzer)
