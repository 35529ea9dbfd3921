# confessions/appsync.py

import logging
from typing import Any, Dict, Optional

import httpx

from confessions.errors import (
    ConfessionError,
    ProfanityDetectedError,
    UpstreamServiceError,
    error_from_message,
)

logger = logging.getLogger(__name__)


LIST_CONFESSIONS = """
query ListConfessions($limit: Int, $nextToken: String) {
  listConfessions(limit: $limit, nextToken: $nextToken) {
    items {
      id
      message
      createdAt
      status
    }
    nextToken
  }
}
"""

CREATE_CONFESSION = """
mutation CreateConfession($message: String!) {
  createConfession(message: $message) {
    id
    message
    createdAt
    status
  }
}
"""


class AppSyncClient:
    """Client for the managed GraphQL API (AWS AppSync, API key auth)"""

    def __init__(self, endpoint: str, api_key: str, timeout: float = 10.0):
        """Initialize the client with the server-side endpoint and key"""
        self.endpoint = endpoint
        self.timeout = timeout
        self.headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
        }

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint and self.headers.get("x-api-key"))

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a GraphQL operation and return its `data` object.

        Raises:
            ConfessionError: a typed rejection reported by the resolver
            UpstreamServiceError: transport failure, bad status or any other GraphQL error
        """
        payload = {"query": query, "variables": variables or {}}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.endpoint, headers=self.headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"AppSync request failed: {e!r}")
            raise UpstreamServiceError(f"AppSync request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"AppSync returned HTTP {response.status_code}")
            raise UpstreamServiceError(f"AppSync returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            logger.error("AppSync returned a non-JSON body")
            raise UpstreamServiceError("AppSync returned a non-JSON body") from e

        errors = body.get("errors")
        if errors:
            raise self._map_error(errors)

        return body.get("data") or {}

    @staticmethod
    def _map_error(errors: list) -> ConfessionError:
        """Turn the first GraphQL error into the matching typed error"""
        first = errors[0] if isinstance(errors[0], dict) else {}
        message = first.get("message") or ""
        error_type = first.get("errorType") or ""

        typed = error_from_message(message)
        if typed is not None:
            logger.info(f"AppSync rejected confession: {typed.code}")
            return typed

        if error_type == "PROFANITY_DETECTED" or "PROFANITY" in message:
            return ProfanityDetectedError()

        logger.error(f"GraphQL errors: {errors}")
        return UpstreamServiceError("GraphQL error")

    async def list_confessions(self, limit: int = 50, next_token: Optional[str] = None) -> Dict[str, Any]:
        """Fetch approved confessions, newest first"""
        data = await self.execute(LIST_CONFESSIONS, {"limit": limit, "nextToken": next_token})
        result = data.get("listConfessions") or {}
        return {
            "items": result.get("items") or [],
            "nextToken": result.get("nextToken"),
        }

    async def create_confession(self, message: str) -> Dict[str, Any]:
        """Submit a confession through the createConfession mutation"""
        data = await self.execute(CREATE_CONFESSION, {"message": message})
        confession = data.get("createConfession")
        if not confession:
            raise UpstreamServiceError("createConfession returned no data")
        return confession
