"""
Utility functions for the Confessions API.
"""

import base64
import binascii
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request

from confessions.errors import InvalidPageTokenError

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Resolve the client address used as the rate-limit key.

    Order: first X-Forwarded-For hop, X-Real-IP, socket peer, "unknown".
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode_page_token(key: Optional[dict]) -> Optional[str]:
    """Encode a pagination key as an opaque URL-safe token."""
    if not key:
        return None
    raw = json.dumps(key, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_page_token(token: Optional[str]) -> Optional[dict]:
    """
    Decode a token produced by encode_page_token.

    Raises:
        InvalidPageTokenError: if the token is not a valid encoded key
    """
    if not token:
        return None
    try:
        key: Any = json.loads(base64.urlsafe_b64decode(token.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError) as e:
        logger.debug(f"Rejected page token: {e}")
        raise InvalidPageTokenError()
    if not isinstance(key, dict):
        raise InvalidPageTokenError()
    return key
