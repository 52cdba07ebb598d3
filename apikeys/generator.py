"""
API key string generation.

Format: <prefix><epoch milliseconds>_<43 chars of URL-safe base64>

The random part is 32 bytes (256 bits) from the OS CSPRNG. Uniqueness here is
probabilistic; the unique index on api_keys.api_key is the backstop.
"""

import re
import secrets
from datetime import datetime, timezone
from typing import Optional

from apikeys.config import DEFAULT_KEY_PREFIX

RANDOM_BYTES = 32


def generate_api_key(prefix: str = DEFAULT_KEY_PREFIX, now: Optional[datetime] = None) -> str:
    """
    Generate a new API key string.

    Args:
        prefix: Scheme prefix, e.g. "sk-itumy-v1-"
        now: Creation instant (naive UTC); defaults to the current time

    Returns:
        Key string such as "sk-itumy-v1-1760870400000_Qm9...".
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    timestamp_ms = int(now.timestamp() * 1000)
    random_part = secrets.token_urlsafe(RANDOM_BYTES)
    return f"{prefix}{timestamp_ms}_{random_part}"


def key_pattern(prefix: str = DEFAULT_KEY_PREFIX) -> "re.Pattern[str]":
    """Regex matching keys produced by generate_api_key for this prefix."""
    return re.compile(rf"^{re.escape(prefix)}\d+_[A-Za-z0-9_-]{{43}}$")


def mask_key(api_key: str) -> str:
    """Masked form for logs: prefix, timestamp and the last 4 characters."""
    if not api_key:
        return ""
    head, sep, tail = api_key.partition("_")
    if not sep:
        return api_key[:8] + "..."
    return f"{head}_...{tail[-4:]}"
