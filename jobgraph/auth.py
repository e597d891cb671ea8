"""
Header checks used by the HTTP layer.
"""

import hmac

from .config import get_settings


def verify_one_time_token(token: str | None) -> bool:
    """True when ``token`` is one of the configured one-time tokens."""
    if not token:
        return False
    return any(
        hmac.compare_digest(token, candidate)
        for candidate in get_settings().one_time_tokens
    )


def verify_api_key(key: str | None) -> bool:
    if not key:
        return False
    return hmac.compare_digest(key, get_settings().api_key)
