"""
Time-to-live resolution for session records.

Precedence: a fixed ttl configured on the store, then the cookie's
maxAge (milliseconds, floored to whole seconds), then one day.
"""

import math
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Optional

from errors.exceptions import InvalidSessionDataError
from session.record import COOKIE_FIELD, MAX_AGE_KEY

# One day, used when neither a fixed ttl nor a cookie maxAge is available
DEFAULT_SESSION_TTL = timedelta(days=1)


def ttl_seconds(ttl: timedelta) -> int:
    # Rounded up so a positive sub-second ttl never becomes EXPIRE 0
    return math.ceil(ttl.total_seconds())


def cookie_max_age_seconds(data: Mapping) -> Optional[int]:
    """
    Derive a ttl from the session's cookie metadata.

    Args:
        data: Session fields.

    Returns:
        floor(maxAge / 1000), or None when there is no cookie or the
        cookie carries no maxAge.

    Raises:
        InvalidSessionDataError: If the cookie is not a mapping or maxAge
            is not a finite number.
    """
    cookie: Any = data.get(COOKIE_FIELD)
    if cookie is None:
        return None
    if not isinstance(cookie, Mapping):
        raise InvalidSessionDataError(
            "Session cookie metadata must be an object",
            details={"type": type(cookie).__name__},
        )

    max_age = cookie.get(MAX_AGE_KEY)
    if max_age is None:
        return None
    # bool is an int subclass; a boolean maxAge is malformed
    if isinstance(max_age, bool) or not isinstance(max_age, (int, float)) or not math.isfinite(max_age):
        raise InvalidSessionDataError(
            "Session cookie maxAge must be a finite number of milliseconds",
            details={"maxAge": repr(max_age)},
        )
    return math.floor(max_age / 1000)


def resolve_ttl(data: Mapping, fixed_ttl: Optional[timedelta] = None) -> int:
    """
    Resolve the expiration deadline for a save, in whole seconds.

    Args:
        data: Session fields.
        fixed_ttl: Store-wide override. Takes precedence when set.

    Returns:
        The ttl in seconds.

    Raises:
        InvalidSessionDataError: If the cookie metadata is malformed and
            no fixed ttl is configured.
    """
    if fixed_ttl is not None:
        return ttl_seconds(fixed_ttl)

    from_cookie = cookie_max_age_seconds(data)
    if from_cookie is not None:
        return from_cookie

    return ttl_seconds(DEFAULT_SESSION_TTL)
