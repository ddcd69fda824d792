"""
JSON codec for individual session field values.

Every hash field is encoded on its own. Encoding is canonical (compact
separators, sorted object keys) so that comparing two encodings is a
reliable way to tell whether a value changed.
"""

import json
from typing import Any, Union

from errors.exceptions import SessionDecodeError, SessionEncodeError


def encode(value: Any) -> str:
    """
    Serialize a JSON-representable value to its canonical string form.

    Args:
        value: Any value built from dicts, lists, strings, numbers,
            booleans and None.

    Returns:
        Compact JSON with sorted object keys.

    Raises:
        SessionEncodeError: If the value cannot be represented as JSON
            (unsupported types, NaN/Infinity, circular references).
    """
    try:
        return json.dumps(value, separators=(",", ":"), sort_keys=True, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SessionEncodeError(
            f"Session value is not JSON serializable: {e}",
            details={"type": type(value).__name__},
        ) from e


def decode(raw: Union[str, bytes]) -> Any:
    """
    Deserialize a stored string back to its value.

    Args:
        raw: JSON text as returned by Redis.

    Returns:
        The decoded value.

    Raises:
        SessionDecodeError: If the input is not valid JSON.
    """
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SessionDecodeError(f"Malformed session value: {e}") from e
