"""
Session Codec

Decodes the ``session_data`` column of a session row: base64 text wrapping a
PHP session payload. Only the user-agent recorded by the session validator
is exposed to the rest of the sweep.
"""

from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Mapping
from typing import Any

from .errors import DecodeError
from .utils.php_unserialize import PhpUnserializeError, loads, loads_session

USER_AGENT_PATH = ("_session_validator_data", "http_user_agent")

# Payload starts like a single serialized value ("a:2:{", "N;", "s:3:...")
_SERIALIZED_VALUE_RE = re.compile(rb"^(?:N;|[bidsaOCrR]:)")


class DecodedSession:
    """Read-only view over a decoded session mapping."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = data

    def get_path(self, *path: str) -> Any:
        """Return the value at a nested key path, or None when any key is missing."""
        node: Any = self._data
        for key in path:
            if not isinstance(node, Mapping) or key not in node:
                return None
            node = node[key]
        return node

    @property
    def user_agent(self) -> str | None:
        value = self.get_path(*USER_AGENT_PATH)
        if value is None or isinstance(value, (Mapping, list)):
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return str(value)

    @property
    def has_user_agent(self) -> bool:
        return self.user_agent is not None

    def __len__(self) -> int:
        return len(self._data)


def _b64decode(raw_blob: bytes | str) -> bytes:
    if isinstance(raw_blob, str):
        raw_blob = raw_blob.strip()
    else:
        raw_blob = bytes(raw_blob).strip()
    try:
        return base64.b64decode(raw_blob, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Session data is not valid base64: {exc}") from exc


def _unserialize(payload: bytes) -> Any:
    if _SERIALIZED_VALUE_RE.match(payload):
        try:
            return loads(payload)
        except PhpUnserializeError:
            # "name|value" payloads can start with the same characters
            pass
    try:
        return loads_session(payload)
    except PhpUnserializeError as exc:
        raise DecodeError(f"Malformed session payload: {exc}") from exc


def decode(raw_blob: bytes | str) -> DecodedSession:
    """Decode a stored session blob.

    Args:
        raw_blob: Base64 text of a PHP session payload

    Returns:
        DecodedSession wrapping the top-level mapping

    Raises:
        DecodeError: If base64 decoding fails, the payload is malformed or
            the payload is not a mapping
    """
    data = _unserialize(_b64decode(raw_blob))
    if not isinstance(data, Mapping):
        raise DecodeError(
            f"Session payload is {type(data).__name__}, expected a mapping"
        )
    return DecodedSession(data)
