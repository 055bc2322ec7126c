"""Parser for PHP ``serialize()`` output and PHP session payloads.

Two payload encodings are supported:

- ``loads``: one serialized value, e.g. ``a:1:{s:3:"foo";i:1;}``
  (what the ``php_serialize`` session handler writes).
- ``loads_session``: the default ``php`` session handler format,
  ``name|<serialized value>name|<serialized value>...``.

Strings are length-prefixed in bytes, so the parser works on ``bytes`` and
decodes text only after slicing.
"""

from __future__ import annotations

from typing import Any

# Deepest array/object nesting accepted in one payload
MAX_DEPTH = 128


class PhpUnserializeError(ValueError):
    """Payload does not follow the PHP serialization grammar."""


class PhpObject(dict):
    """Deserialized PHP object: its properties plus the class name.

    Objects using custom serialization (``C:``) keep their opaque payload in
    ``payload`` and carry no properties.
    """

    def __init__(self, class_name: str, payload: bytes | None = None) -> None:
        super().__init__()
        self.class_name = class_name
        self.payload = payload

    def __repr__(self) -> str:
        return f"PhpObject({self.class_name!r}, {dict.__repr__(self)})"


def _to_text(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


class _Parser:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0
        # Back-reference slots, numbered from 1 the way PHP numbers them
        self.refs: list[Any] = []
        self.depth = 0

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def fail(self, reason: str) -> PhpUnserializeError:
        return PhpUnserializeError(f"{reason} at offset {self.pos}")

    def expect(self, token: bytes) -> None:
        end = self.pos + len(token)
        if self.data[self.pos : end] != token:
            raise self.fail(f"expected {token!r}")
        self.pos = end

    def read_until(self, delim: bytes) -> bytes:
        idx = self.data.find(delim, self.pos)
        if idx < 0:
            raise self.fail(f"missing {delim!r}")
        chunk = self.data[self.pos : idx]
        self.pos = idx + len(delim)
        return chunk

    def read_int(self, delim: bytes) -> int:
        raw = self.read_until(delim)
        try:
            return int(raw)
        except ValueError:
            raise self.fail(f"bad integer {raw!r}") from None

    def read_bytes(self, length: int) -> bytes:
        end = self.pos + length
        if length < 0 or end > len(self.data):
            raise self.fail(f"length {length} out of range")
        chunk = self.data[self.pos : end]
        self.pos = end
        return chunk

    def read_class_name(self) -> str:
        length = self.read_int(b":")
        self.expect(b'"')
        name = _to_text(self.read_bytes(length))
        self.expect(b'":')
        return name

    def parse_key(self) -> int | str:
        key = self.parse_value(register=False)
        if isinstance(key, str):
            # Private and protected members are "\0Class\0name" / "\0*\0name"
            if key.startswith("\0"):
                key = key.rsplit("\0", 1)[-1]
            return key
        if isinstance(key, int) and not isinstance(key, bool):
            return key
        raise self.fail(f"illegal array key {key!r}")

    def parse_members(self, target: dict[Any, Any], count: int) -> None:
        if self.depth >= MAX_DEPTH:
            raise self.fail(f"nesting deeper than {MAX_DEPTH}")
        self.expect(b"{")
        self.depth += 1
        for _ in range(count):
            key = self.parse_key()
            target[key] = self.parse_value()
        self.depth -= 1
        self.expect(b"}")

    def parse_value(self, register: bool = True) -> Any:
        if self.at_end:
            raise self.fail("unexpected end of data")
        kind = self.data[self.pos : self.pos + 1]

        if kind == b"N":
            self.expect(b"N;")
            value: Any = None
        elif kind in (b"r", b"R"):
            self.expect(kind + b":")
            index = self.read_int(b";")
            if not 1 <= index <= len(self.refs):
                raise self.fail(f"dangling reference {index}")
            value = self.refs[index - 1]
            if kind == b"R":
                return value
        else:
            self.expect(kind + b":")
            if kind == b"b":
                raw = self.read_until(b";")
                if raw not in (b"0", b"1"):
                    raise self.fail(f"bad boolean {raw!r}")
                value = raw == b"1"
            elif kind == b"i":
                value = self.read_int(b";")
            elif kind == b"d":
                raw = self.read_until(b";")
                try:
                    value = float(raw.decode("ascii"))
                except (UnicodeDecodeError, ValueError):
                    raise self.fail(f"bad float {raw!r}") from None
            elif kind == b"s":
                length = self.read_int(b":")
                self.expect(b'"')
                value = _to_text(self.read_bytes(length))
                self.expect(b'";')
            elif kind == b"a":
                count = self.read_int(b":")
                value = {}
                if register:
                    self.refs.append(value)
                self.parse_members(value, count)
                return value
            elif kind == b"O":
                value = PhpObject(self.read_class_name())
                count = self.read_int(b":")
                if register:
                    self.refs.append(value)
                self.parse_members(value, count)
                return value
            elif kind == b"C":
                class_name = self.read_class_name()
                length = self.read_int(b":")
                self.expect(b"{")
                value = PhpObject(class_name, payload=self.read_bytes(length))
                self.expect(b"}")
            else:
                raise self.fail(f"unknown type marker {kind!r}")

        if register:
            self.refs.append(value)
        return value


def loads(data: bytes) -> Any:
    """Deserialize one PHP serialized value; the whole input must be consumed."""
    parser = _Parser(data)
    value = parser.parse_value()
    if not parser.at_end:
        raise parser.fail("trailing data")
    return value


def loads_session(data: bytes) -> dict[str, Any]:
    """Deserialize a payload written by the default ``php`` session handler."""
    parser = _Parser(data)
    result: dict[str, Any] = {}
    while not parser.at_end:
        name = parser.read_until(b"|")
        if not name:
            raise parser.fail("empty variable name")
        if name.startswith(b"!"):
            # Undefined variable marker, no value follows
            result[_to_text(name[1:])] = None
            continue
        result[_to_text(name)] = parser.parse_value()
    return result
