"""
Parser for the PHP ``serialize()`` format.

Every string node carries its byte length (``s:5:"hello";``). The strict pass
trusts those lengths, which keeps it binary safe: a payload may contain
``";`` or any other delimiter. When the strict pass fails because a length
is stale (typically after a naive find/replace on the raw column), an
optional lenient pass looks for the string terminator instead and marks the
result as repaired.

Values that are not serialized at all are an ordinary outcome here, not a
fault: ``try_parse`` returns ``None`` for them.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from ..errors import ParseError
from .nodes import (
    Bool,
    Custom,
    EnumCase,
    Float,
    Int,
    Node,
    Null,
    Object,
    Reference,
    String,
    make_array,
)

_TAGS = b"NbidsaOCrRE"
_INT_RE = re.compile(rb"^[+-]?\d+$")
_LENGTH_RE = re.compile(rb"^\d+$")
_FLOAT_RE = re.compile(
    rb"^(?:[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)|-?INF|NAN)$"
)


@dataclass(frozen=True)
class ParseResult:
    node: Node
    repaired: bool = False


class _Reader:
    def __init__(self, data: bytes, lenient: bool = False) -> None:
        self.data = data
        self.pos = 0
        self.lenient = lenient
        self.repaired = False

    def fail(self, message: str) -> ParseError:
        return ParseError(message, self.pos)

    def expect(self, token: bytes) -> None:
        end = self.pos + len(token)
        if self.data[self.pos:end] != token:
            raise self.fail(f"expected {token!r}")
        self.pos = end

    def read_until(self, delim: bytes) -> bytes:
        end = self.data.find(delim, self.pos)
        if end < 0:
            raise self.fail(f"missing {delim!r}")
        chunk = self.data[self.pos:end]
        self.pos = end + len(delim)
        return chunk

    def read_int(self, delim: bytes) -> int:
        raw = self.read_until(delim)
        if not _INT_RE.match(raw):
            raise self.fail(f"invalid integer {raw!r}")
        return int(raw)

    def read_count(self, delim: bytes) -> int:
        raw = self.read_until(delim)
        if raw.startswith(b"-") and _INT_RE.match(raw):
            raise self.fail(f"negative count {raw.decode()}")
        if not _LENGTH_RE.match(raw):
            raise self.fail(f"invalid count {raw!r}")
        return int(raw)

    def read_bytes(self, length: int, terminator: bytes) -> bytes:
        """
        Read a quoted payload of ``length`` bytes followed by ``terminator``.
        """
        start = self.pos
        end = start + length
        if end <= len(self.data) and self.data[end:end + len(terminator)] == terminator:
            self.pos = end + len(terminator)
            return self.data[start:end]
        if not self.lenient:
            if end > len(self.data):
                raise self.fail(f"declared length {length} exceeds remaining input")
            raise self.fail(f"string of declared length {length} is not terminated")

        end = self._find_terminator(start, terminator)
        self.repaired = True
        self.pos = end + len(terminator)
        return self.data[start:end]

    def _find_terminator(self, start: int, terminator: bytes) -> int:
        end = self.data.find(terminator, start)
        while end >= 0:
            if self._plausible_continuation(end + len(terminator)):
                return end
            end = self.data.find(terminator, end + 1)
        raise self.fail("unterminated string")

    def _plausible_continuation(self, pos: int) -> bool:
        rest = self.data[pos:pos + 2]
        if not rest or rest[:1] == b"}":
            return True
        if rest == b"N;":
            return True
        return len(rest) == 2 and rest[:1] in _TAGS and rest[1:] == b":"

    def read_node(self) -> Node:
        if self.pos >= len(self.data):
            raise self.fail("unexpected end of input")
        tag = self.data[self.pos:self.pos + 1]
        if tag not in _TAGS:
            raise self.fail(f"unrecognized type tag {tag!r}")

        if tag == b"N":
            self.expect(b"N;")
            return Null()

        self.expect(tag + b":")

        if tag == b"b":
            raw = self.read_until(b";")
            if raw not in (b"0", b"1"):
                raise self.fail(f"invalid boolean {raw!r}")
            return Bool(raw == b"1")

        if tag == b"i":
            return Int(self.read_int(b";"))

        if tag == b"d":
            raw = self.read_until(b";")
            if not _FLOAT_RE.match(raw):
                raise self.fail(f"invalid float {raw!r}")
            return Float(float(raw), literal=raw)

        if tag == b"s":
            declared = self.read_count(b":")
            self.expect(b'"')
            value = self.read_bytes(declared, b'";')
            return String(value, declared_length=declared)

        if tag in (b"r", b"R"):
            return Reference(tag.decode(), self.read_int(b";"))

        if tag == b"E":
            declared = self.read_count(b":")
            self.expect(b'"')
            return EnumCase(self.read_bytes(declared, b'";'))

        if tag == b"a":
            count = self.read_count(b":")
            self.expect(b"{")
            items = self.read_pairs(count, array_keys=True)
            self.expect(b"}")
            return make_array(items)

        # O and C both start with a quoted class name
        name_length = self.read_count(b":")
        self.expect(b'"')
        class_name = self.read_bytes(name_length, b'":')

        if tag == b"O":
            count = self.read_count(b":")
            self.expect(b"{")
            properties = self.read_pairs(count, array_keys=False)
            self.expect(b"}")
            return Object(class_name, properties)

        payload_length = self.read_count(b":")
        self.expect(b"{")
        payload = self.read_bytes(payload_length, b"}")
        return Custom(class_name, payload)

    def read_pairs(self, count: int, array_keys: bool) -> tuple[tuple[Node, Node], ...]:
        items = []
        for _ in range(count):
            key = self.read_node()
            if array_keys and not isinstance(key, (Int, String)):
                raise self.fail("array keys must be integers or strings")
            if not array_keys and not isinstance(key, String):
                raise self.fail("property names must be strings")
            items.append((key, self.read_node()))
        return tuple(items)


def _as_bytes(data: bytes | str) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8", "surrogateescape")
    return bytes(data)


def _parse_with(data: bytes, lenient: bool) -> ParseResult:
    reader = _Reader(data, lenient=lenient)
    node = reader.read_node()
    if reader.pos != len(data):
        raise reader.fail(f"{len(data) - reader.pos} trailing bytes after value")
    return ParseResult(node, repaired=reader.repaired)


def parse_result(data: bytes | str, *, repair: bool = True) -> ParseResult:
    """
    Parse ``data`` and report whether string lengths had to be repaired.

    Raises ParseError when the input is not a serialized value.
    """
    raw = _as_bytes(data)
    if len(raw) < 2 or raw[:1] not in _TAGS or raw[1:2] not in b":;":
        raise ParseError("not a serialized value", 0)
    try:
        return _parse_with(raw, lenient=False)
    except ParseError:
        if not repair:
            raise
    return _parse_with(raw, lenient=True)


def parse(data: bytes | str, *, repair: bool = True) -> Node:
    return parse_result(data, repair=repair).node


def try_parse(data: bytes | str, *, repair: bool = True) -> Node | None:
    try:
        return parse(data, repair=repair)
    except ParseError:
        return None
