from __future__ import annotations

import codecs
from dataclasses import dataclass
from typing import Any, Sequence

from ..codec import encode, parse_result
from ..codec.nodes import ARRAY_TYPES, Node, Object, String, make_array
from ..errors import ConfigError, ParseError
from .patterns import Replacer, apply_all

# MySQL character set names that Python spells differently
_MYSQL_CHARSETS = {
    "utf8mb4": "utf-8",
    "utf8mb3": "utf-8",
    "utf8": "utf-8",
    "latin1": "cp1252",
    "binary": "latin-1",
}


def python_encoding(charset: str) -> str:
    name = _MYSQL_CHARSETS.get(charset.lower(), charset)
    try:
        return codecs.lookup(name).name
    except LookupError as exc:
        raise ConfigError(f"Unsupported character set {charset!r}") from exc


@dataclass(frozen=True)
class RewriteResult:
    value: Any
    changed: bool
    serialized: bool = False
    # False when the stored value had stale string lengths that were repaired
    round_tripped: bool = True


class ValueRewriter:
    """
    Apply search/replace to a column value without breaking serialized data.

    Serialized values are parsed, every string leaf is rewritten (recursing
    into strings that hold serialized values themselves), and the tree is
    re-encoded so each string length matches its new payload. Array keys and
    property names are left alone. Anything that does not parse is treated
    as plain text.
    """

    def __init__(
        self,
        replacers: Sequence[Replacer],
        charset: str = "utf8mb4",
        replacements: Sequence[str] = (),
    ) -> None:
        self.replacers = list(replacers)
        self.encoding = python_encoding(charset)
        for replacement in replacements:
            try:
                replacement.encode(self.encoding)
            except UnicodeEncodeError as exc:
                raise ConfigError(
                    f"Replacement {replacement!r} cannot be stored in character set {charset}"
                ) from exc

    def _decode(self, raw: bytes) -> str:
        return raw.decode(self.encoding, "surrogateescape")

    def _encode(self, text: str) -> bytes:
        return text.encode(self.encoding, "surrogateescape")

    def rewrite(self, value: str | bytes) -> RewriteResult:
        raw = value if isinstance(value, bytes) else self._encode(value)
        try:
            parsed = parse_result(raw)
        except ParseError:
            parsed = None

        if parsed is None:
            new_raw = self._replace_bytes(raw)
            serialized = False
            round_tripped = True
        else:
            node = self._walk(parsed.node)
            new_raw = raw if node is parsed.node else encode(node)
            serialized = True
            round_tripped = not parsed.repaired

        if new_raw == raw:
            return RewriteResult(value, False, serialized, round_tripped)
        new_value = new_raw if isinstance(value, bytes) else self._decode(new_raw)
        return RewriteResult(new_value, True, serialized, round_tripped)

    def _replace_bytes(self, raw: bytes) -> bytes:
        text = self._decode(raw)
        new_text = apply_all(self.replacers, text)
        return raw if new_text == text else self._encode(new_text)

    def _walk(self, node: Node) -> Node:
        """Return a rewritten tree, or ``node`` itself when nothing changed."""
        if isinstance(node, String):
            return self._rewrite_string(node)
        if isinstance(node, ARRAY_TYPES):
            items = self._walk_pairs(node.items)
            return node if items is node.items else make_array(items)
        if isinstance(node, Object):
            properties = self._walk_pairs(node.properties)
            return node if properties is node.properties else Object(node.class_name, properties)
        return node

    def _walk_pairs(self, pairs):
        changed = False
        out = []
        for key, value in pairs:
            new_value = self._walk(value)
            changed = changed or new_value is not value
            out.append((key, new_value))
        return tuple(out) if changed else pairs

    def _rewrite_string(self, node: String) -> String:
        try:
            nested = parse_result(node.value)
        except ParseError:
            nested = None

        if nested is not None and isinstance(nested.node, (*ARRAY_TYPES, Object, String)):
            inner = self._walk(nested.node)
            if inner is nested.node:
                return node
            return String(encode(inner))

        new_value = self._replace_bytes(node.value)
        return node if new_value is node.value else String(new_value)

