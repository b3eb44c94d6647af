from __future__ import annotations

import math

from .nodes import (
    Bool,
    Custom,
    EnumCase,
    Float,
    Int,
    Keyed,
    Node,
    Null,
    Object,
    Reference,
    Sequence,
    String,
)


def format_float(value: float) -> bytes:
    """
    Format a double the way PHP's serialize() does with serialize_precision=-1.
    """
    if math.isnan(value):
        return b"NAN"
    if math.isinf(value):
        return b"INF" if value > 0 else b"-INF"
    if value == 0:
        return b"-0" if math.copysign(1.0, value) < 0 else b"0"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value)).encode()
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        if "." not in mantissa:
            mantissa += ".0"
        exp = int(exponent)
        text = f"{mantissa}E{'+' if exp >= 0 else '-'}{abs(exp)}"
    return text.encode()


def _quoted(value: bytes) -> bytes:
    return b"%d:\"%s\"" % (len(value), value)


def _write(node: Node, out: bytearray) -> None:
    if isinstance(node, Null):
        out += b"N;"
    elif isinstance(node, Bool):
        out += b"b:1;" if node.value else b"b:0;"
    elif isinstance(node, Int):
        out += b"i:%d;" % node.value
    elif isinstance(node, Float):
        literal = node.literal
        if literal is None or float(literal) != node.value:
            literal = format_float(node.value)
        out += b"d:" + literal + b";"
    elif isinstance(node, String):
        # the declared length is never reused; it may be stale
        out += b"s:" + _quoted(node.value) + b";"
    elif isinstance(node, Reference):
        out += b"%s:%d;" % (node.kind.encode(), node.index)
    elif isinstance(node, EnumCase):
        out += b"E:" + _quoted(node.value) + b";"
    elif isinstance(node, (Sequence, Keyed)):
        out += b"a:%d:{" % len(node.items)
        _write_pairs(node.items, out)
        out += b"}"
    elif isinstance(node, Object):
        out += b"O:" + _quoted(node.class_name) + b":%d:{" % len(node.properties)
        _write_pairs(node.properties, out)
        out += b"}"
    elif isinstance(node, Custom):
        out += b"C:" + _quoted(node.class_name) + b":%d:{" % len(node.payload)
        out += node.payload + b"}"
    else:
        raise TypeError(f"cannot encode {type(node).__name__}")


def _write_pairs(pairs, out: bytearray) -> None:
    for key, value in pairs:
        _write(key, out)
        _write(value, out)


def encode(node: Node) -> bytes:
    """
    Encode a node tree, recomputing every string length from its payload.
    """
    out = bytearray()
    _write(node, out)
    return bytes(out)
