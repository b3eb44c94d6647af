from .encoder import encode
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
from .parser import ParseResult, parse, parse_result, try_parse

__all__ = [
    "Bool",
    "Custom",
    "EnumCase",
    "Float",
    "Int",
    "Keyed",
    "Node",
    "Null",
    "Object",
    "ParseResult",
    "Reference",
    "Sequence",
    "String",
    "encode",
    "parse",
    "parse_result",
    "try_parse",
]
