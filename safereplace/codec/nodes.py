from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class Null:
    pass


@dataclass(frozen=True)
class Bool:
    value: bool


@dataclass(frozen=True)
class Int:
    value: int


@dataclass(frozen=True)
class Float:
    value: float
    # source text, reused on encode so untouched doubles keep their exact form
    literal: bytes | None = field(default=None, compare=False)


@dataclass(frozen=True)
class String:
    """
    A byte string. ``declared_length`` is what the input claimed; encode
    always writes ``len(value)`` instead.
    """

    value: bytes
    declared_length: int | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Reference:
    """``r:N;`` (object reference) or ``R:N;`` (variable reference)."""

    kind: str
    index: int


@dataclass(frozen=True)
class EnumCase:
    """``E:N:"Class:Case";`` enum case reference."""

    value: bytes


@dataclass(frozen=True)
class Custom:
    """``C:N:"Class":N:{payload}`` object with its own opaque serializer."""

    class_name: bytes
    payload: bytes


@dataclass(frozen=True)
class Sequence:
    """An array whose keys are all integers."""

    items: tuple[tuple["Node", "Node"], ...]


@dataclass(frozen=True)
class Keyed:
    """An array with at least one string key."""

    items: tuple[tuple["Node", "Node"], ...]


@dataclass(frozen=True)
class Object:
    class_name: bytes
    properties: tuple[tuple["Node", "Node"], ...]


Node = Union[Null, Bool, Int, Float, String, Reference, EnumCase, Custom, Sequence, Keyed, Object]

ARRAY_TYPES = (Sequence, Keyed)


def make_array(items: tuple[tuple[Node, Node], ...]) -> Sequence | Keyed:
    if all(isinstance(key, Int) for key, _ in items):
        return Sequence(items)
    return Keyed(items)
