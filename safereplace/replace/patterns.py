"""
Search/replace functions built from a SearchSpec.

Literal mode is a plain, case-sensitive substring replace. Regex mode takes
PCRE-style patterns, optionally wrapped in delimiters with trailing
modifiers (``/foo(\\d+)/i``), and replacements using ``$1``, ``${1}`` or
``\\1`` group references.
"""
from __future__ import annotations

import re
from typing import TYPE_CHECKING, Callable, Sequence

from ..errors import ConfigError

if TYPE_CHECKING:
    from ..config import SearchSpec

Replacer = Callable[[str], str]

_DELIMITERS = "/#~!@%|+;,"
_MODIFIERS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": 0,  # str patterns are unicode already
}
_GROUP_REF = re.compile(r"\\\\|\\(\d{1,2})|\$(\d{1,2})|\$\{(\d{1,2})\}")


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """
    Compile a regex, honouring ``/body/flags`` delimiters when present.

    Raises:
        ConfigError: If the pattern is invalid or uses an unsupported modifier.
    """
    body, flags = pattern, 0
    if len(pattern) >= 2 and pattern[0] in _DELIMITERS:
        end = pattern.rfind(pattern[0])
        if end > 0:
            body = pattern[1:end]
            for modifier in pattern[end + 1:]:
                if modifier not in _MODIFIERS:
                    raise ConfigError(f"Unsupported regex modifier {modifier!r} in {pattern!r}")
                flags |= _MODIFIERS[modifier]
    try:
        return re.compile(body, flags)
    except re.error as exc:
        raise ConfigError(f"Invalid regular expression {pattern!r}: {exc}") from exc


def parse_replacement(replacement: str) -> list[str | int]:
    """
    Split a replacement into literal text and group numbers.
    """
    parts: list[str | int] = []
    pos = 0
    for match in _GROUP_REF.finditer(replacement):
        if match.start() > pos:
            parts.append(replacement[pos:match.start()])
        if match.group(0) == "\\\\":
            parts.append("\\")
        else:
            parts.append(int(match.group(1) or match.group(2) or match.group(3)))
        pos = match.end()
    if pos < len(replacement):
        parts.append(replacement[pos:])
    return parts


def _group(match: re.Match[str], index: int) -> str:
    try:
        return match.group(index) or ""
    except IndexError:
        return ""


def regex_replacer(pattern: str, replacement: str) -> Replacer:
    compiled = compile_pattern(pattern)
    parts = parse_replacement(replacement)

    def expand(match: re.Match[str]) -> str:
        return "".join(p if isinstance(p, str) else _group(match, p) for p in parts)

    def apply(text: str) -> str:
        return compiled.sub(expand, text)

    return apply


def literal_replacer(search: str, replacement: str) -> Replacer:
    def apply(text: str) -> str:
        return text.replace(search, replacement)

    return apply


def build_replacers(spec: "SearchSpec") -> list[Replacer]:
    make = regex_replacer if spec.regex else literal_replacer
    return [make(search, replacement) for search, replacement in spec.pairs]


def apply_all(replacers: Sequence[Replacer], text: str) -> str:
    """Apply each replacer in order, each one a complete pass."""
    for replacer in replacers:
        text = replacer(text)
    return text
