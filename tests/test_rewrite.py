from __future__ import annotations

import pytest

from safereplace.codec import Int, String, parse
from safereplace.config import SearchSpec
from safereplace.errors import ConfigError
from safereplace.replace.patterns import build_replacers
from safereplace.replace.rewrite import ValueRewriter


def _rewriter(search, replace, regex: bool = False) -> ValueRewriter:
    return ValueRewriter(build_replacers(SearchSpec.from_values(search, replace, regex=regex)))


def test_serialized_map_is_rewritten_with_correct_lengths() -> None:
    value = 'a:2:{s:1:"a";s:6:"findMe";s:1:"b";i:2;}'
    result = _rewriter("findMe", "replaceMe").rewrite(value)

    assert result.changed is True
    assert result.serialized is True
    assert result.value == 'a:2:{s:1:"a";s:9:"replaceMe";s:1:"b";i:2;}'
    node = parse(result.value)
    assert dict(node.items) == {String(b"a"): String(b"replaceMe"), String(b"b"): Int(2)}


def test_naive_replace_would_break_the_value() -> None:
    value = 'a:1:{i:0;s:18:"http://example.com";}'
    result = _rewriter("http://example.com", "https://example.org").rewrite(value)
    assert result.value == 'a:1:{i:0;s:19:"https://example.org";}'


def test_plain_value_is_replaced_directly() -> None:
    result = _rewriter("foo", "bar").rewrite("foo and foo")
    assert result.changed is True
    assert result.serialized is False
    assert result.value == "bar and bar"


def test_unchanged_value_is_returned_as_is() -> None:
    value = 'a:1:{s:1:"k";s:3:"abc";}'
    result = _rewriter("zzz", "y").rewrite(value)
    assert result.changed is False
    assert result.value is value


def test_array_keys_and_property_names_are_not_rewritten() -> None:
    value = 'O:8:"stdClass":1:{s:4:"home";s:4:"home";}'
    result = _rewriter("home", "house").rewrite(value)
    assert result.value == 'O:8:"stdClass":1:{s:4:"home";s:5:"house";}'


def test_nested_serialized_string_is_rewritten_at_every_level() -> None:
    inner = 'a:1:{i:0;s:3:"old";}'
    value = f'a:1:{{s:4:"data";s:{len(inner)}:"{inner}";}}'
    result = _rewriter("old", "newer").rewrite(value)

    new_inner = 'a:1:{i:0;s:5:"newer";}'
    assert result.value == f'a:1:{{s:4:"data";s:{len(new_inner)}:"{new_inner}";}}'


def test_multibyte_replacement_uses_byte_lengths() -> None:
    result = _rewriter("cafe", "café").rewrite('s:4:"cafe";')
    assert result.value == 's:5:"café";'


def test_bytes_values_stay_bytes() -> None:
    result = _rewriter("abc", "xyz").rewrite(b's:3:"abc";')
    assert result.value == b's:3:"xyz";'


def test_regex_on_serialized_leaf() -> None:
    result = _rewriter(r"/foo(\d+)/", "bar$1", regex=True).rewrite('a:1:{i:0;s:5:"foo42";}')
    assert result.value == 'a:1:{i:0;s:5:"bar42";}'


def test_stale_lengths_are_repaired_and_flagged() -> None:
    value = 'a:1:{i:0;s:3:"findMe";}'
    result = _rewriter("findMe", "x").rewrite(value)
    assert result.changed is True
    assert result.round_tripped is False
    assert result.value == 'a:1:{i:0;s:1:"x";}'


def test_second_pass_finds_nothing() -> None:
    rewriter = _rewriter("findMe", "replaceMe")
    first = rewriter.rewrite('a:1:{i:0;s:6:"findMe";}')
    second = rewriter.rewrite(first.value)
    assert second.changed is False


def test_serialized_string_inside_a_leaf_gets_its_own_length_fixed() -> None:
    value = 'a:1:{i:0;s:12:"s:5:"hello";";}'
    result = _rewriter("hello", "bye").rewrite(value)

    assert result.value == 'a:1:{i:0;s:10:"s:3:"bye";";}'
    (_, leaf), = parse(result.value, repair=False).items
    assert parse(leaf.value, repair=False) == String(b"bye")


def test_replacement_outside_the_connection_charset_is_rejected() -> None:
    replacers = build_replacers(SearchSpec.from_values("a", "日本"))
    with pytest.raises(ConfigError):
        ValueRewriter(replacers, charset="latin1", replacements=["日本"])


def test_replacement_inside_the_connection_charset_is_accepted() -> None:
    replacers = build_replacers(SearchSpec.from_values("cafe", "café"))
    rewriter = ValueRewriter(replacers, charset="latin1", replacements=["café"])
    assert rewriter.rewrite("cafe").value == "café"
