"""Unit tests for shared helpers."""

from telemirror.utils import expand_env_vars, parse_bool, split_csv, strip_ansi_codes, truncate, utf16_len


def test_expand_env_vars_nested(monkeypatch):
    monkeypatch.setenv("TM_TOKEN", "abc")

    result = expand_env_vars({"a": ["${TM_TOKEN}", 3], "b": "${TM_MISSING_VAR}"})

    assert result == {"a": ["abc", 3], "b": "${TM_MISSING_VAR}"}


def test_parse_bool():
    assert parse_bool("TRUE") and parse_bool("1") and parse_bool(True)
    assert not parse_bool("no")
    assert parse_bool("", default=True)
    assert parse_bool(None, default=True)


def test_split_csv():
    assert split_csv(" 1, 2,,3 ") == ["1", "2", "3"]
    assert split_csv([4, 5]) == ["4", "5"]
    assert split_csv(None) == []


def test_strip_ansi_codes():
    assert strip_ansi_codes("\x1b[31mred\x1b[0m \x1b]0;title\x07done") == "red done"


def test_truncate():
    assert truncate("short", 10) == "short"
    assert truncate("abcdef", 3) == "abc..."


def test_utf16_len_counts_astral_characters_twice():
    assert utf16_len("abc") == 3
    assert utf16_len("é🚀") == 3
