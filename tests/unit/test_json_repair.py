"""Tests for parse-with-repair of model JSON output."""

from __future__ import annotations

from proseforge.generation.json_repair import (
    Fatal,
    Ok,
    RepairedOk,
    escape_control_characters,
    extract_object,
    parse_with_repair,
    remove_trailing_commas,
    strip_wrappers,
)


class TestCleanupSteps:
    """Tests for the individual cleanup helpers."""

    def test_strip_code_fence(self) -> None:
        assert strip_wrappers('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strip_json_tags(self) -> None:
        assert strip_wrappers('<json>{"a": 1}</json>') == '{"a": 1}'

    def test_remove_trailing_commas_nested(self) -> None:
        assert remove_trailing_commas('{"a": [1, 2,],}') == '{"a": [1, 2]}'

    def test_extract_object_ignores_chatter(self) -> None:
        text = 'Sure! Here it is: {"a": {"b": 1}} Let me know.'

        assert extract_object(text) == '{"a": {"b": 1}}'

    def test_extract_object_ignores_braces_in_strings(self) -> None:
        text = '{"content": "a } b { c"} trailing'

        assert extract_object(text) == '{"content": "a } b { c"}'

    def test_extract_object_unclosed_returns_rest(self) -> None:
        assert extract_object('noise {"a": 1') == '{"a": 1'

    def test_extract_object_none_without_brace(self) -> None:
        assert extract_object("no braces at all") is None

    def test_escape_control_characters_only_inside_strings(self) -> None:
        text = '{\n"a": "one\ntwo"\n}'

        assert escape_control_characters(text) == '{\n"a": "one\\ntwo"\n}'

    def test_escape_keeps_existing_escapes(self) -> None:
        text = '{"a": "say \\"hi\\"\tnow"}'

        assert escape_control_characters(text) == '{"a": "say \\"hi\\"\\tnow"}'


class TestParseWithRepair:
    """Tests for parse_with_repair."""

    def test_clean_json_is_ok(self) -> None:
        result = parse_with_repair('{"content": "Hello", "summary": "Hi"}')

        assert result == Ok({"content": "Hello", "summary": "Hi"})

    def test_fenced_json_is_ok(self) -> None:
        result = parse_with_repair('```json\n{"content": "x"}\n```')

        assert isinstance(result, Ok)
        assert result.value == {"content": "x"}

    def test_chatter_around_json_is_ok(self) -> None:
        result = parse_with_repair('Here you go:\n{"content": "x"}\nHope that helps!')

        assert isinstance(result, Ok)

    def test_trailing_commas_repaired(self) -> None:
        result = parse_with_repair('{"content": "x", "threads": ["a", "b",],}')

        assert isinstance(result, RepairedOk)
        assert result.value == {"content": "x", "threads": ["a", "b"]}
        assert result.repairs == ("trailing_commas",)

    def test_raw_newlines_repaired(self) -> None:
        result = parse_with_repair('{"content": "First line.\nSecond line."}')

        assert isinstance(result, RepairedOk)
        assert result.value["content"] == "First line.\nSecond line."
        assert result.repairs == ("control_characters",)

    def test_smart_quoted_syntax_repaired(self) -> None:
        result = parse_with_repair("{“content”: “hello”}")

        assert isinstance(result, RepairedOk)
        assert result.value == {"content": "hello"}
        assert result.repairs == ("smart_quotes",)

    def test_curly_dialogue_in_valid_json_preserved(self) -> None:
        raw = '{"content": "She said “hi” and left."}'

        result = parse_with_repair(raw)

        assert isinstance(result, Ok)
        assert result.value["content"] == "She said “hi” and left."

    def test_repairs_are_cumulative(self) -> None:
        result = parse_with_repair('{"content": "a\nb", "x": [1,],}')

        assert isinstance(result, RepairedOk)
        assert result.repairs == ("trailing_commas", "control_characters")
        assert result.value == {"content": "a\nb", "x": [1]}

    def test_empty_response_fatal(self) -> None:
        assert parse_with_repair("") == Fatal("Empty response")
        assert parse_with_repair("   \n") == Fatal("Empty response")

    def test_no_object_fatal(self) -> None:
        assert parse_with_repair("I cannot do that.") == Fatal("No JSON object found in response")

    def test_array_is_not_an_object(self) -> None:
        assert isinstance(parse_with_repair("[1, 2, 3]"), Fatal)

    def test_truncated_json_fatal(self) -> None:
        result = parse_with_repair('{"content": "The story was cut')

        assert isinstance(result, Fatal)
        assert "after repairing" not in result.reason

    def test_unrepairable_names_attempted_repairs(self) -> None:
        result = parse_with_repair('{"a": 1 "b": 2,}')

        assert isinstance(result, Fatal)
        assert result.reason.endswith("(after repairing trailing_commas)")
