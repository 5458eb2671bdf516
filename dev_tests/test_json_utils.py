"""
Tests for json_utils.py - orjson wrapper module.
"""

import uuid

import pytest

import json_utils as json


class TestDumps:
    """Tests for json.dumps() function."""

    def test_returns_compact_string(self):
        """
        Given: A nested dictionary
        When: dumps() is called
        Then: Returns a compact str, not bytes
        """
        result = json.dumps({"outer": {"inner": [1, 2]}})
        assert result == '{"outer":{"inner":[1,2]}}'
        assert isinstance(result, str)

    def test_serializes_uuid(self):
        value = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert json.loads(json.dumps({"id": value})) == {"id": str(value)}

    def test_sort_keys_and_indent(self):
        result = json.dumps({"b": 1, "a": 2}, indent=2, sort_keys=True)
        assert result.index('"a"') < result.index('"b"')
        assert "\n" in result

    def test_preserves_unicode(self):
        assert "Café" in json.dumps({"name": "Café"})

    def test_default_callable_for_unserializable(self):
        class Custom:
            pass

        assert json.dumps({"x": Custom()}, default=lambda obj: "custom") == '{"x":"custom"}'

    def test_dumps_bytes(self):
        assert json.dumps_bytes({"a": 1}) == b'{"a":1}'


class TestLoads:
    def test_accepts_str_and_bytes(self):
        assert json.loads('{"a": 1}') == {"a": 1}
        assert json.loads(b"[1, 2]") == [1, 2]

    def test_raises_on_invalid_json(self):
        with pytest.raises(json.JSONDecodeError):
            json.loads("{not json}")

    def test_decode_error_is_value_error(self):
        with pytest.raises(ValueError):
            json.loads("")


class TestStripCodeFence:
    @pytest.mark.parametrize("text, expected", [
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ("```\nAlice: Hi\n```", "Alice: Hi"),
        ("  plain text  ", "plain text"),
        ("```", ""),
    ])
    def test_strips_fence(self, text, expected):
        assert json.strip_code_fence(text) == expected


class TestLoadsObject:
    def test_fenced_object(self):
        assert json.loads_object('```json\n{"persona": "x"}\n```') == {"persona": "x"}

    def test_bytes_input(self):
        assert json.loads_object(b'{"a": 1}') == {"a": 1}

    def test_non_object_rejected(self):
        with pytest.raises(ValueError, match="Expected a JSON object"):
            json.loads_object("[1, 2]")
