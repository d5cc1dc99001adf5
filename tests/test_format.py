"""Tests for layout format utilities: escaping, property and node serializers, document assembly."""

from __future__ import annotations

import contextlib
import json

import pytest

from layoutdump.format import (
    TransparentRootError,
    assemble_document,
    build_fallback_document,
    escape_json_string,
    format_outline,
    serialize_hierarchy,
    serialize_node,
    serialize_property,
)
from layoutdump.model import (
    DeviceConfig,
    ExportMetadata,
    GroupProperty,
    Node,
    Rect,
    SimpleProperty,
    Window,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _make_node(id, kind: str, *children: Node, **kwargs) -> Node:
    """Create a minimal node for testing."""
    defaults = {
        "layout_bounds": Rect(0, 0, 100, 50),
        "render_bounds": Rect(0.0, 0.0, 100.0, 50.0),
    }
    defaults.update(kwargs)
    return Node(id=id, kind_name=kind, children=tuple(children), **defaults)


def _as_member(text: str) -> dict:
    """Parse a serialized ``"name": value`` member."""
    return json.loads("{" + text + "}")


class _Unprintable:
    def __str__(self) -> str:
        raise RuntimeError("cannot render value")


class _BrokenTable(dict):
    def get(self, key, default=None):
        raise KeyError(f"cache miss for {key}")


# ---------------------------------------------------------------------------
# escape_json_string
# ---------------------------------------------------------------------------

class TestEscapeJsonString:
    def test_safe_text_unchanged(self):
        assert escape_json_string("Hello, world #000") == "Hello, world #000"

    def test_quote_after_backslash(self):
        assert escape_json_string('a\\"b') == 'a\\\\\\"b'

    def test_double_backslash(self):
        assert escape_json_string("a\\\\b") == "a\\\\\\\\b"

    def test_whitespace_controls(self):
        assert escape_json_string("a\nb\rc\td") == "a\\nb\\rc\\td"

    def test_other_control_chars_use_unicode_escape(self):
        assert escape_json_string("a\x01b") == "a\\u0001b"

    def test_result_round_trips_through_json(self):
        text = 'say "hi"\\\n\ttab\x1f'
        assert json.loads('"' + escape_json_string(text) + '"') == text


# ---------------------------------------------------------------------------
# serialize_property
# ---------------------------------------------------------------------------

class TestSerializeProperty:
    def test_simple(self):
        assert serialize_property(SimpleProperty("color", "#000")) == '"color": "#000"'

    def test_none_value_is_null_string(self):
        assert serialize_property(SimpleProperty("tag", None)) == '"tag": "null"'

    def test_non_string_value_stringified(self):
        assert serialize_property(SimpleProperty("alpha", 0.5)) == '"alpha": "0.5"'

    def test_bool_value_lowercase(self):
        assert serialize_property(SimpleProperty("visible", True)) == '"visible": "true"'
        assert serialize_property(SimpleProperty("enabled", False)) == '"enabled": "false"'
        assert serialize_property(GroupProperty("clip", True)) == '"clip": "true"'

    def test_empty_group_matches_simple_null(self):
        empty = serialize_property(GroupProperty("empty"))
        assert empty == serialize_property(SimpleProperty("empty", "null"))
        assert empty == '"empty": "null"'

    def test_empty_group_uses_own_value(self):
        assert serialize_property(GroupProperty("padding", "8dp")) == '"padding": "8dp"'

    def test_group_nested(self):
        item = GroupProperty("padding", "8dp", (
            SimpleProperty("start", "8dp"),
            SimpleProperty("end", "4dp"),
        ))
        text = serialize_property(item, "  ")
        assert text == (
            '  "padding": {\n'
            '    "start": "8dp",\n'
            '    "end": "4dp"\n'
            "  }"
        )

    def test_deep_nesting(self):
        item = GroupProperty("modifier", None, (
            GroupProperty("padding", None, (
                GroupProperty("values", None, (SimpleProperty("top", "2dp"),)),
            )),
            SimpleProperty("fillMaxWidth", "true"),
        ))
        parsed = _as_member(serialize_property(item))
        assert parsed == {
            "modifier": {
                "padding": {"values": {"top": "2dp"}},
                "fillMaxWidth": "true",
            },
        }

    def test_name_and_value_escaped(self):
        text = serialize_property(SimpleProperty('content"Description', "line1\nline2"))
        assert _as_member(text) == {'content"Description': "line1\nline2"}

    def test_failing_value_becomes_error_member(self):
        text = serialize_property(SimpleProperty("text", _Unprintable()))
        assert _as_member(text) == {"textError": "cannot render value"}

    def test_failing_child_does_not_break_group(self):
        item = GroupProperty("style", None, (
            SimpleProperty("color", "red"),
            SimpleProperty("font", _Unprintable()),
        ))
        assert _as_member(serialize_property(item)) == {
            "style": {"color": "red", "fontError": "cannot render value"},
        }


# ---------------------------------------------------------------------------
# serialize_node
# ---------------------------------------------------------------------------

class TestSerializeNode:
    def test_field_order(self):
        node = _make_node(
            7, "android.widget.TextView",
            text_value="Hi", view_id="@id/title", layout="activity_main",
        )
        parsed = json.loads(serialize_node(node, {7: [SimpleProperty("color", "#000")]}))
        assert list(parsed) == [
            "id", "qualifiedName", "layoutBounds", "renderBounds",
            "textValue", "viewId", "layout", "properties", "children",
        ]
        assert parsed["id"] == "7"
        assert parsed["viewId"] == "@id/title"
        assert parsed["layout"] == "activity_main"

    def test_optional_fields_omitted(self):
        parsed = json.loads(serialize_node(_make_node(1, "Box"), {}))
        assert "textValue" not in parsed
        assert "viewId" not in parsed
        assert "layout" not in parsed

    def test_render_bounds_truncated_toward_zero(self):
        node = _make_node(
            1, "Box",
            layout_bounds=Rect(10, 20, 30, 40),
            render_bounds=Rect(1.9, -1.9, 99.99, 0.5),
        )
        parsed = json.loads(serialize_node(node, {}))
        assert parsed["layoutBounds"] == {"x": 10, "y": 20, "width": 30, "height": 40}
        assert parsed["renderBounds"] == {"x": 1, "y": -1, "width": 99, "height": 0}

    def test_missing_entry_gives_empty_properties(self):
        parsed = json.loads(serialize_node(_make_node(1, "Box"), {}))
        assert parsed["properties"] == {}
        assert "propertiesError" not in parsed

    def test_compose_node_uses_compose_parameters(self):
        node = _make_node(3, "Text", family="compose")
        parsed = json.loads(serialize_node(node, {3: [SimpleProperty("text", "Hi")]}))
        assert parsed["composeParameters"] == {"text": "Hi"}
        assert "properties" not in parsed

    def test_compose_node_without_parameters(self):
        node = _make_node(3, "Text", family="compose")
        parsed = json.loads(serialize_node(node, {3: []}))
        assert parsed["properties"] == {}

    def test_lookup_failure_gives_properties_error(self):
        node = _make_node(1, "Box", _make_node(2, "Text"))
        parsed = json.loads(serialize_node(node, _BrokenTable()))
        assert "properties" not in parsed
        assert "cache miss for 1" in parsed["propertiesError"]
        # children are still emitted
        assert parsed["children"][0]["id"] == "2"
        assert "propertiesError" in parsed["children"][0]

    def test_transparent_children_flattened(self):
        root = _make_node(
            1, "Root",
            _make_node(2, "Layout", _make_node(3, "a"), _make_node(4, "b")),
            _make_node(5, "c"),
            _make_node(6, "ReusableComposeNode", _make_node(7, "d")),
        )
        parsed = json.loads(serialize_node(root, {}))
        assert [c["id"] for c in parsed["children"]] == ["3", "4", "5", "7"]

    def test_leaf_has_empty_children(self):
        text = serialize_node(_make_node(1, "Box"), {})
        assert '  "children": []\n}' in text

    def test_indentation(self):
        root = _make_node(1, "Root", _make_node(2, "Text"))
        lines = serialize_node(root, {}).split("\n")
        assert lines[0] == "{"
        assert lines[1] == '  "id": "1",'
        assert '    {' in lines
        assert '      "id": "2",' in lines
        assert lines[-1] == "}"

    def test_read_access_entered_per_node(self):
        entered = []

        class _Access:
            def __enter__(self):
                entered.append(True)

            def __exit__(self, *exc):
                return False

        root = _make_node(1, "Root", _make_node(2, "Text"), _make_node(3, "Text"))
        serialize_node(root, {}, read_access=_Access)
        assert len(entered) == 3


# ---------------------------------------------------------------------------
# serialize_hierarchy
# ---------------------------------------------------------------------------

class TestSerializeHierarchy:
    def test_missing_root_is_null(self):
        assert serialize_hierarchy(None, {}) == "null"

    def test_transparent_root_promotes_single_child(self):
        root = _make_node(1, "Layout", _make_node(2, "Layout", _make_node(3, "Text")))
        parsed = json.loads(serialize_hierarchy(root, {}, 0))
        assert parsed["id"] == "3"

    def test_transparent_root_without_children_is_null(self):
        assert serialize_hierarchy(_make_node(1, "Layout"), {}) == "null"

    def test_transparent_root_with_several_children_raises(self):
        root = _make_node(1, "Layout", _make_node(2, "Text"), _make_node(3, "Text"))
        with pytest.raises(TransparentRootError):
            serialize_hierarchy(root, {})

    def test_custom_transparent_kinds(self):
        root = _make_node(1, "Root", _make_node(2, "Layout", _make_node(3, "Text")))
        parsed = json.loads(serialize_hierarchy(root, {}, 0, transparent_kinds=()))
        assert parsed["children"][0]["qualifiedName"] == "Layout"


# ---------------------------------------------------------------------------
# assemble_document / build_fallback_document
# ---------------------------------------------------------------------------

class TestAssembleDocument:
    def _assemble(self, hierarchy="null", windows=(), device=None) -> dict:
        text = assemble_document(
            ExportMetadata(timestamp=1700000000000, process_name="com.example.app"),
            list(windows),
            hierarchy,
            device or DeviceConfig(api_level=34, resource_lookup=True),
        )
        return json.loads(text)

    def test_top_level_key_order(self):
        doc = self._assemble()
        assert list(doc) == ["metadata", "windows", "viewHierarchy", "deviceConfiguration"]

    def test_metadata(self):
        doc = self._assemble()
        assert doc["metadata"] == {
            "timestamp": 1700000000000,
            "format": "inspector_model_with_properties",
            "processName": "com.example.app",
            "note": "Exported from Layout Inspector model with properties and Compose data",
        }

    def test_null_hierarchy(self):
        assert self._assemble()["viewHierarchy"] is None

    def test_windows(self):
        doc = self._assemble(windows=[
            Window("1", "MainActivity", True),
            Window("2", 'Dialog "About"', False),
        ])
        assert doc["windows"] == [
            {"id": "1", "displayName": "MainActivity", "isVisible": True},
            {"id": "2", "displayName": 'Dialog "About"', "isVisible": False},
        ]

    def test_no_windows(self):
        assert self._assemble()["windows"] == []

    def test_device_configuration(self):
        doc = self._assemble()
        assert doc["deviceConfiguration"] == {"apiLevel": 34, "resourceLookup": "true"}

    def test_unknown_api_level(self):
        doc = self._assemble(device=DeviceConfig())
        assert doc["deviceConfiguration"] == {"apiLevel": None, "resourceLookup": "false"}

    def test_string_api_level(self):
        doc = self._assemble(device=DeviceConfig(api_level="UpsideDownCake"))
        assert doc["deviceConfiguration"]["apiLevel"] == "UpsideDownCake"

    def test_embeds_hierarchy(self):
        root = _make_node(1, "Root", _make_node(2, "Text"))
        doc = self._assemble(hierarchy=serialize_hierarchy(root, {}))
        assert doc["viewHierarchy"]["children"][0]["id"] == "2"


class TestBuildFallbackDocument:
    def test_shape(self):
        doc = json.loads(build_fallback_document('boom "quoted"', timestamp=42))
        assert doc == {
            "metadata": {"timestamp": 42, "error": 'boom "quoted"'},
            "layout": None,
        }

    def test_default_timestamp(self):
        doc = json.loads(build_fallback_document("boom"))
        assert doc["metadata"]["timestamp"] > 0


# ---------------------------------------------------------------------------
# format_outline
# ---------------------------------------------------------------------------

class TestFormatOutline:
    def test_lines_and_indentation(self):
        root = _make_node(
            1, "Root",
            _make_node(2, "Layout", _make_node(3, "Text", text_value="Hi")),
            layout_bounds=Rect(0, 0, 1080, 2400),
        )
        text = format_outline(root, {3: [SimpleProperty("color", "#000")]})
        lines = text.rstrip("\n").split("\n")
        assert lines[0] == "[1] Root @0,0 1080x2400"
        assert lines[1] == '  [3] Text "Hi" @0,0 100x50 (1 prop)'

    def test_max_depth(self):
        root = _make_node(1, "Root", _make_node(2, "Box", _make_node(3, "Text")))
        text = format_outline(root, max_depth=2)
        assert "[2] Box" in text
        assert "[3]" not in text

    def test_empty(self):
        assert format_outline(None) == "(empty hierarchy)\n"

    def test_children_read_under_read_access(self):
        entries: list[int] = []

        @contextlib.contextmanager
        def read_access():
            entries.append(1)
            yield

        root = _make_node(1, "Root", _make_node(2, "Box", _make_node(3, "Text")))
        format_outline(root, read_access=read_access)
        assert len(entries) == 3

    def test_deep_tree(self):
        node = _make_node(999, "Box")
        for i in reversed(range(999)):
            node = _make_node(i, "Box", node)
        lines = format_outline(node, max_depth=2000).rstrip("\n").split("\n")
        assert len(lines) == 1000
        assert lines[-1] == "  " * 999 + "[999] Box @0,0 100x50"
