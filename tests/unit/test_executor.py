from __future__ import annotations

import pytest

from fmshape.data import FrontmatterData
from fmshape.errors import (
    ExtractionFailed,
    InvalidSchema,
    InvalidType,
    JMESPathCompilationFailed,
    JMESPathExecutionFailed,
)
from fmshape.schema.models import DirectiveKind, ProcessingPlan, SchemaNode
from fmshape.schema.scheduler import resolve_processing_order
from fmshape.trace import TraceEventEmitter
from fmshape.transform.executor import (
    _HANDLERS,
    DirectiveExecutor,
    apply_plan,
    flatten_deep,
    unique_values,
)


def _run(schema: dict, data: dict, **options) -> dict:
    plan = resolve_processing_order(SchemaNode.from_mapping(schema))
    return DirectiveExecutor(**options).apply(data, plan).to_dict()


def test_every_directive_kind_has_a_handler() -> None:
    assert set(_HANDLERS) == set(DirectiveKind)


def test_empty_plan_is_identity() -> None:
    data = FrontmatterData({"a": [1, {"b": None}], "c": "x"})
    assert apply_plan(data, ProcessingPlan.empty()) == data


class TestFrontmatterPart:
    def test_wraps_single_mapping_into_list(self) -> None:
        schema = {"properties": {"docs": {"type": "array", "x-frontmatter-part": True}}}
        assert _run(schema, {"docs": {"title": "a"}}) == {"docs": [{"title": "a"}]}

    def test_lists_are_left_alone(self) -> None:
        schema = {"properties": {"docs": {"type": "array", "x-frontmatter-part": True}}}
        assert _run(schema, {"docs": [{"title": "a"}]}) == {"docs": [{"title": "a"}]}

    def test_missing_anchor_without_default_is_invalid_schema(self) -> None:
        schema = {
            "properties": {
                "tools": {
                    "properties": {"commands": {"type": "array", "x-frontmatter-part": True}}
                }
            }
        }
        with pytest.raises(InvalidSchema) as excinfo:
            _run(schema, {})
        assert excinfo.value.property == "tools.commands"
        assert excinfo.value.reason == "missing default"

    def test_missing_anchor_with_default_is_filled(self) -> None:
        schema = {
            "properties": {
                "commands": {"type": "array", "x-frontmatter-part": True, "default": []}
            }
        }
        assert _run(schema, {}) == {"commands": []}


class TestExtractFrom:
    def test_copies_value_to_owning_property(self) -> None:
        schema = {"properties": {"title": {"type": "string", "x-extract-from": "meta.name"}}}
        assert _run(schema, {"meta": {"name": "Guide"}}) == {
            "meta": {"name": "Guide"},
            "title": "Guide",
        }

    def test_missing_source_leaves_target_untouched(self) -> None:
        schema = {"properties": {"title": {"type": "string", "x-extract-from": "meta.name"}}}
        assert _run(schema, {"title": "kept"}) == {"title": "kept"}

    def test_array_target_normalizes_scalars(self) -> None:
        schema = {"properties": {"tags": {"type": "array", "x-extract-from": "meta.tag"}}}
        assert _run(schema, {"meta": {"tag": "x"}})["tags"] == ["x"]
        assert _run(schema, {"meta": {"tag": None}})["tags"] == []

    def test_item_targets_merge_by_index(self) -> None:
        schema = {
            "properties": {
                "commands": {
                    "type": "array",
                    "items": {
                        "properties": {
                            "c1": {"x-extract-from": "raw[].name"},
                            "c2": {"x-extract-from": "raw[].action"},
                        }
                    },
                }
            }
        }
        data = {"raw": [{"name": "git", "action": "clone"}, {"name": "npm", "action": "ci"}]}
        assert _run(schema, data)["commands"] == [
            {"c1": "git", "c2": "clone"},
            {"c1": "npm", "c2": "ci"},
        ]

    def test_object_cannot_be_distributed_over_items(self) -> None:
        schema = {
            "properties": {
                "commands": {
                    "type": "array",
                    "items": {"properties": {"c1": {"x-extract-from": "meta"}}},
                }
            }
        }
        with pytest.raises(ExtractionFailed):
            _run(schema, {"meta": {"a": 1}})


class TestDerivedFrom:
    def test_projection_flattens_one_level_and_drops_nulls(self) -> None:
        schema = {"properties": {"tags": {"type": "array", "x-derived-from": "posts[].tags"}}}
        data = {"posts": [{"tags": ["a", None, "b"]}, {"tags": "c"}, {"tags": None}, {}]}
        assert _run(schema, data)["tags"] == ["a", "b", "c"]

    def test_empty_source_array_yields_empty_result(self) -> None:
        schema = {"properties": {"tags": {"type": "array", "x-derived-from": "posts[].tags"}}}
        assert _run(schema, {"posts": []})["tags"] == []

    def test_missing_source_for_array_node_yields_empty_list(self) -> None:
        schema = {"properties": {"tags": {"type": "array", "x-derived-from": "posts[].tags"}}}
        assert _run(schema, {})["tags"] == []

    def test_missing_source_for_scalar_node_is_untouched(self) -> None:
        schema = {"properties": {"title": {"type": "string", "x-derived-from": "meta.title"}}}
        assert _run(schema, {"title": "kept"}) == {"title": "kept"}

    def test_scalar_source_copies_value(self) -> None:
        schema = {"properties": {"title": {"type": "string", "x-derived-from": "meta.title"}}}
        assert _run(schema, {"meta": {"title": "T"}})["title"] == "T"

    def test_multiple_sources_are_concatenated(self) -> None:
        schema = {
            "properties": {
                "all": {"type": "array", "x-derived-from": ["a[].v", "b"]},
            }
        }
        data = {"a": [{"v": 1}, {"v": 2}], "b": [3, [4]]}
        assert _run(schema, data)["all"] == [1, 2, 3, 4]

    def test_derivation_with_unique(self) -> None:
        schema = {
            "properties": {
                "commands": {"type": "array", "x-frontmatter-part": True, "default": []},
                "c1s": {
                    "type": "array",
                    "x-derived-from": "commands[].c1",
                    "x-derived-unique": True,
                },
            }
        }
        data = {"commands": [{"c1": c} for c in ["git", "npm", "git", "deno", "npm"]]}
        result = _run(schema, data)["c1s"]
        assert len(result) == 3
        assert set(result) == {"git", "npm", "deno"}
        assert result == ["git", "npm", "deno"]

    def test_sorted_unique_order(self) -> None:
        schema = {
            "properties": {
                "c1s": {"type": "array", "x-derived-from": "names", "x-derived-unique": True}
            }
        }
        result = _run(schema, {"names": ["npm", "git", "npm"]}, unique_order="sorted")["c1s"]
        assert result == ["git", "npm"]


class TestUnique:
    def test_unique_without_derivation_is_noop(self) -> None:
        schema = {"properties": {"tags": {"type": "array", "x-derived-unique": True}}}
        assert _run(schema, {"tags": ["a", "a"]})["tags"] == ["a", "a"]

    def test_unique_values_handles_unhashable_and_distinct_types(self) -> None:
        values = [{"a": 1}, {"a": 1}, [1], [1], 1, "1", True, 1]
        assert unique_values(values) == [{"a": 1}, [1], 1, "1", True]

    def test_invalid_order_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            DirectiveExecutor(unique_order="random")


class TestFlattenArrays:
    def test_flattens_owning_value(self) -> None:
        schema = {"properties": {"m": {"type": "array", "x-flatten-arrays": True}}}
        result = _run(schema, {"m": [[["a", "b"]], ["c", "d"], "e"]})["m"]
        assert result == ["a", "b", "c", "d", "e"]

    def test_flattens_named_source_into_owner(self) -> None:
        schema = {"properties": {"flat": {"type": "array", "x-flatten-arrays": "nested"}}}
        result = _run(schema, {"nested": [[1, [2]], 3]})
        assert result == {"nested": [[1, [2]], 3], "flat": [1, 2, 3]}

    @pytest.mark.parametrize("data", [{}, {"m": None}])
    def test_missing_or_null_becomes_empty_list(self, data: dict) -> None:
        schema = {"properties": {"m": {"type": "array", "x-flatten-arrays": True}}}
        assert _run(schema, data)["m"] == []

    def test_false_flag_is_noop(self) -> None:
        schema = {"properties": {"m": {"type": "array", "x-flatten-arrays": False}}}
        assert _run(schema, {"m": [[1]]})["m"] == [[1]]

    def test_unique_holds_after_flattening_nested_derivation(self) -> None:
        schema = {
            "properties": {
                "tags": {
                    "type": "array",
                    "x-derived-from": "docs[].tags",
                    "x-derived-unique": True,
                    "x-flatten-arrays": True,
                }
            }
        }
        data = {"docs": [{"tags": [["a", "b"]]}, {"tags": [["a"]]}]}
        assert _run(schema, data)["tags"] == ["a", "b"]
        assert _run(schema, data, unique_order="sorted")["tags"] == ["a", "b"]

    def test_flatten_without_derivation_keeps_duplicates(self) -> None:
        schema = {
            "properties": {
                "m": {"type": "array", "x-derived-unique": True, "x-flatten-arrays": True}
            }
        }
        assert _run(schema, {"m": [["a"], ["a"]]})["m"] == ["a", "a"]

    def test_flatten_deep_helper(self) -> None:
        assert flatten_deep([[], [[[]]], [1, [2, [3]]]]) == [1, 2, 3]


class TestJMESPathFilter:
    def test_writes_result_to_owning_property(self) -> None:
        schema = {
            "properties": {
                "active": {
                    "type": "array",
                    "x-jmespath-filter": "commands[?enabled].name",
                }
            }
        }
        data = {"commands": [{"name": "a", "enabled": True}, {"name": "b", "enabled": False}]}
        assert _run(schema, data)["active"] == ["a"]

    def test_sees_already_transformed_data(self) -> None:
        schema = {
            "properties": {
                "names": {"type": "array", "x-derived-from": "items[].name"},
                "count": {"type": "number", "x-jmespath-filter": "length(names)"},
            }
        }
        data = {"items": [{"name": "x"}, {"name": "y"}]}
        assert _run(schema, data)["count"] == 2

    def test_missing_path_evaluates_to_null(self) -> None:
        schema = {"properties": {"out": {"x-jmespath-filter": "does.not.exist"}}}
        assert _run(schema, {})["out"] is None

    def test_root_filter_replaces_document(self) -> None:
        schema = {"x-jmespath-filter": "{kept: keep}", "properties": {}}
        assert _run(schema, {"keep": 1, "drop": 2}) == {"kept": 1}

    def test_root_filter_must_yield_mapping(self) -> None:
        schema = {"x-jmespath-filter": "keep", "properties": {}}
        with pytest.raises(InvalidType):
            _run(schema, {"keep": [1]})

    def test_compile_failure_carries_expression(self) -> None:
        schema = {"properties": {"out": {"x-jmespath-filter": "items[?"}}}
        with pytest.raises(JMESPathCompilationFailed) as excinfo:
            _run(schema, {})
        assert excinfo.value.expression == "items[?"

    def test_execution_failure_carries_expression(self) -> None:
        schema = {"properties": {"out": {"x-jmespath-filter": "length(`1`)"}}}
        with pytest.raises(JMESPathExecutionFailed) as excinfo:
            _run(schema, {})
        assert excinfo.value.expression == "length(`1`)"


def test_failure_aborts_without_touching_input() -> None:
    schema = {
        "properties": {
            "names": {"type": "array", "x-derived-from": "items[].name"},
            "bad": {"x-jmespath-filter": "items[?"},
        }
    }
    data = FrontmatterData({"items": [{"name": "x"}]})
    plan = resolve_processing_order(SchemaNode.from_mapping(schema))
    with pytest.raises(JMESPathCompilationFailed):
        DirectiveExecutor().apply(data, plan)
    assert data.to_dict() == {"items": [{"name": "x"}]}


def test_trace_events_follow_phase_order() -> None:
    schema = {
        "properties": {
            "names": {"type": "array", "x-derived-from": "items[].name"},
            "flat": {"type": "array", "x-flatten-arrays": "names"},
            "title": {"type": "string", "default": "Untitled"},
        }
    }
    tracer = TraceEventEmitter()
    plan = resolve_processing_order(SchemaNode.from_mapping(schema))
    result = DirectiveExecutor(tracer=tracer).apply({"items": []}, plan)

    assert tracer.names() == [
        "phase_start",
        "directive_applied",
        "phase_start",
        "directive_applied",
        "defaults_applied",
    ]
    assert tracer.events[-1].payload["filled"] == ("title",)
    assert result.get("title") == "Untitled"
