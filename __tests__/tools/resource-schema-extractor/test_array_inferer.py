"""
Unit tests for the expression classifier and the array literal inferencer.

Tests cover:
- Scalar shapes (string literals, property fetches, nested property fetches)
- The conditional single field idioms (when, whenLoaded, closures)
- merge / mergeWhen splicing and required flag handling
- Nested resources, self constructions, unresolvable resources and inline arrays
- Entries that are skipped (computed keys, unknown expressions)
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../../tools/resource-schema-extractor'))

from array_inferer import ArrayNodeSampleInferer
from expression_classifier import ExpressionKind
from php_parser import get_treesitter_php_parser_and_language
from return_locator import find_method, find_return, method_body, return_expression
from sample_types import InlineObject, ScalarUnknown, SchemaReference, StringLiteral
from source_index import SourceIndex

PARSER, _ = get_treesitter_php_parser_and_language()

SAMPLE_RESOURCE = "App\\Http\\Resources\\SampleResource"

RESOURCE_TEMPLATE = r"""<?php

namespace App\Http\Resources;

use Illuminate\Http\Resources\Json\JsonResource;
use App\Http\Resources\Blog\PostResource;

class SampleResource extends JsonResource
{
    public function toArray($request)
    {
        return __BODY__;
    }
}
"""


def infer(body, nested_schema=None):
    index = SourceIndex(PARSER)
    unit = index.add_source(RESOURCE_TEMPLATE.replace("__BODY__", body))
    _, class_node = index.find_class(SAMPLE_RESOURCE)
    expression = return_expression(find_return(method_body(find_method(class_node))))
    inferer = ArrayNodeSampleInferer(
        index.resolver_for(unit), nested_schema=nested_schema, current_class=SAMPLE_RESOURCE
    )
    return inferer(expression)


def keys(result):
    return [descriptor.key for descriptor in result.fields]


class ScalarFieldsTestCase(unittest.TestCase):
    def test_string_literals_are_required(self):
        result = infer("['id' => 'abc', 'name' => \"Jane\"]")

        self.assertEqual(keys(result), ["id", "name"])
        self.assertEqual(result.descriptor_for("id").type, StringLiteral("abc"))
        self.assertEqual(result.descriptor_for("name").type, StringLiteral("Jane"))
        self.assertEqual(result.required_keys, {"id", "name"})

    def test_property_fetches(self):
        result = infer("['id' => $this->id, 'name' => $this->resource->name, 'city' => $this->resource->address->city]")

        for key in ("id", "name", "city"):
            self.assertEqual(result.descriptor_for(key).type, ScalarUnknown())
        self.assertEqual(result.required_keys, {"id", "name", "city"})

    def test_parenthesized_value(self):
        result = infer("['id' => ($this->id)]")
        self.assertEqual(result.descriptor_for("id").type, ScalarUnknown())

    def test_unknown_expressions_are_skipped(self):
        result = infer("['count' => count($this->items), 'date' => $this->created_at->format('Y'), 'id' => $this->id]")
        self.assertEqual(keys(result), ["id"])

    def test_fetch_on_other_variable_is_skipped(self):
        result = infer("['user' => $request->user, 'id' => $this->id]")
        self.assertEqual(keys(result), ["id"])

    def test_interpolated_string_is_skipped(self):
        result = infer("['label' => \"user {$this->id}\", 'id' => $this->id]")
        self.assertEqual(keys(result), ["id"])

    def test_double_quoted_escapes_are_decoded(self):
        result = infer("['code' => \"\\u{41}\\x42\\103\\t\\q\", 'raw' => '\\x41']")

        self.assertEqual(result.descriptor_for("code").type, StringLiteral("ABC\t\\q"))
        self.assertEqual(result.descriptor_for("raw").type, StringLiteral("\\x41"))

    def test_computed_keys_are_unkeyed(self):
        result = infer("[$this->key => 'value', 0 => 'zero', 'id' => $this->id]")

        self.assertEqual(keys(result), [None, None, "id"])
        self.assertEqual(result.required_keys, {"id"})

    def test_duplicate_key_takes_last_required_flag(self):
        result = infer("['id' => $this->id, 'id' => $this->when(true, $this->id)]")
        self.assertEqual(result.required_keys, set())


class ConditionalFieldTestCase(unittest.TestCase):
    def test_when_is_optional(self):
        result = infer("['email' => $this->when($request->user()->isAdmin(), $this->email)]")

        self.assertEqual(result.descriptor_for("email").type, ScalarUnknown())
        self.assertFalse(result.descriptor_for("email").required)
        self.assertEqual(result.required_keys, set())

    def test_when_with_string_literal_is_optional(self):
        result = infer("['kind' => $this->when(true, 'admin')]")

        self.assertEqual(result.descriptor_for("kind").type, StringLiteral("admin"))
        self.assertFalse(result.descriptor_for("kind").required)

    def test_when_with_arrow_function(self):
        result = infer("['secret' => $this->when(true, fn () => $this->secret)]")

        self.assertEqual(result.descriptor_for("secret").type, ScalarUnknown())
        self.assertFalse(result.descriptor_for("secret").required)

    def test_when_loaded_without_value(self):
        result = infer("['posts' => $this->whenLoaded('posts')]")

        self.assertEqual(result.descriptor_for("posts").type, ScalarUnknown())
        self.assertFalse(result.descriptor_for("posts").required)

    def test_when_with_unknown_value_is_skipped(self):
        result = infer("['total' => $this->when(true, count($this->items))]")
        self.assertEqual(keys(result), [])


class MergeTestCase(unittest.TestCase):
    def test_merge_keeps_nested_required_flags(self):
        result = infer(
            "['b' => $this->b, $this->merge(['a' => $this->a, 'c' => $this->when(true, $this->c)])]"
        )

        self.assertEqual(keys(result), ["b", "a", "c"])
        self.assertTrue(result.descriptor_for("a").required)
        self.assertTrue(result.descriptor_for("b").required)
        self.assertFalse(result.descriptor_for("c").required)
        self.assertEqual(result.required_keys, {"a", "b"})

    def test_merge_when_forces_optional(self):
        result = infer("['b' => $this->b, $this->mergeWhen($request->has('a'), ['a' => 'x'])]")

        self.assertEqual(keys(result), ["b", "a"])
        self.assertFalse(result.descriptor_for("a").required)
        self.assertEqual(result.required_keys, {"b"})

    def test_merge_preserves_position(self):
        result = infer("['first' => 'x', $this->merge(['middle' => 'y']), 'last' => 'z']")
        self.assertEqual(keys(result), ["first", "middle", "last"])

    def test_nested_merges(self):
        result = infer("[$this->merge(['a' => 'x', $this->mergeWhen(true, ['b' => 'y'])])]")

        self.assertEqual(keys(result), ["a", "b"])
        self.assertEqual(result.required_keys, {"a"})

    def test_merge_of_variable_is_skipped(self):
        result = infer("['id' => $this->id, $this->merge($extra)]")
        self.assertEqual(keys(result), ["id"])


class NestedValuesTestCase(unittest.TestCase):
    def test_inline_array(self):
        result = infer("['meta' => ['version' => '1', 'build' => $this->when(true, $this->build)]]")
        meta = result.descriptor_for("meta")

        self.assertIsInstance(meta.type, InlineObject)
        self.assertTrue(meta.required)
        self.assertEqual([d.key for d in meta.type.fields], ["version", "build"])
        self.assertFalse(meta.type.fields[1].required)

    def test_conditional_resource_is_optional_reference(self):
        requested = []

        def nested_schema(name):
            requested.append(name)
            return SchemaReference("PostResource")

        result = infer("['post' => new PostResource($this->whenLoaded('post'))]", nested_schema)

        self.assertEqual(requested, ["App\\Http\\Resources\\Blog\\PostResource"])
        self.assertEqual(result.descriptor_for("post").type, SchemaReference("PostResource"))
        self.assertFalse(result.descriptor_for("post").required)

    def test_unconditional_resource_is_required_reference(self):
        result = infer(
            "['post' => PostResource::make($this->post)]",
            lambda name: SchemaReference("PostResource"),
        )

        self.assertEqual(result.descriptor_for("post").type, SchemaReference("PostResource"))
        self.assertTrue(result.descriptor_for("post").required)

    def test_unresolvable_conditional_resource_degrades_to_scalar(self):
        result = infer("['post' => new MissingResource($this->whenLoaded('post'))]", lambda name: None)

        self.assertEqual(result.descriptor_for("post").type, ScalarUnknown())
        self.assertFalse(result.descriptor_for("post").required)

    def test_unresolvable_plain_construction_degrades_to_required_scalar(self):
        result = infer("['at' => new Carbon($this->created_at)]", lambda name: None)

        self.assertEqual(result.descriptor_for("at").type, ScalarUnknown())
        self.assertTrue(result.descriptor_for("at").required)

    def test_unresolvable_construction_under_when_is_optional_scalar(self):
        result = infer("['at' => $this->when($this->dated, new Carbon($this->created_at))]", lambda name: None)

        self.assertEqual(result.descriptor_for("at").type, ScalarUnknown())
        self.assertFalse(result.descriptor_for("at").required)

    def test_construction_from_variable_degrades_to_scalar(self):
        result = infer("['item' => new $class($this->item)]", lambda name: None)
        self.assertEqual(result.descriptor_for("item").type, ScalarUnknown())

    def test_new_self_refers_to_current_resource(self):
        requested = []

        def nested_schema(name):
            requested.append(name)
            return SchemaReference("SampleResource")

        result = infer("['parent' => new self($this->whenLoaded('parent'))]", nested_schema)

        self.assertEqual(requested, [SAMPLE_RESOURCE])
        self.assertEqual(result.descriptor_for("parent").type, SchemaReference("SampleResource"))
        self.assertFalse(result.descriptor_for("parent").required)

    def test_static_make_refers_to_current_resource(self):
        requested = []

        def nested_schema(name):
            requested.append(name)
            return SchemaReference("SampleResource")

        result = infer("['copy' => static::make($this->copy), 'other' => self::make($this->other)]", nested_schema)

        self.assertEqual(requested, [SAMPLE_RESOURCE, SAMPLE_RESOURCE])
        self.assertEqual(result.descriptor_for("copy").type, SchemaReference("SampleResource"))
        self.assertTrue(result.descriptor_for("copy").required)
        self.assertEqual(result.descriptor_for("other").type, SchemaReference("SampleResource"))



class RecognizeTestCase(unittest.TestCase):
    def setUp(self):
        index = SourceIndex(PARSER)
        self.unit = index.add_source(RESOURCE_TEMPLATE.replace("__BODY__", "[]"))
        self.inferer = ArrayNodeSampleInferer(index.resolver_for(self.unit))

    def test_non_array_is_not_inferred(self):
        self.assertIsNone(self.inferer(None))

    def test_expression_kinds_are_closed(self):
        self.assertEqual(
            {kind.value for kind in ExpressionKind},
            {
                "string_literal",
                "property_fetch",
                "nested_property_fetch",
                "array_literal",
                "conditional_value",
                "resource_construction",
                "merge",
                "conditional_merge",
            },
        )


if __name__ == "__main__":
    unittest.main()
