"""
Classifies the value expressions found in a resource's returned array.

Every expression is first matched against a closed set of shapes
(ExpressionKind); the classifier then maps the shape to a FieldDescriptor, an
ExpansionRequest (for the merge idioms) or nothing at all when the shape is not
understood.

Recognized shapes:

    'type'   => 'user'                                  STRING_LITERAL
    'id'     => $this->id                               PROPERTY_FETCH
    'name'   => $this->resource->name                   NESTED_PROPERTY_FETCH
    'meta'   => ['version' => '1']                      ARRAY_LITERAL
    'email'  => $this->when($isAdmin, $this->email)     CONDITIONAL_VALUE
    'post'   => new PostResource($this->whenLoaded('post'))
    'author' => UserResource::make($this->author)       RESOURCE_CONSTRUCTION
    'parent' => new self($this->whenLoaded('parent'))
    $this->merge([...])                                 MERGE
    $this->mergeWhen($cond, [...])                      CONDITIONAL_MERGE
"""

import logging
from enum import Enum
from typing import Callable, Optional, Tuple

from name_resolver import NAMESPACE_SEPARATOR
from php_parser import first_child_of_type, node_text, string_literal_value
from return_locator import find_return, return_expression
from sample_types import (
    ExpansionRequest,
    FieldDescriptor,
    InlineObject,
    ScalarUnknown,
    StringLiteral,
)

logger = logging.getLogger(__name__)

RECEIVER = "$this"

MEMBER_ACCESS_TYPES = ("member_access_expression", "nullsafe_member_access_expression")
CLOSURE_TYPES = ("arrow_function", "anonymous_function", "anonymous_function_creation_expression")

# method name -> position of the value argument
CONDITIONAL_VALUE_METHODS = {
    "when": 1,
    "unless": 1,
    "whenNotNull": 0,
    "whenHas": 1,
    "whenLoaded": 1,
    "whenCounted": 1,
}

# method name -> position of the merged array argument
MERGE_METHODS = {"merge": 0}
CONDITIONAL_MERGE_METHODS = {"mergeWhen": 1, "mergeUnless": 1}

STATIC_CONSTRUCTORS = ("make",)
CLASS_NAME_TYPES = ("name", "qualified_name", "relative_scope")
SELF_REFERENCES = ("self", "static")


class ExpressionKind(Enum):
    STRING_LITERAL = "string_literal"
    PROPERTY_FETCH = "property_fetch"
    NESTED_PROPERTY_FETCH = "nested_property_fetch"
    ARRAY_LITERAL = "array_literal"
    CONDITIONAL_VALUE = "conditional_value"
    RESOURCE_CONSTRUCTION = "resource_construction"
    MERGE = "merge"
    CONDITIONAL_MERGE = "conditional_merge"


def unwrap(node):
    while node is not None and node.type == "parenthesized_expression":
        node = next((c for c in node.named_children if c.type != "comment"), None)
    return node


def call_arguments(node):
    """Expressions passed to a call, in order. Named arguments keep their position."""
    arguments = node.child_by_field_name("arguments")
    if arguments is None:
        arguments = first_child_of_type(node, "arguments")
    if arguments is None:
        return []

    values = []
    for child in arguments.named_children:
        if child.type == "comment":
            continue
        if child.type == "argument":
            expressions = [c for c in child.named_children if c.type != "comment"]
            if expressions:
                values.append(expressions[-1])
        else:
            values.append(child)

    return values


def closure_result(node):
    """Expression produced by `fn () => expr` or `function () { return expr; }`."""
    body = node.child_by_field_name("body")
    if body is None:
        return None

    if node.type == "arrow_function":
        return body

    return return_expression(find_return(body))


class ExpressionClassifier:
    def __init__(
        self,
        resolver,
        nested_schema: Optional[Callable] = None,
        infer_array: Optional[Callable] = None,
        current_class: Optional[str] = None,
    ):
        """
        Args:
            resolver: NameResolver of the unit the expressions come from.
            nested_schema: callable(fq_class_name) -> SchemaReference | None that
                infers (or looks up) the schema of another resource.
            infer_array: callable(array_node) -> InferenceResult | None used for
                nested array literals.
            current_class: fully-qualified name of the resource being analyzed,
                used for `new self(...)` and `static::make(...)`.
        """
        self.resolver = resolver
        self.nested_schema = nested_schema
        self.infer_array = infer_array
        self.current_class = current_class

    def is_receiver(self, node):
        return node is not None and node.type == "variable_name" and node_text(node) == RECEIVER

    def receiver_depth(self, node):
        """Number of `->prop` hops between `node` and `$this`, or None."""
        depth = 0
        while node is not None and node.type in MEMBER_ACCESS_TYPES:
            name = node.child_by_field_name("name")
            if name is None or name.type != "name":
                return None
            depth += 1
            node = unwrap(node.child_by_field_name("object"))

        if depth and self.is_receiver(node):
            return depth
        return None

    def receiver_method(self, node):
        """Name of the method called on `$this`, or None."""
        if node.type != "member_call_expression":
            return None
        if not self.is_receiver(unwrap(node.child_by_field_name("object"))):
            return None

        name = node.child_by_field_name("name")
        if name is None or name.type != "name":
            return None
        return node_text(name)

    def recognize(self, node) -> Optional[ExpressionKind]:
        node = unwrap(node)
        if node is None:
            return None

        if string_literal_value(node) is not None:
            return ExpressionKind.STRING_LITERAL

        if node.type in MEMBER_ACCESS_TYPES:
            depth = self.receiver_depth(node)
            if depth == 1:
                return ExpressionKind.PROPERTY_FETCH
            if depth:
                return ExpressionKind.NESTED_PROPERTY_FETCH
            return None

        if node.type == "array_creation_expression":
            return ExpressionKind.ARRAY_LITERAL

        method = self.receiver_method(node)
        if method in CONDITIONAL_VALUE_METHODS:
            return ExpressionKind.CONDITIONAL_VALUE
        if method in MERGE_METHODS:
            return ExpressionKind.MERGE
        if method in CONDITIONAL_MERGE_METHODS:
            return ExpressionKind.CONDITIONAL_MERGE

        if node.type == "object_creation_expression":
            return ExpressionKind.RESOURCE_CONSTRUCTION
        if node.type == "scoped_call_expression":
            if node_text(node.child_by_field_name("name")) in STATIC_CONSTRUCTORS:
                return ExpressionKind.RESOURCE_CONSTRUCTION

        return None

    def classify(self, node, key: Optional[str] = None):
        """
        Classify one array entry value.

        Returns a FieldDescriptor, an ExpansionRequest for merge idioms, or None
        when the entry should be skipped.
        """
        node = unwrap(node)
        kind = self.recognize(node)

        if kind in (ExpressionKind.MERGE, ExpressionKind.CONDITIONAL_MERGE):
            conditional = kind is ExpressionKind.CONDITIONAL_MERGE
            methods = CONDITIONAL_MERGE_METHODS if conditional else MERGE_METHODS
            arguments = call_arguments(node)
            position = methods[self.receiver_method(node)]
            if position >= len(arguments):
                return None
            return ExpansionRequest(unwrap(arguments[position]), conditional=conditional)

        typed = self.classify_value(node, kind)
        if typed is None:
            logger.debug(f"Skipping unrecognized entry {key!r}: {node_text(node)[:60]}")
            return None

        type_descriptor, required = typed
        return FieldDescriptor(key=key, type=type_descriptor, required=required)

    def classify_value(self, node, kind=None) -> Optional[Tuple[object, bool]]:
        """Return (TypeDescriptor, required) for a value expression, or None."""
        node = unwrap(node)
        if kind is None:
            kind = self.recognize(node)

        if kind is ExpressionKind.STRING_LITERAL:
            return StringLiteral(string_literal_value(node)), True

        if kind in (ExpressionKind.PROPERTY_FETCH, ExpressionKind.NESTED_PROPERTY_FETCH):
            return ScalarUnknown(), True

        if kind is ExpressionKind.ARRAY_LITERAL:
            if self.infer_array is None:
                return None
            result = self.infer_array(node)
            if result is None:
                return None
            return InlineObject(fields=result.fields), True

        if kind is ExpressionKind.CONDITIONAL_VALUE:
            return self._classify_conditional(node)

        if kind is ExpressionKind.RESOURCE_CONSTRUCTION:
            return self._classify_construction(node)

        return None

    def _classify_conditional(self, node):
        position = CONDITIONAL_VALUE_METHODS[self.receiver_method(node)]
        arguments = call_arguments(node)

        if position >= len(arguments):
            return ScalarUnknown(), False

        value = unwrap(arguments[position])
        if value is not None and value.type in CLOSURE_TYPES:
            value = unwrap(closure_result(value))

        typed = self.classify_value(value)
        if typed is None:
            return None

        return typed[0], False

    def _class_node(self, node):
        if node.type == "scoped_call_expression":
            return node.child_by_field_name("scope")

        # `new static` may surface as a bare keyword token
        for child in node.children:
            if child.type in CLASS_NAME_TYPES or child.type in SELF_REFERENCES:
                return child
        return None

    def _construction_parts(self, node):
        class_node = self._class_node(node)
        arguments = call_arguments(node)

        if class_node is None:
            return None, arguments

        class_name = node_text(class_node)
        if class_name.lower() in SELF_REFERENCES:
            if not self.current_class:
                return None, arguments
            return NAMESPACE_SEPARATOR + self.current_class, arguments

        if class_node.type not in CLASS_NAME_TYPES:
            return None, arguments

        return class_name, arguments

    def _classify_construction(self, node):
        class_name, arguments = self._construction_parts(node)
        conditional = bool(arguments) and self.recognize(arguments[0]) is ExpressionKind.CONDITIONAL_VALUE

        if class_name:
            fq_name = self.resolver.resolve(class_name)
            reference = self.nested_schema(fq_name) if self.nested_schema else None
            if reference is not None:
                return reference, not conditional
        else:
            fq_name = node_text(node)[:60]

        logger.debug(f"Could not infer a schema for {fq_name}, documenting it as a scalar")
        return ScalarUnknown(), not conditional
