"""
Static response schema inference for JSON resources.

The schema of a resource is inferred from the array returned by its `toArray`
method, without executing any PHP. The analysis is deliberately simple and
understands only a few things:

- string keys
- string literal values
- property fetches on the resource ($this->id) and on its members ($this->resource->id)
- nested resources (new PostResource(...), PostResource::make(...)); the field is
  optional when the argument is a conditional value such as $this->whenLoaded('post')
  and documented as a plain value when the resource cannot be analyzed.
  `new self(...)` and `static::make(...)` refer back to the resource itself
- $this->when(...) and friends, which make a field optional
- $this->merge([...]) and $this->mergeWhen($cond, [...])

Anything else is left out of the schema. When the method does not return an
array literal no schema is produced at all.
"""

import logging
from typing import Optional

from array_inferer import ArrayNodeSampleInferer
from expression_classifier import unwrap
from name_resolver import NameResolver, class_basename
from return_locator import (
    DEFAULT_METHOD_NAME,
    find_method,
    find_return,
    method_body,
    return_expression,
)
from schema_builder import build_schema
from sample_types import SchemaReference

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


def infer_response_schema(
    type_name: str,
    body,
    resolver: NameResolver,
    registry,
    nested_schema=None,
) -> Optional[SchemaReference]:
    """
    Infer and register the schema of the resource `type_name`.

    Args:
        type_name: fully-qualified class name of the resource.
        body: the compound_statement node of its `toArray` method.
        resolver: resolves class names used in the resource's file.
        registry: SchemaRegistry shared by the whole run.
        nested_schema: callable(fq_class_name) -> SchemaReference | None used for
            resources constructed inside the returned array. Without it nested
            resources cannot be expanded.

    Returns:
        A SchemaReference to the registered schema, or None when nothing could be inferred.
    """
    schema_name = class_basename(type_name)
    if registry.has(schema_name):
        return SchemaReference(schema_name)

    return_node = find_return(body)
    if return_node is None:
        logger.debug(f"No return statement in {type_name}")
        return None

    expression = unwrap(return_expression(return_node))
    if expression is None or expression.type != "array_creation_expression":
        logger.debug(f"{type_name} does not return an array literal")
        return None

    inferer = ArrayNodeSampleInferer(
        resolver, nested_schema=nested_schema, current_class=type_name
    )
    return build_schema(schema_name, registry, lambda: inferer(expression))


class ResourceSchemaAnalyzer:
    """Runs the inference for resources found in a SourceIndex, following nested resources."""

    def __init__(self, source_index, registry, method_name=DEFAULT_METHOD_NAME):
        self.source_index = source_index
        self.registry = registry
        self.method_name = method_name

    def schema_for(self, class_name: str) -> Optional[SchemaReference]:
        schema_name = class_basename(class_name)
        if self.registry.has(schema_name):
            return SchemaReference(schema_name)

        found = self.source_index.find_class(class_name)
        if found is None:
            logger.debug(f"Class {class_name} is not indexed")
            return None

        unit, class_node = found
        method = find_method(class_node, self.method_name)
        if method is None:
            logger.debug(f"{class_name} has no {self.method_name} method")
            return None

        return infer_response_schema(
            class_name,
            method_body(method),
            self.source_index.resolver_for(unit),
            self.registry,
            nested_schema=self.schema_for,
        )


class JsonResourceResponseExtractor:
    def __init__(self, analyzer: ResourceSchemaAnalyzer, class_name: str):
        self.analyzer = analyzer
        self.class_name = class_name

    def extract(self) -> Optional[dict]:
        """
        Return an OpenAPI response object referencing the resource's schema, or
        None when no schema could be inferred.
        """
        reference = self.analyzer.schema_for(self.class_name)
        if reference is None:
            return None

        response = {
            "description": f"`{reference.name}`",
            "content": {
                JSON_CONTENT_TYPE: {
                    "schema": self.analyzer.registry.reference(reference.name),
                }
            },
        }

        model_class = self.analyzer.source_index.model_name(self.class_name)
        if model_class:
            response["x-model"] = model_class

        return response
