"""
Turns inferred sample structures into JSON schemas stored in the SchemaRegistry.
"""

import logging
from typing import Callable, Optional

from sample_types import InferenceResult, InlineObject, SchemaReference, StringLiteral

logger = logging.getLogger(__name__)


def property_schema(type_descriptor, registry):
    if isinstance(type_descriptor, StringLiteral):
        return {"type": "string", "example": type_descriptor.value}

    if isinstance(type_descriptor, SchemaReference):
        return registry.reference(type_descriptor.name)

    if isinstance(type_descriptor, InlineObject):
        return schema_from_result(InferenceResult.from_fields(type_descriptor.fields), registry)

    return {"type": "string"}


def schema_from_result(result: InferenceResult, registry):
    """Object schema with one property per keyed field; unkeyed fields are skipped."""
    properties = {}
    required = []

    for descriptor in result.fields:
        if not descriptor.is_keyed:
            continue

        properties[descriptor.key] = property_schema(descriptor.type, registry)
        if descriptor.key in result.required_keys and descriptor.key not in required:
            required.append(descriptor.key)

    schema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required

    return schema


def build_schema(
    type_name: str,
    registry,
    infer: Callable[[], Optional[InferenceResult]],
) -> Optional[SchemaReference]:
    """
    Build and register the schema named `type_name`.

    `infer` runs the inference; it may recursively build other schemas,
    including this one, so the name is reserved before it is called. An
    existing entry short-circuits the whole process.
    """
    if registry.has(type_name):
        logger.debug(f"Schema {type_name} already registered")
        return SchemaReference(type_name)

    registry.reserve(type_name)

    try:
        result = infer()
    except Exception:
        registry.release(type_name)
        raise

    if result is None:
        registry.release(type_name)
        return None

    registry.finalize(type_name, schema_from_result(result, registry))
    logger.debug(f"Built schema {type_name} with {len(result.required_keys)} required keys")

    return SchemaReference(type_name)
