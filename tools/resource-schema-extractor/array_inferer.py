"""
Infers a sample structure from a PHP array literal.
"""

import logging
from typing import Optional

from expression_classifier import ExpressionClassifier, unwrap
from php_parser import string_literal_value
from sample_types import ExpansionRequest, InferenceResult

logger = logging.getLogger(__name__)


def array_entries(array_node):
    """
    Yield (key_node, value_node) for every element of an array literal.

    key_node is None for list-style elements such as `$this->merge([...])`.
    """
    for element in array_node.named_children:
        if element.type != "array_element_initializer":
            continue

        expressions = [c for c in element.named_children if c.type != "comment"]
        if not expressions:
            continue

        if any(c.type == "=>" for c in element.children):
            yield expressions[0], expressions[-1]
        else:
            yield None, expressions[-1]


class ArrayNodeSampleInferer:
    """
    Walks the entries of an array literal in source order and classifies each
    value. Fields produced by `merge` are spliced in with their own required
    flag; fields produced by `mergeWhen` are spliced in as optional.
    """

    def __init__(self, resolver, nested_schema=None, current_class=None):
        self.classifier = ExpressionClassifier(
            resolver,
            nested_schema=nested_schema,
            infer_array=self.infer,
            current_class=current_class,
        )

    def __call__(self, array_node):
        return self.infer(array_node)

    def infer(self, array_node) -> Optional[InferenceResult]:
        array_node = unwrap(array_node)
        if array_node is None or array_node.type != "array_creation_expression":
            return None

        fields = []
        for key_node, value_node in array_entries(array_node):
            key = string_literal_value(key_node) if key_node is not None else None
            outcome = self.classifier.classify(value_node, key=key)

            if outcome is None:
                continue

            if isinstance(outcome, ExpansionRequest):
                merged = self.infer(outcome.node)
                if merged is None:
                    logger.debug("Merged value is not an array literal, skipping it")
                    continue

                for descriptor in merged.fields:
                    fields.append(descriptor.as_optional() if outcome.conditional else descriptor)
                continue

            fields.append(outcome)

        return InferenceResult.from_fields(fields)
