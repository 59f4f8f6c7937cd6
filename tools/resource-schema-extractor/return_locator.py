"""
Locates the target method inside a class declaration and the return statement
whose expression describes the response.
"""

import logging

from php_parser import first_child_of_type, node_text

logger = logging.getLogger(__name__)

DEFAULT_METHOD_NAME = "toArray"


def class_body(class_node):
    body = class_node.child_by_field_name("body")
    if body is None:
        body = first_child_of_type(class_node, "declaration_list")
    return body


def find_method(class_node, method_name=DEFAULT_METHOD_NAME):
    """Return the method_declaration node named `method_name`, or None."""
    body = class_body(class_node)
    if body is None:
        return None

    for child in body.named_children:
        if child.type != "method_declaration":
            continue
        # PHP method names are case-insensitive
        if node_text(child.child_by_field_name("name")).lower() == method_name.lower():
            return child

    return None


def method_body(method_node):
    body = method_node.child_by_field_name("body")
    if body is None:
        body = first_child_of_type(method_node, "compound_statement")
    return body


def find_first(node, predicate):
    """Pre-order, depth-first search returning the first node matching `predicate`."""
    stack = [node]
    while stack:
        current = stack.pop()
        if predicate(current):
            return current
        stack.extend(reversed(current.named_children))
    return None


def find_return(body):
    """
    Return the first return statement of a method body, in source order.

    Only the first one is considered: resources are expected to build and
    return a single array.
    """
    if body is None:
        return None

    return find_first(body, lambda node: node.type == "return_statement")


def return_expression(return_node):
    """Return the expression of a return statement (None for a bare `return;`)."""
    if return_node is None:
        return None

    for child in return_node.named_children:
        if child.type != "comment":
            return child

    return None
