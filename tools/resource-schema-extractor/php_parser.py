"""
Parses PHP source files with tree-sitter and extracts what the inference needs
from a compilation unit: the `use` alias table, the enclosing namespace and the
class declarations it contains.

Example input:

    <?php

    namespace App\\Http\\Resources;

    use App\\Models\\User;
    use App\\Http\\Resources\\Blog\\{PostResource, CommentResource as Comments};

    class UserResource extends JsonResource { ... }

produces a SourceUnit with

    context.namespace == "App\\Http\\Resources"
    context.aliases == {
        "User": "App\\Models\\User",
        "PostResource": "App\\Http\\Resources\\Blog\\PostResource",
        "Comments": "App\\Http\\Resources\\Blog\\CommentResource",
    }
    classes == {"App\\Http\\Resources\\UserResource": <class_declaration node>}
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional

import tree_sitter_php
from tree_sitter import Language, Parser

from name_resolver import NAMESPACE_SEPARATOR, NameContext, class_basename

logger = logging.getLogger(__name__)

USE_TARGET_TYPES = ("name", "qualified_name", "namespace_name")
USE_CLAUSE_TYPES = ("namespace_use_clause", "namespace_use_group_clause")
NON_CLASS_USE_KINDS = ("function", "const")

LITERAL_STRING_PARTS = ("string", "string_content", "string_value", "escape_sequence")
DOUBLE_QUOTED_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "v": "\v",
    "e": "\x1b",
    "f": "\f",
    "\\": "\\",
    "$": "$",
    '"': '"',
}
DOUBLE_QUOTED_ESCAPE_PATTERN = re.compile(
    r'\\(?:([ntrvef\\$"])|x([0-9A-Fa-f]{1,2})|u\{([0-9A-Fa-f]+)\}|([0-7]{1,3}))'
)
MAX_CODEPOINT = 0x10FFFF


class SourceParseError(Exception):
    """Raised when tree-sitter reports a syntax error in a PHP file."""

    def __init__(self, path, line, column):
        self.path = path
        self.line = line
        self.column = column
        super().__init__(f"Syntax error in {path} at line {line}, column {column}")


@dataclass(frozen=True)
class SourceUnit:
    path: str
    source: bytes
    tree: object
    context: NameContext
    classes: Dict[str, object] = field(default_factory=dict)


def get_treesitter_php_parser_and_language():
    php_language = Language(tree_sitter_php.language_php())
    treesitter_parser = Parser(php_language)

    return treesitter_parser, php_language


def get_file_contents(path):
    with open(path, "rb") as f:
        return f.read()


def node_text(node):
    if node is None:
        return ""
    return node.text.decode("utf-8")


def first_child_of_type(node, *types):
    for child in node.named_children:
        if child.type in types:
            return child
    return None


def string_literal_value(node) -> Optional[str]:
    """
    Return the value of a PHP string literal node, or None when the node is not
    a plain literal (interpolated strings, heredocs, anything else).
    """
    if node is None or node.type not in ("string", "encapsed_string"):
        return None

    if any(child.type not in LITERAL_STRING_PARTS for child in node.named_children):
        return None

    text = node_text(node)
    if text[:1] in ("b", "B"):
        text = text[1:]

    if len(text) < 2 or text[0] not in "'\"" or text[0] != text[-1]:
        return None

    body = text[1:-1]
    if text[0] == "'":
        return re.sub(r"\\([\\'])", r"\1", body)

    return DOUBLE_QUOTED_ESCAPE_PATTERN.sub(_decode_escape, body)


def _decode_escape(match):
    simple, hexadecimal, codepoint, octal = match.groups()
    if simple is not None:
        return DOUBLE_QUOTED_ESCAPES[simple]
    if hexadecimal is not None:
        return chr(int(hexadecimal, 16))
    if codepoint is not None:
        value = int(codepoint, 16)
        return chr(value) if value <= MAX_CODEPOINT else match.group(0)
    # "\400" and above wrap around like PHP's byte strings
    return chr(int(octal, 8) & 0xFF)


def _first_error_node(node):
    if node.type == "ERROR" or node.is_missing:
        return node

    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error_node(child)
            if found is not None:
                return found

    return None


def _namespace_blocks(root):
    """
    Split the top-level statements of a file into (namespace, statements) blocks.

    Handles both `namespace Foo;` (applies to the following siblings) and the
    braced `namespace Foo { ... }` form.
    """
    blocks = []
    current_namespace = None
    current_statements = []

    for child in root.named_children:
        if child.type != "namespace_definition":
            current_statements.append(child)
            continue

        name_node = child.child_by_field_name("name")
        namespace = node_text(name_node).strip(NAMESPACE_SEPARATOR) or None
        body = child.child_by_field_name("body")

        if body is not None:
            blocks.append((namespace, list(body.named_children)))
        else:
            blocks.append((current_namespace, current_statements))
            current_namespace, current_statements = namespace, []

    blocks.append((current_namespace, current_statements))
    return blocks


def _use_clause_alias(clause, prefix=None):
    names = [c for c in clause.named_children if c.type in USE_TARGET_TYPES]
    if not names:
        return None

    target = node_text(names[0]).strip(NAMESPACE_SEPARATOR)
    if prefix:
        target = f"{prefix}{NAMESPACE_SEPARATOR}{target}"

    alias_node = clause.child_by_field_name("alias")
    if alias_node is None:
        aliasing = first_child_of_type(clause, "namespace_aliasing_clause")
        if aliasing is not None and aliasing.named_children:
            alias_node = aliasing.named_children[-1]
        elif len(names) > 1:
            alias_node = names[-1]

    alias = node_text(alias_node) if alias_node is not None else class_basename(target)
    return alias, target


def _collect_aliases(statements):
    aliases = {}

    for statement in statements:
        if statement.type != "namespace_use_declaration":
            continue

        # `use function ...;` and `use const ...;` never name classes
        if any(c.type in NON_CLASS_USE_KINDS for c in statement.children):
            continue

        group = first_child_of_type(statement, "namespace_use_group")
        if group is not None:
            prefix_node = first_child_of_type(statement, "namespace_name", "qualified_name")
            prefix = node_text(prefix_node).strip(NAMESPACE_SEPARATOR)
            clauses = [c for c in group.named_children if c.type in USE_CLAUSE_TYPES]
        else:
            prefix = None
            clauses = [c for c in statement.named_children if c.type in USE_CLAUSE_TYPES]

        for clause in clauses:
            if any(c.type in NON_CLASS_USE_KINDS for c in clause.children):
                continue

            pair = _use_clause_alias(clause, prefix)
            if pair:
                alias, target = pair
                aliases[alias] = target

    return aliases


def _collect_classes(blocks):
    classes = {}

    for namespace, statements in blocks:
        for statement in statements:
            if statement.type != "class_declaration":
                continue

            name = node_text(statement.child_by_field_name("name"))
            if not name:
                continue

            fq_name = f"{namespace}{NAMESPACE_SEPARATOR}{name}" if namespace else name
            classes[fq_name] = statement

    return classes


def parse_php_source(treesitter_parser, source_code, path="<memory>"):
    """
    Parse PHP source bytes into a SourceUnit.

    Raises SourceParseError when the source does not parse cleanly.
    """
    if isinstance(source_code, str):
        source_code = source_code.encode("utf-8")

    tree = treesitter_parser.parse(source_code)
    root = tree.root_node

    if root.has_error:
        error = _first_error_node(root) or root
        raise SourceParseError(path, error.start_point[0] + 1, error.start_point[1] + 1)

    blocks = _namespace_blocks(root)
    namespaces = [c for c in root.named_children if c.type == "namespace_definition"]

    aliases = {}
    for _, statements in blocks:
        aliases.update(_collect_aliases(statements))

    # A namespace is only meaningful for resolution when it is the only one
    namespace = None
    if len(namespaces) == 1:
        namespace = node_text(namespaces[0].child_by_field_name("name")).strip(NAMESPACE_SEPARATOR) or None

    context = NameContext(aliases=aliases, namespace=namespace)
    classes = _collect_classes(blocks)

    logger.debug(
        f"Parsed {path}: namespace={namespace}, {len(aliases)} aliases, {len(classes)} classes"
    )

    return SourceUnit(path=str(path), source=source_code, tree=tree, context=context, classes=classes)


def parse_php_file(treesitter_parser, path):
    return parse_php_source(treesitter_parser, get_file_contents(path), path)
