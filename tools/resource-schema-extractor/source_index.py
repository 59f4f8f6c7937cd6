"""
Index of the PHP classes found under a source directory.

The index answers the questions the inference asks about types it does not
analyze directly: does a class with this fully-qualified name exist, where is
it declared, which classes are resources, and which model does a resource wrap.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from name_resolver import NAMESPACE_SEPARATOR, NameResolver, class_basename
from php_parser import (
    SourceParseError,
    SourceUnit,
    first_child_of_type,
    get_treesitter_php_parser_and_language,
    node_text,
    parse_php_file,
    parse_php_source,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_CLASSES = ("JsonResource",)
DEFAULT_MODELS_NAMESPACE = "App\\Models"

MODEL_HINT_PATTERNS = [
    re.compile(r"@property(?:-read)?\s+([\\\w]+)\s+\$resource\b"),
    re.compile(r"@mixin\s+([\\\w]+)"),
]


def singular(word):
    if re.search(r"[^aeiou]ies$", word):
        return word[:-3] + "y"
    if re.search(r"(ss|sh|ch|x|z)es$", word):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


class SourceIndex:
    def __init__(self, treesitter_parser=None, models_namespace=DEFAULT_MODELS_NAMESPACE):
        if treesitter_parser is None:
            treesitter_parser, _ = get_treesitter_php_parser_and_language()

        self.treesitter_parser = treesitter_parser
        self.models_namespace = models_namespace
        self.units: List[SourceUnit] = []
        self.classes: Dict[str, Tuple[SourceUnit, object]] = {}
        self._resolvers: Dict[int, NameResolver] = {}

    def scan(self, path, recursive=True):
        """
        Parse every .php file under `path` (or `path` itself when it is a file).

        Files that cannot be read or parsed are logged and skipped.
        Returns the number of files indexed.
        """
        path = Path(path)

        if path.is_file():
            files = [path]
        else:
            files = path.rglob("*.php") if recursive else path.glob("*.php")

        indexed = 0
        for file_path in sorted(files):
            try:
                unit = parse_php_file(self.treesitter_parser, file_path)
            except (OSError, UnicodeDecodeError, SourceParseError) as e:
                logger.warning(f"Skipping {file_path}: {e}")
                continue

            self.add_unit(unit)
            indexed += 1

        logger.info(f"Indexed {len(self.classes)} classes from {indexed} files")
        return indexed

    def add_source(self, source_code, path="<memory>") -> SourceUnit:
        unit = parse_php_source(self.treesitter_parser, source_code, path)
        self.add_unit(unit)
        return unit

    def add_unit(self, unit: SourceUnit):
        # Cached namespace lookups may now resolve differently
        self._resolvers.clear()
        self.units.append(unit)
        for fq_name, class_node in unit.classes.items():
            if fq_name in self.classes:
                logger.warning(f"Class {fq_name} declared more than once, keeping {unit.path}")
            self.classes[fq_name] = (unit, class_node)

    def class_exists(self, fq_name: str) -> bool:
        return fq_name.lstrip(NAMESPACE_SEPARATOR) in self.classes

    def find_class(self, fq_name: str):
        return self.classes.get(fq_name.lstrip(NAMESPACE_SEPARATOR))

    def resolver_for(self, unit: SourceUnit) -> NameResolver:
        resolver = self._resolvers.get(id(unit))
        if resolver is None:
            resolver = NameResolver(unit.context, self.class_exists)
            self._resolvers[id(unit)] = resolver
        return resolver

    def base_class(self, fq_name: str) -> Optional[str]:
        found = self.find_class(fq_name)
        if found is None:
            return None

        unit, class_node = found
        base_clause = first_child_of_type(class_node, "base_clause")
        if base_clause is None:
            return None

        base_name = first_child_of_type(base_clause, "name", "qualified_name")
        if base_name is None:
            return None

        return self.resolver_for(unit).resolve(node_text(base_name))

    def resource_classes(self, base_classes=DEFAULT_BASE_CLASSES) -> List[str]:
        """Classes extending one of `base_classes` (by basename), directly or through another resource."""
        resources = set()
        changed = True

        while changed:
            changed = False
            for fq_name in self.classes:
                if fq_name in resources:
                    continue

                base = self.base_class(fq_name)
                if base is None:
                    continue

                if class_basename(base) in base_classes or base in resources:
                    resources.add(fq_name)
                    changed = True

        return sorted(resources)

    def doc_comment(self, fq_name: str) -> str:
        found = self.find_class(fq_name)
        if found is None:
            return ""

        _, class_node = found
        previous = class_node.prev_named_sibling
        if previous is not None and previous.type == "comment" and node_text(previous).startswith("/**"):
            return node_text(previous)
        return ""

    def model_name(self, fq_name: str) -> Optional[str]:
        """
        Best-effort lookup of the model a resource wraps.

        Uses the `@property Model $resource` or `@mixin Model` doc comment line
        first, then falls back to `App\\Models\\<Singular name without Resource>`.
        """
        found = self.find_class(fq_name)
        if found is None:
            return None

        unit, _ = found
        resolver = self.resolver_for(unit)

        hint_line = next(
            (
                line
                for line in self.doc_comment(fq_name).splitlines()
                if any(p.search(line) for p in MODEL_HINT_PATTERNS)
            ),
            None,
        )
        if hint_line:
            for pattern in MODEL_HINT_PATTERNS:
                match = pattern.search(hint_line)
                if match:
                    model_class = resolver.resolve(match.group(1))
                    if self.class_exists(model_class):
                        return model_class.lstrip(NAMESPACE_SEPARATOR)
                    break

        model_basename = singular(class_basename(fq_name).replace("Resource", ""))
        if not model_basename:
            return None

        model_class = f"{self.models_namespace}{NAMESPACE_SEPARATOR}{model_basename}"
        if self.class_exists(model_class):
            return model_class

        return None
