"""
Resolves short class names used inside a PHP file to fully-qualified names.

Resolution order:
  1. exact match in the file's `use` alias table
  2. relative qualified names (`Nested\\PostResource`) whose first segment is an alias
  3. `<namespace>\\<name>` when a class by that name is known to exist
  4. the name unchanged
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = "\\"


@dataclass(frozen=True)
class NameContext:
    """Alias table and enclosing namespace of a single source unit."""

    aliases: Dict[str, str] = field(default_factory=dict)
    namespace: Optional[str] = None


def class_basename(name):
    return name.rstrip(NAMESPACE_SEPARATOR).split(NAMESPACE_SEPARATOR)[-1]


class NameResolver:
    def __init__(self, context: NameContext, type_exists: Optional[Callable[[str], bool]] = None):
        self.context = context
        self.type_exists = type_exists or (lambda name: False)
        self._cache: Dict[str, str] = {}

    def resolve(self, short_name: str) -> str:
        if short_name in self._cache:
            return self._cache[short_name]

        resolved = self._resolve(short_name)
        self._cache[short_name] = resolved
        logger.debug(f"Resolved {short_name} -> {resolved}")
        return resolved

    def _resolve(self, short_name):
        # Fully-qualified names are taken as written
        if short_name.startswith(NAMESPACE_SEPARATOR):
            return short_name.lstrip(NAMESPACE_SEPARATOR)

        aliases = self.context.aliases
        if short_name in aliases:
            return aliases[short_name]

        if NAMESPACE_SEPARATOR in short_name:
            head, rest = short_name.split(NAMESPACE_SEPARATOR, 1)
            if head in aliases:
                return f"{aliases[head]}{NAMESPACE_SEPARATOR}{rest}"

        namespace = self.context.namespace
        if namespace:
            fq_name = f"{namespace}{NAMESPACE_SEPARATOR}{short_name}"
            if self.type_exists(fq_name):
                return fq_name

        return short_name

    def is_known(self, short_name: str) -> bool:
        return self.type_exists(self.resolve(short_name))
