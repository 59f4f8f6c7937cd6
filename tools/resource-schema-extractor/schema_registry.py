"""
Registry of named schemas shared by every extraction in a documentation run.

Entries are keyed by schema name. A name is reserved before the schema behind it
is inferred, so a resource that (directly or transitively) embeds itself finds
its own name already registered and gets a `$ref` instead of being expanded again.
"""

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SCHEMA_REF_PREFIX = "#/components/schemas/"


class SchemaRegistry:
    def __init__(self):
        self._schemas: Dict[str, dict] = {}
        self._pending = set()

    def __len__(self):
        return len(self._schemas)

    def has(self, name: str) -> bool:
        """True for finalized and in-progress entries alike."""
        return name in self._schemas

    def is_pending(self, name: str) -> bool:
        return name in self._pending

    def reserve(self, name: str) -> bool:
        """
        Register a placeholder for `name`.

        Returns False, leaving the registry untouched, when the name is already taken.
        """
        if name in self._schemas:
            return False

        self._schemas[name] = {"type": "object"}
        self._pending.add(name)
        logger.debug(f"Reserved schema {name}")
        return True

    def release(self, name: str):
        """Drop a reservation whose schema could not be produced."""
        if name in self._pending:
            self._pending.discard(name)
            del self._schemas[name]
            logger.debug(f"Released schema {name}")

    def finalize(self, name: str, schema: dict):
        if name not in self._pending:
            raise KeyError(f"Schema {name} was not reserved")

        self._schemas[name] = schema
        self._pending.discard(name)
        logger.debug(f"Finalized schema {name}")

    def add_schema(self, name: str, schema: dict):
        """Register a complete schema, replacing any existing entry."""
        self._schemas[name] = schema
        self._pending.discard(name)

    def get(self, name: str) -> Optional[dict]:
        return self._schemas.get(name)

    def reference(self, name: str) -> dict:
        return {"$ref": f"{SCHEMA_REF_PREFIX}{name}"}

    def names(self):
        return list(self._schemas)

    def to_dict(self):
        return {name: schema for name, schema in self._schemas.items() if name not in self._pending}
