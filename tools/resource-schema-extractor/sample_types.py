"""
Types describing the inferred shape of a resource's `toArray` result.

A SampleStructure is an ordered list of FieldDescriptor objects, one per array
entry in source order. Each descriptor carries a TypeDescriptor, which is one of
a closed set of variants:

    StringLiteral     'id' => 'user'
    ScalarUnknown     'id' => $this->id
    SchemaReference   'post' => new PostResource($this->whenLoaded('post'))
    InlineObject      'meta' => ['version' => '1']
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Set, Union


@dataclass(frozen=True)
class StringLiteral:
    value: str


@dataclass(frozen=True)
class ScalarUnknown:
    pass


@dataclass(frozen=True)
class SchemaReference:
    name: str


@dataclass(frozen=True)
class InlineObject:
    fields: List["FieldDescriptor"] = field(default_factory=list)


TypeDescriptor = Union[StringLiteral, ScalarUnknown, SchemaReference, InlineObject]


@dataclass(frozen=True)
class FieldDescriptor:
    key: Optional[str]
    type: TypeDescriptor
    required: bool = True

    @property
    def is_keyed(self):
        return self.key is not None

    def as_optional(self):
        return replace(self, required=False)


@dataclass(frozen=True)
class ExpansionRequest:
    """
    Emitted for `merge`/`mergeWhen` entries: the fields of `node` (an array
    literal) are spliced into the enclosing structure.
    """

    node: object
    conditional: bool = False


@dataclass
class InferenceResult:
    fields: List[FieldDescriptor] = field(default_factory=list)
    required_keys: Set[str] = field(default_factory=set)

    @classmethod
    def from_fields(cls, fields):
        required_keys = set()
        # Later entries overwrite earlier ones with the same key
        for descriptor in fields:
            if not descriptor.is_keyed:
                continue
            if descriptor.required:
                required_keys.add(descriptor.key)
            else:
                required_keys.discard(descriptor.key)

        return cls(fields=list(fields), required_keys=required_keys)

    def descriptor_for(self, key):
        """Return the last descriptor for `key`, or None."""
        for descriptor in reversed(self.fields):
            if descriptor.key == key:
                return descriptor
        return None
