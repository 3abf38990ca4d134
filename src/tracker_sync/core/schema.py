"""Per-entity-type schemas and the cross-type dependency order.

The generic engine (queue, push ordering, pull, repair) only touches the
record envelope and the relation fields declared here. Everything
type-specific - remote property names, payload shaping, heuristic matching,
local-only fields - lives on the ``EntitySchema`` strategy object.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tracker_sync.remote.properties import PropertyKind, build_property, extract_property
from tracker_sync.remote.properties import date as date_property

if TYPE_CHECKING:
    from tracker_sync.remote.base import RemoteRecord

# (local fields, incoming remote fields in local shape) -> same logical record?
Matcher = Callable[[dict[str, Any], dict[str, Any]], bool]


@dataclass(frozen=True)
class FieldSpec:
    """A scalar/array field mapped onto one remote property.

    Attributes:
        name: Local field name
        remote_name: Remote property name
        kind: Remote property kind
        end_field: For DATE fields, the local field holding the range end
    """

    name: str
    remote_name: str
    kind: PropertyKind
    end_field: str | None = None

    @property
    def writable(self) -> bool:
        return self.kind != PropertyKind.DATE_END


@dataclass(frozen=True)
class RelationSpec:
    """A relation field referencing records of another entity type.

    Attributes:
        name: Local field name
        target: Entity type of the referenced records
        remote_name: Remote relation property name
        many: True for an ordered list of ids, False for a single nullable id
        required: Push waits for targets instead of omitting them
    """

    name: str
    target: str
    remote_name: str
    many: bool = False
    required: bool = False

    def values(self, fields: dict[str, Any]) -> list[str]:
        """Relation value as a list of ids regardless of cardinality."""
        raw = fields.get(self.name)
        if raw is None or raw == "":
            return []
        if isinstance(raw, str):
            return [raw]
        return [v for v in raw if v]

    def assign(self, ids: list[str]) -> list[str] | str | None:
        """Shape a list of ids back into the field's cardinality."""
        if self.many:
            return list(ids)
        return ids[0] if ids else None

    def is_empty(self, fields: dict[str, Any]) -> bool:
        return not self.values(fields)


def _never_matches(local: dict[str, Any], remote: dict[str, Any]) -> bool:
    return False


@dataclass(frozen=True)
class EntitySchema:
    """Strategy object describing one entity type.

    Attributes:
        name: Entity type name (also the local store table key)
        fields: Scalar/array fields synced with the remote API
        relations: Relation fields
        local_only_fields: Fields the remote schema does not model; kept
            when a newer remote copy overwrites the local record
        matcher: Heuristic equality used when no remote id link exists
    """

    name: str
    fields: tuple[FieldSpec, ...] = ()
    relations: tuple[RelationSpec, ...] = ()
    local_only_fields: tuple[str, ...] = ()
    matcher: Matcher = field(default=_never_matches, compare=False)

    def relation(self, name: str) -> RelationSpec | None:
        for rel in self.relations:
            if rel.name == name:
                return rel
        return None

    def relation_names(self) -> tuple[str, ...]:
        return tuple(rel.name for rel in self.relations)

    def to_properties(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Shape a local payload into remote properties.

        Relation fields must already hold remote ids. Only fields present
        in ``fields`` are emitted, so partial update payloads stay partial.
        """
        properties: dict[str, Any] = {}
        for spec in self.fields:
            if not spec.writable or spec.name not in fields:
                continue
            if spec.kind == PropertyKind.DATE and spec.end_field:
                properties[spec.remote_name] = date_property(
                    fields[spec.name], fields.get(spec.end_field)
                )
            else:
                properties[spec.remote_name] = build_property(spec.kind, fields[spec.name])
        for rel in self.relations:
            if rel.name in fields:
                properties[rel.remote_name] = build_property(
                    PropertyKind.RELATION, rel.values(fields)
                )
        return properties

    def from_remote(self, record: RemoteRecord) -> dict[str, Any]:
        """Convert a remote record into local shape (relations hold remote ids)."""
        props = record.properties
        result: dict[str, Any] = {}
        for spec in self.fields:
            result[spec.name] = extract_property(spec.kind, props.get(spec.remote_name))
        for rel in self.relations:
            ids = extract_property(PropertyKind.RELATION, props.get(rel.remote_name))
            result[rel.name] = rel.assign(ids)
        return result

    def synced_payload(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Subset of ``fields`` that is pushed to the remote API."""
        names = {spec.name for spec in self.fields if spec.writable}
        names.update(spec.end_field for spec in self.fields if spec.end_field)
        names.update(self.relation_names())
        return {k: v for k, v in fields.items() if k in names}


class SchemaRegistry:
    """Schemas in their fixed dependency order.

    Types whose relations point at other types come after those types, so
    push creates parents before children and pull fetches relation targets
    before the records referencing them.
    """

    def __init__(self, schemas: Iterable[EntitySchema]) -> None:
        self._schemas: dict[str, EntitySchema] = {}
        for schema in schemas:
            if schema.name in self._schemas:
                raise ValueError(f"Duplicate entity type: {schema.name}")
            self._schemas[schema.name] = schema
        for schema in self._schemas.values():
            for rel in schema.relations:
                if rel.target not in self._schemas:
                    raise ValueError(
                        f"{schema.name}.{rel.name} targets unknown entity type {rel.target}"
                    )
        self._order = tuple(self._schemas)

    def __iter__(self) -> Iterator[EntitySchema]:
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._schemas

    @property
    def order(self) -> tuple[str, ...]:
        return self._order

    def get(self, entity_type: str) -> EntitySchema:
        try:
            return self._schemas[entity_type]
        except KeyError:
            raise KeyError(f"Unknown entity type: {entity_type}") from None

    def index_of(self, entity_type: str) -> int:
        """Position in the dependency order (unknown types sort last)."""
        try:
            return self._order.index(entity_type)
        except ValueError:
            return len(self._order)

    def dependents_of(self, entity_type: str) -> list[tuple[EntitySchema, RelationSpec]]:
        """Every (schema, relation) pair whose relation targets ``entity_type``."""
        return [
            (schema, rel)
            for schema in self._schemas.values()
            for rel in schema.relations
            if rel.target == entity_type
        ]
