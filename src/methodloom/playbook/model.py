# methodloom:domain=playbook
"""Typed playbook: metadata, relation rules, description schemas, and constraints."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_SEVERITIES: frozenset[str] = frozenset({"error", "warning", "info"})
VALID_DIRECTIONS: frozenset[str] = frozenset({"forward", "reverse"})

Severity = Literal["error", "warning", "info"]
Direction = Literal["forward", "reverse"]

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PlaybookConfigError(ValueError):
    """Raised when the playbook itself is malformed (a defect in the rule set)."""


class TypeHierarchyCycleError(PlaybookConfigError):
    """Raised when a type hierarchy contains a cycle."""

    def __init__(self, cycle: tuple[str, ...]) -> None:
        self.cycle = cycle
        super().__init__(f"Type hierarchy contains a cycle: {' -> '.join(cycle)}")


def _check_severity(severity: str, context: str) -> None:
    if severity not in VALID_SEVERITIES:
        msg = f"{context}: invalid severity '{severity}', must be one of {sorted(VALID_SEVERITIES)}"
        raise PlaybookConfigError(msg)


def _check_direction(direction: str, context: str) -> None:
    if direction not in VALID_DIRECTIONS:
        msg = (
            f"{context}: invalid preferred direction '{direction}', "
            f"must be one of {sorted(VALID_DIRECTIONS)}"
        )
        raise PlaybookConfigError(msg)


# ---------------------------------------------------------------------------
# AppliesTo variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExactType:
    """Match one concept type, optionally including its subtypes."""

    concept_type: str
    match_subtypes: bool = False

    def __post_init__(self) -> None:
        if not self.concept_type.strip():
            msg = "appliesTo.conceptType must be a non-empty string"
            raise PlaybookConfigError(msg)


@dataclass(frozen=True)
class TypeSet:
    """Match any type of a finite set."""

    concept_types: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.concept_types or any(not t.strip() for t in self.concept_types):
            msg = "appliesTo.conceptTypes must be a non-empty list of non-empty strings"
            raise PlaybookConfigError(msg)


@dataclass(frozen=True)
class TypePattern:
    """Match types by wildcard pattern (``*`` any run, ``?`` any single character)."""

    pattern: str

    def __post_init__(self) -> None:
        if not self.pattern:
            msg = "appliesTo.conceptPattern must be a non-empty string"
            raise PlaybookConfigError(msg)


@dataclass(frozen=True)
class SubtypeOf:
    """Match any (transitive) subtype of a base type."""

    base_type: str

    def __post_init__(self) -> None:
        if not self.base_type.strip():
            msg = "appliesTo.anySubtypeOf must be a non-empty string"
            raise PlaybookConfigError(msg)


AppliesTo = ExactType | TypeSet | TypePattern | SubtypeOf


def describe_applies_to(applies_to: AppliesTo) -> str:
    """Return a short human-readable rendering of an AppliesTo variant."""
    if isinstance(applies_to, ExactType):
        suffix = " (+subtypes)" if applies_to.match_subtypes else ""
        return f"{applies_to.concept_type}{suffix}"
    if isinstance(applies_to, TypeSet):
        return " | ".join(applies_to.concept_types)
    if isinstance(applies_to, TypePattern):
        return f"pattern: {applies_to.pattern}"
    return f"subtypes of {applies_to.base_type}"


# ---------------------------------------------------------------------------
# Description schema
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PropertyConstraint:
    """Presence, cardinality, and target-type constraint on one property."""

    property_name: str
    required: bool = False
    min_occurrences: int | None = None
    max_occurrences: int | None = None
    target_must_be: str | None = None
    target_must_be_one_of: tuple[str, ...] = ()
    target_match_subtypes: bool = False

    def __post_init__(self) -> None:
        if not self.property_name.strip():
            msg = "constraint property must be a non-empty string"
            raise PlaybookConfigError(msg)
        for label, bound in (
            ("minOccurrences", self.min_occurrences),
            ("maxOccurrences", self.max_occurrences),
        ):
            if bound is not None and bound < 0:
                msg = f"Property '{self.property_name}': {label} must be non-negative"
                raise PlaybookConfigError(msg)
        if (
            self.min_occurrences is not None
            and self.max_occurrences is not None
            and self.max_occurrences < self.min_occurrences
        ):
            msg = (
                f"Property '{self.property_name}': maxOccurrences ({self.max_occurrences}) "
                f"must be greater than or equal to minOccurrences ({self.min_occurrences})"
            )
            raise PlaybookConfigError(msg)


@dataclass(frozen=True)
class Constraint:
    """A description-level rule: which instances it targets and what it enforces."""

    id: str
    message: str
    applies_to: AppliesTo
    constraints: tuple[PropertyConstraint, ...] = ()
    severity: Severity = "error"
    rationale: str | None = None

    def __post_init__(self) -> None:
        if not self.id.strip():
            msg = "constraint id must be a non-empty string"
            raise PlaybookConfigError(msg)
        _check_severity(self.severity, f"Constraint '{self.id}'")


@dataclass(frozen=True)
class RoutingHint:
    """Placement priority of a concept within a document (1 = primary)."""

    concept: str
    priority: int = 1


@dataclass(frozen=True)
class DescriptionSchema:
    """What a single data document may contain and which constraints apply to it."""

    file: str
    purpose: str = ""
    allowed_types: tuple[str, ...] = ()
    routing: tuple[RoutingHint, ...] = ()
    constraints: tuple[Constraint, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for constraint in self.constraints:
            if constraint.id in seen:
                msg = f"Description '{self.file}': duplicate constraint id '{constraint.id}'"
                raise PlaybookConfigError(msg)
            seen.add(constraint.id)


# ---------------------------------------------------------------------------
# Methodology rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RelationRule:
    """A bidirectional relation and the direction the methodology prefers."""

    forward_relation: str
    reverse_relation: str
    owning_concept: str
    preferred_direction: Direction
    rationale: str | None = None
    source_file: str | None = None

    def __post_init__(self) -> None:
        context = f"Relation rule '{self.forward_relation}'"
        if not self.forward_relation.strip() or not self.reverse_relation.strip():
            msg = f"{context}: forward and reverse relation names are required"
            raise PlaybookConfigError(msg)
        if self.forward_relation == self.reverse_relation:
            msg = f"{context}: forward and reverse relation names must differ"
            raise PlaybookConfigError(msg)
        _check_direction(self.preferred_direction, context)

    @property
    def preferred_relation(self) -> str:
        if self.preferred_direction == "forward":
            return self.forward_relation
        return self.reverse_relation


@dataclass(frozen=True)
class RelationEntityRule:
    """Reified relation: instances of the relation entity itself."""

    relation_entity: str
    forward_relation: str
    reverse_relation: str
    from_concept: str
    to_concept: str
    preferred_direction: Direction
    rationale: str | None = None
    source_file: str | None = None

    def __post_init__(self) -> None:
        _check_direction(self.preferred_direction, f"Relation entity rule '{self.relation_entity}'")


@dataclass(frozen=True)
class ConceptRule:
    """Instantiation guidance for a concept."""

    concept: str
    required_properties: tuple[str, ...] = ()
    recommended_properties: tuple[str, ...] = ()
    description_file_pattern: str | None = None
    container_concept: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Cardinality:
    """Cardinality restriction on a containment."""

    min: int | None = None
    max: int | None = None
    exactly: int | None = None


@dataclass(frozen=True)
class ContainmentRule:
    """A container concept and the concepts it contains."""

    container: str
    contained: tuple[str, ...]
    relation: str
    cardinality: Cardinality | None = None
    source_file: str | None = None


@dataclass(frozen=True)
class AllocationRule:
    """Allocation/assignment rule (e.g. an activity is allocated to an entity)."""

    subject: str
    target: str
    relation: str
    reverse_relation: str
    owning_concept: str
    preferred_direction: Direction
    rationale: str | None = None

    def __post_init__(self) -> None:
        _check_direction(self.preferred_direction, f"Allocation rule '{self.relation}'")


# ---------------------------------------------------------------------------
# Playbook
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlaybookMetadata:
    """Methodology name, version, and provenance of the playbook."""

    methodology: str
    version: str
    generated_at: str | None = None
    source_vocabularies: tuple[str, ...] = ()


@dataclass(frozen=True)
class Playbook:
    """The complete declarative rule document.

    Immutable for the duration of a validation run.
    """

    metadata: PlaybookMetadata
    relation_rules: tuple[RelationRule, ...] = ()
    relation_entity_rules: tuple[RelationEntityRule, ...] = ()
    concept_rules: tuple[ConceptRule, ...] = ()
    containment_rules: tuple[ContainmentRule, ...] = ()
    allocation_rules: tuple[AllocationRule, ...] = ()
    descriptions: dict[str, DescriptionSchema] = field(default_factory=dict)

    def all_constraints(self) -> list[Constraint]:
        """Every description constraint, in document-key order then declaration order."""
        return [c for key in sorted(self.descriptions) for c in self.descriptions[key].constraints]
