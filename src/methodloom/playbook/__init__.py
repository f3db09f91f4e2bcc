"""Playbook domain: typed rule document, YAML loader, discovery and listing helpers."""

# methodloom:domain=playbook

from methodloom.playbook.loader import (
    ConstraintInfo,
    find_constraint,
    find_description_schema,
    find_playbook,
    list_constraints,
    load_playbook,
    parse_applies_to,
    parse_playbook,
)
from methodloom.playbook.model import (
    AllocationRule,
    AppliesTo,
    ConceptRule,
    Constraint,
    ContainmentRule,
    DescriptionSchema,
    ExactType,
    Playbook,
    PlaybookConfigError,
    PlaybookMetadata,
    PropertyConstraint,
    RelationEntityRule,
    RelationRule,
    RoutingHint,
    SubtypeOf,
    TypeHierarchyCycleError,
    TypePattern,
    TypeSet,
    describe_applies_to,
)

__all__ = [
    "AllocationRule",
    "AppliesTo",
    "ConceptRule",
    "Constraint",
    "ConstraintInfo",
    "ContainmentRule",
    "DescriptionSchema",
    "ExactType",
    "Playbook",
    "PlaybookConfigError",
    "PlaybookMetadata",
    "PropertyConstraint",
    "RelationEntityRule",
    "RelationRule",
    "RoutingHint",
    "SubtypeOf",
    "TypeHierarchyCycleError",
    "TypePattern",
    "TypeSet",
    "describe_applies_to",
    "find_constraint",
    "find_description_schema",
    "find_playbook",
    "list_constraints",
    "load_playbook",
    "parse_applies_to",
    "parse_playbook",
]
