# methodloom:domain=playbook
"""Playbook loader: parse YAML/JSON playbooks, enforce load-time checks, discovery helpers."""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from methodloom.playbook.model import (
    AllocationRule,
    AppliesTo,
    Cardinality,
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
    TypePattern,
    TypeSet,
    describe_applies_to,
)

logger = logging.getLogger(__name__)

PLAYBOOK_SUFFIXES: tuple[str, ...] = ("_playbook.yaml", "_playbook.yml")
DEFAULT_PLAYBOOK_NAMES: tuple[str, ...] = ("methodology_playbook.yaml", "methodology_playbook.yml")

# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _mapping(value: object, context: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        msg = f"{context} must be a mapping"
        raise PlaybookConfigError(msg)
    return value


def _list(value: object, context: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"{context} must be a list"
        raise PlaybookConfigError(msg)
    return value


def _required_str(data: dict[str, Any], key: str, context: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        msg = f"{context}: missing required '{key}' field"
        raise PlaybookConfigError(msg)
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return str(value) if value is not None else None


def _str_tuple(value: object, context: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in _list(value, context))


def _optional_bool(data: dict[str, Any], key: str, context: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        msg = f"{context}: '{key}' must be a boolean"
        raise PlaybookConfigError(msg)
    return value


def _optional_int(data: dict[str, Any], key: str, context: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{context}: '{key}' must be an integer"
        raise PlaybookConfigError(msg)
    return value


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def parse_applies_to(data: object, context: str) -> AppliesTo:
    """Parse an ``appliesTo`` mapping into exactly one matching strategy.

    Raises :class:`PlaybookConfigError` when none, or more than one, of
    ``conceptType``, ``conceptTypes``, ``conceptPattern``, ``anySubtypeOf``
    is populated.
    """
    raw = _mapping(data, f"{context}.appliesTo")
    concept_type = raw.get("conceptType")
    concept_types = raw.get("conceptTypes")
    pattern = raw.get("conceptPattern")
    base_type = raw.get("anySubtypeOf")

    populated = [
        key
        for key, value in (
            ("conceptType", concept_type),
            ("conceptTypes", concept_types),
            ("conceptPattern", pattern),
            ("anySubtypeOf", base_type),
        )
        if value
    ]
    if not populated:
        msg = (
            f"{context}.appliesTo: at least one matching strategy must be specified "
            f"(conceptType, conceptTypes, conceptPattern, or anySubtypeOf)"
        )
        raise PlaybookConfigError(msg)
    if len(populated) > 1:
        msg = f"{context}.appliesTo: exactly one matching strategy allowed, got {populated}"
        raise PlaybookConfigError(msg)

    if concept_type:
        match_subtypes = _optional_bool(raw, "matchSubtypes", f"{context}.appliesTo")
        return ExactType(str(concept_type), match_subtypes=match_subtypes)
    if concept_types:
        return TypeSet(_str_tuple(concept_types, f"{context}.appliesTo.conceptTypes"))
    if pattern:
        return TypePattern(str(pattern))
    return SubtypeOf(str(base_type))


def _parse_property_constraint(data: object, context: str) -> PropertyConstraint:
    raw = _mapping(data, context)
    return PropertyConstraint(
        property_name=_required_str(raw, "property", context),
        required=_optional_bool(raw, "required", context),
        min_occurrences=_optional_int(raw, "minOccurrences", context),
        max_occurrences=_optional_int(raw, "maxOccurrences", context),
        target_must_be=_optional_str(raw, "targetMustBe"),
        target_must_be_one_of=_str_tuple(raw.get("targetMustBeOneOf"), f"{context}.targetMustBeOneOf"),
        target_match_subtypes=_optional_bool(raw, "targetMatchSubtypes", context),
    )


def _parse_constraint(data: object, context: str) -> Constraint:
    raw = _mapping(data, context)
    rule_id = _required_str(raw, "id", context)
    ctx = f"{context} '{rule_id}'"
    property_constraints = tuple(
        _parse_property_constraint(item, f"{ctx}.constraints[{idx}]")
        for idx, item in enumerate(_list(raw.get("constraints"), f"{ctx}.constraints"))
    )
    if not property_constraints:
        msg = f"{ctx}: 'constraints' must list at least one property constraint"
        raise PlaybookConfigError(msg)
    return Constraint(
        id=rule_id,
        message=str(raw.get("message", "")),
        applies_to=parse_applies_to(raw.get("appliesTo"), ctx),
        constraints=property_constraints,
        severity=str(raw.get("severity", "error")),  # type: ignore[arg-type]
        rationale=_optional_str(raw, "rationale"),
    )


def _parse_description(key: str, data: object) -> DescriptionSchema:
    context = f"descriptions['{key}']"
    raw = _mapping(data, context)
    routing: list[RoutingHint] = []
    for idx, item in enumerate(_list(raw.get("routing"), f"{context}.routing")):
        hint = _mapping(item, f"{context}.routing[{idx}]")
        priority = _optional_int(hint, "priority", f"{context}.routing[{idx}]")
        routing.append(
            RoutingHint(
                concept=_required_str(hint, "concept", f"{context}.routing[{idx}]"),
                priority=priority if priority is not None else 1,
            )
        )
    constraints = tuple(
        _parse_constraint(item, f"{context}.constraints[{idx}]")
        for idx, item in enumerate(_list(raw.get("constraints"), f"{context}.constraints"))
    )
    allowed_types = _str_tuple(raw.get("allowedTypes"), f"{context}.allowedTypes")
    if not allowed_types:
        msg = f"{context}: 'allowedTypes' must list at least one type"
        raise PlaybookConfigError(msg)
    return DescriptionSchema(
        file=str(raw.get("file", key)),
        purpose=str(raw.get("purpose", "")),
        allowed_types=allowed_types,
        routing=tuple(routing),
        constraints=constraints,
    )


def _parse_relation_rule(data: object, context: str) -> RelationRule:
    raw = _mapping(data, context)
    return RelationRule(
        forward_relation=_required_str(raw, "forwardRelation", context),
        reverse_relation=_required_str(raw, "reverseRelation", context),
        owning_concept=str(raw.get("owningConcept", "")),
        preferred_direction=str(raw.get("preferredDirection", "")),  # type: ignore[arg-type]
        rationale=_optional_str(raw, "rationale"),
        source_file=_optional_str(raw, "sourceFile"),
    )


def _parse_relation_entity_rule(data: object, context: str) -> RelationEntityRule:
    raw = _mapping(data, context)
    return RelationEntityRule(
        relation_entity=_required_str(raw, "relationEntity", context),
        forward_relation=str(raw.get("forwardRelation", "")),
        reverse_relation=str(raw.get("reverseRelation", "")),
        from_concept=str(raw.get("fromConcept", "")),
        to_concept=str(raw.get("toConcept", "")),
        preferred_direction=str(raw.get("preferredDirection", "forward")),  # type: ignore[arg-type]
        rationale=_optional_str(raw, "rationale"),
        source_file=_optional_str(raw, "sourceFile"),
    )


def _parse_concept_rule(data: object, context: str) -> ConceptRule:
    raw = _mapping(data, context)
    return ConceptRule(
        concept=_required_str(raw, "concept", context),
        required_properties=_str_tuple(raw.get("requiredProperties"), context),
        recommended_properties=_str_tuple(raw.get("recommendedProperties"), context),
        description_file_pattern=_optional_str(raw, "descriptionFilePattern"),
        container_concept=_optional_str(raw, "containerConcept"),
        notes=_optional_str(raw, "notes"),
    )


def _parse_containment_rule(data: object, context: str) -> ContainmentRule:
    raw = _mapping(data, context)
    cardinality: Cardinality | None = None
    if raw.get("cardinality") is not None:
        card = _mapping(raw["cardinality"], f"{context}.cardinality")
        cardinality = Cardinality(
            min=_optional_int(card, "min", context),
            max=_optional_int(card, "max", context),
            exactly=_optional_int(card, "exactly", context),
        )
    return ContainmentRule(
        container=_required_str(raw, "container", context),
        contained=_str_tuple(raw.get("contained"), f"{context}.contained"),
        relation=str(raw.get("relation", "")),
        cardinality=cardinality,
        source_file=_optional_str(raw, "sourceFile"),
    )


def _parse_allocation_rule(data: object, context: str) -> AllocationRule:
    raw = _mapping(data, context)
    return AllocationRule(
        subject=_required_str(raw, "subject", context),
        target=_required_str(raw, "target", context),
        relation=_required_str(raw, "relation", context),
        reverse_relation=str(raw.get("reverseRelation", "")),
        owning_concept=str(raw.get("owningConcept", "")),
        preferred_direction=str(raw.get("preferredDirection", "forward")),  # type: ignore[arg-type]
        rationale=_optional_str(raw, "rationale"),
    )


def parse_playbook(data: object) -> Playbook:
    """Build a :class:`Playbook` from an already-deserialized document.

    Runs every load-time check, including global uniqueness of relation
    names, so a returned playbook is safe to validate against.
    """
    from methodloom.engine.direction import RelationIndex

    raw = _mapping(data, "playbook")
    meta_raw = _mapping(raw.get("metadata"), "playbook.metadata")
    metadata = PlaybookMetadata(
        methodology=_required_str(meta_raw, "methodology", "playbook.metadata"),
        version=str(meta_raw.get("version", "")),
        generated_at=_optional_str(meta_raw, "generatedAt"),
        source_vocabularies=_str_tuple(meta_raw.get("sourceVocabularies"), "metadata.sourceVocabularies"),
    )

    def _parse_all(key: str, parser: Any) -> tuple[Any, ...]:
        return tuple(
            parser(item, f"{key}[{idx}]") for idx, item in enumerate(_list(raw.get(key), key))
        )

    descriptions_raw = raw.get("descriptions") or {}
    descriptions = {
        str(key): _parse_description(str(key), value)
        for key, value in _mapping(descriptions_raw, "playbook.descriptions").items()
    }

    playbook = Playbook(
        metadata=metadata,
        relation_rules=_parse_all("relationRules", _parse_relation_rule),
        relation_entity_rules=_parse_all("relationEntityRules", _parse_relation_entity_rule),
        concept_rules=_parse_all("conceptRules", _parse_concept_rule),
        containment_rules=_parse_all("containmentRules", _parse_containment_rule),
        allocation_rules=_parse_all("allocationRules", _parse_allocation_rule),
        descriptions=descriptions,
    )

    # Rejects playbooks where a relation name is ambiguous between rules.
    RelationIndex.build(playbook.relation_rules)
    return playbook


def load_playbook(path: Path) -> Playbook:
    """Load a playbook from a YAML or JSON file.

    Raises :class:`PlaybookConfigError` for unreadable files, syntax errors,
    and every structural defect of the rule set.
    """
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"Cannot read playbook {path}: {exc}"
        raise PlaybookConfigError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"Could not parse playbook {path}: {exc}"
        raise PlaybookConfigError(msg) from exc

    try:
        playbook = parse_playbook(data)
    except PlaybookConfigError as exc:
        msg = f"{path}: {exc}"
        raise PlaybookConfigError(msg) from exc

    logger.info(
        "Loaded playbook %s (%s): %d relation rules, %d description schemas",
        path,
        playbook.metadata.methodology,
        len(playbook.relation_rules),
        len(playbook.descriptions),
    )
    return playbook


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _is_playbook_file(path: Path) -> bool:
    return path.is_file() and (
        path.name in DEFAULT_PLAYBOOK_NAMES or path.name.endswith(PLAYBOOK_SUFFIXES)
    )


def find_playbook(start: Path, *, max_levels: int = 10) -> Path | None:
    """Find the nearest playbook file in *start* or one of its ancestors.

    Within one directory, candidates are considered in sorted name order.
    """
    current = start if start.is_dir() else start.parent
    for _ in range(max_levels):
        candidates = sorted(p for p in current.iterdir() if _is_playbook_file(p))
        if candidates:
            logger.debug("Discovered playbook %s", candidates[0])
            return candidates[0]
        if current.parent == current:
            break
        current = current.parent
    return None


def find_description_schema(playbook: Playbook, document: str) -> DescriptionSchema | None:
    """Return the description schema governing *document*, if any.

    Lookup order: exact key, file basename, then glob keys (sorted) matched
    against the basename or the full document path.
    """
    if document in playbook.descriptions:
        return playbook.descriptions[document]

    basename = PurePosixPath(document.replace("\\", "/")).name
    if basename in playbook.descriptions:
        return playbook.descriptions[basename]

    for key in sorted(playbook.descriptions):
        if "*" in key or "?" in key:
            if fnmatch.fnmatchcase(basename, key) or fnmatch.fnmatchcase(document, key):
                return playbook.descriptions[key]
    return None


@dataclass(frozen=True)
class ConstraintInfo:
    """Flat listing entry for one description constraint."""

    id: str
    message: str
    description_file: str
    applies_to: str
    severity: str
    properties: tuple[str, ...]


def list_constraints(
    playbook: Playbook,
    *,
    description_file: str | None = None,
    property_filter: str | None = None,
) -> list[ConstraintInfo]:
    """List description constraints, optionally filtered by document and property."""
    results: list[ConstraintInfo] = []
    for key in sorted(playbook.descriptions):
        if description_file and description_file not in key:
            continue
        for constraint in playbook.descriptions[key].constraints:
            properties = tuple(pc.property_name for pc in constraint.constraints)
            if property_filter and not any(property_filter in p for p in properties):
                continue
            results.append(
                ConstraintInfo(
                    id=constraint.id,
                    message=constraint.message,
                    description_file=key,
                    applies_to=describe_applies_to(constraint.applies_to),
                    severity=constraint.severity,
                    properties=properties,
                )
            )
    return results


def find_constraint(
    playbook: Playbook, constraint_id: str, *, description_file: str | None = None
) -> tuple[str, Constraint] | None:
    """Find a constraint by id: exact match first, then substring match."""
    keys = [
        k for k in sorted(playbook.descriptions) if not description_file or description_file in k
    ]
    for key in keys:
        for constraint in playbook.descriptions[key].constraints:
            if constraint.id == constraint_id:
                return key, constraint
    for key in keys:
        for constraint in playbook.descriptions[key].constraints:
            if constraint_id in constraint.id or constraint.id in constraint_id:
                return key, constraint
    return None
