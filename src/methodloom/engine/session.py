# methodloom:domain=engine
"""Validation session: run every check over one document and merge the results."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from methodloom.engine.aliases import canonicalize
from methodloom.engine.constraints import (
    check_allowed_types,
    check_property_constraint,
    check_target_types,
    property_matches,
)
from methodloom.engine.direction import RelationIndex, validate_directions
from methodloom.engine.facts import Assertion, Facts
from methodloom.engine.matcher import check_hierarchy, resolve_rules_for_types
from methodloom.engine.report import Location, ValidationReport, Violation
from methodloom.playbook.loader import find_description_schema
from methodloom.playbook.model import PlaybookConfigError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from methodloom.engine.facts import InstanceInfo
    from methodloom.playbook.model import DescriptionSchema, Playbook

logger = logging.getLogger(__name__)


def _instance_type_map(instances: Iterable[InstanceInfo]) -> dict[str, tuple[str, ...]]:
    types: dict[str, tuple[str, ...]] = {}
    for inst in instances:
        merged = list(types.get(inst.name, ()))
        merged.extend(t for t in inst.types if t not in merged)
        types[inst.name] = tuple(merged)
    return types


def _check_schema_constraints(
    facts: Facts,
    schema: DescriptionSchema,
    instance_types: Mapping[str, Sequence[str]],
) -> list[Violation]:
    """Evaluate every applicable constraint of *schema* for every instance."""
    violations: list[Violation] = []
    by_instance: dict[str, list[Assertion]] = {}
    for assertion in facts.assertions:
        by_instance.setdefault(assertion.instance_name, []).append(assertion)

    for inst in facts.instances:
        owned = by_instance.get(inst.name, [])
        for match in resolve_rules_for_types(inst.types, schema.constraints, facts.hierarchy):
            rule = match.rule
            for pc in rule.constraints:
                matching = [
                    a
                    for a in owned
                    if property_matches(pc.property_name, a.property_name, facts.prefixes)
                ]
                values = tuple(v for a in matching for v in a.values)
                merged = Assertion(
                    instance_name=inst.name,
                    property_name=(
                        matching[0].property_name
                        if matching
                        else canonicalize(pc.property_name, facts.prefixes)
                    ),
                    values=values,
                    instance_types=inst.types,
                    line=matching[0].line if matching else inst.line,
                )

                result = check_property_constraint(merged, pc, facts.prefixes)
                if not result.is_valid:
                    violations.append(
                        Violation(
                            kind=result.kind or "missing_property",  # type: ignore[arg-type]
                            location=Location(
                                document=facts.document, line=merged.line, instance=inst.name
                            ),
                            rule=rule.id,
                            message=f"{rule.message}: {result.reason}",
                            severity=rule.severity,
                        )
                    )

                if values:
                    violations.extend(
                        check_target_types(
                            merged,
                            pc,
                            rule,
                            instance_types,
                            document=facts.document,
                            prefixes=facts.prefixes,
                            hierarchy=facts.hierarchy,
                        )
                    )
    return violations


def run_validation(
    playbook: Playbook,
    facts: Facts,
    *,
    schema_key: str | None = None,
) -> ValidationReport:
    """Validate one document's facts against *playbook*.

    The description schema is *schema_key* when given, otherwise the one
    :func:`find_description_schema` selects for ``facts.document``.  With no
    schema only relation directions are checked.  Every instance and
    assertion is checked; the run never stops at the first violation.

    Raises
    ------
    PlaybookConfigError
        If the playbook is malformed or the type hierarchy is cyclic.
    """
    index = RelationIndex.build(playbook.relation_rules)
    canonical = facts.canonical()
    check_hierarchy(canonical.hierarchy)

    if schema_key is not None:
        schema = playbook.descriptions.get(schema_key)
        if schema is None:
            msg = f"Playbook has no description schema '{schema_key}'"
            raise PlaybookConfigError(msg)
    else:
        schema = find_description_schema(playbook, canonical.document)

    instance_types = _instance_type_map(canonical.instances)
    violations: list[Violation] = []

    if schema is None:
        logger.debug("No description schema for %s; checking directions only", canonical.document)
    else:
        logger.debug(
            "Validating %s against schema %s (%d constraints)",
            canonical.document,
            schema.file,
            len(schema.constraints),
        )
        violations.extend(_check_schema_constraints(canonical, schema, instance_types))
        violations.extend(
            check_allowed_types(
                canonical.instances,
                schema,
                document=canonical.document,
                prefixes=canonical.prefixes,
            )
        )

    direction_violations, corrections = validate_directions(
        canonical.assertions,
        index,
        document=canonical.document,
        known_instances=instance_types.keys(),
    )
    violations.extend(direction_violations)

    logger.info(
        "Validated %s: %d violations, %d corrections",
        canonical.document,
        len(violations),
        len(corrections),
    )
    return ValidationReport(
        document=canonical.document,
        violations=tuple(violations),
        corrections=tuple(corrections),
        schema=schema.file if schema is not None else None,
    )


def validate(
    playbook: Playbook,
    instances: Iterable[InstanceInfo],
    assertions: Iterable[Assertion],
    *,
    document: str = "unknown",
    prefixes: Mapping[str, str] | None = None,
    hierarchy: Mapping[str, Sequence[str]] | None = None,
    schema_key: str | None = None,
) -> ValidationReport:
    """Convenience wrapper around :func:`run_validation` taking the facts piecewise."""
    facts = Facts(
        document=document,
        instances=tuple(instances),
        assertions=tuple(assertions),
        prefixes=dict(prefixes or {}),
        hierarchy={k: tuple(v) for k, v in (hierarchy or {}).items()},
    )
    return run_validation(playbook, facts, schema_key=schema_key)
