# methodloom:domain=engine
"""Property, target-type, and type-allowlist checks for description constraints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from methodloom.engine.aliases import canonicalize, canonicalize_all, split_qualified
from methodloom.engine.matcher import is_subtype_of
from methodloom.engine.report import Location, UnresolvedReferenceWarning, Violation

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from methodloom.engine.facts import Assertion, InstanceInfo
    from methodloom.playbook.model import Constraint, DescriptionSchema, PropertyConstraint

logger = logging.getLogger(__name__)

TYPE_PLACEMENT_RULE = "type-placement"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one property constraint check."""

    is_valid: bool
    reason: str | None = None
    kind: str | None = None  # "missing_property" | "invalid_cardinality"


VALID = CheckResult(is_valid=True)


def property_matches(
    constraint_property: str,
    assertion_property: str,
    prefixes: Mapping[str, str] | None = None,
) -> bool:
    """Return True if a constraint's property names the assertion's property.

    Names are compared after canonicalization; an unqualified constraint
    property also matches any qualified property with the same local name.
    """
    wanted = canonicalize(constraint_property, prefixes)
    actual = canonicalize(assertion_property, prefixes)
    if wanted == actual:
        return True
    prefix, local = split_qualified(wanted)
    return prefix is None and split_qualified(actual)[1] == local


def check_property_constraint(
    assertion: Assertion,
    constraint: PropertyConstraint,
    prefixes: Mapping[str, str] | None = None,
) -> CheckResult:
    """Check presence and cardinality of one assertion against one constraint.

    A constraint on a different property is vacuously satisfied.  Target
    types are not checked here.
    """
    if not property_matches(constraint.property_name, assertion.property_name, prefixes):
        return VALID

    found = len(assertion.values)
    prop = constraint.property_name
    if constraint.required and found == 0:
        return CheckResult(False, f'Property "{prop}" is required but not set', "missing_property")
    if constraint.min_occurrences is not None and found < constraint.min_occurrences:
        return CheckResult(
            False,
            f'Property "{prop}" requires at least {constraint.min_occurrences} value(s), '
            f"found {found}",
            "missing_property" if found == 0 else "invalid_cardinality",
        )
    if constraint.max_occurrences is not None and found > constraint.max_occurrences:
        return CheckResult(
            False,
            f'Property "{prop}" allows at most {constraint.max_occurrences} value(s), '
            f"found {found}",
            "invalid_cardinality",
        )
    return VALID


def _has_expected_type(
    actual_types: Sequence[str],
    expected: Sequence[str],
    *,
    match_subtypes: bool,
    hierarchy: Mapping[str, Sequence[str]] | None,
) -> bool:
    if any(t in expected for t in actual_types):
        return True
    if not match_subtypes or not hierarchy:
        return False
    return any(is_subtype_of(t, e, hierarchy) for t in actual_types for e in expected)


def _check_target_set(
    assertion: Assertion,
    constraint: PropertyConstraint,
    rule: Constraint,
    instance_types: Mapping[str, Sequence[str]],
    expected_raw: tuple[str, ...],
    requirement: str,
    *,
    location: Location,
    prefixes: Mapping[str, str] | None,
    hierarchy: Mapping[str, Sequence[str]] | None,
) -> list[Violation]:
    expected = canonicalize_all(expected_raw, prefixes)
    expected_str = ", ".join(expected_raw)
    violations: list[Violation] = []
    for value in assertion.values:
        actual = instance_types.get(value)
        if actual is None:
            logger.debug(
                "Target %r of %s.%s not found in %s; cannot verify type",
                value,
                assertion.instance_name,
                constraint.property_name,
                location.document,
            )
            violations.append(
                UnresolvedReferenceWarning(
                    location=location,
                    rule=rule.id,
                    reference=value,
                    message=(
                        f'{rule.message}: Property "{constraint.property_name}" references '
                        f'"{value}" which cannot be verified in the current parse scope. '
                        f"Expected: a local instance of type(s) [{expected_str}]"
                    ),
                )
            )
            continue

        actual_types = canonicalize_all(actual, prefixes)
        if _has_expected_type(
            actual_types,
            expected,
            match_subtypes=constraint.target_match_subtypes,
            hierarchy=hierarchy,
        ):
            continue

        violations.append(
            Violation(
                kind="invalid_target_type",
                location=location,
                rule=rule.id,
                message=(
                    f'{rule.message}: Property "{constraint.property_name}" target "{value}" '
                    f"{requirement} but has types [{', '.join(actual_types)}]"
                ),
                severity=rule.severity,
            )
        )
    return violations


def check_target_types(
    assertion: Assertion,
    constraint: PropertyConstraint,
    rule: Constraint,
    instance_types: Mapping[str, Sequence[str]],
    *,
    document: str,
    prefixes: Mapping[str, str] | None = None,
    hierarchy: Mapping[str, Sequence[str]] | None = None,
) -> list[Violation]:
    """Verify the type of every instance referenced by a relation-valued assertion.

    *instance_types* maps instance names of the current document to their
    canonical types.  A reference missing from it yields an
    :class:`UnresolvedReferenceWarning`; references to other documents are
    never confirmed here.  A found instance without an expected type yields
    an ``invalid_target_type`` violation at the rule's severity.

    ``targetMustBe`` and ``targetMustBeOneOf`` are checked independently:
    when both are set a target has to satisfy both, and each check reports
    its own findings.
    """
    location = Location(document=document, line=assertion.line, instance=assertion.instance_name)
    checks: list[tuple[tuple[str, ...], str]] = []
    if constraint.target_must_be is not None:
        checks.append(
            ((constraint.target_must_be,), f'must be of type "{constraint.target_must_be}"')
        )
    if constraint.target_must_be_one_of:
        one_of = constraint.target_must_be_one_of
        checks.append((one_of, f"must be one of [{', '.join(one_of)}]"))

    violations: list[Violation] = []
    for expected_raw, requirement in checks:
        violations.extend(
            _check_target_set(
                assertion,
                constraint,
                rule,
                instance_types,
                expected_raw,
                requirement,
                location=location,
                prefixes=prefixes,
                hierarchy=hierarchy,
            )
        )
    return violations


def is_type_allowed(type_name: str, allowed_types: Iterable[str]) -> bool:
    """Exact, case-sensitive membership of *type_name* in *allowed_types*."""
    return type_name in tuple(allowed_types)


def check_allowed_types(
    instances: Iterable[InstanceInfo],
    schema: DescriptionSchema,
    *,
    document: str,
    prefixes: Mapping[str, str] | None = None,
) -> list[Violation]:
    """Flag every declared instance type outside the schema's allowed set."""
    allowed = canonicalize_all(schema.allowed_types, prefixes)
    violations: list[Violation] = []
    for inst in instances:
        for type_name in inst.types:
            canonical = canonicalize(type_name, prefixes)
            if is_type_allowed(canonical, allowed):
                continue
            violations.append(
                Violation(
                    kind="type_not_allowed",
                    location=Location(document=document, line=inst.line, instance=inst.name),
                    rule=TYPE_PLACEMENT_RULE,
                    message=(
                        f'Instance "{inst.name}" of type "{canonical}" is not allowed in '
                        f'"{schema.file}". Allowed types: {", ".join(schema.allowed_types)}'
                    ),
                    severity="warning",
                )
            )
    return violations
