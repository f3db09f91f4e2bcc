# methodloom:domain=engine
"""Relation direction: lookup index, validator/corrector, single-assertion advice."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from methodloom.engine.aliases import canonicalize, local_name
from methodloom.engine.report import Correction, Edit, Location, Violation, describe_edit
from methodloom.playbook.model import PlaybookConfigError

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from methodloom.engine.facts import Assertion
    from methodloom.playbook.model import Direction, Playbook, RelationRule

logger = logging.getLogger(__name__)

DIRECTION_RULE = "relation-direction"

# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RelationHit:
    """A relation name resolved to its rule and the end of the rule it names."""

    rule: RelationRule
    direction: Direction

    @property
    def is_preferred(self) -> bool:
        return self.direction == self.rule.preferred_direction

    @property
    def stated_relation(self) -> str:
        if self.direction == "forward":
            return self.rule.forward_relation
        return self.rule.reverse_relation


@dataclass(frozen=True)
class RelationIndex:
    """Forward-name and reverse-name lookups over a set of relation rules.

    Built per validation call and passed explicitly; every name is stored
    in its full form and, when qualified, its short (local) form.
    """

    forward: Mapping[str, RelationRule]
    reverse: Mapping[str, RelationRule]

    @classmethod
    def build(cls, rules: Iterable[RelationRule]) -> RelationIndex:
        """Index *rules*, rejecting names that are ambiguous between rules.

        Raises
        ------
        PlaybookConfigError
            If a full relation name is declared more than once, or a short
            name is a forward name of one rule and a reverse name of another.
        """
        rules = tuple(rules)
        forward: dict[str, RelationRule] = {}
        reverse: dict[str, RelationRule] = {}

        for rule in rules:
            for name, table in ((rule.forward_relation, forward), (rule.reverse_relation, reverse)):
                if name in forward or name in reverse:
                    msg = (
                        f"Relation name '{name}' is declared by more than one relation rule; "
                        f"forward and reverse names must be globally unique"
                    )
                    raise PlaybookConfigError(msg)
                table[name] = rule

        for rule in rules:
            for name, table, opposite in (
                (rule.forward_relation, forward, reverse),
                (rule.reverse_relation, reverse, forward),
            ):
                short = local_name(name)
                if short == name:
                    continue
                if short in opposite:
                    msg = (
                        f"Relation name '{short}' is both a forward and a reverse relation "
                        f"name (via '{name}'); direction would be ambiguous"
                    )
                    raise PlaybookConfigError(msg)
                if short in table:
                    logger.debug("Short relation name %r already bound; keeping first rule", short)
                    continue
                table[short] = rule

        return cls(forward=forward, reverse=reverse)

    def lookup(self, relation_name: str) -> RelationHit | None:
        rule = self.forward.get(relation_name)
        if rule is not None:
            return RelationHit(rule=rule, direction="forward")
        rule = self.reverse.get(relation_name)
        if rule is not None:
            return RelationHit(rule=rule, direction="reverse")
        return None


# ---------------------------------------------------------------------------
# Validation over a document
# ---------------------------------------------------------------------------


def validate_directions(
    assertions: Iterable[Assertion],
    index: RelationIndex,
    *,
    document: str,
    known_instances: Collection[str] = (),
) -> tuple[list[Violation], list[Correction]]:
    """Detect assertions stated in the non-preferred direction and propose moves.

    Each offending assertion yields one ``wrong_direction`` violation and,
    per referenced value, a correction that removes the assertion from the
    source and adds the inverse relation on the referenced instance.  When
    the referenced instance is not among *known_instances* the correction is
    marked advisory.
    """
    violations: list[Violation] = []
    corrections: list[Correction] = []

    for assertion in assertions:
        hit = index.lookup(assertion.property_name)
        if hit is None or hit.is_preferred:
            continue

        rule = hit.rule
        current = assertion.property_name
        preferred = rule.preferred_relation
        logger.debug(
            "Wrong direction on %s: %s (preferred %s)", assertion.instance_name, current, preferred
        )
        violations.append(
            Violation(
                kind="wrong_direction",
                location=Location(
                    document=document, line=assertion.line, instance=assertion.instance_name
                ),
                rule=DIRECTION_RULE,
                message=(
                    f'Instance "{assertion.instance_name}" uses "{current}" but the playbook '
                    f'specifies "{preferred}". Move this assertion to the target instance '
                    f"using the {rule.preferred_direction} relation."
                ),
                severity="warning",
            )
        )

        for value in assertion.values:
            remove = Edit(instance=assertion.instance_name, property=current, value=value)
            add = Edit(instance=value, property=preferred, value=assertion.instance_name)
            advisory = value not in known_instances
            explanation = f'Move "{describe_edit(remove)}" to "{describe_edit(add)}"'
            if advisory:
                explanation += f'; "{value}" is not defined in this document, verify it exists'
            corrections.append(
                Correction(
                    violation_kind="wrong_direction",
                    explanation=explanation,
                    remove=remove,
                    add=add,
                    advisory=advisory,
                )
            )

    return violations, corrections


# ---------------------------------------------------------------------------
# Single-assertion queries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DirectionAdvice:
    """Whether one proposed relation is stated in the preferred direction."""

    is_correct: bool
    suggestion: str | None = None
    correct_relation: str | None = None
    correct_owner: str | None = None


@dataclass(frozen=True)
class AssertionTriple:
    """``source [ relation target ]``."""

    source_instance: str
    relation: str
    target_instance: str


@dataclass(frozen=True)
class ReformatResult:
    """A proposed assertion, swapped into the preferred direction if needed."""

    reformatted: bool
    result: AssertionTriple
    explanation: str | None = None


def check_assertion_direction(
    playbook: Playbook,
    instance_type: str,
    relation_name: str,
    target_type: str,
    *,
    prefixes: Mapping[str, str] | None = None,
) -> DirectionAdvice:
    """Advise on one relation without a full document.

    Relations without a rule are considered correct.
    """
    index = RelationIndex.build(playbook.relation_rules)
    hit = index.lookup(canonicalize(relation_name, prefixes))
    if hit is None or hit.is_preferred:
        return DirectionAdvice(is_correct=True)

    correct = hit.rule.preferred_relation
    return DirectionAdvice(
        is_correct=False,
        suggestion=(
            f'Use "{correct}" from the {target_type} instance instead of '
            f'"{relation_name}" on the {instance_type} instance'
        ),
        correct_relation=correct,
        correct_owner=hit.rule.owning_concept or None,
    )


def intercept_and_reformat(
    playbook: Playbook,
    source_instance: str,
    source_type: str,
    relation: str,
    target_instance: str,
    target_type: str,
    *,
    prefixes: Mapping[str, str] | None = None,
) -> ReformatResult:
    """Return the proposed assertion unchanged, or swapped into the preferred direction."""
    advice = check_assertion_direction(
        playbook, source_type, relation, target_type, prefixes=prefixes
    )
    if advice.is_correct or advice.correct_relation is None:
        return ReformatResult(
            reformatted=False,
            result=AssertionTriple(source_instance, relation, target_instance),
        )

    swapped = AssertionTriple(target_instance, advice.correct_relation, source_instance)
    return ReformatResult(
        reformatted=True,
        result=swapped,
        explanation=(
            f'Reformatted from "{source_instance} [ {relation} {target_instance} ]" '
            f'to "{swapped.source_instance} [ {swapped.relation} {swapped.target_instance} ]" '
            f"per playbook rules."
        ),
    )
