# methodloom:domain=engine
"""Applicability matcher and rule resolver.

Decides which description constraints apply to a concrete type and orders
them deterministically by specificity.  All functions are pure.
"""

from __future__ import annotations

import enum
import functools
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from methodloom.playbook.model import (
    ExactType,
    SubtypeOf,
    TypeHierarchyCycleError,
    TypePattern,
    TypeSet,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from methodloom.playbook.model import AppliesTo, Constraint

logger = logging.getLogger(__name__)


class Specificity(enum.IntEnum):
    """Precedence score of a match; higher is more specific."""

    EXACT_TYPE = 1000
    EXACT_TYPE_WITH_SUBTYPES = 500
    TYPE_SET = 250
    PATTERN = 100
    SUBTYPE_OF = 50
    NO_MATCH = 0


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one type against one AppliesTo selector."""

    matches: bool
    specificity: Specificity
    reason: str = ""


@dataclass(frozen=True)
class RuleMatch:
    """A constraint that applies to a type, with the specificity it matched at."""

    rule: Constraint
    specificity: Specificity
    reason: str


NO_MATCH = MatchResult(matches=False, specificity=Specificity.NO_MATCH)

# ---------------------------------------------------------------------------
# Type hierarchy
# ---------------------------------------------------------------------------


def is_subtype_of(
    child: str,
    parent: str,
    hierarchy: Mapping[str, Sequence[str]] | None,
) -> bool:
    """Return True if *child* equals *parent* or reaches it through the hierarchy.

    Walks child -> parents -> grandparents depth-first.  Without a hierarchy,
    or with an empty one, nothing is a subtype of anything, not even itself.

    Raises
    ------
    TypeHierarchyCycleError
        If the walk revisits a type already on the current path.
    """
    if not hierarchy:
        return False
    if child == parent:
        return True
    return _reaches(child, parent, hierarchy, [child], set())


def _reaches(
    node: str,
    target: str,
    hierarchy: Mapping[str, Sequence[str]],
    path: list[str],
    exhausted: set[str],
) -> bool:
    for parent in hierarchy.get(node, ()):
        if parent == target:
            return True
        if parent in path:
            raise TypeHierarchyCycleError((*path[path.index(parent) :], parent))
        if parent in exhausted:
            continue
        path.append(parent)
        found = _reaches(parent, target, hierarchy, path, exhausted)
        path.pop()
        if found:
            return True
        exhausted.add(parent)
    return False


def find_hierarchy_cycle(hierarchy: Mapping[str, Sequence[str]]) -> tuple[str, ...] | None:
    """Return one cycle of the hierarchy (first found in sorted order), or None."""
    finished: set[str] = set()

    def _visit(node: str, path: list[str]) -> tuple[str, ...] | None:
        for parent in hierarchy.get(node, ()):
            if parent in path:
                return (*path[path.index(parent) :], parent)
            if parent in finished:
                continue
            path.append(parent)
            cycle = _visit(parent, path)
            path.pop()
            if cycle is not None:
                return cycle
        finished.add(node)
        return None

    for root in sorted(hierarchy):
        if root in finished:
            continue
        cycle = _visit(root, [root])
        if cycle is not None:
            return cycle
    return None


def check_hierarchy(hierarchy: Mapping[str, Sequence[str]] | None) -> None:
    """Raise :class:`TypeHierarchyCycleError` if the hierarchy is cyclic."""
    if not hierarchy:
        return
    cycle = find_hierarchy_cycle(hierarchy)
    if cycle is not None:
        raise TypeHierarchyCycleError(cycle)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=256)
def pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a wildcard pattern: ``*`` any run, ``?`` one character, rest literal."""
    parts: list[str] = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def match_applies_to(
    type_name: str,
    applies_to: AppliesTo,
    hierarchy: Mapping[str, Sequence[str]] | None = None,
) -> MatchResult:
    """Score whether *applies_to* matches *type_name*.

    Exact equality scores 1000, or 500 when the AppliesTo opts into subtypes;
    a subtype reached through ``match_subtypes`` scores 500; set membership
    250; a wildcard pattern 100; ``any subtype of`` 50.
    """
    if isinstance(applies_to, ExactType):
        if type_name == applies_to.concept_type:
            if applies_to.match_subtypes:
                return MatchResult(
                    True, Specificity.EXACT_TYPE_WITH_SUBTYPES, f"Exact match: {type_name}"
                )
            return MatchResult(True, Specificity.EXACT_TYPE, f"Exact match: {type_name}")
        if applies_to.match_subtypes and is_subtype_of(
            type_name, applies_to.concept_type, hierarchy
        ):
            return MatchResult(
                True,
                Specificity.EXACT_TYPE_WITH_SUBTYPES,
                f"Subtype match: {type_name} is subtype of {applies_to.concept_type}",
            )
        return NO_MATCH

    if isinstance(applies_to, TypeSet):
        if type_name in applies_to.concept_types:
            return MatchResult(
                True, Specificity.TYPE_SET, f"One of: {', '.join(applies_to.concept_types)}"
            )
        return NO_MATCH

    if isinstance(applies_to, TypePattern):
        if pattern_to_regex(applies_to.pattern).fullmatch(type_name):
            return MatchResult(True, Specificity.PATTERN, f"Pattern match: {applies_to.pattern}")
        return NO_MATCH

    if isinstance(applies_to, SubtypeOf) and is_subtype_of(
        type_name, applies_to.base_type, hierarchy
    ):
        return MatchResult(True, Specificity.SUBTYPE_OF, f"Subtype of: {applies_to.base_type}")
    return NO_MATCH


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _precedence(match: RuleMatch) -> tuple[int, str]:
    return (-int(match.specificity), match.rule.id)


def resolve_rules(
    type_name: str,
    rules: Iterable[Constraint],
    hierarchy: Mapping[str, Sequence[str]] | None = None,
) -> list[RuleMatch]:
    """Return the rules applicable to *type_name*, most specific first.

    Ties on specificity are broken by ascending rule id, so the order is
    independent of the order in which *rules* are supplied.
    """
    matches: list[RuleMatch] = []
    for rule in rules:
        result = match_applies_to(type_name, rule.applies_to, hierarchy)
        if result.matches:
            matches.append(RuleMatch(rule=rule, specificity=result.specificity, reason=result.reason))
    matches.sort(key=_precedence)
    return matches


def resolve_rules_for_types(
    type_names: Iterable[str],
    rules: Sequence[Constraint],
    hierarchy: Mapping[str, Sequence[str]] | None = None,
) -> list[RuleMatch]:
    """Union of applicable rules over several declared types.

    A rule reached through more than one type is kept once, at the highest
    specificity it matched with.
    """
    best: dict[str, RuleMatch] = {}
    for type_name in type_names:
        for match in resolve_rules(type_name, rules, hierarchy):
            current = best.get(match.rule.id)
            if current is None or match.specificity > current.specificity:
                best[match.rule.id] = match
            logger.debug("Rule %s applies to %s: %s", match.rule.id, type_name, match.reason)
    return sorted(best.values(), key=_precedence)
