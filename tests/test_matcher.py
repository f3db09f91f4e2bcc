# methodloom:domain=engine
"""Tests for methodloom.engine.matcher: applicability scoring and rule resolution."""

from __future__ import annotations

import pytest

from methodloom.engine.matcher import (
    Specificity,
    check_hierarchy,
    find_hierarchy_cycle,
    is_subtype_of,
    match_applies_to,
    resolve_rules,
    resolve_rules_for_types,
)
from methodloom.playbook.model import (
    Constraint,
    ExactType,
    PropertyConstraint,
    SubtypeOf,
    TypeHierarchyCycleError,
    TypePattern,
    TypeSet,
)

HIERARCHY = {
    "requirement:SafetyRequirement": ("requirement:Requirement",),
    "requirement:Requirement": ("base:Element",),
}


def _rule(rule_id: str, applies_to: object) -> Constraint:
    return Constraint(
        id=rule_id,
        message=f"rule {rule_id}",
        applies_to=applies_to,  # type: ignore[arg-type]
        constraints=(PropertyConstraint("base:name", required=True),),
    )


# ---------------------------------------------------------------------------
# Specificity
# ---------------------------------------------------------------------------


class TestSpecificity:
    def test_scores_strictly_ordered(self) -> None:
        scores = [
            Specificity.EXACT_TYPE,
            Specificity.EXACT_TYPE_WITH_SUBTYPES,
            Specificity.TYPE_SET,
            Specificity.PATTERN,
            Specificity.SUBTYPE_OF,
            Specificity.NO_MATCH,
        ]
        assert [int(s) for s in scores] == [1000, 500, 250, 100, 50, 0]
        assert scores == sorted(scores, reverse=True)


# ---------------------------------------------------------------------------
# match_applies_to
# ---------------------------------------------------------------------------


class TestExactType:
    def test_exact_match_scores_1000(self) -> None:
        result = match_applies_to(
            "requirement:SafetyRequirement", ExactType("requirement:SafetyRequirement")
        )
        assert result.matches is True
        assert result.specificity == 1000

    def test_different_type_does_not_match(self) -> None:
        result = match_applies_to(
            "requirement:FunctionalRequirement", ExactType("requirement:SafetyRequirement")
        )
        assert result.matches is False
        assert result.specificity == Specificity.NO_MATCH

    def test_exact_match_with_subtypes_flag_scores_500(self) -> None:
        result = match_applies_to(
            "requirement:Requirement",
            ExactType("requirement:Requirement", match_subtypes=True),
            HIERARCHY,
        )
        assert result.matches is True
        assert result.specificity == Specificity.EXACT_TYPE_WITH_SUBTYPES

    def test_subtype_match_scores_500(self) -> None:
        result = match_applies_to(
            "requirement:SafetyRequirement",
            ExactType("requirement:Requirement", match_subtypes=True),
            HIERARCHY,
        )
        assert result.matches is True
        assert result.specificity == 500
        assert "subtype" in result.reason

    def test_transitive_subtype_match(self) -> None:
        result = match_applies_to(
            "requirement:SafetyRequirement",
            ExactType("base:Element", match_subtypes=True),
            HIERARCHY,
        )
        assert result.matches is True

    def test_subtype_without_hierarchy_never_matches(self) -> None:
        result = match_applies_to(
            "requirement:SafetyRequirement",
            ExactType("requirement:Requirement", match_subtypes=True),
        )
        assert result.matches is False

    def test_subtype_not_considered_without_flag(self) -> None:
        result = match_applies_to(
            "requirement:SafetyRequirement", ExactType("requirement:Requirement"), HIERARCHY
        )
        assert result.matches is False


class TestTypeSet:
    def test_member_scores_250(self) -> None:
        result = match_applies_to("base:Subsystem", TypeSet(("base:Component", "base:Subsystem")))
        assert result.matches is True
        assert result.specificity == Specificity.TYPE_SET

    def test_non_member(self) -> None:
        result = match_applies_to("base:Port", TypeSet(("base:Component", "base:Subsystem")))
        assert result.matches is False


class TestTypePattern:
    def test_star_suffix_pattern(self) -> None:
        result = match_applies_to("requirement:SafetyRequirement", TypePattern("*Requirement"))
        assert result.matches is True
        assert result.specificity == 100

    def test_pattern_not_matching(self) -> None:
        result = match_applies_to("requirement:SafetyRequirement", TypePattern("*Component"))
        assert result.matches is False

    def test_question_mark_is_single_character(self) -> None:
        assert match_applies_to("req:R1", TypePattern("req:R?")).matches is True
        assert match_applies_to("req:R12", TypePattern("req:R?")).matches is False

    def test_pattern_is_anchored(self) -> None:
        result = match_applies_to("requirement:RequirementSet", TypePattern("*Requirement"))
        assert result.matches is False

    def test_regex_characters_are_literal(self) -> None:
        assert match_applies_to("axb", TypePattern("a.b")).matches is False
        assert match_applies_to("a.b", TypePattern("a.b")).matches is True
        assert match_applies_to("a+b", TypePattern("a+b")).matches is True


class TestSubtypeOf:
    def test_transitive_subtype_scores_50(self) -> None:
        result = match_applies_to(
            "requirement:SafetyRequirement", SubtypeOf("base:Element"), HIERARCHY
        )
        assert result.matches is True
        assert result.specificity == Specificity.SUBTYPE_OF

    def test_unrelated_type(self) -> None:
        result = match_applies_to("base:Component", SubtypeOf("base:Element"), HIERARCHY)
        assert result.matches is False

    def test_no_hierarchy_never_matches(self) -> None:
        result = match_applies_to("requirement:SafetyRequirement", SubtypeOf("base:Element"))
        assert result.matches is False


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


class TestHierarchy:
    def test_is_subtype_of_reflexive(self) -> None:
        assert is_subtype_of("a", "a", {"a": ("b",)}) is True

    def test_is_subtype_of_without_hierarchy(self) -> None:
        assert is_subtype_of("a", "b", None) is False

    @pytest.mark.parametrize("hierarchy", [None, {}])
    def test_missing_or_empty_hierarchy_matches_nothing(
        self, hierarchy: dict[str, tuple[str, ...]] | None
    ) -> None:
        assert is_subtype_of("a", "a", hierarchy) is False
        assert match_applies_to("a", SubtypeOf("a"), hierarchy).matches is False

    def test_diamond_is_not_a_cycle(self) -> None:
        diamond = {"D": ("B", "C"), "B": ("A",), "C": ("A",)}
        assert is_subtype_of("D", "A", diamond) is True
        assert is_subtype_of("D", "Z", diamond) is False
        assert find_hierarchy_cycle(diamond) is None
        check_hierarchy(diamond)

    def test_cycle_raises_during_walk(self) -> None:
        cyclic = {"A": ("B",), "B": ("A",)}
        with pytest.raises(TypeHierarchyCycleError) as exc_info:
            is_subtype_of("A", "C", cyclic)
        assert exc_info.value.cycle == ("A", "B", "A")
        assert "cycle" in str(exc_info.value)

    def test_self_loop_detected(self) -> None:
        with pytest.raises(TypeHierarchyCycleError):
            check_hierarchy({"A": ("A",)})

    def test_find_cycle_is_deterministic(self) -> None:
        cyclic = {"C": ("A",), "A": ("B",), "B": ("C",)}
        assert find_hierarchy_cycle(cyclic) == ("A", "B", "C", "A")

    def test_cycle_error_is_config_error(self) -> None:
        from methodloom.playbook.model import PlaybookConfigError

        assert issubclass(TypeHierarchyCycleError, PlaybookConfigError)

    def test_subtype_match_with_cycle_raises(self) -> None:
        with pytest.raises(TypeHierarchyCycleError):
            match_applies_to("X", SubtypeOf("Z"), {"X": ("Y",), "Y": ("X",)})


# ---------------------------------------------------------------------------
# resolve_rules
# ---------------------------------------------------------------------------


class TestResolveRules:
    @pytest.fixture()
    def rules(self) -> list[Constraint]:
        return [
            _rule("z-pattern", TypePattern("*Requirement")),
            _rule("b-subtype-of", SubtypeOf("base:Element")),
            _rule("m-exact", ExactType("requirement:SafetyRequirement")),
            _rule("a-pattern", TypePattern("requirement:*")),
            _rule("c-set", TypeSet(("requirement:SafetyRequirement", "base:Component"))),
            _rule("d-with-subtypes", ExactType("requirement:Requirement", match_subtypes=True)),
            _rule("unrelated", ExactType("base:Component")),
        ]

    def test_sorted_by_specificity_then_id(self, rules: list[Constraint]) -> None:
        matches = resolve_rules("requirement:SafetyRequirement", rules, HIERARCHY)
        assert [m.rule.id for m in matches] == [
            "m-exact",
            "d-with-subtypes",
            "c-set",
            "a-pattern",
            "z-pattern",
            "b-subtype-of",
        ]
        assert [int(m.specificity) for m in matches] == [1000, 500, 250, 100, 100, 50]

    def test_deterministic_over_repeated_calls(self, rules: list[Constraint]) -> None:
        first = resolve_rules("requirement:SafetyRequirement", rules, HIERARCHY)
        for _ in range(100):
            again = resolve_rules("requirement:SafetyRequirement", rules, HIERARCHY)
            assert [(m.rule.id, m.specificity) for m in again] == [
                (m.rule.id, m.specificity) for m in first
            ]

    def test_independent_of_input_order(self, rules: list[Constraint]) -> None:
        forward = resolve_rules("requirement:SafetyRequirement", rules, HIERARCHY)
        backward = resolve_rules("requirement:SafetyRequirement", list(reversed(rules)), HIERARCHY)
        assert [m.rule.id for m in forward] == [m.rule.id for m in backward]

    def test_no_rules_match(self, rules: list[Constraint]) -> None:
        assert resolve_rules("base:Port", rules, HIERARCHY) == []


class TestResolveRulesForTypes:
    def test_rule_reached_twice_kept_once_at_best_score(self) -> None:
        rules = [
            _rule("exact", ExactType("requirement:Requirement")),
            _rule("pattern", TypePattern("*Requirement")),
        ]
        matches = resolve_rules_for_types(
            ("requirement:SafetyRequirement", "requirement:Requirement"), rules
        )
        assert [(m.rule.id, int(m.specificity)) for m in matches] == [
            ("exact", 1000),
            ("pattern", 100),
        ]

    def test_union_over_types(self) -> None:
        rules = [
            _rule("component", ExactType("base:Component")),
            _rule("requirement", ExactType("requirement:Requirement")),
        ]
        matches = resolve_rules_for_types(("base:Component", "requirement:Requirement"), rules)
        assert [m.rule.id for m in matches] == ["component", "requirement"]
