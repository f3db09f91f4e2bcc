"""Engine domain: rule matching, constraint checks, direction correction, validation session."""

# methodloom:domain=engine

from methodloom.engine.aliases import canonicalize, canonicalize_all
from methodloom.engine.constraints import (
    CheckResult,
    check_allowed_types,
    check_property_constraint,
    check_target_types,
    is_type_allowed,
    property_matches,
)
from methodloom.engine.direction import (
    AssertionTriple,
    DirectionAdvice,
    ReformatResult,
    RelationIndex,
    check_assertion_direction,
    intercept_and_reformat,
    validate_directions,
)
from methodloom.engine.facts import (
    Assertion,
    Facts,
    FactsError,
    ImportPrefixMap,
    InstanceInfo,
    TypeHierarchy,
    load_facts,
    parse_facts,
)
from methodloom.engine.matcher import (
    MatchResult,
    RuleMatch,
    Specificity,
    check_hierarchy,
    is_subtype_of,
    match_applies_to,
    resolve_rules,
    resolve_rules_for_types,
)
from methodloom.engine.report import (
    Correction,
    Edit,
    Location,
    UnresolvedReferenceWarning,
    ValidationReport,
    Violation,
    format_json,
    format_markdown,
    format_porcelain,
    format_rich,
)
from methodloom.engine.session import run_validation, validate

__all__ = [
    "Assertion",
    "AssertionTriple",
    "CheckResult",
    "Correction",
    "DirectionAdvice",
    "Edit",
    "Facts",
    "FactsError",
    "ImportPrefixMap",
    "InstanceInfo",
    "Location",
    "MatchResult",
    "ReformatResult",
    "RelationIndex",
    "RuleMatch",
    "Specificity",
    "TypeHierarchy",
    "UnresolvedReferenceWarning",
    "ValidationReport",
    "Violation",
    "canonicalize",
    "canonicalize_all",
    "check_allowed_types",
    "check_assertion_direction",
    "check_hierarchy",
    "check_property_constraint",
    "check_target_types",
    "format_json",
    "format_markdown",
    "format_porcelain",
    "format_rich",
    "intercept_and_reformat",
    "is_subtype_of",
    "is_type_allowed",
    "load_facts",
    "match_applies_to",
    "parse_facts",
    "resolve_rules",
    "resolve_rules_for_types",
    "run_validation",
    "validate",
    "validate_directions",
]
