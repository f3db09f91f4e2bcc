# methodloom:domain=engine
"""Tests for validation report values and formatters."""

from __future__ import annotations

import json

import pytest

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

DOC = "stakeholders_requirements.oml"


def _missing() -> Violation:
    return Violation(
        kind="missing_property",
        location=Location(DOC, 4, "R1"),
        rule="req-needs-stakeholder",
        message='Requirements need a stakeholder: Property "req:isExpressedBy" is required but not set',
        severity="error",
    )


def _direction() -> Violation:
    return Violation(
        kind="wrong_direction",
        location=Location(DOC, 9, "S1"),
        rule="relation-direction",
        message='Instance "S1" uses "expresses" but the playbook specifies "isExpressedBy".',
        severity="warning",
    )


def _correction(*, advisory: bool = False) -> Correction:
    return Correction(
        violation_kind="wrong_direction",
        explanation='Move "S1 [ expresses R1 ]" to "R1 [ isExpressedBy S1 ]"',
        remove=Edit("S1", "expresses", "R1"),
        add=Edit("R1", "isExpressedBy", "S1"),
        advisory=advisory,
    )


@pytest.fixture()
def report() -> ValidationReport:
    return ValidationReport(
        document=DOC,
        violations=(_missing(), _direction()),
        corrections=(_correction(),),
        schema=DOC,
    )


@pytest.fixture()
def clean() -> ValidationReport:
    return ValidationReport(document=DOC, schema=DOC)


# ---------------------------------------------------------------------------
# ValidationReport
# ---------------------------------------------------------------------------


class TestValidationReport:
    def test_is_valid(self, report: ValidationReport, clean: ValidationReport) -> None:
        assert report.is_valid is False
        assert clean.is_valid is True

    def test_warnings_alone_make_report_invalid(self) -> None:
        assert ValidationReport(document=DOC, violations=(_direction(),)).is_valid is False

    def test_count(self, report: ValidationReport) -> None:
        assert report.count("error") == 1
        assert report.count("warning") == 1
        assert report.count("info") == 0

    def test_fails_thresholds(self) -> None:
        warning_only = ValidationReport(document=DOC, violations=(_direction(),))
        assert warning_only.fails("error") is False
        assert warning_only.fails("warning") is True
        assert warning_only.fails("info") is True
        assert warning_only.fails("never") is False

    def test_unresolved_reference_defaults(self) -> None:
        warning = UnresolvedReferenceWarning(
            location=Location(DOC), rule="r", message="m", reference="Remote"
        )
        assert warning.kind == "unresolved_reference"
        assert warning.severity == "warning"
        assert isinstance(warning, Violation)

    def test_to_dict(self, report: ValidationReport) -> None:
        data = report.to_dict()
        assert data["is_valid"] is False
        assert data["summary"] == {
            "violations_count": 2,
            "errors": 1,
            "warnings": 1,
            "infos": 0,
            "corrections_count": 1,
        }


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class TestFormatRich:
    def test_clean(self, clean: ValidationReport) -> None:
        output = format_rich(clean)
        assert f"Document: {DOC} (schema: {DOC})" in output
        assert "✓ All assertions conform to the playbook" in output

    def test_violations(self, report: ValidationReport) -> None:
        output = format_rich(report)
        assert "✗ [error] req-needs-stakeholder" in output
        assert "⚠ [warning] relation-direction" in output
        assert f"{DOC}:4 (R1)" in output
        assert "Suggested corrections:" in output
        assert output.endswith("2 violations found (1 errors, 1 warnings)")

    def test_single_violation_noun(self) -> None:
        output = format_rich(ValidationReport(document=DOC, violations=(_missing(),)))
        assert output.endswith("1 violation found (1 errors, 0 warnings)")

    def test_corrections_hidden(self, report: ValidationReport) -> None:
        assert "Suggested corrections" not in format_rich(report, show_corrections=False)

    def test_advisory_marked(self) -> None:
        report = ValidationReport(
            document=DOC, violations=(_direction(),), corrections=(_correction(advisory=True),)
        )
        assert "(advisory)" in format_rich(report)


class TestFormatJson:
    def test_structure(self, report: ValidationReport) -> None:
        data = json.loads(format_json(report))
        assert data["document"] == DOC
        assert data["violations"][0]["kind"] == "missing_property"
        assert data["violations"][0]["location"] == {"document": DOC, "line": 4, "instance": "R1"}
        assert data["corrections"][0]["add"] == {
            "instance": "R1",
            "property": "isExpressedBy",
            "value": "S1",
        }
        assert data["corrections"][0]["advisory"] is False

    def test_unresolved_reference_serializes(self) -> None:
        warning = UnresolvedReferenceWarning(
            location=Location(DOC, 3, "R1"), rule="r", message="m", reference="Remote"
        )
        data = json.loads(format_json(ValidationReport(document=DOC, violations=(warning,))))
        assert data["violations"][0]["kind"] == "unresolved_reference"
        assert data["violations"][0]["severity"] == "warning"
        assert data["violations"][0]["reference"] == "Remote"

    def test_plain_violation_has_no_reference(self, report: ValidationReport) -> None:
        data = json.loads(format_json(report))
        assert "reference" not in data["violations"][0]


class TestFormatPorcelain:
    def test_lines(self, report: ValidationReport) -> None:
        lines = format_porcelain(report).splitlines()
        assert lines == [
            f"error:missing_property:req-needs-stakeholder:{DOC}:4:R1",
            f"warning:wrong_direction:relation-direction:{DOC}:9:S1",
        ]

    def test_empty_for_clean(self, clean: ValidationReport) -> None:
        assert format_porcelain(clean) == ""

    def test_missing_line_and_instance(self) -> None:
        violation = Violation(
            kind="type_not_allowed",
            location=Location(DOC),
            rule="type-placement",
            message="m",
            severity="warning",
        )
        output = format_porcelain(ValidationReport(document=DOC, violations=(violation,)))
        assert output == f"warning:type_not_allowed:type-placement:{DOC}::"


class TestFormatMarkdown:
    def test_grouped_by_kind(self, report: ValidationReport) -> None:
        output = format_markdown(report, methodology="Sierra")
        assert output.startswith("# Methodology Enforcement: Sierra")
        assert "**Found 2 violation(s)**" in output
        assert "## MISSING PROPERTY" in output
        assert "## WRONG DIRECTION" in output
        assert "## Suggested Corrections" in output
        assert "**Add to** `R1`:" in output
        assert "    isExpressedBy S1" in output

    def test_clean(self, clean: ValidationReport) -> None:
        output = format_markdown(clean, methodology="Sierra")
        assert "**All assertions conform to the playbook.**" in output

    def test_validate_mode_hides_corrections(self, report: ValidationReport) -> None:
        output = format_markdown(report, methodology="Sierra", show_corrections=False)
        assert "Suggested Corrections" not in output
