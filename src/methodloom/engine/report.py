# methodloom:domain=engine
"""Validation report values (violations, corrections) and their formatters."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Literal

ViolationKind = Literal[
    "wrong_direction",
    "missing_property",
    "invalid_cardinality",
    "invalid_target_type",
    "unresolved_reference",
    "type_not_allowed",
]

SEVERITY_RANK: dict[str, int] = {"info": 1, "warning": 2, "error": 3}

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Location:
    """Where a violation was found."""

    document: str
    line: int | None = None
    instance: str | None = None


@dataclass(frozen=True, kw_only=True)
class Violation:
    """A single playbook rule violation."""

    kind: ViolationKind
    location: Location
    rule: str  # constraint id, or a descriptive tag for built-in checks
    message: str
    severity: str  # "error" | "warning" | "info"


@dataclass(frozen=True, kw_only=True)
class UnresolvedReferenceWarning(Violation):
    """A referenced instance could not be found in the current parse scope.

    Always a warning: absence elsewhere cannot be proven, only failure to
    find the instance locally.
    """

    kind: ViolationKind = "unresolved_reference"
    severity: str = "warning"
    reference: str = ""


@dataclass(frozen=True)
class Edit:
    """One property value on one instance."""

    instance: str
    property: str
    value: str


@dataclass(frozen=True)
class Correction:
    """A remove/add edit pair proposed to resolve a violation.

    ``advisory`` is set when the instance receiving the ``add`` edit could
    not be confirmed to exist in the current document.
    """

    violation_kind: ViolationKind
    explanation: str
    remove: Edit | None = None
    add: Edit | None = None
    advisory: bool = False


@dataclass(frozen=True)
class ValidationReport:
    """Merged result of one validation run."""

    document: str
    violations: tuple[Violation, ...] = ()
    corrections: tuple[Correction, ...] = ()
    schema: str | None = None

    @property
    def is_valid(self) -> bool:
        return len(self.violations) == 0

    def count(self, severity: str) -> int:
        return sum(1 for v in self.violations if v.severity == severity)

    def fails(self, threshold: str) -> bool:
        """Return True if any violation is at or above *threshold* severity.

        ``"never"`` never fails.
        """
        rank = SEVERITY_RANK.get(threshold)
        if rank is None:
            return False
        return any(SEVERITY_RANK.get(v.severity, 0) >= rank for v in self.violations)

    def to_dict(self) -> dict[str, object]:
        return {
            "document": self.document,
            "schema": self.schema,
            "is_valid": self.is_valid,
            "violations": [asdict(v) for v in self.violations],
            "corrections": [asdict(c) for c in self.corrections],
            "summary": {
                "violations_count": len(self.violations),
                "errors": self.count("error"),
                "warnings": self.count("warning"),
                "infos": self.count("info"),
                "corrections_count": len(self.corrections),
            },
        }


@dataclass
class _Grouped:
    kind: str
    items: list[Violation] = field(default_factory=list)


def _group_by_kind(violations: tuple[Violation, ...]) -> list[_Grouped]:
    groups: dict[str, _Grouped] = {}
    for v in violations:
        groups.setdefault(v.kind, _Grouped(v.kind)).items.append(v)
    return list(groups.values())


def _location_str(loc: Location) -> str:
    text = loc.document
    if loc.line is not None:
        text += f":{loc.line}"
    if loc.instance:
        text += f" ({loc.instance})"
    return text


def describe_edit(edit: Edit) -> str:
    return f"{edit.instance} [ {edit.property} {edit.value} ]"


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_rich(report: ValidationReport, *, show_corrections: bool = True) -> str:
    """Format a report as human-readable text.

    Example output::

        Document: requirements.oml (schema: requirements.oml)

        ✗ [error] req-needs-stakeholder
          requirements.oml:4 (R1)
          Requirements need a stakeholder: Property "req:isExpressedBy" is required but not set

        1 violation found (1 errors, 0 warnings)
    """
    lines: list[str] = []
    header = f"Document: {report.document}"
    if report.schema is not None:
        header += f" (schema: {report.schema})"
    lines.append(header)
    lines.append("")

    if report.is_valid:
        lines.append("✓ All assertions conform to the playbook")
        return "\n".join(lines)

    for v in report.violations:
        marker = "✗" if v.severity == "error" else "⚠"
        lines.append(f"{marker} [{v.severity}] {v.rule}")
        lines.append(f"  {_location_str(v.location)}")
        lines.append(f"  {v.message}")
        lines.append("")

    if show_corrections and report.corrections:
        lines.append("Suggested corrections:")
        for c in report.corrections:
            prefix = "  (advisory) " if c.advisory else "  "
            lines.append(f"{prefix}{c.explanation}")
        lines.append("")

    count = len(report.violations)
    noun = "violation" if count == 1 else "violations"
    lines.append(
        f"{count} {noun} found ({report.count('error')} errors, "
        f"{report.count('warning')} warnings)"
    )
    return "\n".join(lines)


def format_json(report: ValidationReport) -> str:
    """Format a report as structured JSON."""
    return json.dumps(report.to_dict(), indent=2)


def format_porcelain(report: ValidationReport) -> str:
    """One line per violation: ``severity:kind:rule:document:line:instance``.

    Returns an empty string when there are no violations.
    """
    lines: list[str] = []
    for v in report.violations:
        line = str(v.location.line) if v.location.line is not None else ""
        instance = v.location.instance or ""
        lines.append(f"{v.severity}:{v.kind}:{v.rule}:{v.location.document}:{line}:{instance}")
    return "\n".join(lines)


def format_markdown(
    report: ValidationReport,
    *,
    methodology: str,
    show_corrections: bool = True,
) -> str:
    """Format a report as a Markdown document grouped by violation kind."""
    lines: list[str] = [f"# Methodology Enforcement: {methodology}", ""]

    if report.is_valid:
        lines.append("**All assertions conform to the playbook.**")
        return "\n".join(lines)

    lines.append(f"**Found {len(report.violations)} violation(s)**")
    lines.append("")

    for group in _group_by_kind(report.violations):
        lines.append(f"## {group.kind.replace('_', ' ').upper()}")
        lines.append("")
        for v in group.items:
            lines.append(f"### [{v.severity}] {v.rule}")
            lines.append(v.message)
            lines.append(f"*Location:* {_location_str(v.location)}")
            lines.append("")

    if show_corrections and report.corrections:
        lines.append("## Suggested Corrections")
        lines.append("")
        for c in report.corrections:
            title = f"### {c.explanation}"
            if c.advisory:
                title += " (advisory)"
            lines.append(title)
            if c.remove is not None:
                lines.append(f"**Remove from** `{c.remove.instance}`:")
                lines.append("```")
                lines.append(f"    {c.remove.property} {c.remove.value}")
                lines.append("```")
            if c.add is not None:
                lines.append(f"**Add to** `{c.add.instance}`:")
                lines.append("```")
                lines.append(f"    {c.add.property} {c.add.value}")
                lines.append("```")
            lines.append("")

    return "\n".join(lines)
