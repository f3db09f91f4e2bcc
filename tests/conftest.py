"""Shared test fixtures for Methodloom."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

from methodloom.playbook import parse_playbook

if TYPE_CHECKING:
    from pathlib import Path

    from methodloom.playbook import Playbook


PLAYBOOK_YAML = """\
metadata:
  methodology: Sierra
  version: "1.2"
  sourceVocabularies: [requirement, base]
relationRules:
  - forwardRelation: requirement:expresses
    reverseRelation: requirement:isExpressedBy
    owningConcept: requirement:Requirement
    preferredDirection: reverse
    rationale: Requirements own the link to their stakeholder
  - forwardRelation: requirement:refines
    reverseRelation: requirement:isRefinedBy
    owningConcept: requirement:Requirement
    preferredDirection: forward
descriptions:
  stakeholders_requirements.oml:
    file: stakeholders_requirements.oml
    purpose: Stakeholders and the requirements they express
    allowedTypes:
      - requirement:Requirement
      - requirement:SafetyRequirement
      - requirement:Stakeholder
    routing:
      - { concept: requirement:Requirement, priority: 1 }
    constraints:
      - id: req-needs-stakeholder
        message: Requirements must be expressed by a stakeholder
        appliesTo:
          conceptType: requirement:Requirement
        constraints:
          - property: requirement:isExpressedBy
            required: true
            targetMustBe: requirement:Stakeholder
      - id: safety-single-stakeholder
        message: Safety requirements name one accountable stakeholder
        severity: warning
        appliesTo:
          conceptPattern: "*SafetyRequirement"
        constraints:
          - property: requirement:isExpressedBy
            maxOccurrences: 1
  "*_components.oml":
    file: components.oml
    purpose: Logical components
    allowedTypes: [base:Component]
    constraints:
      - id: component-named
        message: Components need a name
        appliesTo:
          conceptTypes: [base:Component, base:Subsystem]
        constraints:
          - property: base:name
            minOccurrences: 1
"""


FACTS_YAML = """\
document: stakeholders_requirements.oml
prefixes:
  req: requirement
instances:
  - { name: S1, types: [req:Stakeholder], line: 3 }
  - { name: R1, types: [req:Requirement], line: 6 }
  - { name: R2, types: [req:Requirement], line: 9 }
assertions:
  - { instance: R2, property: req:isExpressedBy, values: [S1], line: 10 }
"""


@pytest.fixture()
def playbook() -> Playbook:
    """The Sierra sample playbook, parsed."""
    return parse_playbook(yaml.safe_load(PLAYBOOK_YAML))


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """A project directory holding the sample playbook and a facts file."""
    project = tmp_path / "proj"
    project.mkdir()
    (project / "sierra_playbook.yaml").write_text(PLAYBOOK_YAML, encoding="utf-8")
    (project / "facts.yaml").write_text(FACTS_YAML, encoding="utf-8")
    return project
