# methodloom:domain=engine
"""Extracted facts of one data document: instances, assertions, prefixes, hierarchy.

The facts are produced by an external parser. ``load_facts`` reads them from
a YAML or JSON document of the shape::

    document: stakeholders_requirements.oml
    prefixes: { req: requirement }
    hierarchy:
      requirement:SafetyRequirement: [requirement:Requirement]
    instances:
      - { name: R1, types: [req:Requirement], line: 4 }
    assertions:
      - { instance: R1, property: req:isExpressedBy, values: [S1], line: 5 }
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

import yaml

from methodloom.engine.aliases import canonicalize, canonicalize_all

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

ImportPrefixMap = dict[str, str]
"""Alias prefix -> canonical vocabulary prefix, scoped to one data document."""

TypeHierarchy = dict[str, tuple[str, ...]]
"""Child type -> its immediate parent types."""


class FactsError(ValueError):
    """Raised when a facts document is malformed."""


@dataclass(frozen=True)
class InstanceInfo:
    """A named instance and its declared types."""

    name: str
    types: tuple[str, ...]
    line: int | None = None


@dataclass(frozen=True)
class Assertion:
    """One property or relation value statement owned by an instance."""

    instance_name: str
    property_name: str
    values: tuple[str, ...]
    instance_types: tuple[str, ...] = ()
    line: int | None = None


@dataclass(frozen=True)
class Facts:
    """Everything the engine needs to know about one data document."""

    document: str
    instances: tuple[InstanceInfo, ...] = ()
    assertions: tuple[Assertion, ...] = ()
    prefixes: ImportPrefixMap = field(default_factory=dict)
    hierarchy: TypeHierarchy = field(default_factory=dict)

    def canonical(self) -> Facts:
        """Return a copy with every property name and type canonicalized."""
        prefixes = self.prefixes
        instances = tuple(
            replace(inst, types=canonicalize_all(inst.types, prefixes)) for inst in self.instances
        )
        assertions = tuple(
            replace(
                a,
                property_name=canonicalize(a.property_name, prefixes),
                instance_types=canonicalize_all(a.instance_types, prefixes),
            )
            for a in self.assertions
        )
        hierarchy = {
            canonicalize(child, prefixes): canonicalize_all(parents, prefixes)
            for child, parents in self.hierarchy.items()
        }
        return replace(self, instances=instances, assertions=assertions, hierarchy=hierarchy)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _as_list(value: object, context: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"{context} must be a list"
        raise FactsError(msg)
    return value


def _as_str_tuple(value: object, context: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in _as_list(value, context))


def _as_line(value: object, context: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{context}: 'line' must be an integer"
        raise FactsError(msg)
    return value


def parse_facts(data: object, *, document: str | None = None) -> Facts:
    """Build :class:`Facts` from an already-deserialized mapping.

    Assertions that omit ``instance_types`` inherit the declared types of
    their owning instance.
    """
    if not isinstance(data, dict):
        msg = "facts document must be a mapping"
        raise FactsError(msg)

    doc = document or str(data.get("document") or "unknown")

    prefixes_raw = data.get("prefixes") or {}
    if not isinstance(prefixes_raw, dict):
        msg = "facts.prefixes must be a mapping"
        raise FactsError(msg)
    prefixes = {str(k): str(v) for k, v in prefixes_raw.items()}

    hierarchy_raw = data.get("hierarchy") or {}
    if not isinstance(hierarchy_raw, dict):
        msg = "facts.hierarchy must be a mapping"
        raise FactsError(msg)
    hierarchy = {
        str(child): _as_str_tuple(parents, f"facts.hierarchy['{child}']")
        for child, parents in hierarchy_raw.items()
    }

    instances: list[InstanceInfo] = []
    for idx, raw in enumerate(_as_list(data.get("instances"), "facts.instances")):
        context = f"facts.instances[{idx}]"
        if not isinstance(raw, dict) or not raw.get("name"):
            msg = f"{context} must be a mapping with a 'name'"
            raise FactsError(msg)
        instances.append(
            InstanceInfo(
                name=str(raw["name"]),
                types=_as_str_tuple(raw.get("types"), f"{context}.types"),
                line=_as_line(raw.get("line"), context),
            )
        )

    declared = {inst.name: inst.types for inst in instances}
    assertions: list[Assertion] = []
    for idx, raw in enumerate(_as_list(data.get("assertions"), "facts.assertions")):
        context = f"facts.assertions[{idx}]"
        if not isinstance(raw, dict) or not raw.get("instance") or not raw.get("property"):
            msg = f"{context} must be a mapping with 'instance' and 'property'"
            raise FactsError(msg)
        instance_name = str(raw["instance"])
        instance_types = raw.get("instance_types")
        assertions.append(
            Assertion(
                instance_name=instance_name,
                property_name=str(raw["property"]),
                values=_as_str_tuple(raw.get("values"), f"{context}.values"),
                instance_types=(
                    _as_str_tuple(instance_types, f"{context}.instance_types")
                    if instance_types is not None
                    else declared.get(instance_name, ())
                ),
                line=_as_line(raw.get("line"), context),
            )
        )

    return Facts(
        document=doc,
        instances=tuple(instances),
        assertions=tuple(assertions),
        prefixes=prefixes,
        hierarchy=hierarchy,
    )


def load_facts(path: Path, *, document: str | None = None) -> Facts:
    """Load a facts document from YAML or JSON."""
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"Cannot read facts file {path}: {exc}"
        raise FactsError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"Could not parse facts file {path}: {exc}"
        raise FactsError(msg) from exc

    facts = parse_facts(data, document=document)
    logger.debug(
        "Loaded facts for %s: %d instances, %d assertions",
        facts.document,
        len(facts.instances),
        len(facts.assertions),
    )
    return facts
