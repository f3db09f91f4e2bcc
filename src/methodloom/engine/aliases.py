# methodloom:domain=engine
"""Alias canonicalizer: rewrite locally-aliased qualified names to canonical prefixes."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


def split_qualified(name: str) -> tuple[str | None, str]:
    """Split ``prefix:local`` into ``(prefix, local)``; unqualified names give ``(None, name)``."""
    prefix, sep, local = name.partition(":")
    if not sep:
        return None, name
    return prefix, local


def local_name(name: str) -> str:
    """Return the part after the last colon (the whole name when unqualified)."""
    return name.rsplit(":", 1)[-1]


def canonicalize(name: str, prefixes: Mapping[str, str] | None) -> str:
    """Rewrite the prefix of *name* through the document's alias map.

    Unqualified names, names whose prefix has no alias entry, and names
    already in canonical form pass through unchanged, so the operation is
    idempotent as long as canonical prefixes are not themselves aliases.
    """
    if not prefixes:
        return name
    prefix, local = split_qualified(name)
    if prefix is None:
        return name
    canonical = prefixes.get(prefix)
    if not canonical or canonical == prefix:
        return name
    return f"{canonical}:{local}"


def canonicalize_all(names: Iterable[str], prefixes: Mapping[str, str] | None) -> tuple[str, ...]:
    """Canonicalize every name, preserving order."""
    return tuple(canonicalize(n, prefixes) for n in names)
