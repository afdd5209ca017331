"""Merges structural and style diagnostics into one deduplicated, ordered set."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

from oasguard.models.config import FingerprintPolicy
from oasguard.models.diagnostics import Diagnostic, DiagnosticSet, Origin

# Top-level sections in the order they are reported; others follow alphabetically
_SECTION_ORDER = (
    "",
    "openapi",
    "swagger",
    "info",
    "servers",
    "host",
    "basePath",
    "paths",
    "webhooks",
    "components",
    "definitions",
    "parameters",
    "responses",
    "securityDefinitions",
    "security",
    "tags",
    "externalDocs",
)
_SECTION_RANK = {name: index for index, name in enumerate(_SECTION_ORDER)}
_ORIGIN_RANK = {Origin.STRUCTURAL: 0, Origin.STYLE: 1}


def normalize_path(diagnostic: Diagnostic) -> tuple[str, ...]:
    """Path as strings, qualified by the external source document if any."""
    segments = tuple(str(segment) for segment in diagnostic.path)
    if diagnostic.source:
        return (f"{diagnostic.source}#",) + segments
    return segments


def fingerprint(diagnostic: Diagnostic, policy: FingerprintPolicy | None = None) -> str:
    """Stable hash over (canonical code, normalized path, message)."""
    policy = policy or FingerprintPolicy()
    parts = [policy.canonical_code(diagnostic.code), *normalize_path(diagnostic), diagnostic.message]
    if diagnostic.code in policy.narrowed_codes:
        parts += [diagnostic.origin.value, diagnostic.severity.value]
    digest = hashlib.sha256()
    for part in parts:
        digest.update(part.encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


class DiagnosticAggregator:
    """Deduplicates by fingerprint, orders deterministically and yields the verdict."""

    def __init__(self, policy: FingerprintPolicy | None = None) -> None:
        self._policy = policy or FingerprintPolicy()

    def aggregate(
        self,
        structural: Iterable[Diagnostic],
        style: Iterable[Diagnostic],
    ) -> DiagnosticSet:
        retained: dict[str, tuple[Diagnostic, int]] = {}
        for sequence, diagnostic in enumerate([*structural, *style]):
            key = fingerprint(diagnostic, self._policy)
            current = retained.get(key)
            if current is None or _preference(diagnostic, sequence) < _preference(*current):
                retained[key] = (diagnostic, sequence)

        ordered = sorted(retained.values(), key=lambda item: _order_key(*item))
        return DiagnosticSet(diagnostics=tuple(d for d, _ in ordered))


def _preference(diagnostic: Diagnostic, sequence: int) -> tuple[int, int, int]:
    # Among duplicates: most severe, then structural, then earliest produced
    return diagnostic.severity.rank, _ORIGIN_RANK[diagnostic.origin], sequence


def _section(diagnostic: Diagnostic) -> tuple[int, str]:
    name = str(diagnostic.path[0]) if diagnostic.path else ""
    return _SECTION_RANK.get(name, len(_SECTION_ORDER)), name


def _order_key(diagnostic: Diagnostic, sequence: int) -> tuple[object, ...]:
    return (
        _section(diagnostic),
        diagnostic.severity.rank,
        normalize_path(diagnostic),
        diagnostic.code,
        diagnostic.message,
        _ORIGIN_RANK[diagnostic.origin],
        sequence,
    )
