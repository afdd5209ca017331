"""Unified diagnostics, verdicts and circular-reference reports."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field, computed_field

from oasguard.models.document import NodePath, ReferencePointer, format_json_pointer
from oasguard.models.errors import SourceSpan


class Origin(StrEnum):
    STRUCTURAL = "structural"
    STYLE = "style"


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HINT = "hint"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.ERROR: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
    Severity.HINT: 3,
}


class Verdict(StrEnum):
    PASS = "pass"
    FAIL = "fail"


class Diagnostic(BaseModel):
    """One unit of feedback, produced by either validator."""

    model_config = {"frozen": True}

    origin: Origin
    severity: Severity
    path: tuple[str | int, ...] = ()
    message: str
    code: str
    source: str | None = None
    span: SourceSpan | None = None


class DiagnosticSet(BaseModel):
    """Deduplicated, ordered diagnostics for one run."""

    model_config = {"frozen": True}

    diagnostics: tuple[Diagnostic, ...] = ()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def counts(self) -> dict[str, int]:
        totals = {severity.value: 0 for severity in Severity}
        for diagnostic in self.diagnostics:
            totals[diagnostic.severity.value] += 1
        return totals

    @computed_field  # type: ignore[prop-decorator]
    @property
    def verdict(self) -> Verdict:
        if any(d.severity == Severity.ERROR for d in self.diagnostics):
            return Verdict.FAIL
        return Verdict.PASS

    def __len__(self) -> int:
        return len(self.diagnostics)


class ReferenceChain(BaseModel):
    """One reference cycle, closed: the first pointer is repeated at the end."""

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    pointers: tuple[ReferencePointer, ...] = Field(min_length=2)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def length(self) -> int:
        return len(self.pointers) - 1

    @property
    def locations(self) -> list[tuple[str, NodePath]]:
        return [p.location for p in self.pointers]

    def describe(self) -> str:
        steps = [f"{p.target_uri}#{format_json_pointer(p.target_path)}" for p in self.pointers]
        return " -> ".join(steps)


class CircularReferenceReport(BaseModel):
    """Every reference cycle found in one document graph."""

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    chains: tuple[ReferenceChain, ...] = ()

    def __len__(self) -> int:
        return len(self.chains)

    def describe(self) -> list[str]:
        return [chain.describe() for chain in self.chains]
