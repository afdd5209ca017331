"""Domain models for oasguard."""

from oasguard.models.config import FingerprintPolicy, RuleSetting, ValidationConfig
from oasguard.models.diagnostics import (
    CircularReferenceReport,
    Diagnostic,
    DiagnosticSet,
    Origin,
    ReferenceChain,
    Severity,
    Verdict,
)
from oasguard.models.document import (
    Document,
    Node,
    NodeKind,
    ReferencePointer,
    ResolvedDocument,
)
from oasguard.models.errors import ConfigNotice, OasGuardError, SourceSpan

__all__ = [
    "CircularReferenceReport",
    "ConfigNotice",
    "Diagnostic",
    "DiagnosticSet",
    "Document",
    "FingerprintPolicy",
    "Node",
    "NodeKind",
    "OasGuardError",
    "Origin",
    "ReferenceChain",
    "ReferencePointer",
    "ResolvedDocument",
    "RuleSetting",
    "Severity",
    "SourceSpan",
    "ValidationConfig",
    "Verdict",
]
