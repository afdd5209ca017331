"""Structural validation and diagnostic aggregation."""

from oasguard.validation.aggregator import DiagnosticAggregator, fingerprint
from oasguard.validation.structural import StructuralValidator, select_meta_schema

__all__ = [
    "DiagnosticAggregator",
    "StructuralValidator",
    "fingerprint",
    "select_meta_schema",
]
