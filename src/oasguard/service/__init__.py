"""Service layer: pipeline orchestration shared by the REST API and callers."""

from oasguard.service.pipeline import (
    OutcomeStatus,
    ValidationOutcome,
    ValidationPipeline,
    validate_documents,
)

__all__ = ["OutcomeStatus", "ValidationOutcome", "ValidationPipeline", "validate_documents"]
