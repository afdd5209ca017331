"""Validation endpoints: POST /validate, GET /rules."""

from __future__ import annotations

from fastapi import APIRouter, Request

from oasguard.api.schemas import RuleInfo, RuleListResponse, ValidateRequest
from oasguard.config import ConfigResolver
from oasguard.lint.rules import default_ruleset
from oasguard.parser.fetcher import DefaultFetcher
from oasguard.parser.loader import DocumentLoader
from oasguard.service.pipeline import ValidationOutcome, ValidationPipeline
from oasguard.settings import Settings

router = APIRouter()

_SEVERITY_NAMES = ("error", "warning", "info", "hint")


@router.post("/validate", response_model=ValidationOutcome)
async def validate_document(body: ValidateRequest, request: Request) -> ValidationOutcome:
    """Validate one document; input errors and cycles are reported in the outcome."""
    settings: Settings = request.app.state.settings
    ruleset = default_ruleset()
    resolved = ConfigResolver(ruleset.codes).resolve(body.config)
    pipeline = ValidationPipeline(
        resolved.config,
        ruleset,
        fetcher=DefaultFetcher(timeout=settings.fetch_timeout_seconds, allow_local_files=False),
        loader=DocumentLoader(max_document_size=settings.max_document_size),
        notices=resolved.notices,
        debug=settings.debug,
    )
    return await pipeline.validate_text(body.document, uri=body.filename or "<request>")


@router.get("/rules", response_model=RuleListResponse)
async def list_rules() -> RuleListResponse:
    """List the default ruleset with each rule's default severity."""
    rules = [
        RuleInfo(
            code=rule.code,
            severity=_SEVERITY_NAMES[rule.severity],
            description=rule.description,
            message=rule.message,
        )
        for rule in default_ruleset()
    ]
    return RuleListResponse(rules=rules)
