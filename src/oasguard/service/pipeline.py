"""Orchestrates one validation run: Load → Resolve → (Structural ‖ Style) → Aggregate."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from oasguard.config import ConfigResolver
from oasguard.lint.adapter import StyleLintAdapter
from oasguard.lint.engine import RuleEngine
from oasguard.lint.rules import Ruleset, default_ruleset
from oasguard.models.config import ValidationConfig
from oasguard.models.diagnostics import CircularReferenceReport, Diagnostic, DiagnosticSet, Verdict
from oasguard.models.document import Document
from oasguard.models.errors import ConfigNotice
from oasguard.parser.fetcher import DefaultFetcher, DocumentFetcher
from oasguard.parser.loader import DocumentLoader, DocumentLoadError
from oasguard.parser.resolver import ReferenceResolutionError, ReferenceResolver
from oasguard.settings import Settings
from oasguard.validation.aggregator import DiagnosticAggregator
from oasguard.validation.structural import StructuralValidator, select_meta_schema

logger = logging.getLogger("oasguard.pipeline")


class OutcomeStatus(StrEnum):
    PASS = "pass"
    FAIL = "fail"
    CIRCULAR_REFERENCE = "circular-reference"
    INPUT_ERROR = "input-error"
    INTERNAL_ERROR = "internal-error"


_EXIT_CODES = {
    OutcomeStatus.PASS: 0,
    OutcomeStatus.FAIL: 1,
    OutcomeStatus.CIRCULAR_REFERENCE: 1,
    OutcomeStatus.INPUT_ERROR: 2,
    OutcomeStatus.INTERNAL_ERROR: 2,
}


class ValidationOutcome(BaseModel):
    """What a reporter receives for one document.

    Exactly one of ``diagnostics``, ``circular`` or ``error`` is set.
    """

    source: str
    status: OutcomeStatus
    diagnostics: DiagnosticSet | None = None
    circular: CircularReferenceReport | None = None
    error: str | None = None
    notices: list[ConfigNotice] = Field(default_factory=list)

    @property
    def verdict(self) -> Verdict | None:
        """None when the run stopped before aggregation."""
        return self.diagnostics.verdict if self.diagnostics is not None else None

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self.status]


class ValidationPipeline:
    """One pipeline value per run; nothing is shared between runs but the inputs."""

    def __init__(
        self,
        config: ValidationConfig,
        ruleset: Ruleset | None = None,
        *,
        engine: RuleEngine | None = None,
        fetcher: DocumentFetcher | None = None,
        loader: DocumentLoader | None = None,
        meta_schema: dict[str, Any] | None = None,
        notices: Sequence[ConfigNotice] = (),
        debug: bool = False,
    ) -> None:
        self._config = config
        self._notices = list(notices)
        self._meta_schema = meta_schema
        self._loader = loader or DocumentLoader()
        self._resolver = ReferenceResolver(loader=self._loader, fetcher=fetcher)
        self._structural = StructuralValidator()
        self._style = StyleLintAdapter(
            engine=engine,
            ruleset=ruleset if ruleset is not None else default_ruleset(),
            debug=debug,
        )
        self._aggregator = DiagnosticAggregator(config.fingerprint)

    async def validate_file(self, path: Path) -> ValidationOutcome:
        source = path.as_posix()
        try:
            document = self._loader.load(path)
        except DocumentLoadError as exc:
            return self._input_error(source, exc)
        return await self.run(document)

    async def validate_text(
        self, content: str, uri: str = "<string>", fmt: str | None = None
    ) -> ValidationOutcome:
        try:
            document = self._loader.load_string(content, uri=uri, fmt=fmt)
        except DocumentLoadError as exc:
            return self._input_error(uri, exc)
        return await self.run(document)

    async def run(self, document: Document) -> ValidationOutcome:
        """Validate an already-loaded document."""
        try:
            return await self._run(document)
        except Exception:
            logger.exception("Validation of %s failed unexpectedly", document.uri)
            raise

    async def _run(self, document: Document) -> ValidationOutcome:
        # Phase 1: reference resolution (cycles and missing targets stop the run)
        try:
            resolution = await self._resolver.resolve(document)
        except ReferenceResolutionError as exc:
            return self._input_error(document.uri, exc)
        if isinstance(resolution, CircularReferenceReport):
            logger.info(
                "Circular references in %s: %s", document.uri, "; ".join(resolution.describe())
            )
            return ValidationOutcome(
                source=document.uri,
                status=OutcomeStatus.CIRCULAR_REFERENCE,
                circular=resolution,
                notices=self._notices,
            )

        # Phase 2: structural and style checks against the raw documents
        structural_task = asyncio.create_task(self._check_structure(document))
        style_task = asyncio.create_task(self._check_style(document, resolution.externals))
        structural, style = await asyncio.gather(structural_task, style_task)

        # Phase 3: aggregation
        diagnostics = self._aggregator.aggregate(structural, style)
        status = OutcomeStatus.PASS if diagnostics.verdict == Verdict.PASS else OutcomeStatus.FAIL
        logger.info(
            "Validated %s: %s (%d diagnostic(s))", document.uri, status.value, len(diagnostics)
        )
        return ValidationOutcome(
            source=document.uri,
            status=status,
            diagnostics=diagnostics,
            notices=self._notices,
        )

    async def _check_structure(self, document: Document) -> list[Diagnostic]:
        meta_schema = self._meta_schema or select_meta_schema(document)
        return self._structural.check(document, meta_schema)

    async def _check_style(
        self, document: Document, externals: Mapping[str, Document]
    ) -> list[Diagnostic]:
        return self._style.check(document, self._config, externals)

    def _input_error(self, source: str, exc: Exception) -> ValidationOutcome:
        logger.warning("Cannot validate %s: %s", source, exc)
        return ValidationOutcome(
            source=source,
            status=OutcomeStatus.INPUT_ERROR,
            error=str(exc),
            notices=self._notices,
        )


async def validate_documents(
    sources: Iterable[Path | str],
    *,
    settings: Settings | None = None,
    config_path: Path | None = None,
    ruleset: Ruleset | None = None,
    engine: RuleEngine | None = None,
    fetcher: DocumentFetcher | None = None,
) -> list[ValidationOutcome]:
    """Validate several files; one document's failure never affects the others."""
    settings = settings or Settings()
    ruleset = ruleset if ruleset is not None else default_ruleset()
    resolved = ConfigResolver(ruleset.codes).load(config_path or settings.config_file)
    loader = DocumentLoader(max_document_size=settings.max_document_size)
    fetcher = fetcher or DefaultFetcher(timeout=settings.fetch_timeout_seconds)

    outcomes: list[ValidationOutcome] = []
    for source in sources:
        path = Path(source)
        pipeline = ValidationPipeline(
            resolved.config,
            ruleset,
            engine=engine,
            fetcher=fetcher,
            loader=loader,
            notices=resolved.notices,
            debug=settings.debug,
        )
        try:
            outcome = await pipeline.validate_file(path)
        except Exception as exc:
            outcome = ValidationOutcome(
                source=path.as_posix(),
                status=OutcomeStatus.INTERNAL_ERROR,
                error=f"{type(exc).__name__}: {exc}",
                notices=resolved.notices,
            )
        outcomes.append(outcome)
    return outcomes
