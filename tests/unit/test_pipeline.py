"""Tests for the validation pipeline and the multi-document boundary."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest

from oasguard.lint.rules import default_ruleset
from oasguard.models.config import RuleSetting, ValidationConfig
from oasguard.models.diagnostics import Origin, Severity, Verdict
from oasguard.models.errors import ConfigNotice, NoticeLevel
from oasguard.parser.loader import DocumentLoader
from oasguard.service.pipeline import (
    OutcomeStatus,
    ValidationOutcome,
    ValidationPipeline,
    validate_documents,
)
from oasguard.settings import Settings
from tests.conftest import (
    FIXTURES_DIR,
    MISSING_INFO_YAML,
    PETSTORE_YAML,
    REQUEST_BODY_REF_YAML,
    TWO_NODE_CYCLE_YAML,
    FakeFetcher,
)


def _pipeline(config: ValidationConfig | None = None, **kwargs) -> ValidationPipeline:
    return ValidationPipeline(
        config or ValidationConfig(), default_ruleset(), fetcher=FakeFetcher({}), **kwargs
    )


class _ExplodingEngine:
    def run(self, document, ruleset, config, externals=None):
        raise RuntimeError("engine crashed")


class TestValidationPipeline:
    async def test_clean_document_passes(self) -> None:
        outcome = await _pipeline().validate_text(PETSTORE_YAML, uri="petstore.yaml")
        assert outcome.status == OutcomeStatus.PASS
        assert outcome.verdict == Verdict.PASS
        assert outcome.exit_code == 0
        assert len(outcome.diagnostics) == 0

    async def test_warnings_do_not_fail(self) -> None:
        outcome = await _pipeline().validate_text(REQUEST_BODY_REF_YAML, uri="api.yaml")
        assert outcome.status == OutcomeStatus.PASS
        assert outcome.diagnostics.counts["warning"] == 1

    async def test_circular_reference_short_circuits(self) -> None:
        outcome = await _pipeline().validate_text(TWO_NODE_CYCLE_YAML, uri="cycle.yaml")
        assert outcome.status == OutcomeStatus.CIRCULAR_REFERENCE
        assert outcome.diagnostics is None
        assert outcome.verdict is None
        assert outcome.exit_code == 1
        (chain,) = outcome.circular.chains
        assert chain.length == 2

    async def test_circular_chain_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="oasguard.pipeline"):
            outcome = await _pipeline().validate_text(TWO_NODE_CYCLE_YAML, uri="cycle.yaml")
        (described,) = outcome.circular.describe()
        assert described.count(" -> ") == 2
        assert any(described in r.getMessage() for r in caplog.records)

    async def test_structural_and_style_merged(self) -> None:
        outcome = await _pipeline().validate_text(MISSING_INFO_YAML, uri="api.yaml")
        assert outcome.status == OutcomeStatus.FAIL
        assert outcome.exit_code == 1
        first, second = outcome.diagnostics.diagnostics
        assert (first.origin, first.severity) == (Origin.STRUCTURAL, Severity.ERROR)
        assert first.code == "oas-schema-required"
        assert (second.origin, second.code) == (Origin.STYLE, "operation-summary")
        assert second.severity == Severity.WARNING

    async def test_configured_severity_applies(self) -> None:
        config = ValidationConfig(rules={"operation-summary": RuleSetting(severity=Severity.HINT)})
        outcome = await _pipeline(config).validate_text(MISSING_INFO_YAML, uri="api.yaml")
        assert outcome.diagnostics.diagnostics[1].severity == Severity.HINT

    async def test_malformed_input(self) -> None:
        outcome = await _pipeline().validate_text("a: [1, 2\nb: c", uri="bad.yaml")
        assert outcome.status == OutcomeStatus.INPUT_ERROR
        assert outcome.exit_code == 2
        assert "Invalid YAML" in outcome.error
        assert outcome.diagnostics is None

    async def test_unresolved_reference_is_input_error(self) -> None:
        content = PETSTORE_YAML.replace("#/components/schemas/Pet", "#/components/schemas/Gone")
        outcome = await _pipeline().validate_text(content, uri="api.yaml")
        assert outcome.status == OutcomeStatus.INPUT_ERROR
        assert "#/components/schemas/Gone" in outcome.error

    async def test_validators_run_concurrently(self, monkeypatch: pytest.MonkeyPatch) -> None:
        pipeline = _pipeline()
        started: list[str] = []
        both_started = asyncio.Event()

        async def _structure(document):
            started.append("structural")
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)
            return []

        async def _style(document, externals):
            started.append("style")
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)
            return []

        monkeypatch.setattr(pipeline, "_check_structure", _structure)
        monkeypatch.setattr(pipeline, "_check_style", _style)
        outcome = await pipeline.validate_text(PETSTORE_YAML, uri="petstore.yaml")
        assert sorted(started) == ["structural", "style"]
        assert outcome.status == OutcomeStatus.PASS

    async def test_unexpected_error_logged_and_raised(
        self, loader: DocumentLoader, caplog: pytest.LogCaptureFixture
    ) -> None:
        pipeline = _pipeline(engine=_ExplodingEngine())
        doc = loader.load_string(PETSTORE_YAML, uri="petstore.yaml")
        with caplog.at_level(logging.ERROR, logger="oasguard.pipeline"):
            with pytest.raises(RuntimeError, match="engine crashed"):
                await pipeline.run(doc)
        assert any("failed unexpectedly" in r.getMessage() for r in caplog.records)

    async def test_notices_attached(self) -> None:
        notice = ConfigNotice(level=NoticeLevel.WARNING, message="Unknown rule code 'x' ignored")
        outcome = await _pipeline(notices=[notice]).validate_text(PETSTORE_YAML)
        assert outcome.notices == [notice]

    async def test_outcome_serializes(self) -> None:
        outcome = await _pipeline().validate_text(TWO_NODE_CYCLE_YAML, uri="cycle.yaml")
        data = outcome.model_dump(mode="json")
        assert data["status"] == "circular-reference"
        assert data["circular"]["chains"][0]["length"] == 2
        assert ValidationOutcome.model_validate(data).status == OutcomeStatus.CIRCULAR_REFERENCE


class TestValidateDocuments:
    async def test_one_failure_does_not_abort_others(self, tmp_path: Path) -> None:
        good = tmp_path / "good.yaml"
        good.write_text(PETSTORE_YAML, encoding="utf-8")
        bad = tmp_path / "bad.yaml"
        bad.write_text("a: [1, 2\nb: c", encoding="utf-8")
        cycle = tmp_path / "cycle.yaml"
        cycle.write_text(TWO_NODE_CYCLE_YAML, encoding="utf-8")
        missing = tmp_path / "missing.yaml"

        outcomes = await validate_documents(
            [bad, good, missing, cycle],
            settings=Settings(_env_file=None),
            config_path=tmp_path / "no-config.yaml",
        )
        assert [o.status for o in outcomes] == [
            OutcomeStatus.INPUT_ERROR,
            OutcomeStatus.PASS,
            OutcomeStatus.INPUT_ERROR,
            OutcomeStatus.CIRCULAR_REFERENCE,
        ]
        assert [o.exit_code for o in outcomes] == [2, 0, 2, 1]

    async def test_internal_error_contained(self, tmp_path: Path) -> None:
        first = tmp_path / "first.yaml"
        first.write_text(PETSTORE_YAML, encoding="utf-8")
        second = tmp_path / "second.yaml"
        second.write_text(PETSTORE_YAML, encoding="utf-8")

        outcomes = await validate_documents(
            [first, second], settings=Settings(_env_file=None), engine=_ExplodingEngine()
        )
        assert [o.status for o in outcomes] == [OutcomeStatus.INTERNAL_ERROR] * 2
        assert "RuntimeError: engine crashed" in outcomes[0].error
        assert outcomes[0].exit_code == 2

    async def test_config_file_applied(self, tmp_path: Path) -> None:
        doc = tmp_path / "api.yaml"
        doc.write_text(REQUEST_BODY_REF_YAML, encoding="utf-8")
        rc = tmp_path / ".validaterc"
        rc.write_text("rules:\n  content-entry-contains-schema: off\n  bogus: on\n", encoding="utf-8")

        (outcome,) = await validate_documents(
            [doc], settings=Settings(_env_file=None), config_path=rc
        )
        assert len(outcome.diagnostics) == 0
        assert [n.key for n in outcome.notices] == ["rules.bogus"]

    async def test_external_files_on_disk(self) -> None:
        (outcome,) = await validate_documents(
            [FIXTURES_DIR / "split" / "openapi.yaml"], settings=Settings(_env_file=None)
        )
        assert outcome.status == OutcomeStatus.PASS
        assert len(outcome.diagnostics) == 0

    async def test_defects_in_external_files_reported(self) -> None:
        folder = FIXTURES_DIR / "split-defects"
        (outcome,) = await validate_documents(
            [folder / "openapi.yaml"], settings=Settings(_env_file=None)
        )
        assert outcome.status == OutcomeStatus.PASS
        found = {(d.code, d.path) for d in outcome.diagnostics.diagnostics}
        assert found == {
            ("parameter-description", ("parameters", "Limit")),
            (
                "content-entry-contains-schema",
                ("responses", "PetList", "content", "application/json"),
            ),
        }
        external = (folder / "components.yaml").as_posix()
        assert all(d.source == external for d in outcome.diagnostics.diagnostics)
