"""Bridge between the rule engine and the unified diagnostic model.

The engine receives the raw (non-dereferenced) documents so that it reports
the paths where content is defined. Its numeric severities are translated
here; nothing numeric leaves this module.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from oasguard.lint.engine import PARSER_CODE, EngineSeverity, RawViolation, RuleEngine, RulesetEngine
from oasguard.lint.rules import Ruleset, default_ruleset
from oasguard.models.config import ValidationConfig
from oasguard.models.diagnostics import Diagnostic, Origin, Severity
from oasguard.models.document import Document

logger = logging.getLogger("oasguard.lint")

_SEVERITY_BY_LEVEL = {
    0: Severity.ERROR,
    1: Severity.WARNING,
    2: Severity.INFO,
    3: Severity.HINT,
}
_LEVEL_BY_SEVERITY = {
    Severity.ERROR: EngineSeverity.ERROR,
    Severity.WARNING: EngineSeverity.WARN,
    Severity.INFO: EngineSeverity.INFO,
    Severity.HINT: EngineSeverity.HINT,
}


class StyleLintAdapter:
    """Runs the style engine and normalizes what it reports."""

    def __init__(
        self,
        engine: RuleEngine | None = None,
        ruleset: Ruleset | None = None,
        debug: bool = False,
    ) -> None:
        self._engine = engine or RulesetEngine()
        self._ruleset = ruleset if ruleset is not None else default_ruleset()
        self._debug = debug

    @property
    def ruleset(self) -> Ruleset:
        return self._ruleset

    def configure(self, config: ValidationConfig) -> Ruleset:
        """Apply enable/disable and severity overrides to the ruleset."""
        rules = []
        for rule in self._ruleset:
            setting = config.setting_for(rule.code)
            if not setting.enabled:
                continue
            if setting.severity is not None:
                rule = replace(rule, severity=_LEVEL_BY_SEVERITY[setting.severity])
            rules.append(rule)
        return Ruleset(rules=tuple(rules))

    def lint(
        self,
        document: Document,
        config: ValidationConfig,
        externals: Mapping[str, Document] | None = None,
    ) -> list[RawViolation]:
        """Run the engine with the configured ruleset; output is not yet normalized."""
        return list(
            self._engine.run(document, self.configure(config), config, externals=externals or {})
        )

    def normalize(self, violation: RawViolation) -> Diagnostic | None:
        """Translate one engine violation; parse-level and malformed ones yield None."""
        if isinstance(violation, Mapping) and violation.get("code") == PARSER_CODE:
            self._dropped(violation, "parse-level result")
            return None
        diagnostic = _to_diagnostic(violation)
        if diagnostic is None:
            self._dropped(violation, "malformed violation")
        return diagnostic

    def check(
        self,
        document: Document,
        config: ValidationConfig,
        externals: Mapping[str, Document] | None = None,
    ) -> list[Diagnostic]:
        """Lint and normalize, dropping anything under an excluded path.

        *externals* are the documents the main one references, keyed by URI;
        nodes reached inside them are linted too.
        """
        diagnostics = []
        for violation in self.lint(document, config, externals):
            diagnostic = self.normalize(violation)
            if diagnostic is None:
                continue
            if config.is_excluded(diagnostic.code, diagnostic.path):
                continue
            diagnostics.append(diagnostic)
        return diagnostics

    def _dropped(self, violation: Any, reason: str) -> None:
        if self._debug:
            logger.debug("Dropped style result (%s): %r", reason, violation)


def _to_diagnostic(violation: Any) -> Diagnostic | None:
    if not isinstance(violation, Mapping):
        return None
    code = violation.get("code")
    message = violation.get("message")
    path = violation.get("path")
    level = violation.get("severity")
    source = violation.get("source")
    if not isinstance(code, str) or not code:
        return None
    if not isinstance(message, str) or not message:
        return None
    if not isinstance(path, (list, tuple)):
        return None
    if not all(isinstance(s, (str, int)) and not isinstance(s, bool) for s in path):
        return None
    if not isinstance(level, int) or isinstance(level, bool):
        return None
    if level not in _SEVERITY_BY_LEVEL:
        return None
    if source is not None and (not isinstance(source, str) or not source):
        return None
    return Diagnostic(
        origin=Origin.STYLE,
        severity=_SEVERITY_BY_LEVEL[level],
        path=tuple(path),
        message=message,
        code=code,
        source=source,
    )
