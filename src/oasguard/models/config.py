"""Resolved validation configuration: per-rule settings and deduplication policy."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from oasguard.models.diagnostics import Severity
from oasguard.models.document import format_json_pointer


class RuleSetting(BaseModel):
    """Effective setting for one style rule."""

    model_config = {"frozen": True}

    enabled: bool = True
    severity: Severity | None = None  # None keeps the rule's own default
    exclude: tuple[str, ...] = ()


class FingerprintPolicy(BaseModel):
    """How diagnostics are fingerprinted for deduplication.

    ``code_aliases`` maps validator-specific codes onto one shared identifier so
    that the structural and style layers can collapse the same defect.
    ``narrowed_codes`` also fold origin and severity into the fingerprint, so
    those codes only ever deduplicate against themselves.
    """

    model_config = {"frozen": True}

    code_aliases: dict[str, str] = Field(default_factory=dict)
    narrowed_codes: frozenset[str] = frozenset()

    def canonical_code(self, code: str) -> str:
        return self.code_aliases.get(code, code)


class ValidationConfig(BaseModel):
    """Read-only configuration handed to every stage of one pipeline run."""

    model_config = {"frozen": True}

    rules: dict[str, RuleSetting] = Field(default_factory=dict)
    exclude: tuple[str, ...] = ()
    fingerprint: FingerprintPolicy = Field(default_factory=FingerprintPolicy)

    def setting_for(self, code: str) -> RuleSetting:
        return self.rules.get(code, _DEFAULT_SETTING)

    def is_enabled(self, code: str) -> bool:
        return self.setting_for(code).enabled

    def is_excluded(self, code: str, path: Sequence[str | int]) -> bool:
        """True when *path* lies under a global or per-rule excluded prefix.

        Prefixes starting with ``/`` are JSON pointers; anything else is
        matched against the dotted path.
        """
        prefixes = self.exclude + self.setting_for(code).exclude
        if not prefixes:
            return False
        dotted = ".".join(str(s) for s in path)
        pointer = format_json_pointer(path)
        for prefix in prefixes:
            target, sep = (pointer, "/") if prefix.startswith("/") else (dotted, ".")
            if target == prefix or target.startswith(prefix.rstrip(sep) + sep):
                return True
        return False


_DEFAULT_SETTING = RuleSetting()
