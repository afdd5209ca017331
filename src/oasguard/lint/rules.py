"""Bundled style rules and the ruleset container."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from oasguard.lint.engine import EngineSeverity, Finding, LintTarget, RuleCheck


@dataclass(frozen=True)
class Rule:
    """A named check evaluated against every node of the kinds in *given*."""

    code: str
    description: str
    message: str
    severity: EngineSeverity
    given: tuple[str, ...]
    check: RuleCheck = field(compare=False, repr=False)


@dataclass(frozen=True)
class Ruleset:
    rules: tuple[Rule, ...] = ()

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def codes(self) -> frozenset[str]:
        return frozenset(rule.code for rule in self.rules)

    def get(self, code: str) -> Rule | None:
        for rule in self.rules:
            if rule.code == code:
                return rule
        return None

    def rules_for(self, kind: str) -> list[Rule]:
        return [rule for rule in self.rules if kind in rule.given]


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


# -- checks ----------------------------------------------------------------------


def _content_entry_contains_schema(target: LintTarget, state: dict) -> Iterable[Finding]:
    if not target.has("schema"):
        yield Finding(target.path)


def _operation_operation_id(target: LintTarget, state: dict) -> Iterable[Finding]:
    if _blank(target.value("operationId")):
        yield Finding(target.path)


def _operation_operation_id_unique(target: LintTarget, state: dict) -> Iterable[Finding]:
    operation_id = target.value("operationId")
    if _blank(operation_id):
        return
    seen: dict[str, tuple] = state.setdefault("seen", {})
    if operation_id in seen:
        yield Finding(target.path + ("operationId",))
    else:
        seen[operation_id] = target.path


def _operation_summary(target: LintTarget, state: dict) -> Iterable[Finding]:
    if _blank(target.value("summary")):
        yield Finding(target.path)


def _path_keys_no_trailing_slash(target: LintTarget, state: dict) -> Iterable[Finding]:
    key = str(target.reached_at[-1])
    if len(key) > 1 and key.endswith("/"):
        yield Finding(target.reached_at, reached=True)


def _parameter_description(target: LintTarget, state: dict) -> Iterable[Finding]:
    if not target.has("description"):
        yield Finding(target.path)


def _info_contact(target: LintTarget, state: dict) -> Iterable[Finding]:
    if not target.has("contact"):
        yield Finding(target.path)


def _no_empty_descriptions(target: LintTarget, state: dict) -> Iterable[Finding]:
    if target.has("description") and _blank(target.value("description")):
        yield Finding(target.path + ("description",))


def default_ruleset() -> Ruleset:
    """The rules applied when no other ruleset is supplied."""
    return Ruleset(
        rules=(
            Rule(
                code="content-entry-contains-schema",
                description="Media type entries under `content` declare a schema.",
                message="Content entries must specify a schema",
                severity=EngineSeverity.WARN,
                given=("media-type",),
                check=_content_entry_contains_schema,
            ),
            Rule(
                code="operation-operationId",
                description="Every operation has an operationId.",
                message="Operations must have a non-empty `operationId`.",
                severity=EngineSeverity.WARN,
                given=("operation",),
                check=_operation_operation_id,
            ),
            Rule(
                code="operation-operationId-unique",
                description="No two operations share an operationId.",
                message="Every operation must have a unique `operationId`.",
                severity=EngineSeverity.ERROR,
                given=("operation",),
                check=_operation_operation_id_unique,
            ),
            Rule(
                code="operation-summary",
                description="Every operation has a summary.",
                message="Operations must have a non-empty `summary` field.",
                severity=EngineSeverity.WARN,
                given=("operation",),
                check=_operation_summary,
            ),
            Rule(
                code="path-keys-no-trailing-slash",
                description="Path keys do not end with a slash.",
                message="Path must not end with slash.",
                severity=EngineSeverity.WARN,
                given=("path-item",),
                check=_path_keys_no_trailing_slash,
            ),
            Rule(
                code="parameter-description",
                description="Parameters carry a description.",
                message="Parameter objects must have a `description`.",
                severity=EngineSeverity.WARN,
                given=("parameter",),
                check=_parameter_description,
            ),
            Rule(
                code="info-contact",
                description="The info object names a contact.",
                message="Info object must have a `contact` object.",
                severity=EngineSeverity.INFO,
                given=("info",),
                check=_info_contact,
            ),
            Rule(
                code="no-empty-descriptions",
                description="Descriptions, when present, are not blank.",
                message="Descriptions must not be empty.",
                severity=EngineSeverity.HINT,
                given=("info", "operation", "parameter", "request-body", "response"),
                check=_no_empty_descriptions,
            ),
        )
    )
