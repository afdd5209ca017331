"""Validation configuration: merges user settings over the ruleset defaults.

A ``.validaterc`` file (YAML or JSON) looks like::

    rules:
      operation-summary: off
      info-contact: warning
      parameter-description:
        severity: error
        exclude: ["/paths/~1internal"]
    exclude:
      - paths./health
    fingerprint:
      aliases: {oas-schema-required: required-field}
      narrowed: [no-empty-descriptions]

Problems never abort a run: unparsable files and unknown rule codes fall
back to defaults and are reported as warning-level notices.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from oasguard.models.config import FingerprintPolicy, RuleSetting, ValidationConfig
from oasguard.models.diagnostics import Severity
from oasguard.models.errors import ConfigNotice, NoticeLevel

logger = logging.getLogger("oasguard.config")

DEFAULT_CONFIG_FILENAME = ".validaterc"

_OFF_VALUES = {"off", "false", "disabled"}
_ON_VALUES = {"on", "true", "enabled"}
_TOP_LEVEL_KEYS = {"rules", "exclude", "fingerprint"}


@dataclass
class ResolvedConfig:
    """A ValidationConfig plus the notices raised while building it."""

    config: ValidationConfig
    notices: list[ConfigNotice] = field(default_factory=list)


class ConfigResolver:
    """Builds a read-only ValidationConfig from an optional user source."""

    def __init__(self, known_codes: Iterable[str]) -> None:
        self._known_codes = frozenset(known_codes)
        self._yaml = YAML(typ="safe", pure=True)

    def load(self, path: Path | None = None) -> ResolvedConfig:
        """Read a config file; a missing or broken file means defaults."""
        explicit = path is not None
        path = path or Path.cwd() / DEFAULT_CONFIG_FILENAME
        if not path.is_file():
            if not explicit:
                return ResolvedConfig(ValidationConfig())
            return self._defaults(f"Config file {path} not found; using defaults", key=str(path))
        try:
            raw = self._yaml.load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, YAMLError) as exc:
            return self._defaults(
                f"Could not parse config file {path}; using defaults ({exc})", key=str(path)
            )
        return self.resolve(raw)

    def resolve(self, raw: Any) -> ResolvedConfig:
        """Merge an already-parsed user config over the defaults."""
        if raw is None:
            return ResolvedConfig(ValidationConfig())
        if not isinstance(raw, Mapping):
            return self._defaults("Configuration must be a mapping; using defaults")

        notices: list[ConfigNotice] = []
        for key in sorted(set(raw) - _TOP_LEVEL_KEYS):
            notices.append(_warning(f"Unknown configuration key '{key}' ignored", key=str(key)))

        rules = self._resolve_rules(raw.get("rules"), notices)
        exclude = _string_list(raw.get("exclude"), "exclude", notices)
        fingerprint = self._resolve_fingerprint(raw.get("fingerprint"), notices)

        for notice in notices:
            logger.warning("Configuration: %s", notice.message)
        return ResolvedConfig(
            ValidationConfig(rules=rules, exclude=exclude, fingerprint=fingerprint),
            notices,
        )

    # -- sections ------------------------------------------------------------

    def _resolve_rules(self, raw: Any, notices: list[ConfigNotice]) -> dict[str, RuleSetting]:
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            notices.append(_warning("'rules' must be a mapping; rule defaults used", key="rules"))
            return {}

        rules: dict[str, RuleSetting] = {}
        for code, value in raw.items():
            code = str(code)
            key = f"rules.{code}"
            if code not in self._known_codes:
                notices.append(_warning(f"Unknown rule code '{code}' ignored", key=key))
                continue
            setting = _parse_rule_setting(value)
            if setting is None:
                notices.append(
                    _warning(f"Invalid setting {value!r} for rule '{code}'; default kept", key=key)
                )
                continue
            rules[code] = setting
        return rules

    def _resolve_fingerprint(self, raw: Any, notices: list[ConfigNotice]) -> FingerprintPolicy:
        if raw is None:
            return FingerprintPolicy()
        if not isinstance(raw, Mapping):
            notices.append(_warning("'fingerprint' must be a mapping; ignored", key="fingerprint"))
            return FingerprintPolicy()

        aliases: dict[str, str] = {}
        raw_aliases = raw.get("aliases") or {}
        if isinstance(raw_aliases, Mapping):
            aliases = {str(k): str(v) for k, v in raw_aliases.items()}
        else:
            notices.append(_warning("'fingerprint.aliases' must be a mapping", key="fingerprint"))
        narrowed = _string_list(raw.get("narrowed"), "fingerprint.narrowed", notices)
        return FingerprintPolicy(code_aliases=aliases, narrowed_codes=frozenset(narrowed))

    def _defaults(self, message: str, key: str | None = None) -> ResolvedConfig:
        logger.warning("Configuration: %s", message)
        return ResolvedConfig(ValidationConfig(), [_warning(message, key=key)])


def _parse_rule_setting(value: Any) -> RuleSetting | None:
    """Accept ``off``/``on``, a severity name, a bool or a mapping."""
    if isinstance(value, bool):
        return RuleSetting(enabled=value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _OFF_VALUES:
            return RuleSetting(enabled=False)
        if lowered in _ON_VALUES:
            return RuleSetting()
        try:
            return RuleSetting(severity=Severity(lowered))
        except ValueError:
            return None
    if isinstance(value, Mapping):
        severity = value.get("severity")
        exclude = value.get("exclude", [])
        enabled = value.get("enabled", True)
        if not isinstance(enabled, bool) or not isinstance(exclude, list):
            return None
        try:
            parsed = Severity(str(severity).lower()) if severity is not None else None
        except ValueError:
            return None
        return RuleSetting(enabled=enabled, severity=parsed, exclude=tuple(map(str, exclude)))
    return None


def _string_list(raw: Any, key: str, notices: list[ConfigNotice]) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        notices.append(_warning(f"'{key}' must be a list; ignored", key=key))
        return ()
    return tuple(str(item) for item in raw)


def _warning(message: str, key: str | None = None) -> ConfigNotice:
    return ConfigNotice(level=NoticeLevel.WARNING, message=message, key=key)
