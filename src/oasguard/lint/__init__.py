"""Style linting: rule engine, bundled rules and the diagnostic adapter."""

from oasguard.lint.adapter import StyleLintAdapter
from oasguard.lint.engine import EngineSeverity, LintTarget, RuleEngine, RulesetEngine
from oasguard.lint.rules import Rule, Ruleset, default_ruleset

__all__ = [
    "EngineSeverity",
    "LintTarget",
    "Rule",
    "RuleEngine",
    "Ruleset",
    "RulesetEngine",
    "StyleLintAdapter",
    "default_ruleset",
]
