"""Structural validation of the raw document against a fixed meta-schema."""

from __future__ import annotations

import json
from functools import cache
from importlib import resources
from typing import Any

from jsonschema import ValidationError
from jsonschema.exceptions import best_match
from jsonschema.validators import validator_for

from oasguard.models.diagnostics import Diagnostic, Origin, Severity
from oasguard.models.document import Document

_SCHEMA_PACKAGE = "oasguard.validation"
_OPENAPI_3 = "openapi-3.0.json"
_SWAGGER_2 = "swagger-2.0.json"
_REFERENCE_BRANCH = {"$ref": "#/definitions/Reference"}

CODE_PREFIX = "oas-schema-"


@cache
def load_meta_schema(name: str) -> dict[str, Any]:
    """Load a bundled meta-schema by file name (cached for the process)."""
    schema_file = resources.files(_SCHEMA_PACKAGE).joinpath("schemas").joinpath(name)
    text = schema_file.read_text(encoding="utf-8")
    return json.loads(text)


def select_meta_schema(document: Document) -> dict[str, Any]:
    """Pick the meta-schema matching the document's declared format version."""
    if str(document.get("swagger", "")).startswith("2."):
        return load_meta_schema(_SWAGGER_2)
    return load_meta_schema(_OPENAPI_3)


class StructuralValidator:
    """Checks document shape; every schema violation becomes one error Diagnostic."""

    def check(self, document: Document, meta_schema: dict[str, Any]) -> list[Diagnostic]:
        validator_cls = validator_for(meta_schema)
        validator = validator_cls(meta_schema)
        instance = document.to_python()

        diagnostics: list[Diagnostic] = []
        for error in sorted(validator.iter_errors(instance), key=_error_sort_key):
            detail = _refine(error)
            path = tuple(detail.absolute_path)
            diagnostics.append(
                Diagnostic(
                    origin=Origin.STRUCTURAL,
                    severity=Severity.ERROR,
                    path=path,
                    message=detail.message,
                    code=f"{CODE_PREFIX}{detail.validator}",
                    span=document.source_map.get(path) if document.source_map else None,
                )
            )
        return diagnostics


def _error_sort_key(error: ValidationError) -> tuple[list[str], str]:
    return [str(p) for p in error.absolute_path], error.message


def _refine(error: ValidationError) -> ValidationError:
    """Replace an opaque ``oneOf``/``anyOf`` failure with its most relevant cause.

    Branches that only describe a ``$ref`` object are skipped when the
    instance is not a reference, so the real object's problem is reported.
    """
    if error.validator not in ("oneOf", "anyOf") or not error.context:
        return error
    candidates = list(error.context)
    if isinstance(error.instance, dict) and "$ref" not in error.instance:
        branches = error.validator_value
        non_reference = [
            e for e in candidates if branches[e.schema_path[0]] != _REFERENCE_BRANCH
        ]
        candidates = non_reference or candidates
    relevant = best_match(candidates)
    if relevant is None:
        return error
    return _refine(relevant)
