"""Document loader with position tracking for rich error reporting."""

from __future__ import annotations

import datetime as dt
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import YAMLError
from ruamel.yaml.scalarbool import ScalarBoolean

from oasguard.models.document import (
    Document,
    NodeArena,
    NodePath,
    ReferencePointer,
    parse_json_pointer,
)
from oasguard.models.errors import OasGuardError, SourceSpan
from oasguard.parser.fetcher import resolve_uri

# ---------------------------------------------------------------------------
# Safety limits
# ---------------------------------------------------------------------------

_MAX_DOCUMENT_SIZE = 5_000_000  # 5M characters
_MAX_NODE_COUNT = 500_000
_MAX_DEPTH = 256

_JSON_SUFFIXES = (".json",)
_YAML_SUFFIXES = (".yaml", ".yml")


class DocumentLoadError(OasGuardError):
    """Raised when the input cannot become a Document.

    Covers unreadable sources, syntax errors, duplicate keys, a root that is
    not a mapping and violations of the safety limits.
    """


@dataclass
class SourceMap:
    """Maps node paths to their source positions for error reporting."""

    _positions: dict[NodePath, SourceSpan] = field(default_factory=dict)

    def add(self, path: NodePath, span: SourceSpan) -> None:
        self._positions[path] = span

    def get(self, path: NodePath) -> SourceSpan | None:
        return self._positions.get(tuple(path))


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise DocumentLoadError(f"Duplicate key '{key}' in JSON object")
        result[key] = value
    return result


class DocumentLoader:
    """Parses JSON or YAML text into an arena-backed Document.

    YAML goes through ruamel.yaml, which keeps line/column info on every
    parsed node and rejects duplicate keys.
    """

    def __init__(self, max_document_size: int = _MAX_DOCUMENT_SIZE) -> None:
        self._yaml = YAML()
        self._max_document_size = max_document_size

    # -- public loading API --------------------------------------------------

    def load(self, path: Path) -> Document:
        """Load a JSON/YAML file from disk."""
        suffix = path.suffix.lower()
        if suffix not in _JSON_SUFFIXES + _YAML_SUFFIXES:
            raise DocumentLoadError(
                f"Unsupported file type '{suffix or path.name}': "
                "supported file types are JSON (.json) and YAML (.yml, .yaml)"
            )
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentLoadError(f"Cannot read {path}: {exc}") from exc
        return self.load_string(content, uri=path.as_posix())

    def load_string(
        self, content: str, uri: str = "<string>", fmt: str | None = None
    ) -> Document:
        """Parse *content*; *fmt* is ``json`` or ``yaml`` (sniffed when omitted)."""
        if len(content) > self._max_document_size:
            raise DocumentLoadError(
                f"Document exceeds maximum size "
                f"({len(content):,} chars > {self._max_document_size:,} limit)"
            )
        fmt = fmt or self._detect_format(content, uri)
        source_map = SourceMap()
        if fmt == "json":
            data = self._parse_json(content, uri)
        else:
            data = self._parse_yaml(content, uri)

        if not isinstance(data, dict):
            raise DocumentLoadError(f"The given input in {uri} is not a valid object.")

        builder = _ArenaBuilder(uri, source_map)
        root = builder.build(data)
        return Document(builder.arena, root, uri=uri, text=content, source_map=source_map)

    # -- parsing -------------------------------------------------------------

    @staticmethod
    def _detect_format(content: str, uri: str) -> str:
        lowered = uri.lower().split("#", 1)[0]
        if lowered.endswith(_JSON_SUFFIXES):
            return "json"
        if lowered.endswith(_YAML_SUFFIXES):
            return "yaml"
        return "json" if content.lstrip().startswith("{") else "yaml"

    @staticmethod
    def _parse_json(content: str, uri: str) -> Any:
        try:
            return json.loads(content, object_pairs_hook=_reject_duplicate_keys)
        except json.JSONDecodeError as exc:
            raise DocumentLoadError(f"Invalid JSON in {uri}: {exc}") from exc
        except RecursionError as exc:
            raise DocumentLoadError(f"Invalid JSON in {uri}: nesting too deep") from exc

    def _parse_yaml(self, content: str, uri: str) -> Any:
        try:
            return self._yaml.load(content)
        except YAMLError as exc:
            raise DocumentLoadError(f"Invalid YAML in {uri}: {exc}") from exc
        except RecursionError as exc:
            raise DocumentLoadError(f"Invalid YAML in {uri}: nesting too deep") from exc


class _ArenaBuilder:
    """Converts parsed containers into tagged arena nodes (children first)."""

    def __init__(self, uri: str, source_map: SourceMap) -> None:
        self.arena = NodeArena()
        self._uri = uri
        self._source_map = source_map
        self._active: set[int] = set()

    def build(self, data: Any) -> int:
        return self._build(data, ())

    def _build(self, data: Any, path: NodePath) -> int:
        if len(path) > _MAX_DEPTH:
            raise DocumentLoadError(f"Document exceeds maximum nesting depth ({_MAX_DEPTH})")
        if len(self.arena) >= _MAX_NODE_COUNT:
            raise DocumentLoadError(
                f"Document exceeds maximum node count ({_MAX_NODE_COUNT:,})"
            )

        if isinstance(data, dict):
            return self._build_map(data, path)
        if isinstance(data, list):
            return self._build_sequence(data, path)
        return self.arena.add_scalar(path, _to_plain_scalar(data))

    def _build_map(self, data: dict[Any, Any], path: NodePath) -> int:
        with self._guard(data):
            entries: list[tuple[str, int]] = []
            for key, value in data.items():
                key_str = str(key)
                child_path = path + (key_str,)
                if isinstance(data, CommentedMap):
                    self._record_key_position(data, key, child_path)
                entries.append((key_str, self._build(value, child_path)))

        ref = data.get("$ref")
        if isinstance(ref, str):
            return self.arena.add_reference(path, entries, self._pointer(path, str(ref)))
        return self.arena.add_map(path, entries)

    def _build_sequence(self, data: list[Any], path: NodePath) -> int:
        with self._guard(data):
            items: list[int] = []
            for index, item in enumerate(data):
                child_path = path + (index,)
                if isinstance(data, CommentedSeq):
                    self._record_item_position(data, index, child_path)
                items.append(self._build(item, child_path))
        return self.arena.add_sequence(path, items)

    def _pointer(self, path: NodePath, ref: str) -> ReferencePointer:
        location, _, fragment = ref.partition("#")
        try:
            target_path = parse_json_pointer(fragment)
            target_uri = resolve_uri(self._uri, location) if location else self._uri
        except ValueError as exc:
            raise DocumentLoadError(
                f"Invalid $ref '{ref}' at {self._uri}#/{'/'.join(map(str, path))}: {exc}"
            ) from exc
        return ReferencePointer(
            source_uri=self._uri,
            source_path=path,
            ref=ref,
            target_uri=target_uri,
            target_path=target_path,
        )

    def _guard(self, container: Any) -> _ActiveContainer:
        return _ActiveContainer(self._active, id(container))

    def _record_key_position(self, data: CommentedMap, key: Any, path: NodePath) -> None:
        try:
            position = data.lc.key(key)
        except (AttributeError, KeyError, TypeError):
            return
        if position:
            line, col = position
            self._source_map.add(path, SourceSpan(file=self._uri, line=line + 1, column=col + 1))

    def _record_item_position(self, data: CommentedSeq, index: int, path: NodePath) -> None:
        try:
            position = data.lc.item(index)
        except (AttributeError, KeyError, TypeError):
            return
        if position:
            line, col = position
            self._source_map.add(path, SourceSpan(file=self._uri, line=line + 1, column=col + 1))


class _ActiveContainer:
    """Context manager that detects YAML aliases recursing into themselves."""

    def __init__(self, active: set[int], marker: int) -> None:
        self._active = active
        self._marker = marker

    def __enter__(self) -> None:
        if self._marker in self._active:
            raise DocumentLoadError("Recursive YAML alias detected")
        self._active.add(self._marker)

    def __exit__(self, *exc_info: object) -> None:
        self._active.discard(self._marker)


def _to_plain_scalar(value: Any) -> Any:
    """Convert ruamel.yaml scalar wrappers to plain JSON-compatible values."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, ScalarBoolean):
        return bool(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, str):
        return str(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return str(value)
