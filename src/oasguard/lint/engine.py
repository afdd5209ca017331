"""Rule-execution engine: walks an OpenAPI document and evaluates a ruleset.

The engine speaks the numeric severity levels common to lint engines
(0 error, 1 warn, 2 info, 3 hint); translation into named severities happens
in the adapter, never here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Protocol

from oasguard.models.config import ValidationConfig
from oasguard.models.document import Document, Node, NodeKind, NodePath

if TYPE_CHECKING:
    from oasguard.lint.rules import Ruleset

logger = logging.getLogger("oasguard.lint")

PARSER_CODE = "parser"

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

_MAX_REF_HOPS = 32

_COMPONENT_SECTIONS = (
    ("parameters", "parameter"),
    ("requestBodies", "request-body"),
    ("responses", "response"),
)


class EngineSeverity(IntEnum):
    ERROR = 0
    WARN = 1
    INFO = 2
    HINT = 3


RawViolation = Mapping[str, Any]


class RuleEngine(Protocol):
    """Anything that can evaluate a ruleset against a raw document."""

    def run(
        self,
        document: Document,
        ruleset: Ruleset,
        config: ValidationConfig,
        externals: Mapping[str, Document] | None = None,
    ) -> Sequence[RawViolation]: ...


@dataclass(frozen=True)
class LintTarget:
    """A node handed to a rule, already dereferenced.

    ``node.path`` is where the node is defined inside ``document``, which is
    an external document when the node was reached through an external
    ``$ref``. ``reached_at`` is the path in the main document that led to it.
    """

    kind: str
    node: Node
    reached_at: NodePath
    document: Document

    @property
    def path(self) -> NodePath:
        return self.node.path

    def has(self, key: str) -> bool:
        return self.node.child_id(key) is not None

    def value(self, key: str, default: Any = None) -> Any:
        child = self.node.child_id(key)
        if child is None:
            return default
        return self.document.to_python(child)


@dataclass
class Finding:
    path: NodePath
    message: str | None = None
    # *path* is a reached_at path, so it lies in the main document
    reached: bool = False


RuleCheck = Callable[[LintTarget, dict[str, Any]], Iterable[Finding]]

Located = tuple[Document, Node]


@dataclass
class _Walk:
    """One pass over a document and the external documents it references.

    Each (kind, document, node) is visited once. External targets are only
    followed when their document is in ``externals``.
    """

    document: Document
    externals: Mapping[str, Document] = field(default_factory=dict)
    seen: set[tuple[str, str, int]] = field(default_factory=set)
    broken: list[tuple[Document, NodePath, str]] = field(default_factory=list)

    def document_at(self, uri: str) -> Document | None:
        if uri == self.document.uri:
            return self.document
        return self.externals.get(uri)

    def deref(self, doc: Document, node: Node) -> Located | None:
        hops = 0
        while node.kind == NodeKind.REFERENCE:
            pointer = node.pointer
            if pointer is None:
                return None
            target_doc = self.document_at(pointer.target_uri)
            if target_doc is None:
                return None
            target = target_doc.lookup(pointer.target_path)
            if target is None or hops >= _MAX_REF_HOPS:
                self.broken.append((doc, node.path, pointer.ref))
                return None
            doc, node = target_doc, target
            hops += 1
        return doc, node

    def child(self, doc: Document, node: Node, key: str | int) -> Node | None:
        child_id = node.child_id(key)
        return None if child_id is None else doc.node(child_id)

    def targets(self) -> Iterator[LintTarget]:
        doc = self.document
        root = doc.root
        yield from self._visit("document", doc, root, ())
        info = self.child(doc, root, "info")
        if info is not None:
            yield from self._visit("info", doc, info, ("info",))

        paths = self.child(doc, root, "paths")
        if paths is not None and paths.kind == NodeKind.MAP:
            for key, child_id in paths.entries:
                if key.startswith("/"):
                    yield from self._path_item(doc, doc.node(child_id), ("paths", key))

        components = self.child(doc, root, "components")
        sections: list[tuple[Node | None, str, NodePath]] = []
        if components is not None:
            for key, kind in _COMPONENT_SECTIONS:
                sections.append((self.child(doc, components, key), kind, ("components", key)))
        sections += [
            (self.child(doc, root, "parameters"), "parameter", ("parameters",)),
            (self.child(doc, root, "responses"), "response", ("responses",)),
        ]
        for section, kind, base in sections:
            if section is None or section.kind != NodeKind.MAP:
                continue
            for key, child_id in section.entries:
                yield from self._dispatch(kind, doc, doc.node(child_id), base + (key,))

    # -- structure ------------------------------------------------------------

    def _dispatch(
        self, kind: str, doc: Document, node: Node, reached_at: NodePath
    ) -> Iterator[LintTarget]:
        handlers = {
            "parameter": self._parameter,
            "request-body": self._request_body,
            "response": self._response,
        }
        yield from handlers[kind](doc, node, reached_at)

    def _path_item(self, doc: Document, node: Node, reached_at: NodePath) -> Iterator[LintTarget]:
        visited = yield from self._visit("path-item", doc, node, reached_at)
        if visited is None:
            return
        doc, item = visited
        yield from self._parameters(doc, item, reached_at)
        for method in HTTP_METHODS:
            operation = self.child(doc, item, method)
            if operation is not None:
                yield from self._operation(doc, operation, reached_at + (method,))

    def _operation(self, doc: Document, node: Node, reached_at: NodePath) -> Iterator[LintTarget]:
        visited = yield from self._visit("operation", doc, node, reached_at)
        if visited is None:
            return
        doc, operation = visited
        yield from self._parameters(doc, operation, reached_at)
        body = self.child(doc, operation, "requestBody")
        if body is not None:
            yield from self._request_body(doc, body, reached_at + ("requestBody",))
        responses = self.child(doc, operation, "responses")
        if responses is not None and responses.kind == NodeKind.MAP:
            for code, child_id in responses.entries:
                yield from self._response(doc, doc.node(child_id), reached_at + ("responses", code))

    def _parameters(self, doc: Document, owner: Node, reached_at: NodePath) -> Iterator[LintTarget]:
        parameters = self.child(doc, owner, "parameters")
        if parameters is None or parameters.kind != NodeKind.SEQUENCE:
            return
        for index, child_id in enumerate(parameters.items):
            yield from self._parameter(doc, doc.node(child_id), reached_at + ("parameters", index))

    def _parameter(self, doc: Document, node: Node, reached_at: NodePath) -> Iterator[LintTarget]:
        visited = yield from self._visit("parameter", doc, node, reached_at)
        if visited is not None:
            yield from self._content(*visited, reached_at)

    def _request_body(
        self, doc: Document, node: Node, reached_at: NodePath
    ) -> Iterator[LintTarget]:
        visited = yield from self._visit("request-body", doc, node, reached_at)
        if visited is not None:
            yield from self._content(*visited, reached_at)

    def _response(self, doc: Document, node: Node, reached_at: NodePath) -> Iterator[LintTarget]:
        visited = yield from self._visit("response", doc, node, reached_at)
        if visited is not None:
            yield from self._content(*visited, reached_at)

    def _content(self, doc: Document, owner: Node, reached_at: NodePath) -> Iterator[LintTarget]:
        content = self.child(doc, owner, "content")
        if content is None:
            return
        located = self.deref(doc, content)
        if located is None:
            return
        doc, content = located
        if content.kind != NodeKind.MAP:
            return
        for media_type, child_id in content.entries:
            yield from self._visit(
                "media-type", doc, doc.node(child_id), reached_at + ("content", media_type)
            )

    # -- visiting ---------------------------------------------------------------

    def _visit(
        self, kind: str, doc: Document, node: Node, reached_at: NodePath
    ) -> Generator[LintTarget, None, Located | None]:
        """Yield the target once; return the dereferenced node for descent."""
        located = self.deref(doc, node)
        if located is None:
            return None
        doc, resolved = located
        if resolved.kind != NodeKind.MAP:
            return None
        key = (kind, doc.uri, resolved.id)
        if key in self.seen:
            return None
        self.seen.add(key)
        yield LintTarget(kind=kind, node=resolved, reached_at=reached_at, document=doc)
        return located


class RulesetEngine:
    """Evaluates each rule against the nodes of the kinds it is given."""

    def run(
        self,
        document: Document,
        ruleset: Ruleset,
        config: ValidationConfig,
        externals: Mapping[str, Document] | None = None,
    ) -> list[RawViolation]:
        walk = _Walk(document, externals or {})
        states: dict[str, dict[str, Any]] = {rule.code: {} for rule in ruleset.rules}
        violations: list[RawViolation] = []

        for target in walk.targets():
            for rule in ruleset.rules_for(target.kind):
                for finding in rule.check(target, states[rule.code]):
                    in_main = finding.reached or target.document is document
                    violations.append(
                        _violation(
                            rule.code,
                            int(rule.severity),
                            finding.message or rule.message,
                            finding.path,
                            None if in_main else target.document.uri,
                        )
                    )

        for doc, path, ref in walk.broken:
            violations.append(
                _violation(
                    PARSER_CODE,
                    int(EngineSeverity.ERROR),
                    f"Cannot resolve reference '{ref}'",
                    path,
                    None if doc is document else doc.uri,
                )
            )
        logger.debug(
            "Evaluated %d rule(s) over %s: %d violation(s)",
            len(ruleset.rules), document.uri, len(violations),
        )
        return violations


def _violation(
    code: str, severity: int, message: str, path: NodePath, source: str | None
) -> RawViolation:
    violation: dict[str, Any] = {
        "code": code,
        "severity": severity,
        "message": message,
        "path": list(path),
    }
    if source is not None:
        violation["source"] = source
    return violation
