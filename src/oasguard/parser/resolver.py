"""Reference resolution: substitutes every ``$ref`` and detects circular chains."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import httpx

from oasguard.models.diagnostics import CircularReferenceReport, ReferenceChain
from oasguard.models.document import (
    Document,
    Node,
    NodeArena,
    NodeKind,
    NodePath,
    ReferencePointer,
    ResolvedDocument,
)
from oasguard.models.errors import OasGuardError
from oasguard.parser.fetcher import DefaultFetcher, DocumentFetcher
from oasguard.parser.loader import DocumentLoader, DocumentLoadError

logger = logging.getLogger("oasguard.resolver")

# A pointer may pass through at most this many intermediate references
_MAX_POINTER_HOPS = 32

ResolutionOutcome = ResolvedDocument | CircularReferenceReport

_LOAD_FAILURES = (
    OSError,
    UnicodeDecodeError,
    httpx.HTTPError,
    httpx.InvalidURL,
    DocumentLoadError,
)


@dataclass(frozen=True)
class UnresolvedReference:
    """A pointer whose target could not be located."""

    pointer: ReferencePointer
    reason: str


class ReferenceResolutionError(OasGuardError):
    """Raised when references point at missing or unloadable targets."""

    def __init__(self, unresolved: Sequence[UnresolvedReference]) -> None:
        self.unresolved = tuple(unresolved)
        details = "; ".join(f"{u.pointer.describe()} ({u.reason})" for u in self.unresolved)
        super().__init__(f"Unresolvable references: {details}")


class ExternalDocumentCache:
    """Fetch-once store of external documents for a single resolver run.

    Each location maps to one task, so concurrent lookups of the same
    location share a single fetch. Entries are never evicted.
    """

    def __init__(self, fetcher: DocumentFetcher, loader: DocumentLoader) -> None:
        self._fetcher = fetcher
        self._loader = loader
        self._tasks: dict[str, asyncio.Task[Document]] = {}

    async def get(self, uri: str) -> Document:
        task = self._tasks.get(uri)
        if task is None:
            task = asyncio.ensure_future(self._load(uri))
            self._tasks[uri] = task
        return await task

    async def _load(self, uri: str) -> Document:
        logger.debug("Fetching external document %s", uri)
        text = await self._fetcher.fetch(uri)
        return self._loader.load_string(text, uri=uri)


class ReferenceResolver:
    """Produces a fully dereferenced copy of a document, or its cycle report."""

    def __init__(
        self,
        loader: DocumentLoader | None = None,
        fetcher: DocumentFetcher | None = None,
    ) -> None:
        self._loader = loader or DocumentLoader()
        self._fetcher = fetcher or DefaultFetcher()

    async def resolve(self, document: Document) -> ResolutionOutcome:
        """Resolve *document*.

        Returns a CircularReferenceReport (never a partial document) when any
        cycle exists. Raises ``ReferenceResolutionError`` when a target is
        missing or an external document cannot be loaded.
        """
        cache = ExternalDocumentCache(self._fetcher, self._loader)
        documents, failures = await self._load_external(document, cache)

        walk = _ResolutionWalk(documents, failures)
        root = walk.resolve(document.uri, document.root.id)

        if walk.cycles:
            logger.info(
                "Found %d circular reference chain(s) in %s", len(walk.cycles), document.uri
            )
            return CircularReferenceReport(chains=tuple(walk.cycles))
        if walk.unresolved:
            raise ReferenceResolutionError(walk.unresolved)
        externals = {uri: doc for uri, doc in documents.items() if uri != document.uri}
        return ResolvedDocument(walk.arena, root, document, externals)

    async def _load_external(
        self, document: Document, cache: ExternalDocumentCache
    ) -> tuple[dict[str, Document], dict[str, str]]:
        """Load every external document reachable from *document*, concurrently."""
        documents: dict[str, Document] = {document.uri: document}
        failures: dict[str, str] = {}
        pending = _external_targets(document) - documents.keys()

        while pending:
            uris = sorted(pending)
            results = await asyncio.gather(*(cache.get(uri) for uri in uris), return_exceptions=True)
            for uri, result in zip(uris, results, strict=True):
                if isinstance(result, _LOAD_FAILURES):
                    logger.warning("Cannot load external document %s: %s", uri, result)
                    failures[uri] = str(result)
                elif isinstance(result, BaseException):
                    raise result
                else:
                    documents[uri] = result
            pending = set()
            for loaded in list(documents.values()):
                pending |= _external_targets(loaded)
            pending -= documents.keys() | failures.keys()

        return documents, failures


def _external_targets(document: Document) -> set[str]:
    return {
        node.pointer.target_uri
        for node in document.references()
        if node.pointer is not None and node.pointer.is_external
    }


@dataclass
class _Frame:
    """A map or sequence whose children are still being resolved."""

    uri: str
    node: Node
    children: tuple[int, ...]
    results: list[int] = field(default_factory=list)
    # Entries this frame opened on the reference stack
    followed: int = 0


class _ResolutionWalk:
    """Depth-first substitution over the loaded documents.

    ``_stack`` holds the references currently being followed on the active
    path; a pointer whose target is already on it closes a cycle. Containers
    are tracked on an explicit frame stack, so long reference chains do not
    consume interpreter stack.
    """

    def __init__(self, documents: Mapping[str, Document], failures: Mapping[str, str]) -> None:
        self.arena = NodeArena()
        self.cycles: list[ReferenceChain] = []
        self.unresolved: list[UnresolvedReference] = []
        self._documents = documents
        self._failures = failures
        self._memo: dict[tuple[str, int], int] = {}
        self._stack: list[tuple[tuple[str, int], ReferencePointer]] = []
        self._seen_cycles: set[tuple[tuple[str, NodePath, str], ...]] = set()
        self._seen_unresolved: set[ReferencePointer] = set()

    def resolve(self, uri: str, node_id: int) -> int:
        frames: list[_Frame] = []
        result = self._enter((uri, node_id), frames)
        while frames:
            frame = frames[-1]
            if len(frame.results) < len(frame.children):
                out = self._enter((frame.uri, frame.children[len(frame.results)]), frames)
            else:
                frames.pop()
                out = self._finish(frame)
            if out is None:
                continue
            if frames:
                frames[-1].results.append(out)
            else:
                result = out
        assert result is not None
        return result

    def _enter(self, key: tuple[str, int], frames: list[_Frame]) -> int | None:
        """Resolve *key* at once when possible, otherwise push a frame for it."""
        followed = 0
        while True:
            cached = self._memo.get(key)
            if cached is not None:
                return self._leave(cached, followed)
            node = self._documents[key[0]].node(key[1])
            if node.kind != NodeKind.REFERENCE:
                break
            assert node.pointer is not None
            target = self._follow(node.pointer)
            if target is None:
                return self._leave(self.arena.add_scalar(node.pointer.source_path, None), followed)
            self._stack.append((target, node.pointer))
            followed += 1
            key = target

        if node.kind == NodeKind.SCALAR:
            out = self.arena.add_scalar(node.path, node.value)
            self._memo[key] = out
            return self._leave(out, followed)
        if node.kind == NodeKind.SEQUENCE:
            children = node.items
        else:
            children = tuple(child for _, child in node.entries)
        frames.append(_Frame(uri=key[0], node=node, children=children, followed=followed))
        return None

    def _finish(self, frame: _Frame) -> int:
        node = frame.node
        if node.kind == NodeKind.SEQUENCE:
            out = self.arena.add_sequence(node.path, frame.results)
        else:
            out = self.arena.add_map(
                node.path, [(k, c) for (k, _), c in zip(node.entries, frame.results, strict=True)]
            )
        self._memo[(frame.uri, node.id)] = out
        return self._leave(out, frame.followed)

    def _leave(self, out: int, followed: int) -> int:
        if followed:
            del self._stack[-followed:]
        return out

    def _follow(self, pointer: ReferencePointer) -> tuple[str, int] | None:
        """Locate the target of *pointer*; None when it is missing or closes a cycle."""
        target = self._locate(pointer.target_uri, pointer.target_path)
        if target is None:
            self._record_unresolved(pointer)
            return None
        for index, (location, _) in enumerate(self._stack):
            if location == target:
                self._record_cycle([p for _, p in self._stack[index + 1 :]] + [pointer])
                return None
        return target

    def _locate(self, uri: str, path: NodePath, hops: int = 0) -> tuple[str, int] | None:
        document = self._documents.get(uri)
        if document is None:
            return None
        node = document.root
        for index, segment in enumerate(path):
            child = node.child_id(segment)
            if child is None:
                # The pointer runs through a reference: continue inside its target
                if node.kind == NodeKind.REFERENCE and node.pointer and hops < _MAX_POINTER_HOPS:
                    redirect = node.pointer
                    return self._locate(
                        redirect.target_uri, redirect.target_path + path[index:], hops + 1
                    )
                return None
            node = document.node(child)
        return uri, node.id

    def _record_cycle(self, cycle: list[ReferencePointer]) -> None:
        start = min(range(len(cycle)), key=lambda i: _pointer_key(cycle[i]))
        ordered = cycle[start:] + cycle[:start]
        signature = tuple(_pointer_key(p) for p in ordered)
        if signature in self._seen_cycles:
            return
        self._seen_cycles.add(signature)
        self.cycles.append(ReferenceChain(pointers=tuple(ordered + [ordered[0]])))

    def _record_unresolved(self, pointer: ReferencePointer) -> None:
        if pointer in self._seen_unresolved:
            return
        self._seen_unresolved.add(pointer)
        reason = self._failures.get(pointer.target_uri, "target not found")
        self.unresolved.append(UnresolvedReference(pointer=pointer, reason=reason))


def _pointer_key(pointer: ReferencePointer) -> tuple[str, NodePath, str]:
    return pointer.source_uri, tuple(str(s) for s in pointer.source_path), pointer.ref
