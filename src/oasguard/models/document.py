"""Arena-backed document tree: every node is addressable by a stable integer id."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

if TYPE_CHECKING:
    from oasguard.parser.loader import SourceMap

PathSegment = str | int
NodePath = tuple[PathSegment, ...]


class NodeKind(StrEnum):
    MAP = "map"
    SEQUENCE = "sequence"
    SCALAR = "scalar"
    REFERENCE = "reference"


def parse_json_pointer(fragment: str) -> NodePath:
    """Decode a JSON pointer fragment (without ``#``) into path segments.

    ``""`` designates the whole document. Percent-encoding is undone first.
    """
    fragment = unquote(fragment)
    if not fragment:
        return ()
    if not fragment.startswith("/"):
        raise ValueError(f"Unsupported JSON pointer fragment '{fragment}'")
    return tuple(
        token.replace("~1", "/").replace("~0", "~") for token in fragment[1:].split("/")
    )


def format_json_pointer(path: Sequence[PathSegment]) -> str:
    if not path:
        return ""
    return "/" + "/".join(str(s).replace("~", "~0").replace("/", "~1") for s in path)


def format_path(path: Sequence[PathSegment]) -> str:
    """Human-readable dotted form, e.g. ``paths./pets.get.responses.200``."""
    return ".".join(str(s) for s in path) if path else "(root)"


@dataclass(frozen=True)
class ReferencePointer:
    """A ``$ref`` found at *source_path* that designates *target_path* in *target_uri*."""

    source_uri: str
    source_path: NodePath
    ref: str
    target_uri: str
    target_path: NodePath

    @property
    def location(self) -> tuple[str, NodePath]:
        return self.target_uri, tuple(str(s) for s in self.target_path)

    @property
    def is_external(self) -> bool:
        return self.target_uri != self.source_uri

    def describe(self) -> str:
        where = format_json_pointer(self.source_path) or "/"
        return f"{self.source_uri}#{where} -> {self.ref}"


@dataclass(frozen=True)
class Node:
    """One tagged node of a document arena.

    ``entries`` holds ``(key, child_id)`` pairs for maps and references,
    ``items`` holds child ids for sequences, ``value`` holds scalars.
    ``path`` is where the node is defined inside its own document.
    """

    id: int
    kind: NodeKind
    path: NodePath
    entries: tuple[tuple[str, int], ...] = ()
    items: tuple[int, ...] = ()
    value: Any = None
    pointer: ReferencePointer | None = None

    def child_id(self, segment: PathSegment) -> int | None:
        if self.kind in (NodeKind.MAP, NodeKind.REFERENCE):
            key = str(segment)
            for entry_key, child in self.entries:
                if entry_key == key:
                    return child
            return None
        if self.kind == NodeKind.SEQUENCE:
            try:
                index = int(segment)
            except (TypeError, ValueError):
                return None
            if 0 <= index < len(self.items):
                return self.items[index]
        return None

    @property
    def keys(self) -> list[str]:
        return [key for key, _ in self.entries]


class NodeArena:
    """Append-only node storage; children are added before their parents."""

    def __init__(self) -> None:
        self._nodes: list[Node] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, node_id: int) -> Node:
        return self._nodes[node_id]

    def add_scalar(self, path: NodePath, value: Any) -> int:
        return self._append(Node(id=len(self._nodes), kind=NodeKind.SCALAR, path=path, value=value))

    def add_sequence(self, path: NodePath, items: Sequence[int]) -> int:
        return self._append(
            Node(id=len(self._nodes), kind=NodeKind.SEQUENCE, path=path, items=tuple(items))
        )

    def add_map(self, path: NodePath, entries: Sequence[tuple[str, int]]) -> int:
        return self._append(
            Node(id=len(self._nodes), kind=NodeKind.MAP, path=path, entries=tuple(entries))
        )

    def add_reference(
        self, path: NodePath, entries: Sequence[tuple[str, int]], pointer: ReferencePointer
    ) -> int:
        return self._append(
            Node(
                id=len(self._nodes),
                kind=NodeKind.REFERENCE,
                path=path,
                entries=tuple(entries),
                pointer=pointer,
            )
        )

    def _append(self, node: Node) -> int:
        self._nodes.append(node)
        return node.id


class Document:
    """An immutable, parsed API description.

    The arena is the authoritative source for error paths; ``text`` and
    ``source_map`` are kept only so line/column context can be passed through.
    """

    def __init__(
        self,
        arena: NodeArena,
        root: int,
        uri: str,
        text: str = "",
        source_map: SourceMap | None = None,
    ) -> None:
        self._arena = arena
        self._root = root
        self.uri = uri
        self.text = text
        self.source_map = source_map

    @property
    def root(self) -> Node:
        return self._arena[self._root]

    def node(self, node_id: int) -> Node:
        return self._arena[node_id]

    def __len__(self) -> int:
        return len(self._arena)

    def lookup(self, path: Sequence[PathSegment]) -> Node | None:
        """Follow *path* from the root without crossing references."""
        current = self.root
        for segment in path:
            child = current.child_id(segment)
            if child is None:
                return None
            current = self._arena[child]
        return current

    def get(self, key: str, default: Any = None) -> Any:
        """Plain value of a top-level entry (materialized)."""
        child = self.root.child_id(key)
        if child is None:
            return default
        return self.to_python(child)

    def walk(self, node_id: int | None = None) -> Iterator[Node]:
        """Depth-first pre-order walk of the arena tree (references not followed)."""
        stack = [self._root if node_id is None else node_id]
        while stack:
            node = self._arena[stack.pop()]
            yield node
            if node.kind == NodeKind.SEQUENCE:
                stack.extend(reversed(node.items))
            elif node.kind in (NodeKind.MAP, NodeKind.REFERENCE):
                stack.extend(child for _, child in reversed(node.entries))

    def references(self) -> Iterator[Node]:
        return (node for node in self.walk() if node.kind == NodeKind.REFERENCE)

    def to_python(self, node_id: int | None = None) -> Any:
        """Materialize the tree (or a subtree) as plain dicts, lists and scalars."""
        node = self._arena[self._root if node_id is None else node_id]
        if node.kind == NodeKind.SCALAR:
            return node.value
        if node.kind == NodeKind.SEQUENCE:
            return [self.to_python(child) for child in node.items]
        return {key: self.to_python(child) for key, child in node.entries}


class ResolvedDocument(Document):
    """A Document in which no reference nodes remain.

    Shared targets occupy a single arena node, so the tree is a DAG;
    ``to_python`` expands every use. ``externals`` holds the raw external
    documents that were loaded to resolve it, keyed by URI.
    """

    def __init__(
        self,
        arena: NodeArena,
        root: int,
        source: Document,
        externals: Mapping[str, Document] | None = None,
    ) -> None:
        super().__init__(arena, root, source.uri, source.text, source.source_map)
        self.source = source
        self.externals = dict(externals or {})
