"""Tests for the document loader and the arena document model."""

from __future__ import annotations

from pathlib import Path

import pytest

from oasguard.models.document import NodeKind, format_json_pointer, format_path, parse_json_pointer
from oasguard.parser.loader import DocumentLoader, DocumentLoadError
from tests.conftest import PETSTORE_YAML, REQUEST_BODY_REF_YAML


class TestDocumentLoader:
    def test_load_yaml_string(self, loader: DocumentLoader) -> None:
        doc = loader.load_string(PETSTORE_YAML, uri="petstore.yaml")
        assert doc.root.kind == NodeKind.MAP
        assert doc.get("openapi") == "3.0.3"
        assert doc.get("info")["title"] == "Petstore"
        assert doc.text == PETSTORE_YAML

    def test_load_json_string(self, loader: DocumentLoader) -> None:
        doc = loader.load_string('{"openapi": "3.0.3", "paths": {}}')
        assert doc.get("openapi") == "3.0.3"
        assert doc.to_python() == {"openapi": "3.0.3", "paths": {}}

    def test_integer_keys_become_strings(self, loader: DocumentLoader) -> None:
        doc = loader.load_string("responses:\n  200:\n    description: ok\n")
        node = doc.lookup(("responses", "200", "description"))
        assert node is not None
        assert node.value == "ok"

    def test_node_paths(self, loader: DocumentLoader) -> None:
        doc = loader.load_string(PETSTORE_YAML)
        node = doc.lookup(("paths", "/pets", "get", "parameters", 0, "name"))
        assert node is not None
        assert node.path == ("paths", "/pets", "get", "parameters", 0, "name")

    def test_source_map_has_positions(self, loader: DocumentLoader) -> None:
        doc = loader.load_string(PETSTORE_YAML, uri="petstore.yaml")
        span = doc.source_map.get(("info", "title"))
        assert span is not None
        assert span.file == "petstore.yaml"
        assert span.line == 3

    def test_reference_nodes(self, loader: DocumentLoader) -> None:
        doc = loader.load_string(REQUEST_BODY_REF_YAML, uri="api.yaml")
        refs = list(doc.references())
        assert len(refs) == 2
        pointer = refs[0].pointer
        assert pointer is not None
        assert pointer.target_uri == "api.yaml"
        assert pointer.target_path == ("components", "requestBodies", "PetBody")
        assert not pointer.is_external

    def test_reference_keeps_raw_form(self, loader: DocumentLoader) -> None:
        doc = loader.load_string(REQUEST_BODY_REF_YAML)
        body = doc.get("paths")["/pets"]["post"]["requestBody"]
        assert body == {"$ref": "#/components/requestBodies/PetBody"}

    def test_external_reference_uri(self, loader: DocumentLoader) -> None:
        doc = loader.load_string(
            "a:\n  $ref: 'common.yaml#/Pet'\n", uri="/specs/main.yaml"
        )
        (ref,) = doc.references()
        assert ref.pointer.target_uri == "/specs/common.yaml"
        assert ref.pointer.is_external

    def test_load_file(self, loader: DocumentLoader, tmp_path: Path) -> None:
        path = tmp_path / "api.yaml"
        path.write_text(PETSTORE_YAML, encoding="utf-8")
        doc = loader.load(path)
        assert doc.uri == path.as_posix()
        assert "paths" in doc.root.keys

    def test_walk_visits_every_node(self, loader: DocumentLoader) -> None:
        doc = loader.load_string(PETSTORE_YAML)
        assert len(list(doc.walk())) == len(doc)


class TestDocumentLoadErrors:
    def test_unsupported_file_type(self, loader: DocumentLoader, tmp_path: Path) -> None:
        path = tmp_path / "api.txt"
        path.write_text("openapi: 3.0.0", encoding="utf-8")
        with pytest.raises(DocumentLoadError, match="Unsupported file type"):
            loader.load(path)

    def test_missing_file(self, loader: DocumentLoader, tmp_path: Path) -> None:
        with pytest.raises(DocumentLoadError, match="Cannot read"):
            loader.load(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, loader: DocumentLoader) -> None:
        with pytest.raises(DocumentLoadError, match="Invalid YAML"):
            loader.load_string("a: [1, 2\nb: c", uri="bad.yaml")

    def test_invalid_json(self, loader: DocumentLoader) -> None:
        with pytest.raises(DocumentLoadError, match="Invalid JSON"):
            loader.load_string('{"a": }')

    def test_duplicate_json_key(self, loader: DocumentLoader) -> None:
        with pytest.raises(DocumentLoadError, match="Duplicate key 'a'"):
            loader.load_string('{"a": 1, "a": 2}')

    def test_duplicate_yaml_key(self, loader: DocumentLoader) -> None:
        with pytest.raises(DocumentLoadError):
            loader.load_string("a: 1\na: 2\n", uri="dup.yaml")

    def test_root_must_be_mapping(self, loader: DocumentLoader) -> None:
        with pytest.raises(DocumentLoadError, match="is not a valid object"):
            loader.load_string("- a\n- b\n", uri="list.yaml")

    def test_empty_document(self, loader: DocumentLoader) -> None:
        with pytest.raises(DocumentLoadError, match="is not a valid object"):
            loader.load_string("", uri="empty.yaml")

    def test_oversized_document(self) -> None:
        loader = DocumentLoader(max_document_size=100)
        with pytest.raises(DocumentLoadError, match="maximum size"):
            loader.load_string("a: " + "x" * 200)

    def test_deep_nesting(self, loader: DocumentLoader) -> None:
        content = "{" + '"a": {' * 300 + "}" * 301
        with pytest.raises(DocumentLoadError, match="nesting depth"):
            loader.load_string(content)

    def test_json_nested_past_recursion_limit(self, loader: DocumentLoader) -> None:
        content = '{"a": ' + "[" * 100_000 + "]" * 100_000 + "}"
        with pytest.raises(DocumentLoadError, match="Invalid JSON"):
            loader.load_string(content, uri="deep.json")

    def test_yaml_nested_past_recursion_limit(self, loader: DocumentLoader) -> None:
        content = "a: " + "[" * 20_000 + "]" * 20_000 + "\n"
        with pytest.raises(DocumentLoadError):
            loader.load_string(content, uri="deep.yaml")

    def test_invalid_pointer_fragment(self, loader: DocumentLoader) -> None:
        with pytest.raises(DocumentLoadError, match="Invalid \\$ref"):
            loader.load_string("a:\n  $ref: '#components'\n")

    def test_malformed_ref_location(self, loader: DocumentLoader) -> None:
        with pytest.raises(DocumentLoadError, match="Invalid \\$ref"):
            loader.load_string("a:\n  $ref: 'http://[x/a.yaml#/A'\n")


class TestJsonPointers:
    def test_parse_escapes(self) -> None:
        assert parse_json_pointer("/paths/~1pets~1{id}/get") == ("paths", "/pets/{id}", "get")
        assert parse_json_pointer("/a~0b") == ("a~b",)

    def test_parse_percent_encoding(self) -> None:
        assert parse_json_pointer("/paths/%7Bid%7D") == ("paths", "{id}")

    def test_parse_whole_document(self) -> None:
        assert parse_json_pointer("") == ()

    def test_parse_rejects_relative(self) -> None:
        with pytest.raises(ValueError):
            parse_json_pointer("components")

    def test_format(self) -> None:
        assert format_json_pointer(("paths", "/pets", 0)) == "/paths/~1pets/0"
        assert format_path(("paths", "/pets", 0)) == "paths./pets.0"
        assert format_path(()) == "(root)"
