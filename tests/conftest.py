"""Shared test fixtures for oasguard."""

from __future__ import annotations

from pathlib import Path

import pytest

from oasguard.lint.adapter import StyleLintAdapter
from oasguard.models.config import ValidationConfig
from oasguard.models.document import Document
from oasguard.parser.loader import DocumentLoader
from oasguard.parser.resolver import ReferenceResolver

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeFetcher:
    """In-memory DocumentFetcher that counts fetches per location."""

    def __init__(self, documents: dict[str, str]) -> None:
        self.documents = documents
        self.calls: dict[str, int] = {}

    async def fetch(self, uri: str) -> str:
        self.calls[uri] = self.calls.get(uri, 0) + 1
        if uri not in self.documents:
            raise FileNotFoundError(uri)
        return self.documents[uri]


@pytest.fixture
def loader() -> DocumentLoader:
    return DocumentLoader()


@pytest.fixture
def resolver(loader: DocumentLoader) -> ReferenceResolver:
    return ReferenceResolver(loader=loader, fetcher=FakeFetcher({}))


@pytest.fixture
def adapter() -> StyleLintAdapter:
    return StyleLintAdapter()


@pytest.fixture
def default_config() -> ValidationConfig:
    return ValidationConfig()


@pytest.fixture
def petstore(loader: DocumentLoader) -> Document:
    """A clean OpenAPI 3 document: no structural or style findings."""
    return loader.load_string(PETSTORE_YAML, uri="petstore.yaml")


PETSTORE_YAML = """\
openapi: 3.0.3
info:
  title: Petstore
  version: 1.0.0
  contact:
    name: API team
paths:
  /pets:
    get:
      operationId: listPets
      summary: List pets
      parameters:
        - name: limit
          in: query
          description: How many pets to return
          schema:
            type: integer
      responses:
        '200':
          description: A list of pets
          content:
            application/json:
              schema:
                type: array
                items:
                  $ref: '#/components/schemas/Pet'
    post:
      operationId: createPet
      summary: Create a pet
      requestBody:
        content:
          application/json:
            schema:
              $ref: '#/components/schemas/Pet'
      responses:
        '201':
          description: Created
components:
  schemas:
    Pet:
      type: object
      properties:
        name:
          type: string
"""

REQUEST_BODY_REF_YAML = """\
openapi: 3.0.3
info:
  title: Petstore
  version: 1.0.0
  contact:
    name: API team
paths:
  /pets:
    post:
      operationId: createPet
      summary: Create a pet
      requestBody:
        $ref: '#/components/requestBodies/PetBody'
      responses:
        '201':
          description: Created
  /pets/{id}:
    put:
      operationId: updatePet
      summary: Update a pet
      parameters:
        - name: id
          in: path
          required: true
          description: Pet id
          schema:
            type: string
      requestBody:
        $ref: '#/components/requestBodies/PetBody'
      responses:
        '200':
          description: Updated
components:
  requestBodies:
    PetBody:
      content:
        application/json: {}
"""

RESPONSE_REF_YAML = """\
openapi: 3.0.3
info:
  title: Petstore
  version: 1.0.0
  contact:
    name: API team
paths:
  /pets:
    get:
      operationId: listPets
      summary: List pets
      responses:
        '200':
          description: Pets
          content:
            application/json:
              schema:
                type: array
        '404':
          $ref: '#/components/responses/NotFound'
  /owners:
    get:
      operationId: listOwners
      summary: List owners
      responses:
        '200':
          description: Owners
          content:
            application/json:
              schema:
                type: array
        '404':
          $ref: '#/components/responses/NotFound'
components:
  responses:
    NotFound:
      description: Not found
      content:
        application/json: {}
"""

TWO_NODE_CYCLE_YAML = """\
openapi: 3.0.3
info:
  title: Cycle
  version: 1.0.0
paths: {}
components:
  schemas:
    A:
      $ref: '#/components/schemas/B'
    B:
      $ref: '#/components/schemas/A'
"""

MISSING_INFO_YAML = """\
openapi: 3.0.3
paths:
  /pets:
    get:
      operationId: listPets
      responses:
        '200':
          description: Pets
"""
