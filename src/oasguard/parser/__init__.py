"""Document loading and reference resolution for oasguard."""

from oasguard.parser.fetcher import DefaultFetcher, DocumentFetcher
from oasguard.parser.loader import DocumentLoader, DocumentLoadError, SourceMap
from oasguard.parser.resolver import (
    ExternalDocumentCache,
    ReferenceResolutionError,
    ReferenceResolver,
)

__all__ = [
    "DefaultFetcher",
    "DocumentFetcher",
    "DocumentLoadError",
    "DocumentLoader",
    "ExternalDocumentCache",
    "ReferenceResolutionError",
    "ReferenceResolver",
    "SourceMap",
]
