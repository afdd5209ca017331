"""Structured error models with source position tracking."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class OasGuardError(Exception):
    """Base class for errors raised by the validation core."""


class SourceSpan(BaseModel):
    """Points to exact location in the source document for error reporting."""

    model_config = {"frozen": True}

    file: str
    line: int
    column: int
    end_line: int | None = None
    end_column: int | None = None


class NoticeLevel(StrEnum):
    WARNING = "warning"
    INFO = "info"


class ConfigNotice(BaseModel):
    """A non-fatal problem found while resolving the validation configuration."""

    model_config = {"frozen": True}

    level: NoticeLevel = NoticeLevel.WARNING
    message: str
    key: str | None = None
