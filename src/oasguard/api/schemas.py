"""API request/response Pydantic schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ValidateRequest(BaseModel):
    """Request body for POST /validate."""

    document: str = Field(description="OpenAPI or Swagger document, as JSON or YAML text")
    filename: str | None = Field(
        default=None, description="Optional file name; its suffix selects the parser"
    )
    config: dict[str, Any] | None = Field(
        default=None, description="Optional rule configuration, same shape as .validaterc"
    )


class RuleInfo(BaseModel):
    """One rule of the default ruleset."""

    code: str
    severity: str
    description: str
    message: str


class RuleListResponse(BaseModel):
    """Response for GET /rules."""

    rules: list[RuleInfo] = []


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = ""
