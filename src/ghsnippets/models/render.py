from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from ghsnippets.errors import ErrorCode


class GitHubReference(BaseModel):
    """A user-supplied file reference after normalization."""

    model_config = ConfigDict(frozen=True)

    raw_input_url: str
    normalized_url: str  # Always a raw.githubusercontent.com URL
    lines: str | None = None
    theme: str


class RenderPayload(BaseModel):
    """Structured response cached per (url, lines, theme)."""

    url: str  # As supplied by the caller
    normalized_url: str
    lines: str | None
    theme: str
    filename: str
    language: str
    code: str  # Extracted lines, unhighlighted
    html: str  # Themed, highlighted code block
    line_count: int
    height: int  # Suggested iframe height in pixels


class RenderSuccess(RenderPayload):
    kind: Literal["success"] = "success"
    cached: bool = False


class RenderFailure(BaseModel):
    kind: Literal["error"] = "error"
    error_kind: ErrorCode
    message: str
    url: str


RenderResult = Annotated[RenderSuccess | RenderFailure, Field(discriminator="kind")]


class MacroRequest(BaseModel):
    """Body of the Confluence macro POST."""

    url: str
    line_range: str | None = Field(default=None, alias="lineRange")
    theme: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class MacroResponse(BaseModel):
    html: str
    height: int
    width: str = "100%"
