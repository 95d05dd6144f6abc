"""Request and response bodies of the rendering API."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class LibraryConfig(BaseModel):
    """Which library to load, in which version, optionally from a custom CDN."""

    name: str = Field(description='Library name (e.g., "apache-echarts", "chartjs")')
    version: str = Field(description="Library version")
    cdn_url: Optional[str] = Field(default=None, description="Custom CDN URL (optional)")


class RenderOptions(BaseModel):
    """Output size, format and timing of a render."""

    width: int = Field(ge=100, le=4000, description="Image width in pixels")
    height: int = Field(ge=100, le=4000, description="Image height in pixels")
    format: str = Field(pattern=r"^(png|jpeg|jpg|pdf)$", description="Output format (png, jpeg, pdf)")
    quality: Optional[int] = Field(default=None, ge=1, le=100, description="Image quality for JPEG (1-100)")
    device_scale_factor: Optional[float] = Field(
        default=None, ge=0.5, le=3.0, description="Device scale factor for high-DPI displays"
    )
    render_delay_ms: Optional[int] = Field(
        default=None, ge=0, le=5000, description="Custom delay after render ready (milliseconds)"
    )
    poll_interval_ms: Optional[int] = Field(
        default=None, ge=50, le=1000, description="Polling interval for checking render status (milliseconds)"
    )
    timeout_ms: Optional[int] = Field(
        default=None, ge=1000, le=60000, description="Maximum render timeout (milliseconds)"
    )
    return_base64: Optional[bool] = Field(
        default=None, description="Return base64 encoded string instead of binary"
    )


class RenderRequest(BaseModel):
    """A complete render job: library, chart data and options."""

    library: LibraryConfig
    data: Any
    options: RenderOptions


class Base64Response(BaseModel):
    """A rendered image encoded as base64."""

    data: str = Field(description="Base64 encoded image data")
    mime_type: str = Field(description="MIME type of the image")


class ValidateItem(BaseModel):
    """One validation failure and where it occurred."""

    loc: List[str]
    msg: str


class UnprocessableEntityResponse(BaseModel):
    """A collection of validation failures."""

    detail: List[ValidateItem] = Field(default_factory=list)

    def has_error(self) -> bool:
        return bool(self.detail)

    def add_error(self, loc: List[str], msg: str) -> None:
        self.detail.append(ValidateItem(loc=list(loc), msg=msg))


class InternalServerErrorResponse(BaseModel):
    """Body of a 500 response."""

    detail: str


def internal_error(filepath: str, function: str, identifier: str, err: str) -> InternalServerErrorResponse:
    """Build and log an internal-error body naming where the failure happened."""
    message = f"error: on {filepath}::{function} iden: {identifier} error: {err}"
    logger.error("%s", message)
    return InternalServerErrorResponse(detail=message)