"""Shared type aliases for tool parameters."""

from __future__ import annotations

from typing import Annotated

from pydantic import Field

VideoUrl = Annotated[str, Field(
    min_length=8,
    max_length=2048,
    description="Short-form video URL (youtube.com/shorts, youtu.be, or tiktok.com)",
)]
