"""Reader configuration loaded from environment variables.

Uses pydantic-settings so every field can be overridden via ``EML_*``
env vars, the same way the Umbrella services are configured.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class ParserConfig(BaseSettings):
    """Settings for opening, splitting and extracting EML files."""

    model_config = {"env_prefix": "EML_"}

    header_charset: str = Field(
        default="utf-8",
        description="Charset used to re-decode raw 8-bit From/To/Subject header bytes",
    )
    default_text_charset: str = Field(
        default="utf-8",
        description="Charset for text parts that declare none or an unknown one",
    )
    strict_boundaries: bool = Field(
        default=False,
        description="Require delimiter lines to start with --boundary (RFC 2046)",
    )
    max_depth: int = Field(
        default=10,
        ge=0,
        description="Maximum multipart nesting depth followed when walking a message",
    )
    copy_chunk_size: int = Field(
        default=64 * 1024,
        gt=0,
        description="Chunk size in bytes for copying and decoding part bodies",
    )
    log_level: str = Field(default="INFO", description="Root log level for the CLI")
    log_json: bool = Field(
        default=False,
        description="Render CLI log lines as JSON instead of console output",
    )
