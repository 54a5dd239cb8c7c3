from pydantic import BaseModel, Field
from typing import Literal


class SnapshotConfig(BaseModel):
    concurrency: int = Field(default=1, ge=1)
    ignore_patterns: list[str] = Field(default_factory=lambda: [
        ".git", "node_modules", "__pycache__", ".venv", ".strata"
    ])


class OutputConfig(BaseModel):
    directory: str = ".strata"
    show_identity: bool = True


class StrataConfig(BaseModel):
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
