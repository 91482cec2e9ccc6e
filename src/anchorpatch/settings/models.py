from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Final, List, Optional

from pydantic import BaseModel, Field, field_validator

# Variable replacement pattern.
# Supports:
#   - ${NAME}
#   - ${env:NAME}
# Ignores '$${NAME}' so it can be used to escape a literal '${NAME}'.
VAR_PATTERN = re.compile(
    r"(?<!\$)\$\{([A-Za-z_][A-Za-z0-9_]*(?::[A-Za-z_][A-Za-z0-9_]*)?)\}"
)

DEFAULT_BACKUP_SUFFIX: Final[str] = ".backup"
DEFAULT_DIFF_CONTEXT: Final[int] = 50


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"


class Settings(BaseModel):
    """
    Patch run configuration.

    - enabled: patch keys to run (None runs every default patch)
    - disabled: patch keys to leave out, applied after ``enabled``
    - verbose: value written into the spinner's verbose property
    - context_low_message: "prefix,suffix" around the percentage in the
      context low message; the message patch only runs when this is set
    """

    log_level: LogLevel = LogLevel.info
    log_file: Optional[Path] = None
    backup: bool = True
    backup_suffix: str = DEFAULT_BACKUP_SUFFIX
    diff_context: int = Field(default=DEFAULT_DIFF_CONTEXT, ge=0)
    check_syntax: bool = False
    node_path: Optional[str] = None
    verbose: bool = True
    context_low_message: Optional[str] = None
    enabled: Optional[List[str]] = None
    disabled: List[str] = Field(default_factory=list)

    @field_validator("backup_suffix")
    @classmethod
    def _validate_backup_suffix(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v:
            raise ValueError(f"Invalid backup suffix: {v!r}")
        return v

    @field_validator("context_low_message")
    @classmethod
    def _normalize_message(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v
