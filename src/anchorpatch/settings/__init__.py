from .models import LogLevel, Settings, VAR_PATTERN
from .loader import load_settings, merge_overrides

__all__ = ["LogLevel", "Settings", "VAR_PATTERN", "load_settings", "merge_overrides"]
