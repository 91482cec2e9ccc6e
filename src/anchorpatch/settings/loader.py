from typing import Any, Dict, Optional, Set, Tuple, Union
import os
import re
from pathlib import Path

import yaml
import json5  # type: ignore

from .models import Settings, VAR_PATTERN

ENV_PREFIX = "env:"


def _collect_variables(doc: Dict[str, Any]) -> Dict[str, Any]:
    vars_spec = doc.get("variables")
    if vars_spec is None:
        return {}
    if not isinstance(vars_spec, dict):
        raise ValueError("variables must be a mapping of NAME: value")
    return {k: v for k, v in vars_spec.items() if isinstance(k, str)}


def _lookup(name: str, vars_map: Dict[str, Any]) -> Tuple[bool, Any]:
    """Value for ``NAME`` or ``env:NAME``; (False, None) when undefined."""
    if name.startswith(ENV_PREFIX):
        val = os.getenv(name[len(ENV_PREFIX) :])
        return (val is not None), val
    if name in vars_map:
        return True, vars_map[name]
    return False, None


def _resolve_variables(vars_map: Dict[str, Any]) -> Dict[str, Any]:
    """
    Follow variables whose whole value is another placeholder, e.g.
    ``SUFFIX: ${env:BUNDLE_SUFFIX}``. A reference loop is a config error.
    """
    resolved: Dict[str, Any] = {}
    resolving: Set[str] = set()

    def resolve_one(name: str) -> Any:
        if name in resolved:
            return resolved[name]
        if name in resolving:
            raise ValueError(f"Detected variable resolution cycle at '{name}'")
        resolving.add(name)
        val = vars_map.get(name)
        m = VAR_PATTERN.fullmatch(val) if isinstance(val, str) else None
        if m:
            ref = m.group(1)
            if ref in vars_map:
                val = resolve_one(ref)
            else:
                found, ref_val = _lookup(ref, vars_map)
                if found:
                    val = ref_val
        resolved[name] = val
        resolving.remove(name)
        return val

    for k in vars_map:
        resolve_one(k)
    return resolved


def _substitute(value: Any, vars_map: Dict[str, Any]) -> Any:
    # A value that is a single placeholder keeps the variable's type,
    # so "diff_context: ${CONTEXT}" stays an int.
    if isinstance(value, str):
        m = VAR_PATTERN.fullmatch(value)
        if m:
            found, val = _lookup(m.group(1), vars_map)
            return val if found else value

        def repl(m: re.Match) -> str:
            found, val = _lookup(m.group(1), vars_map)
            if not found:
                return m.group(0)
            return "" if val is None else str(val)

        return VAR_PATTERN.sub(repl, value).replace("$${", "${")
    if isinstance(value, dict):
        return {k: _substitute(v, vars_map) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute(v, vars_map) for v in value]
    return value


def _load_raw_file(path: Path) -> Any:
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    data: Any = None
    if ext in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
    elif ext in {".json5", ".jsonc", ".json"}:
        data = json5.loads(text)
    else:
        raise ValueError(f"Unsupported config file extension: {ext}")
    if data is None:
        return {}
    return data


def load_settings(path: Union[str, Path]) -> Settings:
    """
    Load patcher settings from a YAML or JSON5 file.

    An optional top-level ``variables`` mapping defines placeholders used
    as ``${NAME}`` elsewhere in the file; ``${env:NAME}`` reads the
    environment and ``$${NAME}`` keeps the text literally.
    """
    data = _load_raw_file(Path(path))
    if not isinstance(data, dict):
        raise ValueError("Root configuration must be a mapping/object")

    vars_map = _resolve_variables(_collect_variables(data))
    data = dict(data)
    data.pop("variables", None)

    return Settings.model_validate(_substitute(data, vars_map))


def merge_overrides(settings: Settings, overrides: Optional[Dict[str, Any]]) -> Settings:
    """Apply non-None overrides (e.g. from CLI flags) on top of loaded settings."""
    values = {k: v for k, v in (overrides or {}).items() if v is not None}
    if not values:
        return settings
    data = settings.model_dump()
    data.update(values)
    return Settings.model_validate(data)
