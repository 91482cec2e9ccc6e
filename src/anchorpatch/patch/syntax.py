from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from anchorpatch.logger import logger

NODE_FALLBACK_PATHS = ("/opt/homebrew/bin/node", "/usr/local/bin/node", "/usr/bin/node")
CHECK_TIMEOUT_SECONDS = 120


@dataclass
class SyntaxCheckResult:
    ok: bool
    skipped: bool = False
    message: str = ""


def _is_executable(path: str) -> bool:
    p = Path(path)
    return p.is_file() and os.access(p, os.X_OK)


def resolve_node_bin(explicit: Optional[str] = None) -> Optional[str]:
    if explicit:
        if _is_executable(explicit):
            return explicit
        logger.warning("Configured node is not an executable file", node_path=explicit)
        return None
    node = shutil.which("node")
    if node:
        return node
    for cand in NODE_FALLBACK_PATHS:
        if _is_executable(cand):
            return cand
    return None


def check_js_syntax(
    text: str,
    node_path: Optional[str] = None,
    bundle_path: Optional[Path] = None,
) -> SyntaxCheckResult:
    """
    Run ``node --check`` over the patched text.

    With ``bundle_path`` the text is checked from a temporary file beside
    the bundle, with the bundle's extension, so node resolves the module
    type from the same package.json. A missing node binary skips the check
    instead of failing it; node that cannot be started or times out fails it.
    """
    node = resolve_node_bin(node_path)
    if node is None:
        logger.warning("node executable not found, skipping syntax check")
        return SyntaxCheckResult(
            ok=True, skipped=True, message="node executable not found"
        )

    suffix = (bundle_path.suffix or ".js") if bundle_path is not None else ".js"
    directory = bundle_path.parent if bundle_path is not None else None
    tmp_name: Optional[str] = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            suffix=suffix, prefix=".anchorpatch-check-", dir=directory
        )
        with os.fdopen(fd, "wt", encoding="utf-8", newline="") as fh:
            fh.write(text)
        proc = subprocess.run(
            [node, "--check", tmp_name],
            capture_output=True,
            text=True,
            timeout=CHECK_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired:
        message = f"node --check timed out after {CHECK_TIMEOUT_SECONDS}s"
        logger.error("Syntax check failed", node=node, output=message)
        return SyntaxCheckResult(ok=False, message=message)
    except OSError as e:
        message = f"node --check could not run: {e}"
        logger.error("Syntax check failed", node=node, output=message)
        return SyntaxCheckResult(ok=False, message=message)
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)

    if proc.returncode == 0:
        logger.debug("Syntax check passed", node=node)
        return SyntaxCheckResult(ok=True)
    message = (proc.stderr or proc.stdout or "").strip()
    logger.error("Syntax check failed", node=node, output=message[:500])
    return SyntaxCheckResult(ok=False, message=message)
