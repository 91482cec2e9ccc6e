from __future__ import annotations

import pathlib
import shutil
from abc import ABC, abstractmethod

from anchorpatch.logger import logger

from .models import BundleIOError, LocationResult, SourceBuffer, StaleLocationError


def apply_location(
    buffer: SourceBuffer, location: LocationResult, replacement: str
) -> SourceBuffer:
    """
    Return a new buffer equal to text[:start] + replacement + text[end:].
    The location must have been computed against this exact buffer.
    """
    if location.revision != buffer.revision:
        raise StaleLocationError(
            f"Location computed against revision {location.revision}, "
            f"buffer is at revision {buffer.revision}"
        )
    if location.end > len(buffer):
        raise ValueError(
            f"Location end {location.end} is past buffer length {len(buffer)}"
        )
    text = buffer.text
    return buffer.with_text(text[: location.start] + replacement + text[location.end :])


class BundleFileOps(ABC):
    """
    Abstract contract for the file operations around a patch run.
    Implementations raise BundleIOError for any failure.
    """

    @abstractmethod
    def load(self, path: pathlib.Path) -> SourceBuffer: ...

    @abstractmethod
    def backup(
        self, path: pathlib.Path, suffix: str, *, overwrite: bool = False
    ) -> tuple[pathlib.Path, bool]:
        """Copy path to path+suffix. Returns (backup_path, written)."""
        ...

    @abstractmethod
    def save(self, buffer: SourceBuffer) -> None: ...


class FileSystemBundleOps(BundleFileOps):
    """
    Local filesystem implementation. An existing backup is kept unless
    ``overwrite`` is set, so the pristine copy survives repeated runs.
    """

    def load(self, path: pathlib.Path) -> SourceBuffer:
        try:
            with path.open("rt", encoding="utf-8", newline="") as fh:
                text = fh.read()
        except (OSError, UnicodeDecodeError) as e:
            raise BundleIOError(f"Failed to read bundle {path}: {e}") from e
        logger.debug("Loaded bundle", path=str(path), chars=len(text))
        return SourceBuffer(path=path, text=text)

    def backup(
        self, path: pathlib.Path, suffix: str, *, overwrite: bool = False
    ) -> tuple[pathlib.Path, bool]:
        backup_path = path.with_name(path.name + suffix)
        if backup_path.exists() and not overwrite:
            logger.info("Keeping existing backup", backup=str(backup_path))
            return backup_path, False
        try:
            shutil.copy2(path, backup_path)
        except OSError as e:
            raise BundleIOError(f"Failed to create backup {backup_path}: {e}") from e
        logger.info("Created backup", backup=str(backup_path))
        return backup_path, True

    def save(self, buffer: SourceBuffer) -> None:
        try:
            with buffer.path.open("wt", encoding="utf-8", newline="") as fh:
                fh.write(buffer.text)
        except OSError as e:
            raise BundleIOError(f"Failed to write bundle {buffer.path}: {e}") from e
        logger.info("Saved bundle", path=str(buffer.path), chars=len(buffer.text))
