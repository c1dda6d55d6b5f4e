"""Filesystem baseline store keyed by subject."""

from __future__ import annotations

import asyncio
import contextlib
import os
import pathlib  # noqa: TC003 - used at runtime for Path operations
import tempfile

import structlog

from visualperfect.constants import BASELINE_SUFFIX, DIFF_SUFFIX
from visualperfect.exceptions import BaselineNotFound, WriteError
from visualperfect.utils.sanitize import validate_subject

logger = structlog.get_logger(__name__)


class BaselineStore:
    """One ``{subject}.png`` baseline per subject plus an optional diff artifact.

    Every write goes to a temp file in the same directory, is fsynced and then
    atomically renamed over the target, so readers only ever observe a complete
    previous or complete new file.
    """

    def __init__(self, base_dir: pathlib.Path) -> None:
        self._base = base_dir.expanduser().resolve()
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> pathlib.Path:
        return self._base

    def _resolve_path(self, subject: str, suffix: str) -> pathlib.Path:
        """Resolve subject to an absolute path with traversal protection."""
        subject = validate_subject(subject)
        path = (self._base / f"{subject}{suffix}").resolve()
        if path.parent != self._base:
            msg = f"Path traversal detected: {subject}"
            raise ValueError(msg)
        return path

    def baseline_path(self, subject: str) -> pathlib.Path:
        return self._resolve_path(subject, BASELINE_SUFFIX)

    def diff_path(self, subject: str) -> pathlib.Path:
        return self._resolve_path(subject, DIFF_SUFFIX)

    async def exists(self, subject: str) -> bool:
        """Check whether a baseline is stored for the subject."""
        path = self.baseline_path(subject)
        return await asyncio.to_thread(path.is_file)

    async def load(self, subject: str) -> bytes:
        """Read the baseline bytes or raise BaselineNotFound."""
        path = self.baseline_path(subject)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            msg = f"no baseline for {subject}"
            raise BaselineNotFound(msg) from e

    async def write(self, subject: str, data: bytes) -> pathlib.Path:
        """Replace the subject's baseline with ``data``."""
        path = self.baseline_path(subject)
        await asyncio.to_thread(self._atomic_write, path, data)
        logger.info("baseline_written", subject=subject, size=len(data))
        return path

    async def write_diff(self, subject: str, data: bytes) -> pathlib.Path:
        """Persist the diff artifact for debugging."""
        path = self.diff_path(subject)
        await asyncio.to_thread(self._atomic_write, path, data)
        logger.debug("diff_written", subject=subject, size=len(data))
        return path

    async def remove_derived(self, subject: str) -> bool:
        """Delete the persisted diff artifact. Returns True if one was removed.

        Failing to delete a diff is logged and reported as False; the baseline
        is the only authoritative file.
        """
        path = self.diff_path(subject)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("diff_remove_failed", subject=subject, path=str(path), error=str(e))
            return False
        logger.debug("diff_removed", subject=subject)
        return True

    async def list_subjects(self) -> list[str]:
        """List subjects that have a stored baseline."""

        def _list() -> list[str]:
            return sorted(
                f.name[: -len(BASELINE_SUFFIX)]
                for f in self._base.glob(f"*{BASELINE_SUFFIX}")
                if f.is_file() and not f.name.endswith(DIFF_SUFFIX)
            )

        return await asyncio.to_thread(_list)

    def _atomic_write(self, path: pathlib.Path, data: bytes) -> None:
        if not data:
            msg = f"refusing to write empty image to {path.name}"
            raise WriteError(msg)
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
            _fsync_dir(path.parent)
        except OSError as e:
            logger.error("baseline_write_failed", path=str(path), error=str(e))
            msg = f"could not write {path.name}: {e}"
            raise WriteError(msg) from e
        finally:
            if tmp_name is not None:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp_name)


def _fsync_dir(directory: pathlib.Path) -> None:
    """Flush the directory entry so the rename survives a crash (POSIX only)."""
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)
