"""Streaming ZIP assembly for bundle downloads.

The builder writes into a non-seekable sink that only collects the
chunks the ZIP writer emits; `finalize()` closes the writer and joins
them. The deployment manifest is always the first entry.

State machine, per build:

    IDLE -> MANIFEST_WRITTEN -> (FETCHING -> APPENDED)* -> FINALIZING -> DONE
      \\__________________________ any ____________________________/-> ERROR
"""

import asyncio
import io
import logging
import zipfile
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from pathlib import Path
from typing import Any

from promptreg.archive.manifest import dump_manifest
from promptreg.constants import DEPLOYMENT_MANIFEST_NAME
from promptreg.exceptions import ArchiveError, RegistryError
from promptreg.utils import format_size, is_safe_relative_path

logger = logging.getLogger(__name__)

FetchItem = Callable[[str], Awaitable[bytes]]


class BuildState(str, Enum):
    IDLE = "idle"
    MANIFEST_WRITTEN = "manifest-written"
    FETCHING = "fetching"
    APPENDED = "appended"
    FINALIZING = "finalizing"
    DONE = "done"
    ERROR = "error"


_TERMINAL = (BuildState.DONE, BuildState.ERROR)
_APPENDABLE = (BuildState.MANIFEST_WRITTEN, BuildState.APPENDED)


class _ChunkSink(io.RawIOBase):
    """Write-only stream that keeps every chunk it receives."""

    def __init__(self):
        super().__init__()
        self.chunks: list[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        self.chunks.append(bytes(data))
        return len(data)


class ArchiveBuilder:
    """Build one ZIP archive in memory.

    Usage:
        builder = ArchiveBuilder("my-bundle")
        builder.write_manifest(manifest)
        builder.append("prompts/a.prompt.md", text)
        data = await builder.finalize()
    """

    def __init__(self, label: str = "bundle"):
        self.label = label
        self.state = BuildState.IDLE
        self.entries: list[str] = []
        self._sink = _ChunkSink()
        self._zip = zipfile.ZipFile(
            self._sink, mode="w", compression=zipfile.ZIP_DEFLATED
        )

    def _require(self, allowed: Iterable[BuildState], action: str) -> None:
        if self.state not in allowed:
            raise ArchiveError(
                f"{self.label}: cannot {action} while {self.state.value}"
            )

    def fail(self, message: str, cause: BaseException | None = None) -> ArchiveError:
        """Move to ERROR and return the exception for the caller to raise."""
        if self.state not in _TERMINAL:
            self.state = BuildState.ERROR
            try:
                self._zip.close()
            except (OSError, ValueError) as e:
                logger.debug("%s: discarding partial archive: %s", self.label, e)
        logger.error("%s: archive build failed: %s", self.label, message)
        error = ArchiveError(f"{self.label}: {message}")
        if cause is not None:
            error.__cause__ = cause
        return error

    def _write(self, arcname: str, data: bytes | str) -> None:
        try:
            self._zip.writestr(arcname, data)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise self.fail(f"cannot write {arcname}: {e}", e) from e
        self.entries.append(arcname)

    def write_manifest(self, manifest: dict[str, Any] | str) -> None:
        """Write deployment-manifest.yml as the first entry."""
        self._require((BuildState.IDLE,), "write the manifest")
        text = manifest if isinstance(manifest, str) else dump_manifest(manifest)
        self._write(DEPLOYMENT_MANIFEST_NAME, text)
        self.state = BuildState.MANIFEST_WRITTEN

    def append(self, arcname: str, data: bytes | str) -> None:
        """Add one file. A second deployment manifest is rejected."""
        self._require(_APPENDABLE, f"append {arcname}")
        self._append(arcname, data)

    def _append(self, arcname: str, data: bytes | str) -> None:
        arcname = arcname.lstrip("/")
        if arcname == DEPLOYMENT_MANIFEST_NAME:
            raise self.fail(f"{arcname} may only be written once")
        if not is_safe_relative_path(arcname):
            raise self.fail(f"unsafe member name: {arcname}")
        self._write(arcname, data)
        self.state = BuildState.APPENDED

    async def append_fetched(
        self, arcname: str, source_path: str, fetch: FetchItem
    ) -> None:
        """Fetch one item and append it; a missing item aborts the build."""
        self._require(_APPENDABLE, f"fetch {source_path}")
        self.state = BuildState.FETCHING
        try:
            data = await fetch(source_path)
        except (RegistryError, OSError) as e:
            raise self.fail(f"missing item {source_path}: {e}", e) from e
        self._append(arcname, data)

    async def finalize(self) -> bytes:
        """Close the writer and return the archive bytes."""
        self._require(_APPENDABLE, "finalize")
        self.state = BuildState.FINALIZING
        try:
            await asyncio.to_thread(self._zip.close)
        except (OSError, ValueError) as e:
            raise self.fail(f"cannot finalize archive: {e}", e) from e
        data = b"".join(self._sink.chunks)
        self.state = BuildState.DONE
        logger.info(
            "%s: built archive with %d entries (%s)",
            self.label,
            len(self.entries),
            format_size(len(data)),
        )
        return data


def _iter_files(root: Path) -> list[Path]:
    return sorted(p for p in root.rglob("*") if p.is_file())


async def repackage_directory(
    root: Path,
    manifest: dict[str, Any] | str,
    *,
    prefix: str = "",
    label: str | None = None,
) -> bytes:
    """Archive every file below `root` with a generated manifest.

    Args:
        root: Directory to walk
        manifest: Manifest dict, or existing manifest text to write verbatim
        prefix: Path inside the archive under which files are placed
        label: Name used in logs and errors

    Raises:
        ArchiveError: If the directory is missing or a file cannot be read
    """
    builder = ArchiveBuilder(label or root.name)
    if not root.is_dir():
        raise builder.fail(f"directory not found: {root}")
    builder.write_manifest(manifest)
    base = prefix.strip("/")
    for path in _iter_files(root):
        relative = path.relative_to(root).as_posix()
        if not base and relative == DEPLOYMENT_MANIFEST_NAME:
            continue
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise builder.fail(f"cannot read {path}: {e}", e) from e
        builder.append(f"{base}/{relative}" if base else relative, data)
    return await builder.finalize()


async def assemble_collection(
    manifest: dict[str, Any],
    items: Iterable[tuple[str, str]],
    fetch: FetchItem,
    *,
    label: str | None = None,
) -> bytes:
    """Fetch items one at a time and archive them.

    Args:
        manifest: Deployment manifest to write first
        items: (source path, archive path) pairs, in manifest order
        fetch: Coroutine returning the raw content of a source path
        label: Name used in logs and errors

    Raises:
        ArchiveError: If any item cannot be fetched; no bytes are returned
    """
    builder = ArchiveBuilder(label or str(manifest.get("id", "bundle")))
    builder.write_manifest(manifest)
    for source_path, arcname in items:
        await builder.append_fetched(arcname, source_path, fetch)
    return await builder.finalize()
