"""Opening archives and extracting them to disk.

`open_archive` builds an `ArchiveCursor` over a local path, an HTTP(S) URL or
an already-open binary stream. `extract_all` drives a cursor over the whole
archive, writing each entry below an output directory.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Tuple

import httpx

from .Cursor import ArchiveCursor
from .Errors import CorruptHeader, ExtractionError, NotAnArchive, UnsafeEntryPath
from .FileIO import RemoteStream
from .Scanner import BUFFER_SIZE

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("http://", "https://")


def is_remote(target) -> bool:
    return isinstance(target, str) and target.lower().startswith(REMOTE_SCHEMES)


def open_archive(target, chunk_size: int = BUFFER_SIZE) -> ArchiveCursor:
    """Open `target` for forward scanning.

    Args:
        target: A filesystem path, an http(s) URL, or a seekable binary
            stream. A stream is owned by the returned cursor.
        chunk_size (int): Bytes read per scan/decode step.

    Returns:
        ArchiveCursor: Cursor positioned before the first entry.

    Raises:
        NotAnArchive: If the target cannot be opened.
    """
    if hasattr(target, "read"):
        return ArchiveCursor(target, chunk_size=chunk_size)

    if is_remote(target):
        try:
            stream = RemoteStream(target)
        except (httpx.HTTPError, ConnectionError) as e:
            raise NotAnArchive(f"Cannot open {target}: {e}") from e
        logger.debug("Opened remote archive %s (%d bytes)", target, stream.size)
        return ArchiveCursor(stream, chunk_size=chunk_size)

    try:
        stream = open(target, "rb")
    except OSError as e:
        raise NotAnArchive(f"Cannot open {target}: {e}") from e
    return ArchiveCursor(stream, chunk_size=chunk_size)


def safe_destination(output_dir: Path, name: str) -> Path:
    """Map an entry name to a path inside `output_dir`.

    Raises:
        UnsafeEntryPath: If the name is absolute, carries a drive letter,
            contains ``..`` or a NUL byte, or otherwise resolves outside
            `output_dir`.
    """
    normalized = name.replace("\\", "/")
    parts = PurePosixPath(normalized).parts
    if not parts or normalized.startswith("/") or ":" in parts[0] or ".." in parts or "\x00" in normalized:
        raise UnsafeEntryPath(f"Refusing unsafe entry path: {name!r}")

    root = Path(output_dir).resolve()
    target = root.joinpath(*parts).resolve()
    if target != root and root not in target.parents:
        raise UnsafeEntryPath(f"Entry {name!r} escapes {output_dir}")
    return target


@dataclass
class ExtractionReport:
    """Summary of an `extract_all` run."""
    extracted: List[str] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    bytes_written: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed


def extract_all(cursor: ArchiveCursor, output_dir: Path, progress_callback=None, on_entry=None) -> ExtractionReport:
    """Extract every entry the cursor finds into `output_dir`.

    Names ending in ``/`` create directories and are never extracted. A
    failing entry is recorded in the report and iteration continues.

    Args:
        cursor (ArchiveCursor): Freshly opened cursor.
        output_dir (Path): Destination root; created if missing.
        progress_callback (callable|None): Called with bytes written.
        on_entry (callable|None): Called with each EntryMetadata before
            it is written.

    Returns:
        ExtractionReport: What was written and what failed.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    report = ExtractionReport()

    while True:
        try:
            if not cursor.advance():
                break
        except CorruptHeader as e:
            report.failed.append((f"<header at {e.offset}>", str(e)))
            continue

        entry = cursor.current_entry
        # A failure here leaves the entry pending; the next advance() skips it.
        try:
            target = safe_destination(output_dir, entry.name)
            if entry.is_dir:
                target.mkdir(parents=True, exist_ok=True)
                report.directories.append(entry.name)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target_file = open(target, "wb")
        except (UnsafeEntryPath, OSError, ValueError) as e:
            logger.warning("Cannot write %s: %s", entry.name, e)
            report.failed.append((entry.name, str(e)))
            continue

        if on_entry:
            on_entry(entry)
        try:
            with target_file:
                result = cursor.extract(target_file, progress_callback=progress_callback)
        except ExtractionError as e:
            logger.warning("Failed to extract %s: %s", entry.name, e)
            report.failed.append((entry.name, str(e)))
            continue

        report.extracted.append(entry.name)
        report.bytes_written += result.bytes_written

    return report
