"""zipscan CLI entrypoint.

This module provides the `extract` click command, which walks a ZIP archive
(local path or http(s) URL) by scanning for local headers, and either lists
the entries it finds or extracts them to an output directory while
displaying progress.

Usage example (from shell):
    zipscan damaged.zip -o recovered/
    zipscan https://example.com/archive.zip --list
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn, DownloadColumn, TransferSpeedColumn
from rich.table import Table

from .ArchiveEngine import extract_all, open_archive
from .Errors import CorruptHeader, ZipScanError
from .Scanner import BUFFER_SIZE

# One console for tables, progress and log records.
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _list_entries(cursor) -> int:
    table = Table(title="Archive Entries")
    table.add_column("Name", justify="left")
    table.add_column("Method")
    table.add_column("Compressed", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Header @", justify="right")
    table.add_column("Data @", justify="right")

    failures = 0
    while True:
        try:
            if not cursor.advance():
                break
        except CorruptHeader as e:
            console.print(f"[yellow]Skipping corrupt header:[/yellow] {e}")
            failures += 1
            continue
        entry = cursor.current_entry
        if entry.sizes_known:
            compressed, size = str(entry.declared_compressed_size), str(entry.declared_uncompressed_size)
        else:
            compressed = size = "?"
        table.add_row(entry.name, entry.compression_method.value, compressed, size,
                      str(entry.header_offset), str(entry.data_offset))
    console.print(table)
    return failures


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument("source", type=str)
@click.option("--output", "-o",
              type=click.Path(file_okay=False, dir_okay=True, writable=True, path_type=Path),
              default=Path("extracted"),
              help="Output directory for extracted files")
@click.option("--list", "list_only", is_flag=True, help="List entries instead of extracting them")
@click.option("--chunk-size", type=click.IntRange(min=64), default=BUFFER_SIZE, show_default=True,
              envvar="ZIPSCAN_CHUNK_SIZE", help="Bytes read per scan/decode step")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def extract(source: str, output: Path, list_only: bool, chunk_size: int, verbose: bool):
    """Recover files from a ZIP archive without reading its central directory.

    SOURCE is a local path or an http(s) URL. Entries are found by scanning
    forward for local file headers, so truncated archives and archives with
    a missing or damaged central directory can still be extracted.
    """
    _setup_logging(verbose)

    try:
        with console.status("Opening archive..."):
            cursor = open_archive(source, chunk_size=chunk_size)
    except ZipScanError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    with cursor:
        try:
            if list_only:
                failures = _list_entries(cursor)
                sys.exit(1 if failures else 0)

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                DownloadColumn(),
                TransferSpeedColumn(),
                console=console
            ) as progress:
                # No central directory means no total size up front.
                task = progress.add_task("Extracting files...", total=None)

                def progress_callback(bytes_written):
                    progress.update(task, advance=bytes_written)

                def on_entry(entry):
                    progress.console.print(f"Extracting: {entry.name}")

                report = extract_all(cursor, output, progress_callback=progress_callback, on_entry=on_entry)
        except ZipScanError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    for name, reason in report.failed:
        console.print(f"[red]Failed to extract:[/red] {name} ({reason})")
    console.print(f"Extraction complete: {len(report.extracted)} file(s), "
                  f"{len(report.directories)} directories, {len(report.failed)} failed.")
    sys.exit(0 if report.ok else 1)
