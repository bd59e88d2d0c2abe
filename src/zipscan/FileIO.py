"""Byte sources for archive scanning.

Provides `RemoteStream`, an io.RawIOBase-compatible stream that reads a remote
archive through HTTP Range requests, and `read_fully`, which turns the short
reads raw streams are allowed to return into complete reads.

Classes:
    RemoteStream: Lazily-fetching HTTP-backed read-only stream.
"""

import io
import logging
import time

import httpx

logger = logging.getLogger(__name__)

MIN_FETCH_SIZE = 1 * 1024 * 1024  # 1 MiB
LARGE_REQUEST_THRESHOLD = 512 * 1024  # 512 KiB
DEFAULT_FETCH_SIZE = 8 * 1024 * 1024  # 8 MiB
METADATA_PREFETCH_SIZE = 64 * 1024  # 64 KiB
MAX_ATTEMPTS = 5


def read_fully(source, size: int) -> bytes:
    """Read exactly `size` bytes from `source` unless EOF comes first.

    Raw streams (including `RemoteStream`) may hand back fewer bytes than
    requested without being at EOF. Callers that need a fixed-size record or
    a full chunk use this instead of a bare ``read``.

    Args:
        source: Readable binary stream.
        size (int): Number of bytes wanted.

    Returns:
        bytes: Up to `size` bytes; shorter only at end of stream.
    """
    parts = []
    remaining = size
    while remaining > 0:
        data = source.read(remaining)
        if not data:
            break
        parts.append(data)
        remaining -= len(data)
    return b"".join(parts)


class RemoteStream(io.RawIOBase):
    """File-like stream backed by an HTTP resource using Range requests.

    Exposes read, seek and tell over a remote file. The archive cursor reads
    strictly forward in small chunks, so a single cached region plus small
    prefetched head and tail regions serve almost every read locally.

    Attributes:
        url (str): Remote resource URL.
        buffer_size (int): Preferred size (bytes) for range fetches.
        pos (int): Current logical read position in the virtual file.
        client (httpx.Client): HTTP client used for requests (keep-alive).
        _buffer (bytes): Single in-memory cached region fetched from the server.
        _buffer_start (int): Absolute start offset of `_buffer` in the file.
        _metadata_cache (dict): Prefetched head/tail regions.
    """
    def __init__(self, url: str, buffer_size: int = DEFAULT_FETCH_SIZE, transport: httpx.BaseTransport | None = None):
        """Create a RemoteStream.

        Args:
            url (str): HTTP(S) URL of the resource to stream.
            buffer_size (int): Preferred fetch size in bytes.
            transport (httpx.BaseTransport | None): Optional transport handed
                to the httpx client, mainly for tests.

        Raises:
            ConnectionError: If the initial probe returns an unexpected status
                or no usable size.
            httpx.HTTPError: For network failures during the probe.
        """
        self.url = url
        headers = {
            "User-Agent": "zipscan/0.1",
            "Accept": "*/*",
            "Connection": "keep-alive"}

        self.buffer_size = buffer_size
        self.pos: int = 0
        self._size: int | None = None

        self._buffer: bytes = b""
        self._buffer_start: int = 0

        self.client = httpx.Client(headers=headers, follow_redirects=True,
                                   timeout=httpx.Timeout(10.0, read=300.0), transport=transport)

        # A one-byte ranged GET tells us the total size without relying on HEAD.
        with self.client.stream("GET", self.url, headers={"Range": "bytes=0-0"}) as r:
            if r.status_code not in (200, 206):
                raise ConnectionError(f"Server returned {r.status_code}")
            content_range = r.headers.get("Content-Range")
            if content_range:
                # Content-Range: bytes 0-0/12345, or bytes 0-0/* when the size is unknown
                total = content_range.split("/")[-1].strip()
                if not total.isdigit():
                    raise ConnectionError(f"Server did not report a size for {self.url}")
                self._size = int(total)
            else:
                self._size = int(r.headers.get("Content-Length", 0))

        self._metadata_cache: dict = {}
        self._prefetch_metadata()

    def _prefetch_metadata(self):
        """Cache the first and last few KiB of the resource.

        Local headers at the start and the central directory at the end are
        the regions probed most often. Failures are logged and ignored.
        """
        if self.size == 0:
            return
        head_size = min(METADATA_PREFETCH_SIZE, self.size)
        tail_size = min(METADATA_PREFETCH_SIZE, self.size)
        tail_start = self.size - tail_size

        for label, start, end in [("initial", 0, head_size - 1),
                                  ("final", tail_start, self.size - 1)]:
            try:
                response = self.client.get(self.url, headers={"Range": f"bytes={start}-{end}"})
                response.raise_for_status()
                self._metadata_cache[label] = {
                    "data": response.content,
                    "start": start,
                    "end": start + len(response.content) - 1
                }
            except httpx.HTTPError as e:
                logger.warning("Metadata prefetch failed for %s bytes: %s", label, e)
                self._metadata_cache[label] = {"data": b"", "start": 0, "end": -1}

    @property
    def size(self) -> int:
        """Content length in bytes, or 0 if the server did not report one."""
        return self._size or 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def tell(self) -> int:
        return self.pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move the logical stream position. No request is made until `read`."""
        if self.closed:
            raise ValueError("seek on closed RemoteStream")
        if whence == io.SEEK_SET:
            self.pos = offset
        elif whence == io.SEEK_CUR:
            self.pos += offset
        elif whence == io.SEEK_END:
            self.pos = self.size + offset

        return self.pos

    def _fetch(self, size: int):
        """Fetch a region starting at the current position into `_buffer`.

        Retries transient HTTP failures and honours ``Retry-After`` on 429.

        Raises:
            OSError: If every attempt fails, or the server returns no bytes
                for a non-empty range.
        """
        fetch_size = max(size, MIN_FETCH_SIZE) if size <= LARGE_REQUEST_THRESHOLD else max(size, self.buffer_size)
        fetch_size = min(fetch_size, self.size - self.pos)
        end_range = self.pos + fetch_size - 1
        headers = {"Range": f"bytes={self.pos}-{end_range}"}

        for attempt in range(MAX_ATTEMPTS):
            try:
                response = self.client.get(self.url, headers=headers)
                if response.status_code == 429:
                    wait_time = max(int(response.headers.get("Retry-After", 3)), 1)
                    logger.warning("Received 429 Too Many Requests, retrying after %d seconds", wait_time)
                    time.sleep(wait_time)
                    continue
                response.raise_for_status()

                if not response.content and fetch_size > 0:
                    raise OSError(f"Server returned no bytes for range {self.pos}-{end_range}")

                self._buffer = response.content
                self._buffer_start = self.pos
                return
            except httpx.HTTPError as e:
                if attempt == MAX_ATTEMPTS - 1:
                    raise OSError(f"Could not fetch bytes {self.pos}-{end_range} from {self.url}: {e}") from e
                wait_time = (attempt + 1) * 2
                logger.warning("HTTP error on attempt %d: %s. Retrying after %d seconds",
                               attempt + 1, e, wait_time)
                time.sleep(wait_time)
        raise OSError(f"Could not fetch bytes {self.pos}-{end_range} from {self.url}")

    def read(self, size: int = -1) -> bytes:
        """Read up to `size` bytes from the stream.

        The prefetched head/tail regions are consulted first, then the cached
        buffer, and only then is a new range fetched. Reads served from a
        cache may be shorter than `size`; use `read_fully` for exact reads.

        Raises:
            ValueError: If the stream has been closed.
            OSError: On network errors while fetching ranges.
        """
        if self.closed:
            raise ValueError("read from closed RemoteStream")
        if (size is None or size < 0) or (self.pos + size > self.size):
            size = self.size - self.pos
        if size <= 0:
            return b""

        for cache in self._metadata_cache.values():
            if cache["start"] <= self.pos <= cache["end"]:
                offset = self.pos - cache["start"]
                data = cache["data"][offset: offset + size]
                self.pos += len(data)
                return data

        buf_end = self._buffer_start + len(self._buffer)
        if self._buffer_start <= self.pos < buf_end:
            offset = self.pos - self._buffer_start
            data = self._buffer[offset: offset + size]
            self.pos += len(data)
            return data

        self._fetch(size)
        return self.read(size)

    def close(self):
        """Close the HTTP client; the stream is unusable afterwards."""
        if not self.closed:
            self.client.close()
        super().close()
