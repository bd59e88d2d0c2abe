import io
import random

import httpx
import pytest

from zipscan.Cursor import ArchiveCursor, CursorState
from zipscan.Errors import SourceReadError, TruncatedEntry
from zipscan.FileIO import RemoteStream, read_fully

from conftest import make_zip


def range_transport(payload: bytes, requests=None):
    def handler(request):
        if requests is not None:
            requests.append(request.headers.get("Range"))
        range_header = request.headers.get("Range")
        if not range_header:
            return httpx.Response(200, content=payload)
        start, end = range_header.split("=")[1].split("-")
        start, end = int(start), min(int(end), len(payload) - 1)
        return httpx.Response(206, content=payload[start:end + 1],
                              headers={"Content-Range": f"bytes {start}-{end}/{len(payload)}"})
    return httpx.MockTransport(handler)


class ShortReads(io.RawIOBase):
    """Raw stream returning at most 3 bytes per read."""

    def __init__(self, data):
        self._inner = io.BytesIO(data)

    def readable(self):
        return True

    def read(self, size=-1):
        return self._inner.read(min(size, 3) if size >= 0 else 3)


def test_read_fully_joins_short_reads():
    stream = ShortReads(b"abcdefghij")
    assert read_fully(stream, 8) == b"abcdefgh"
    assert read_fully(stream, 8) == b"ij"
    assert read_fully(stream, 8) == b""


def test_remote_stream_reports_size_and_reads():
    payload = bytes(range(256)) * 10
    stream = RemoteStream("http://test/archive.zip", transport=range_transport(payload))
    assert stream.size == len(payload)
    stream.seek(100)
    assert read_fully(stream, 50) == payload[100:150]
    stream.seek(-10, io.SEEK_END)
    assert stream.read() == payload[-10:]
    stream.close()


def test_remote_stream_fetches_middle_regions():
    payload = random.Random(7).randbytes(400 * 1024)
    requests = []
    stream = RemoteStream("http://test/big.bin", buffer_size=128 * 1024,
                          transport=range_transport(payload, requests))
    stream.seek(200 * 1024)
    assert read_fully(stream, 4096) == payload[200 * 1024: 200 * 1024 + 4096]
    assert any(r and r.startswith(f"bytes={200 * 1024}-") for r in requests)
    stream.close()


def test_remote_stream_rejects_bad_status():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    with pytest.raises(ConnectionError):
        RemoteStream("http://test/missing.zip", transport=transport)


def test_closed_remote_stream_raises():
    stream = RemoteStream("http://test/a", transport=range_transport(b"0123456789"))
    stream.close()
    with pytest.raises(ValueError):
        stream.read(1)


def test_cursor_over_remote_stream():
    data = random.Random(1).randbytes(150 * 1024)
    archive = make_zip([("blob.bin", data), ("small.txt", b"small")])
    stream = RemoteStream("http://test/archive.zip", transport=range_transport(archive))

    with ArchiveCursor(stream) as cursor:
        assert cursor.advance()
        sink = io.BytesIO()
        cursor.extract(sink)
        assert sink.getvalue() == data
        assert cursor.advance()
        assert cursor.current_name == "small.txt"
        assert not cursor.advance()


def test_transport_failure_during_extract(monkeypatch):
    monkeypatch.setattr("zipscan.FileIO.time.sleep", lambda seconds: None)
    data = random.Random(3).randbytes(150 * 1024)
    archive = make_zip([("blob.bin", data), ("small.txt", b"small")])
    serving = range_transport(archive)
    failing = {"on": False}

    def handler(request):
        if failing["on"]:
            raise httpx.ReadTimeout("timed out", request=request)
        return serving.handle_request(request)

    stream = RemoteStream("http://test/archive.zip", transport=httpx.MockTransport(handler))
    cursor = ArchiveCursor(stream)
    assert cursor.advance()

    failing["on"] = True
    with pytest.raises(TruncatedEntry) as excinfo:
        cursor.extract(io.BytesIO())
    assert isinstance(excinfo.value.__cause__, OSError)
    assert cursor.state is CursorState.DATA_CONSUMED

    with pytest.raises(SourceReadError):
        cursor.advance()
    assert cursor.state is CursorState.EXHAUSTED
    cursor.close()


def test_unknown_remote_size_is_rejected():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(206, content=b"P", headers={"Content-Range": "bytes 0-0/*"}))
    with pytest.raises(ConnectionError):
        RemoteStream("http://test/unsized.zip", transport=transport)
