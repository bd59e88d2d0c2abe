from click.testing import CliRunner

from zipscan.CLI import extract

from conftest import central_directory_stub, local_header, stored_entry


def test_extract_command_writes_files(tmp_path, three_entry_zip):
    archive = tmp_path / "three.zip"
    archive.write_bytes(three_entry_zip)
    out = tmp_path / "out"

    result = CliRunner().invoke(extract, [str(archive), "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert "Extracting: docs/stored.txt" in result.output
    assert (out / "docs" / "stored.txt").read_bytes() == b"0123456789"
    assert (out / "docs" / "deflated.txt").read_bytes() == b"abcdefghij" * 100
    assert (out / "docs").is_dir()


def test_list_command(tmp_path, three_entry_zip):
    archive = tmp_path / "three.zip"
    archive.write_bytes(three_entry_zip)
    out = tmp_path / "out"

    result = CliRunner().invoke(extract, [str(archive), "--list", "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert "stored.txt" in result.output
    assert "deflate" in result.output
    assert not out.exists()


def test_missing_archive_exits_with_error(tmp_path):
    result = CliRunner().invoke(extract, [str(tmp_path / "nope.zip"), "-o", str(tmp_path / "out")])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_failed_entry_sets_exit_status(tmp_path):
    archive = tmp_path / "partial.zip"
    archive.write_bytes(stored_entry(b"good.txt", b"good")
                        + local_header(b"bad.bz2", method=12, csize=3, usize=3) + b"xyz"
                        + central_directory_stub())

    result = CliRunner().invoke(extract, [str(archive), "-o", str(tmp_path / "out"), "--chunk-size", "128"])

    assert result.exit_code == 1
    assert "Failed to extract" in result.output
    assert (tmp_path / "out" / "good.txt").read_bytes() == b"good"


def test_chunk_size_from_environment(tmp_path, three_entry_zip):
    archive = tmp_path / "three.zip"
    archive.write_bytes(three_entry_zip)

    result = CliRunner().invoke(extract, [str(archive), "-o", str(tmp_path / "out")],
                                env={"ZIPSCAN_CHUNK_SIZE": "64"})

    assert result.exit_code == 0, result.output
    assert (tmp_path / "out" / "docs" / "deflated.txt").read_bytes() == b"abcdefghij" * 100
