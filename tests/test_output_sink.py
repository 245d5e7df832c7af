from __future__ import annotations

import zipfile

from infrastructure.output_sink import DirectoryOutputSink


def test_save_file_creates_directory(tmp_path):
    sink = DirectoryOutputSink(tmp_path / "out" / "nested")
    path = sink.save_file("a_geotagged.jpg", b"\xff\xd8data")

    assert path == str(tmp_path / "out" / "nested" / "a_geotagged.jpg")
    assert (tmp_path / "out" / "nested" / "a_geotagged.jpg").read_bytes() == b"\xff\xd8data"


def test_existing_files_are_never_overwritten(tmp_path):
    sink = DirectoryOutputSink(tmp_path)
    first = sink.save_file("a.jpg", b"1")
    second = sink.save_file("a.jpg", b"2")
    third = sink.save_file("a.jpg", b"3")

    assert first.endswith("a.jpg")
    assert second.endswith("a (1).jpg")
    assert third.endswith("a (2).jpg")
    assert (tmp_path / "a.jpg").read_bytes() == b"1"


def test_names_cannot_escape_the_directory(tmp_path):
    sink = DirectoryOutputSink(tmp_path / "out")
    path = sink.save_file("../../evil.jpg", b"x")
    assert path == str(tmp_path / "out" / "evil.jpg")


def test_save_archive_stores_entries_in_order(tmp_path):
    sink = DirectoryOutputSink(tmp_path)
    path = sink.save_archive("geotagged.zip", [("b.jpg", b"2"), ("a.jpg", b"1")])

    with zipfile.ZipFile(path) as zf:
        assert zf.namelist() == ["b.jpg", "a.jpg"]
        assert zf.read("a.jpg") == b"1"
        assert all(info.compress_type == zipfile.ZIP_STORED for info in zf.infolist())
