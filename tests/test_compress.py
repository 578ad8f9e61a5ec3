import os
import zipfile

import pytest

from yuinfra.compress import IllegalPathError, unzip_file, zip_files


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "a.txt").write_bytes(b"alpha contents")
    (tmp_path / "b.txt").write_bytes(b"beta contents" * 50)
    return tmp_path


def test_round_trip(workdir):
    zip_files(["a.txt", "b.txt"], "out.zip")
    dest = workdir / "dest"
    dest.mkdir()
    names = unzip_file("out.zip", str(dest))
    assert names == [os.path.join(str(dest), "a.txt"), os.path.join(str(dest), "b.txt")]
    assert (dest / "a.txt").read_bytes() == b"alpha contents"
    assert (dest / "b.txt").read_bytes() == b"beta contents" * 50


def test_entries_are_deflated_under_given_names(workdir):
    zip_files(["a.txt", "b.txt"], "out.zip")
    with zipfile.ZipFile("out.zip") as archive:
        infos = archive.infolist()
        contents = {i.filename: archive.read(i.filename) for i in infos}
    assert [i.filename for i in infos] == ["a.txt", "b.txt"]
    assert all(i.compress_type == zipfile.ZIP_DEFLATED for i in infos)
    assert contents == {"a.txt": b"alpha contents", "b.txt": b"beta contents" * 50}

    dest = workdir / "dest"
    dest.mkdir()
    names = unzip_file("out.zip", str(dest))
    assert [os.path.basename(n) for n in names] == ["a.txt", "b.txt"]


def test_missing_input_file_raises(workdir):
    with pytest.raises(FileNotFoundError):
        zip_files(["missing.txt"], "out.zip")


def test_zip_slip_is_rejected(workdir):
    with zipfile.ZipFile("evil.zip", "w") as archive:
        archive.writestr("../escape.txt", b"bad")
    dest = workdir / "dest"
    dest.mkdir()
    with pytest.raises(IllegalPathError):
        unzip_file("evil.zip", str(dest))
    assert not (workdir / "escape.txt").exists()


def test_directory_entries_are_created(workdir):
    with zipfile.ZipFile("dirs.zip", "w") as archive:
        archive.writestr("sub/", b"")
        archive.writestr("sub/inner.txt", b"inner")
    dest = workdir / "dest"
    dest.mkdir()
    names = unzip_file("dirs.zip", str(dest))
    assert names == [os.path.join(str(dest), "sub"), os.path.join(str(dest), "sub", "inner.txt")]
    assert (dest / "sub" / "inner.txt").read_bytes() == b"inner"