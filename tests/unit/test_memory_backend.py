# SPDX-License-Identifier: MIT
"""Unit tests for MemoryBackend and path normalisation."""

import pytest

from diskfactory.backends.memory import MemoryBackend
from diskfactory.backends.protocol import Backend, Entry, normalize_path


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("a.txt", "a.txt"),
        ("/a//b/./c.txt", "a/b/c.txt"),
        ("a\\b.txt", "a/b.txt"),
        ("dir/", "dir"),
        ("", ""),
        ("/", ""),
        ("./", ""),
    ],
)
def test_normalize_path(raw, expected):
    assert normalize_path(raw) == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    ("path", "extension", "filename"),
    [
        ("docs/a.txt", "txt", "a"),
        ("archive.tar.gz", "gz", "archive.tar"),
        ("README", None, "README"),
        (".env", None, ".env"),
        ("dir/.config.json", "json", ".config"),
    ],
)
def test_entry_name_parts(path, extension, filename):
    entry = Entry(path=path, type="file")
    assert entry.extension == extension
    assert entry.filename == filename


@pytest.mark.unit
def test_memory_backend_is_backend():
    assert isinstance(MemoryBackend(), Backend)


@pytest.mark.unit
async def test_write_registers_parent_dirs():
    backend = MemoryBackend()
    await backend.write("a/b/c.txt", b"C", "public")

    assert await backend.has("a") is True
    assert await backend.has("a/b") is True
    assert [e.path for e in await backend.list_contents(recursive=True)] == ["a", "a/b", "a/b/c.txt"]


@pytest.mark.unit
async def test_write_onto_directory_fails():
    backend = MemoryBackend()
    await backend.create_dir("d", "public")
    assert await backend.write("d", b"x", "public") is False


@pytest.mark.unit
async def test_missing_paths_are_falsy():
    backend = MemoryBackend()
    assert await backend.read("nope") is None
    assert await backend.read_stream("nope") is None
    assert await backend.delete("nope") is False
    assert await backend.copy("nope", "b") is False
    assert await backend.rename("nope", "b") is False
    assert await backend.get_metadata("nope") is None
    assert await backend.set_visibility("nope", "public") is False


@pytest.mark.unit
async def test_get_visibility_missing_raises():
    backend = MemoryBackend()
    with pytest.raises(FileNotFoundError):
        await backend.get_visibility("nope")


@pytest.mark.unit
async def test_copy_is_independent():
    backend = MemoryBackend()
    await backend.write("a", b"1", "private")
    await backend.copy("a", "b")
    await backend.write("a", b"2", "public")

    assert await backend.read("b") == b"1"
    assert await backend.get_visibility("b") == "private"


@pytest.mark.unit
async def test_list_contents_shallow():
    backend = MemoryBackend()
    await backend.write("x/1.txt", b"", "public")
    await backend.write("x/y/2.txt", b"", "public")
    await backend.write("z.txt", b"", "public")

    assert [e.path for e in await backend.list_contents()] == ["x", "z.txt"]
    assert [e.path for e in await backend.list_contents("x")] == ["x/1.txt", "x/y"]


@pytest.mark.unit
async def test_delete_dir_removes_subtree():
    backend = MemoryBackend()
    await backend.write("x/1.txt", b"", "public")
    await backend.write("x/y/2.txt", b"", "public")
    await backend.write("xy.txt", b"", "public")

    assert await backend.delete_dir("x") is True
    assert [e.path for e in await backend.list_contents(recursive=True)] == ["xy.txt"]


@pytest.mark.unit
async def test_directory_metadata():
    backend = MemoryBackend()
    await backend.create_dir("d", "private")

    meta = await backend.get_metadata("d")
    assert meta.type == "dir"
    assert meta.visibility == "private"
    assert await backend.get_size("d") is None


@pytest.mark.unit
async def test_unknown_mimetype_falls_back():
    backend = MemoryBackend()
    await backend.write("blob.zzz-unknown", b"x", "public")
    assert await backend.get_mimetype("blob.zzz-unknown") == "application/octet-stream"


@pytest.mark.unit
@pytest.mark.parametrize("destination", ["/", "", "d"])
async def test_rejected_rename_keeps_source(destination):
    backend = MemoryBackend()
    await backend.write("a.txt", b"A", "public")
    await backend.create_dir("d", "public")

    assert await backend.rename("a.txt", destination) is False
    assert await backend.read("a.txt") == b"A"
