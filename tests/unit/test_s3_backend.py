# SPDX-License-Identifier: MIT
"""Unit tests for S3Backend with a mocked aioboto3 client."""

from datetime import UTC, datetime

import pytest

pytest.importorskip("aioboto3")

from botocore.exceptions import ClientError  # noqa: E402

from diskfactory.backends.protocol import Backend  # noqa: E402
from diskfactory.backends.s3 import S3Backend  # noqa: E402

_ALL_USERS = "http://acs.amazonaws.com/groups/global/AllUsers"

# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def backend():
    return S3Backend("bucket", "nyc3", "key-id", "secret", endpoint="https://nyc3.example.com", prefix="site/")


@pytest.fixture
def s3(mocker, backend):
    """The mocked client yielded by ``async with session.client(...)``."""
    client = mocker.AsyncMock()
    client.get_paginator = mocker.Mock()
    context = mocker.MagicMock()
    context.__aenter__.return_value = client
    context.__aexit__.return_value = False
    mocker.patch.object(backend._session, "client", return_value=context)
    return client


def _not_found(operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, operation)


def _pages(*pages):
    async def gen():
        for page in pages:
            yield page

    return gen()


# ------------------------------------------------------------------
# Client construction
# ------------------------------------------------------------------


@pytest.mark.unit
def test_s3_is_backend(backend):
    assert isinstance(backend, Backend)


@pytest.mark.unit
async def test_client_uses_credentials_and_endpoint(backend, s3):
    await backend.write("a.txt", b"A", "private")

    backend._session.client.assert_called_with(
        "s3",
        region_name="nyc3",
        aws_access_key_id="key-id",
        aws_secret_access_key="secret",
        endpoint_url="https://nyc3.example.com",
    )


# ------------------------------------------------------------------
# Writing / reading
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_write_sets_acl_and_content_type(backend, s3):
    assert await backend.write("img/logo.png", b"PNG", "public") is True

    s3.put_object.assert_awaited_once_with(
        Bucket="bucket", Key="site/img/logo.png", Body=b"PNG", ACL="public-read", ContentType="image/png"
    )


@pytest.mark.unit
async def test_read(backend, s3, mocker):
    body = mocker.AsyncMock()
    body.read.return_value = b"DATA"
    s3.get_object.return_value = {"Body": body}

    assert await backend.read("a.txt") == b"DATA"
    s3.get_object.assert_awaited_once_with(Bucket="bucket", Key="site/a.txt")


@pytest.mark.unit
async def test_read_stream_missing_raises(backend, s3):
    s3.head_object.side_effect = _not_found()
    with pytest.raises(FileNotFoundError):
        await backend.read_stream("nope.txt")


@pytest.mark.unit
async def test_path_traversal_rejected(backend, s3):
    with pytest.raises(ValueError, match="path traversal"):
        await backend.write("../../escape", b"x", "public")


# ------------------------------------------------------------------
# Existence / deletion
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_has_file(backend, s3):
    s3.head_object.return_value = {"ContentLength": 1}
    assert await backend.has("a.txt") is True


@pytest.mark.unit
async def test_has_directory_prefix(backend, s3):
    s3.head_object.side_effect = _not_found()
    s3.list_objects_v2.return_value = {"KeyCount": 1}

    assert await backend.has("docs") is True
    s3.list_objects_v2.assert_awaited_once_with(Bucket="bucket", Prefix="site/docs/", MaxKeys=1)


@pytest.mark.unit
async def test_has_missing(backend, s3):
    s3.head_object.side_effect = _not_found()
    s3.list_objects_v2.return_value = {"KeyCount": 0}
    assert await backend.has("nope") is False


@pytest.mark.unit
async def test_head_error_propagates(backend, s3):
    s3.head_object.side_effect = ClientError({"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadObject")
    with pytest.raises(ClientError):
        await backend.has("a.txt")


@pytest.mark.unit
async def test_delete_missing_returns_false(backend, s3):
    s3.head_object.side_effect = _not_found()
    assert await backend.delete("nope.txt") is False
    s3.delete_object.assert_not_called()


@pytest.mark.unit
async def test_delete(backend, s3):
    s3.head_object.return_value = {"ContentLength": 1}
    assert await backend.delete("a.txt") is True
    s3.delete_object.assert_awaited_once_with(Bucket="bucket", Key="site/a.txt")


@pytest.mark.unit
async def test_delete_dir_batches_keys(backend, s3):
    keys = [{"Key": f"site/d/{i}.txt"} for i in range(1500)]
    s3.get_paginator.return_value.paginate.return_value = _pages({"Contents": keys[:1000]}, {"Contents": keys[1000:]})

    assert await backend.delete_dir("d") is True
    batches = [c.kwargs["Delete"]["Objects"] for c in s3.delete_objects.await_args_list]
    assert [len(b) for b in batches] == [1000, 500]


@pytest.mark.unit
async def test_delete_empty_dir_returns_false(backend, s3):
    s3.get_paginator.return_value.paginate.return_value = _pages({})
    assert await backend.delete_dir("d") is False


# ------------------------------------------------------------------
# Copy / rename
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_copy_keeps_visibility(backend, s3):
    s3.get_object_acl.return_value = {"Grants": [{"Grantee": {"URI": _ALL_USERS}, "Permission": "READ"}]}

    assert await backend.copy("a.txt", "b.txt") is True
    s3.copy_object.assert_awaited_once_with(
        Bucket="bucket",
        Key="site/b.txt",
        CopySource={"Bucket": "bucket", "Key": "site/a.txt"},
        ACL="public-read",
    )


@pytest.mark.unit
async def test_rename_copies_then_deletes(backend, s3):
    s3.get_object_acl.return_value = {"Grants": []}
    s3.head_object.return_value = {"ContentLength": 1}

    assert await backend.rename("a.txt", "b.txt") is True
    assert s3.copy_object.await_args.kwargs["ACL"] == "private"
    s3.delete_object.assert_awaited_once_with(Bucket="bucket", Key="site/a.txt")


# ------------------------------------------------------------------
# Listing / metadata
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_list_contents_shallow(backend, s3):
    modified = datetime(2024, 1, 1, tzinfo=UTC)
    paginator = s3.get_paginator.return_value
    paginator.paginate.return_value = _pages(
        {
            "CommonPrefixes": [{"Prefix": "site/docs/img/"}],
            "Contents": [
                {"Key": "site/docs/", "Size": 0},
                {"Key": "site/docs/a.txt", "Size": 3, "LastModified": modified},
            ],
        }
    )

    entries = await backend.list_contents("docs")

    paginator.paginate.assert_called_once_with(Bucket="bucket", Prefix="site/docs/", Delimiter="/")
    assert [(e.path, e.type) for e in entries] == [("docs/a.txt", "file"), ("docs/img", "dir")]
    assert entries[0].size == 3
    assert entries[0].timestamp == int(modified.timestamp())


@pytest.mark.unit
async def test_list_contents_recursive_emulates_dirs(backend, s3):
    s3.get_paginator.return_value.paginate.return_value = _pages(
        {"Contents": [{"Key": "site/docs/x/y/z.txt", "Size": 1}]}
    )

    entries = await backend.list_contents("docs", recursive=True)
    assert [(e.path, e.type) for e in entries] == [
        ("docs/x", "dir"),
        ("docs/x/y", "dir"),
        ("docs/x/y/z.txt", "file"),
    ]


@pytest.mark.unit
async def test_get_metadata_of_file(backend, s3):
    s3.head_object.return_value = {
        "ContentLength": 5,
        "LastModified": datetime(2024, 1, 1, tzinfo=UTC),
        "ContentType": "text/plain",
    }

    meta = await backend.get_metadata("a.txt")
    assert meta.path == "a.txt"
    assert meta.type == "file"
    assert meta.size == 5
    assert meta.mimetype == "text/plain"


@pytest.mark.unit
async def test_get_metadata_missing(backend, s3):
    s3.head_object.side_effect = _not_found()
    s3.list_objects_v2.return_value = {"KeyCount": 0}
    assert await backend.get_metadata("nope") is None


@pytest.mark.unit
async def test_visibility(backend, s3):
    s3.get_object_acl.return_value = {"Grants": [{"Grantee": {"ID": "owner"}, "Permission": "FULL_CONTROL"}]}
    assert await backend.get_visibility("a.txt") == "private"

    assert await backend.set_visibility("a.txt", "public") is True
    s3.put_object_acl.assert_awaited_once_with(Bucket="bucket", Key="site/a.txt", ACL="public-read")
