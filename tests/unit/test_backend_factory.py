# SPDX-License-Identifier: MIT
"""Unit tests for BackendFactory and the built-in backend registrations."""

import pytest

from diskfactory.backends.factory import BackendFactory, backend_factory
from diskfactory.backends.ftp import FtpBackend
from diskfactory.backends.local import LocalBackend
from diskfactory.backends.memory import MemoryBackend
from diskfactory.exceptions import ConfigurationError, DiskError

_S3_SETTINGS = {
    "credentials": {"key": "k", "secret": "s"},
    "region": "nyc3",
    "bucket": "files",
}

# ------------------------------------------------------------------
# Registration
# ------------------------------------------------------------------


@pytest.mark.unit
def test_builtin_types():
    assert set(backend_factory.types) >= {"local", "memory", "ftp", "s3", "digitalocean"}


@pytest.mark.unit
@pytest.mark.parametrize(
    ("backend_type", "required"),
    [
        ("local", ("root",)),
        ("memory", ()),
        ("ftp", ("host", "username", "password")),
        ("s3", ("credentials.key", "credentials.secret", "region", "bucket")),
        ("digitalocean", ("credentials.key", "credentials.secret", "region", "bucket", "endpoint")),
    ],
)
def test_required_keys(backend_type, required):
    assert backend_factory.required_keys(backend_type) == required


@pytest.mark.unit
def test_register_and_unregister():
    factory = BackendFactory()

    @factory.register("custom", required_keys=("url",))
    def _create(settings):
        return MemoryBackend()

    assert factory.is_registered("custom")
    assert isinstance(factory.construct("custom", {"url": "x"}), MemoryBackend)

    factory.unregister("custom")
    assert not factory.is_registered("custom")


@pytest.mark.unit
def test_register_replaces_existing():
    factory = BackendFactory()
    first, second = MemoryBackend(), MemoryBackend()
    factory.register("m")(lambda settings: first)
    factory.register("m")(lambda settings: second)
    assert factory.construct("m", {}) is second


@pytest.mark.unit
def test_factories_are_independent():
    factory = BackendFactory()
    assert factory.types == []
    assert not factory.is_registered("local")


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


@pytest.mark.unit
def test_unknown_type_raises_disk_error():
    with pytest.raises(DiskError, match=r"Disk adapter does not exist \(gopher\)"):
        backend_factory.construct("gopher", {})


@pytest.mark.unit
def test_missing_keys_listed_in_order():
    with pytest.raises(ConfigurationError) as exc_info:
        backend_factory.construct("ftp", {"username": "u"})
    assert "missing host, password" in str(exc_info.value)


@pytest.mark.unit
def test_nested_keys_checked():
    settings = {"credentials": {"key": "k"}, "region": "r", "bucket": "b"}
    with pytest.raises(ConfigurationError, match="credentials.secret"):
        backend_factory.construct("s3", settings)


@pytest.mark.unit
def test_constructor_not_called_when_keys_missing(mocker):
    factory = BackendFactory()
    constructor = mocker.Mock(return_value=MemoryBackend())
    factory.register("strict", required_keys=("a.b",))(constructor)

    with pytest.raises(ConfigurationError):
        factory.construct("strict", {"a": {}})
    constructor.assert_not_called()


@pytest.mark.unit
def test_digitalocean_requires_endpoint():
    with pytest.raises(ConfigurationError, match="endpoint"):
        backend_factory.construct("digitalocean", _S3_SETTINGS)


# ------------------------------------------------------------------
# Built-in constructors
# ------------------------------------------------------------------


@pytest.mark.unit
def test_construct_local(local_root):
    backend = backend_factory.construct(
        "local", {"root": str(local_root), "permissions": {"file": {"private": 0o640}}}
    )
    assert isinstance(backend, LocalBackend)
    assert backend.root == local_root.resolve()


@pytest.mark.unit
def test_construct_ftp_is_lazy(mocker):
    ftp_class = mocker.patch("diskfactory.backends.ftp.ftplib.FTP")
    backend = backend_factory.construct(
        "ftp", {"host": "h", "username": "u", "password": "p", "port": 2121, "root": "/srv", "timeout": 5}
    )
    assert isinstance(backend, FtpBackend)
    ftp_class.assert_not_called()


@pytest.mark.unit
def test_construct_s3_and_digitalocean():
    pytest.importorskip("aioboto3")
    from diskfactory.backends.s3 import S3Backend

    s3 = backend_factory.construct("s3", _S3_SETTINGS)
    spaces = backend_factory.construct("digitalocean", {**_S3_SETTINGS, "endpoint": "https://nyc3.example.com"})

    assert isinstance(s3, S3Backend)
    assert isinstance(spaces, S3Backend)
    assert spaces._endpoint == "https://nyc3.example.com"


@pytest.mark.unit
def test_s3_without_extra_installed(mocker):
    mocker.patch.dict("sys.modules", {"diskfactory.backends.s3": None})
    with pytest.raises(RuntimeError, match=r"diskfactory\[s3\]"):
        backend_factory.construct("s3", _S3_SETTINGS)
