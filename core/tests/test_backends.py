# pylint: disable=wrong-import-position
# pylint: disable=redefined-outer-name

import os
import stat
import sys
import types

import pytest
import requests
from helpers import make_tar, make_zip, populate_folder, serve_http

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from swimvfscore.mountsource.backends import local as local_backend  # noqa: E402
from swimvfscore.mountsource.backends import s3 as s3_backend  # noqa: E402
from swimvfscore.mountsource.backends.http import HTTPBackend, request_headers  # noqa: E402
from swimvfscore.mountsource.backends.local import LocalBackend, local_path  # noqa: E402
from swimvfscore.mountsource.backends.s3 import (  # noqa: E402
    S3Backend,
    load_settings,
    split_bucket_and_key,
)
from swimvfscore.mountsource.factory import BACKENDS, find_backend, open_mount_source  # noqa: E402
from swimvfscore.mountsource.formats.folder import FolderMountSource  # noqa: E402
from swimvfscore.overlay import Headers, Overlay  # noqa: E402
from swimvfscore.utils import (  # noqa: E402
    ConfigurationError,
    NotFoundError,
    TransportError,
    UnsupportedFormatError,
)


def _read(mountSource, path):
    fileInfo = mountSource.lookup(path)
    assert fileInfo, f"{path} not found"
    with mountSource.open(fileInfo) as file:
        return file.read()


class TestFactory:
    @staticmethod
    def test_dispatch():
        assert find_backend(Overlay(source="site.tar")) is LocalBackend
        assert find_backend(Overlay(source="file:///site.tar")) is LocalBackend
        assert find_backend(Overlay(source="http://host/site.tar")) is HTTPBackend
        assert find_backend(Overlay(source="HTTPS://host/site.tar")) is HTTPBackend
        assert find_backend(Overlay(source="s3://host/bucket/site.tar")) is S3Backend
        assert set(BACKENDS) == {'', 'file', 'http', 'https', 's3'}

    @staticmethod
    def test_unrecognized_scheme():
        with pytest.raises(ConfigurationError, match="unrecognized scheme: ftp"):
            open_mount_source(Overlay(source="ftp://host/site.tar"))


class TestLocalBackend:
    @staticmethod
    def test_folder_is_never_decoded(tmp_path, monkeypatch):
        folder = populate_folder(tmp_path / "site", {"index.html": b"hi", "bundle.tar": make_tar({"inner": b"x"})})

        def fail(*args, **kwargs):
            raise AssertionError("Folders must not be decoded!")

        monkeypatch.setattr(local_backend, "decode_archive", fail)
        # Even an explicit type does not force decoding a folder.
        mountSource = LocalBackend.resolve(Overlay(source=str(folder), type=".zip"))

        assert isinstance(mountSource, FolderMountSource)
        assert set(mountSource.list("/")) == {"index.html", "bundle.tar"}
        assert mountSource.lookup("/inner") is None
        fileInfo = mountSource.lookup("/bundle.tar")
        assert fileInfo
        assert stat.S_ISREG(fileInfo.mode)

    @staticmethod
    @pytest.mark.parametrize(
        ("name", "typeHint", "data"),
        [
            ("site.zip", "", make_zip({"index.html": b"zip"})),
            ("site.tar.gz", "", make_tar({"index.html": b"zip"}, compression='gz')),
            ("site.tgz", "", make_tar({"index.html": b"zip"}, compression='gz')),
            ("site.tar", "", make_tar({"index.html": b"zip"})),
            ("site.bin", "", make_tar({"index.html": b"zip"})),
            ("site.bin", "zip", make_zip({"index.html": b"zip"})),
        ],
    )
    def test_archive_file(tmp_path, name, typeHint, data):
        path = tmp_path / name
        path.write_bytes(data)
        mountSource = LocalBackend.resolve(Overlay(source=str(path), type=typeHint))
        assert _read(mountSource, "/index.html") == b"zip"

    @staticmethod
    def test_file_uri(tmp_path):
        path = tmp_path / "my site.zip"
        path.write_bytes(make_zip({"a": b"b"}))
        overlay = Overlay(source="file://" + str(path).replace(" ", "%20"))
        assert local_path(overlay) == str(path)
        assert _read(LocalBackend.resolve(overlay), "/a") == b"b"

    @staticmethod
    def test_plain_paths_are_verbatim(tmp_path):
        path = tmp_path / "site#1%20.tar"
        path.write_bytes(make_tar({"a": b"b"}))
        assert local_path(Overlay(source=str(path))) == str(path)
        assert _read(open_mount_source(Overlay(source=str(path))), "/a") == b"b"

    @staticmethod
    def test_missing_file(tmp_path):
        with pytest.raises(FileNotFoundError):
            LocalBackend.resolve(Overlay(source=str(tmp_path / "missing.zip")))

    @staticmethod
    def test_unsupported_type(tmp_path):
        path = tmp_path / "site.tar"
        path.write_bytes(make_tar({"a": b"b"}))
        with pytest.raises(UnsupportedFormatError, match="unsupported file type: .7z"):
            LocalBackend.resolve(Overlay(source=str(path), type=".7z"))


class TestHTTPBackend:
    @staticmethod
    def test_request_headers():
        overlay = Overlay(source="http://a/b", headers=Headers([("Accept", "a"), ("X-Tag", "1"), ("x-tag", "2")]))
        assert request_headers(overlay) == {"Accept": "a", "X-Tag": "1, 2"}

    @staticmethod
    @pytest.mark.parametrize(
        ("route", "typeHint", "data"),
        [
            ("/site.zip", "", make_zip({"dist/index.html": b"remote"})),
            ("/site.tar.gz", "", make_tar({"dist/index.html": b"remote"}, compression='gz')),
            ("/site.tar", "", make_tar({"dist/index.html": b"remote"})),
            ("/download?id=3", ".zip", make_zip({"dist/index.html": b"remote"})),
        ],
    )
    def test_download(route, typeHint, data):
        with serve_http({route: data}) as server:
            overlay = Overlay(source=server.url + route, type=typeHint)
            mountSource = open_mount_source(overlay, timeout=10)
        assert _read(mountSource, "/dist/index.html") == b"remote"
        assert set(mountSource.list("/")) == {"dist"}

    @staticmethod
    def test_headers_are_sent():
        with serve_http({"/site.tar": make_tar({"a": b"b"})}) as server:
            overlay = Overlay(
                source=server.url + "/site.tar",
                headers=Headers([("Authorization", "Bearer secret"), ("X-Tag", "1"), ("X-Tag", "2")]),
            )
            HTTPBackend.resolve(overlay)
            assert len(server.requests) == 1
            _, headers = server.requests[0]
            assert headers["Authorization"] == "Bearer secret"
            assert headers["X-Tag"] == "1, 2"

    @staticmethod
    def test_not_found():
        with serve_http({}) as server, pytest.raises(TransportError, match="404 Not Found"):
            HTTPBackend.resolve(Overlay(source=server.url + "/missing.zip"))

    @staticmethod
    def test_connection_refused():
        # Get a free port by letting a server bind it and then shutting it down.
        with serve_http({}) as server:
            url = server.url
        with pytest.raises(TransportError) as exception:
            HTTPBackend.resolve(Overlay(source=url + "/site.zip"), timeout=5)
        assert isinstance(exception.value.__cause__, requests.RequestException)

    @staticmethod
    def test_undecodable_body():
        with serve_http({"/site.zip": b"no zip"}) as server, pytest.raises(UnsupportedFormatError):
            HTTPBackend.resolve(Overlay(source=server.url + "/site.zip"))


class FakeS3FileSystem:
    def __init__(self, objects, **kwargs):
        self.objects = objects
        self.kwargs = kwargs
        self.requested = []

    def cat_file(self, path):
        self.requested.append(path)
        if isinstance(self.objects, Exception):
            raise self.objects
        if path not in self.objects:
            raise FileNotFoundError(path)
        return self.objects[path]


@pytest.fixture(name="fake_s3")
def fixture_fake_s3(monkeypatch):
    """
    Replaces the fsspec module used by the S3 backend with a factory for FakeS3FileSystem.
    Assigning an exception to 'objects' makes every download fail with it.
    """
    fakeS3 = types.SimpleNamespace(
        created=[],
        objects={
            "bucket/site.tar": make_tar({"index.html": b"s3"}),
            "bucket/nested/site.zip": make_zip({"index.html": b"nested"}),
            "override/bucket/site.tar": make_tar({"index.html": b"override"}),
            "bucket/my site.tar": make_tar({"index.html": b"escaped"}),
        },
    )

    def filesystem(protocol, **kwargs):
        assert protocol == 's3'
        fileSystem = FakeS3FileSystem(fakeS3.objects, **kwargs)
        fakeS3.created.append(fileSystem)
        return fileSystem

    monkeypatch.setattr(s3_backend, "fsspec", types.SimpleNamespace(filesystem=filesystem))
    return fakeS3


class TestS3Backend:
    @staticmethod
    @pytest.mark.parametrize(
        ("path", "bucketName", "expected"),
        [
            ("/bucket/site.tar", "", ("bucket", "site.tar")),
            ("/bucket/nested/site.zip", "", ("bucket", "nested/site.zip")),
            ("/bucket", "", ("bucket", "")),
            ("/bucket/site.tar", "override", ("override", "bucket/site.tar")),
            ("bucket/site.tar", "override", ("override", "bucket/site.tar")),
        ],
    )
    def test_split_bucket_and_key(path, bucketName, expected):
        assert split_bucket_and_key(path, bucketName) == expected

    @staticmethod
    def test_default_settings():
        settings = load_settings(Overlay(source="s3://minio.local:9000/bucket/site.tar"))
        assert settings.endpointUrl == "https://minio.local:9000"
        assert settings.region == "us-east-1"
        assert settings.usePathStyle is None
        assert settings.bucketName == ""
        assert settings.anonymous

    @staticmethod
    def test_headers_take_precedence_over_environment(monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "env-key")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "env-secret")
        monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-central-1")
        monkeypatch.setenv("AWS_USE_PATH_STYLE", "yes")
        headers = Headers([("AWS_ACCESS_KEY_ID", "header-key"), ("AWS_ENDPOINT_URL", "http://127.0.0.1:9000")])

        settings = load_settings(Overlay(source="s3://host/bucket/site.tar", headers=headers))
        assert settings.accessKeyId == "header-key"
        assert settings.secretAccessKey == "env-secret"
        assert settings.endpointUrl == "http://127.0.0.1:9000"
        assert settings.region == "eu-central-1"
        assert settings.usePathStyle is True
        assert not settings.anonymous

    @staticmethod
    def test_anonymous_download(fake_s3):
        mountSource = S3Backend.resolve(Overlay(source="s3://minio.local/bucket/site.tar"))
        assert _read(mountSource, "/index.html") == b"s3"

        (fileSystem,) = fake_s3.created
        assert fileSystem.requested == ["bucket/site.tar"]
        assert fileSystem.kwargs["anon"] is True
        assert "key" not in fileSystem.kwargs
        assert fileSystem.kwargs["endpoint_url"] == "https://minio.local"
        assert fileSystem.kwargs["client_kwargs"] == {"region_name": "us-east-1"}
        assert "s3" not in fileSystem.kwargs["config_kwargs"]
        assert fileSystem.kwargs["config_kwargs"]["read_timeout"] == 60

    @staticmethod
    def test_credentials_and_path_style(fake_s3, monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "key")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        overlay = Overlay(source="s3://host/bucket/nested/site.zip", headers=Headers([("AWS_USE_PATH_STYLE", "t")]))
        mountSource = open_mount_source(overlay, timeout=5)
        assert _read(mountSource, "/index.html") == b"nested"

        (fileSystem,) = fake_s3.created
        assert fileSystem.requested == ["bucket/nested/site.zip"]
        assert fileSystem.kwargs["key"] == "key"
        assert fileSystem.kwargs["secret"] == "secret"
        assert "anon" not in fileSystem.kwargs
        assert fileSystem.kwargs["config_kwargs"]["s3"] == {"addressing_style": "path"}
        assert fileSystem.kwargs["config_kwargs"]["connect_timeout"] == 5

    @staticmethod
    def test_virtual_addressing(fake_s3, monkeypatch):
        monkeypatch.setenv("AWS_USE_PATH_STYLE", "no")
        S3Backend.resolve(Overlay(source="s3://host/bucket/site.tar"))
        assert fake_s3.created[0].kwargs["config_kwargs"]["s3"] == {"addressing_style": "virtual"}

    @staticmethod
    def test_percent_escaped_key(fake_s3):
        mountSource = S3Backend.resolve(Overlay(source="s3://host/bucket/my%20site.tar"))
        assert _read(mountSource, "/index.html") == b"escaped"
        assert fake_s3.created[0].requested == ["bucket/my site.tar"]

    @staticmethod
    def test_bucket_name_override(fake_s3, monkeypatch):
        monkeypatch.setenv("AWS_BUCKET_NAME", "override")
        mountSource = S3Backend.resolve(Overlay(source="s3://host/bucket/site.tar"))
        assert _read(mountSource, "/index.html") == b"override"
        assert fake_s3.created[0].requested == ["override/bucket/site.tar"]

    @staticmethod
    def test_missing_object(fake_s3):
        with pytest.raises(NotFoundError):
            S3Backend.resolve(Overlay(source="s3://host/bucket/missing.tar"))

    @staticmethod
    def test_missing_key(fake_s3):
        with pytest.raises(ConfigurationError):
            S3Backend.resolve(Overlay(source="s3://host/bucket"))
        assert not fake_s3.created

    @staticmethod
    def test_transport_error(fake_s3):
        fake_s3.objects = PermissionError("Access Denied")
        with pytest.raises(TransportError, match="Access Denied"):
            S3Backend.resolve(Overlay(source="s3://host/bucket/site.tar"))
