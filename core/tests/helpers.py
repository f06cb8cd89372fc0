import contextlib
import http.server
import io
import os
import tarfile
import threading
import zipfile
from pathlib import Path
from typing import Optional, Union

# Fixed modification time so that created archives are reproducible: 2021-03-04 05:06:08 UTC
SAMPLE_MTIME = 1614834368


def make_tar(
    files: dict[str, Union[bytes, str]],
    folders: tuple[str, ...] = (),
    symlinks: Optional[dict[str, str]] = None,
    compression: str = "",
) -> bytes:
    """Returns the bytes of a TAR archive. compression may be '' or 'gz'."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode='w:' + compression if compression else 'w') as archive:
        for folder in folders:
            tinfo = tarfile.TarInfo(folder)
            tinfo.type = tarfile.DIRTYPE
            tinfo.mode = 0o755
            tinfo.mtime = SAMPLE_MTIME
            archive.addfile(tinfo)
        for name, contents in files.items():
            data = contents if isinstance(contents, bytes) else contents.encode()
            tinfo = tarfile.TarInfo(name)
            tinfo.size = len(data)
            tinfo.mode = 0o644
            tinfo.mtime = SAMPLE_MTIME
            archive.addfile(tinfo, io.BytesIO(data))
        for name, target in (symlinks or {}).items():
            tinfo = tarfile.TarInfo(name)
            tinfo.type = tarfile.SYMTYPE
            tinfo.linkname = target
            tinfo.mtime = SAMPLE_MTIME
            archive.addfile(tinfo)
    return buffer.getvalue()


def make_zip(
    files: dict[str, Union[bytes, str]], folders: tuple[str, ...] = (), symlinks: Optional[dict[str, str]] = None
) -> bytes:
    buffer = io.BytesIO()
    dateTime = (2021, 3, 4, 5, 6, 8)
    with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
        for folder in folders:
            info = zipfile.ZipInfo(folder.rstrip('/') + '/', date_time=dateTime)
            info.external_attr = (0o40755 << 16) | 0x10
            archive.writestr(info, b"")
        for name, contents in files.items():
            info = zipfile.ZipInfo(name, date_time=dateTime)
            info.external_attr = 0o100644 << 16
            archive.writestr(info, contents)
        for name, target in (symlinks or {}).items():
            info = zipfile.ZipInfo(name, date_time=dateTime)
            info.external_attr = 0o120777 << 16
            archive.writestr(info, target)
    return buffer.getvalue()


def make_archive(archiveType: str, files: dict[str, Union[bytes, str]], folders: tuple[str, ...] = ()) -> bytes:
    if archiveType == '.zip':
        return make_zip(files, folders)
    if archiveType in ('.tar.gz', '.tgz'):
        return make_tar(files, folders, compression='gz')
    if archiveType == '.tar':
        return make_tar(files, folders)
    raise ValueError(f"Unknown archive type: {archiveType}")


def populate_folder(path: Path, files: dict[str, Union[bytes, str]]) -> Path:
    for name, contents in files.items():
        filePath = path / name.strip('/')
        filePath.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(contents, bytes):
            filePath.write_bytes(contents)
        else:
            filePath.write_text(contents)
    return path


class _RecordingHandler(http.server.BaseHTTPRequestHandler):
    def do_GET(self):  # noqa: N802
        # routes and requests are attributes of the server set in serve_http.
        self.server.requests.append((self.path, self.headers))  # type: ignore
        body = self.server.routes.get(self.path)  # type: ignore
        if body is None:
            self.send_error(404, "Not Found")
            return
        self.send_response(200)
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):  # pylint: disable=redefined-builtin
        pass


@contextlib.contextmanager
def serve_http(routes: dict[str, bytes]):
    """
    Serves the given path -> body mapping on a random local port in a background thread.
    Yields the server, which has 'url' with the base URL and 'requests' with (path, headers) tuples.
    """
    server = http.server.ThreadingHTTPServer(('127.0.0.1', 0), _RecordingHandler)
    server.routes = dict(routes)  # type: ignore
    server.requests = []  # type: ignore
    server.url = f"http://127.0.0.1:{server.server_address[1]}"  # type: ignore
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


@contextlib.contextmanager
def change_working_directory(path):
    oldPath = os.getcwd()
    try:
        os.chdir(path)
        yield
    finally:
        os.chdir(oldPath)
