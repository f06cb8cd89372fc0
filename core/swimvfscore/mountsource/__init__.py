"""
This module offers a MountSource interface, which has methods for listing paths
and getting file metadata and contents. File lookup returns a FileInfo object,
which uniquely identifies the file, similar to a filesystem inode, and can be
used to open the file.

There are multiple implementations of the MountSource interface, split into
three submodules: "formats", "backends", and "compositing".

"formats" are MountSource implementations that expose a file structure:

 - FolderMountSource: An existing folder on the local file system.
 - MemoryMountSource: A fully materialized tree, which is what decoded archives become.

The decoders for ZIP, TAR, and gzip-compressed TAR are registered in the "archives"
module, which also implements the file type detection by file name suffix.

"backends" turn an Overlay source URI into a MountSource, either directly or by
fetching the archive bytes and handing them to the decoders:

 - LocalBackend: Local paths and file:// URIs.
 - HTTPBackend: http:// and https:// URLs.
 - S3Backend: s3://host/bucket/key URIs for S3-compatible object stores.

The "compositing" submodule contains MountSource implementations that offer
higher-level abstractions on top of one or more MountSource implementations.

 - UnionMountSource: Layers multiple MountSources. The rightmost one has the highest precedence.
 - SubPathMountSource: Exposes a subfolder of a MountSource as the new root.
 - CachedMountSource: Read-through cache that never expires.
 - ReadOnlyMountSource: Rejects all modifications with ReadOnlyError.

Example:

    from swimvfscore.composer import OverlayComposer
    from swimvfscore.overlay import Overlay

    tree = OverlayComposer().compose(Overlay(source="site.tar.gz", workdir="/dist"))
    tree.list("/")
    info = tree.lookup("/index.html")

    with tree.open(info) as file:
        print(file.read())
"""

from .MountSource import FileInfo, MountSource, create_root_file_info
