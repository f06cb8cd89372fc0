"""SwimVfs

This is the frontend for swimvfs. It offers the VirtualFileSystem lifecycle handle for hosts,
which want to serve files out of a composed overlay tree, and a small command line interface.

The installed swimvfs script will load this module and call its 'cli' function,
which could also be done programmatically.

Example:

    from swimvfs.filesystem import VirtualFileSystem

    with VirtualFileSystem.from_config({"source": "site.tar.gz", "workdir": "/dist"}) as vfs:
        print(vfs.read_dir("/"))
        print(vfs.read_file("index.html"))
"""

from .version import __version__
