"""SwimVfs Core

This is the composition engine of swimvfs. It is intended to be used as a library.

It builds one read-only file tree out of folders and archives (zip, tar, tar.gz) that
are read from disk, fetched via HTTP(S), or downloaded from S3-compatible object stores.
Each source can be re-rooted to a subfolder and further sources can be layered on top of it.

The most common usecase should be covered by the OverlayComposer class.

Example:

    from swimvfscore.composer import OverlayComposer
    from swimvfscore.overlay import Overlay

    overlay = Overlay.from_config({
        "source": "https://example.com/site.tar.gz",
        "workdir": "/dist",
        "overlay": [{"source": "./local-changes"}],
    })
    tree = OverlayComposer().compose(overlay)
    print(tree.list("/"))
"""

from .version import __version__
