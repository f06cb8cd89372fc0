import logging

from swimvfscore.overlay import Overlay
from swimvfscore.utils import ConfigurationError

from . import MountSource
from .backends.http import HTTPBackend
from .backends.local import LocalBackend
from .backends.s3 import S3Backend

logger = logging.getLogger(__name__)

# Map of URI schemes to backends. Adding a backend means adding a class with 'schemes' and a
# static 'resolve(overlay, **options)' method to this list.
BACKENDS = {scheme: backend for backend in (LocalBackend, HTTPBackend, S3Backend) for scheme in backend.schemes}


def find_backend(overlay: Overlay):
    scheme = overlay.url.scheme.lower()
    if scheme not in BACKENDS:
        raise ConfigurationError(f"unrecognized scheme: {scheme}")
    return BACKENDS[scheme]


def open_mount_source(overlay: Overlay, **options) -> MountSource:
    """Opens the source of the given overlay, ignoring its workdir and nested overlays."""
    backend = find_backend(overlay)
    logger.debug("Opening %s with %s", overlay.source, backend.__name__)
    return backend.resolve(overlay, **options)
