import logging
from timeit import default_timer as timer

import requests

from swimvfscore.mountsource import MountSource
from swimvfscore.mountsource.archives import decode_archive
from swimvfscore.overlay import Overlay
from swimvfscore.utils import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


def request_headers(overlay: Overlay) -> dict[str, str]:
    # requests can not send the same header key twice. RFC 9110 allows to join the values with commas instead.
    return {key: ", ".join(values) for key, values in overlay.headers.items()}


class HTTPBackend:
    """Downloads an archive with a single GET request and decodes it."""

    schemes = ('http', 'https')

    @staticmethod
    def resolve(overlay: Overlay, timeout: float = DEFAULT_TIMEOUT, session=None, **options) -> MountSource:
        """
        timeout: Seconds to wait for connecting and for each read. None would wait indefinitely.
        session: Optional requests.Session, e.g., for connection pooling or custom adapters.
        """
        t0 = timer()
        try:
            response = (session or requests).get(overlay.source, headers=request_headers(overlay), timeout=timeout)
            with response:
                if response.status_code != 200:
                    raise TransportError(
                        f"unable to get network resource: {response.status_code} {response.reason}"
                    )
                body = response.content
        except requests.RequestException as exception:
            raise TransportError(f"unable to get network resource {overlay.source}: {exception}") from exception

        logger.info("Downloaded %d B from %s in %.3fs", len(body), overlay.source, timer() - t0)
        return decode_archive(overlay.type, overlay.source, body)
