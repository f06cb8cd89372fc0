import dataclasses
import logging
import os
import urllib.parse
from timeit import default_timer as timer
from typing import Any, Optional

import fsspec

from swimvfscore.mountsource import MountSource
from swimvfscore.mountsource.archives import decode_archive
from swimvfscore.overlay import Overlay
from swimvfscore.utils import ConfigurationError, NotFoundError, TransportError, parse_boolean

logger = logging.getLogger(__name__)

DEFAULT_REGION = 'us-east-1'
DEFAULT_TIMEOUT = 60


@dataclasses.dataclass
class S3Settings:
    # fmt: off
    accessKeyId     : str
    secretAccessKey : str
    usePathStyle    : Optional[bool]
    bucketName      : str
    endpointUrl     : str
    region          : str
    # fmt: on

    @property
    def anonymous(self) -> bool:
        return not self.accessKeyId and not self.secretAccessKey


def header_or_env(overlay: Overlay, key: str) -> str:
    """Settings in the overlay headers take precedence over the environment."""
    return overlay.headers.get(key) or os.environ.get(key, "")


def load_settings(overlay: Overlay) -> S3Settings:
    # fmt: off
    return S3Settings(
        accessKeyId     = header_or_env(overlay, 'AWS_ACCESS_KEY_ID'),
        secretAccessKey = header_or_env(overlay, 'AWS_SECRET_ACCESS_KEY'),
        usePathStyle    = parse_boolean(header_or_env(overlay, 'AWS_USE_PATH_STYLE')),
        bucketName      = header_or_env(overlay, 'AWS_BUCKET_NAME'),
        endpointUrl     = header_or_env(overlay, 'AWS_ENDPOINT_URL') or 'https://' + overlay.url.netloc,
        region          = header_or_env(overlay, 'AWS_DEFAULT_REGION') or DEFAULT_REGION,
    )
    # fmt: on


def split_bucket_and_key(path: str, bucketName: str = "") -> tuple[str, str]:
    """
    With an explicitly given bucket name, the whole path is the key.
    Else, the first path segment is the bucket and the remainder is the key.
    """
    path = path.removeprefix('/')
    if bucketName:
        return bucketName, path
    bucket, _, key = path.partition('/')
    return bucket, key


def open_filesystem(settings: S3Settings, timeout: Optional[float] = DEFAULT_TIMEOUT):
    config: dict[str, Any] = {}
    if settings.usePathStyle is not None:
        config['s3'] = {'addressing_style': 'path' if settings.usePathStyle else 'virtual'}
    if timeout is not None:
        config['connect_timeout'] = timeout
        config['read_timeout'] = timeout

    credentials: dict[str, Any] = (
        {'anon': True} if settings.anonymous else {'key': settings.accessKeyId, 'secret': settings.secretAccessKey}
    )

    # Do not let fsspec reuse instances across overlays because they might use different credentials.
    return fsspec.filesystem(
        's3',
        endpoint_url=settings.endpointUrl,
        client_kwargs={'region_name': settings.region},
        config_kwargs=config,
        skip_instance_cache=True,
        **credentials,
    )


class S3Backend:
    """Downloads an archive object from an S3-compatible object store and decodes it."""

    schemes = ('s3',)

    @staticmethod
    def resolve(overlay: Overlay, timeout: Optional[float] = DEFAULT_TIMEOUT, **options) -> MountSource:
        settings = load_settings(overlay)
        bucket, key = split_bucket_and_key(urllib.parse.unquote(overlay.url.path), settings.bucketName)
        if not bucket or not key:
            raise ConfigurationError(f"Could not determine bucket and key from S3 URI: {overlay.source}")

        logger.info(
            "Requesting bucket %s key %s from %s (region: %s, anonymous: %s)",
            bucket,
            key,
            settings.endpointUrl,
            settings.region,
            settings.anonymous,
        )

        t0 = timer()
        try:
            body = open_filesystem(settings, timeout=timeout).cat_file(f"{bucket}/{key}")
        except FileNotFoundError as exception:
            raise NotFoundError(f"S3 object {key} does not exist in bucket {bucket}: {exception}") from exception
        except Exception as exception:
            # s3fs raises a mix of OSError subclasses and botocore exceptions for transport errors.
            raise TransportError(f"Failed to get S3 object {key} from bucket {bucket}: {exception}") from exception

        logger.info("Downloaded %d B from %s in %.3fs", len(body), overlay.source, timer() - t0)
        return decode_archive(overlay.type, overlay.source, body)
