import dataclasses
import logging
import urllib.parse
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Callable, Optional, Union

from swimvfscore.utils import ConfigurationError

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ('', 'file', 'http', 'https', 's3')


class Headers:
    """
    Ordered multi-map from header names to values. Lookups ignore the case of the key, like HTTP headers do,
    but the spelling of the first insertion is kept for iteration.
    """

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        self._pairs: list[tuple[str, str]] = []
        for key, value in pairs:
            self.add(key, value)

    def add(self, key: str, value: str) -> None:
        for existingKey, _ in self._pairs:
            if existingKey.lower() == key.lower():
                key = existingKey
                break
        self._pairs.append((key, value))

    def get(self, key: str, default: str = "") -> str:
        """Returns the first value for key or default."""
        for existingKey, value in self._pairs:
            if existingKey.lower() == key.lower():
                return value
        return default

    def get_all(self, key: str) -> list[str]:
        return [value for existingKey, value in self._pairs if existingKey.lower() == key.lower()]

    def items(self) -> list[tuple[str, list[str]]]:
        """Returns (key, values) tuples in the order the keys were first added."""
        grouped: dict[str, list[str]] = {}
        for key, value in self._pairs:
            grouped.setdefault(key, []).append(value)
        return list(grouped.items())

    def map_values(self, function: Callable[[str], str]) -> 'Headers':
        return Headers((key, function(value)) for key, value in self._pairs)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __contains__(self, key: str) -> bool:
        return any(existingKey.lower() == key.lower() for existingKey, _ in self._pairs)

    def __eq__(self, other) -> bool:
        return isinstance(other, Headers) and self._pairs == other._pairs

    def __hash__(self) -> int:
        return hash(tuple(self._pairs))

    def __repr__(self) -> str:
        return f"Headers({self._pairs!r})"

    @staticmethod
    def from_config(value: Any) -> 'Headers':
        """
        Accepts a mapping of names to a string or a list of strings, or a list of [name, value] pairs.
        The latter is the only way to preserve the order of repeated keys across different names.
        """
        headers = Headers()
        if value is None:
            return headers

        if isinstance(value, Mapping):
            for key, values in value.items():
                for item in values if isinstance(values, (list, tuple)) else [values]:
                    headers.add(_expect_string(key, "header name"), _expect_string(item, f"header {key}"))
            return headers

        if isinstance(value, (list, tuple)):
            for pair in value:
                if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                    raise ConfigurationError(f"Expected header as [name, value] pair but got: {pair!r}")
                headers.add(_expect_string(pair[0], "header name"), _expect_string(pair[1], f"header {pair[0]}"))
            return headers

        raise ConfigurationError(f"Expected headers as mapping or list of pairs but got: {value!r}")


def _expect_string(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"Expected a string for {what} but got: {value!r}")
    return value


@dataclasses.dataclass(frozen=True)
class Overlay:
    """
    Describes one file tree source and the overlays layered on top of it.

    source   : Local path, file://, http(s)://, or s3://host/bucket/key URI.
    workdir  : Folder inside the opened source that becomes the new root.
    type     : Forces the archive type, e.g., '.zip', '.tar.gz', '.tar'. Sniffed from the source if empty.
    headers  : HTTP request headers. Also used to override S3 settings like AWS_ACCESS_KEY_ID.
    children : Overlays layered on top. Later ones shadow earlier ones and all of them shadow this source.
    """

    # fmt: off
    source   : str
    workdir  : str                  = "/"
    type     : str                  = ""
    headers  : Headers              = dataclasses.field(default_factory=Headers)
    children : tuple['Overlay', ...] = ()
    # fmt: on

    def __str__(self) -> str:
        return f"source={self.source} workdir={self.workdir} type={self.type}"

    def describe(self) -> str:
        return str(self)

    @property
    def url(self) -> urllib.parse.SplitResult:
        try:
            return urllib.parse.urlsplit(self.source)
        except ValueError as exception:
            raise ConfigurationError(f"Malformed source URI '{self.source}': {exception}") from exception

    def validate(self) -> None:
        """Checks recursively that all sources are parseable URIs with a supported scheme."""
        if not self.source:
            raise ConfigurationError(f"Overlay without source: {self}")
        scheme = self.url.scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            raise ConfigurationError(f"unrecognized scheme: {scheme}")
        for child in self.children:
            child.validate()

    def resolve_placeholders(self, replacer: Callable[[str], str]) -> 'Overlay':
        """Returns a new overlay tree with all string fields passed through the given replacer."""
        return Overlay(
            source=replacer(self.source),
            workdir=replacer(self.workdir),
            type=replacer(self.type),
            headers=self.headers.map_values(replacer),
            children=tuple(child.resolve_placeholders(replacer) for child in self.children),
        )

    def walk(self) -> Iterator['Overlay']:
        """Yields this overlay and all nested overlays depth-first in declaration order."""
        yield self
        for child in self.children:
            yield from child.walk()

    @staticmethod
    def from_config(config: Union[str, Mapping[str, Any]]) -> 'Overlay':
        """
        Creates an overlay tree from a parsed configuration, e.g., loaded from JSON.
        A plain string is interpreted as the source. Keys are matched case-insensitively.
        """
        if isinstance(config, str):
            return Overlay(source=config)
        if not isinstance(config, Mapping):
            raise ConfigurationError(f"Expected overlay configuration as mapping but got: {config!r}")

        fields: dict[str, Any] = {}
        for key, value in config.items():
            name = _CONFIG_KEYS.get(str(key).lower())
            if name is None:
                raise ConfigurationError(f"invalid overlay option: {key}")
            if name in fields:
                raise ConfigurationError(f"Overlay option '{key}' specified more than once")

            if name == 'headers':
                fields[name] = Headers.from_config(value)
            elif name == 'children':
                children = value if isinstance(value, (list, tuple)) else [value]
                fields[name] = tuple(Overlay.from_config(child) for child in children)
            else:
                fields[name] = _expect_string(value, name)

        if 'source' not in fields:
            raise ConfigurationError(f"Overlay configuration is missing the source: {dict(config)!r}")
        overlay = Overlay(**fields)
        logger.debug("Loaded overlay configuration: %s with %d nested overlays", overlay, len(overlay.children))
        return overlay


# Maps accepted configuration keys to Overlay fields. 'root' and 'header' are accepted because web server
# configurations commonly use these names.
_CONFIG_KEYS: dict[str, str] = {
    'source': 'source',
    'root': 'source',
    'workdir': 'workdir',
    'type': 'type',
    'headers': 'headers',
    'header': 'headers',
    'overlay': 'children',
    'overlays': 'children',
}


def load_overlay(config: Union[str, Mapping[str, Any]], replacer: Optional[Callable[[str], str]] = None) -> Overlay:
    """Convenience function to parse, expand placeholders in, and validate an overlay configuration."""
    overlay = Overlay.from_config(config)
    if replacer is not None:
        overlay = overlay.resolve_placeholders(replacer)
    overlay.validate()
    return overlay
