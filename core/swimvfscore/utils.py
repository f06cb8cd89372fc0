import errno
import os
import platform
from typing import get_type_hints


class SwimVfsError(Exception):
    """Base exception for the swimvfscore module."""


class ConfigurationError(SwimVfsError):
    """Exception for invalid overlay configurations, e.g., unknown keys or unsupported URI schemes."""


class NotFoundError(SwimVfsError, FileNotFoundError):
    """Exception for sources, objects, or paths that do not exist."""


class TransportError(SwimVfsError):
    """Exception for network failures and remote endpoints answering with an unexpected status."""


class UnsupportedFormatError(SwimVfsError):
    """Exception for archive types that are unknown or could not be decoded."""


class ReadOnlyError(SwimVfsError, PermissionError):
    """Exception for any attempt to modify the composed, read-only file tree."""

    def __init__(self, operation: str, path: str):
        super().__init__(errno.EROFS, f"Cannot {operation} '{path}' because the file system is read-only")
        self.operation = operation
        self.path = path


class OverlayError(SwimVfsError):
    """Exception raised when one layer of an overlay tree could not be initialized."""

    def __init__(self, overlay, cause: BaseException):
        super().__init__(f"initialize overlay {overlay}: {cause}")
        self.overlay = overlay
        self.cause = cause


def overrides(parentClass):
    """Simple decorator that checks that a method with the same name exists in the parent class"""

    def overrider(method):
        if platform.python_implementation() == 'PyPy':
            return method

        assert method.__name__ in dir(parentClass)
        parentMethod = getattr(parentClass, method.__name__)
        assert callable(parentMethod)

        if os.getenv('SWIMVFS_CHECK_OVERRIDES', '').lower() not in ('1', 'yes', 'on', 'enable', 'enabled'):
            return method

        parentTypes = get_type_hints(parentMethod)
        for argument, argumentType in get_type_hints(method).items():
            if argument in parentTypes:
                parentType = parentTypes[argument]
                assert argumentType == parentType, f"{method.__name__}: {argument}: {argumentType} != {parentType}"

        return method

    return overrider


def normalize_path(path: str) -> str:
    """
    Returns the path with exactly one leading '/', no trailing '/', and without empty or '.' components.
    '..' components are resolved lexically but can never climb above the root.
    """
    parts: list[str] = []
    for part in path.split('/'):
        if part in ('', '.'):
            continue
        if part == '..':
            if parts:
                parts.pop()
            continue
        parts.append(part)
    return '/' + '/'.join(parts)


def parse_boolean(value: str):
    """Returns True or False for the usual spellings and None if the value is empty or unknown."""
    lowered = value.strip().lower()
    if lowered in ('true', 't', 'yes'):
        return True
    if lowered in ('false', 'f', 'no'):
        return False
    return None
