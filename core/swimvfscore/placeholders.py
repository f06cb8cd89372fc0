"""
Default placeholder expansion for configuration strings.

Placeholders have the form {name}. Supported names:

 - env.<NAME>           : Value of the environment variable or empty if unset.
 - system.hostname      : Host name of the machine.
 - system.os            : Operating system, e.g., 'linux'.
 - system.arch          : Machine architecture, e.g., 'x86_64'.
 - system.wd            : Current working directory.
 - time.now.unix        : Current Unix time in seconds.
 - time.now.unix_ms     : Current Unix time in milliseconds.

Unknown placeholders are replaced with an empty string. Braces can be escaped with a backslash.
"""

import os
import platform
import re
import socket
import sys
import time
from collections.abc import Mapping
from typing import Callable, Optional

_PLACEHOLDER = re.compile(r'\\([{}])|\{([^{}\s]+)\}')

_STATIC_PLACEHOLDERS: dict[str, Callable[[], str]] = {
    'system.hostname': socket.gethostname,
    'system.os': lambda: sys.platform,
    'system.arch': platform.machine,
    'system.wd': os.getcwd,
    'time.now.unix': lambda: str(int(time.time())),
    'time.now.unix_ms': lambda: str(int(time.time() * 1000)),
}


def lookup_placeholder(name: str, environment: Optional[Mapping[str, str]] = None) -> str:
    if name.startswith('env.'):
        return (os.environ if environment is None else environment).get(name[len('env.') :], "")
    getter = _STATIC_PLACEHOLDERS.get(name)
    return getter() if getter else ""


def replace_placeholders(text: str, environment: Optional[Mapping[str, str]] = None) -> str:
    def replace(match: re.Match) -> str:
        if match.group(1):
            return match.group(1)
        return lookup_placeholder(match.group(2), environment)

    return _PLACEHOLDER.sub(replace, text)


def make_replacer(environment: Mapping[str, str]) -> Callable[[str], str]:
    """Returns a replacer reading env.* placeholders from the given mapping instead of os.environ."""
    return lambda text: replace_placeholders(text, environment)
