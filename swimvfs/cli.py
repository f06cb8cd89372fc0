#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import argparse
import json
import logging
import shutil
import stat
import sys
import time
import traceback
from typing import Any, Optional

from swimvfscore.composer import OverlayComposer
from swimvfscore.overlay import Overlay
from swimvfscore.utils import SwimVfsError

from .filesystem import VirtualFileSystem
from .version import __version__

LOG_LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO, 3: logging.DEBUG}
COMMANDS = ('ls', 'cat', 'stat')


class _CustomFormatter(argparse.ArgumentDefaultsHelpFormatter, argparse.RawDescriptionHelpFormatter):
    def add_arguments(self, actions):
        actions = sorted(actions, key=lambda x: getattr(x, 'option_strings'))
        super().add_arguments(actions)


def _parse_args(rawArgs: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(
        prog='swimvfs',
        formatter_class=_CustomFormatter,
        description='''\
Composes folders and archives (zip, tar, tar.gz) from local paths, HTTP(S) URLs, and S3-compatible
object stores into one read-only file tree and lists, prints, or inspects paths inside it.
''',
        epilog='''\
Examples:

 - swimvfs --source site.tar.gz ls /
 - swimvfs --source https://example.com/site.zip --workdir /dist cat index.html
 - swimvfs config.json stat /assets/logo.png
 - AWS_ACCESS_KEY_ID=aaaa AWS_SECRET_ACCESS_KEY=bbbb swimvfs --source s3://127.0.0.1/bucket/site.tar ls

The JSON configuration contains one overlay:

  {"source": "site.tar.gz", "workdir": "/dist",
   "headers": [["Authorization", "Bearer {env.TOKEN}"]],
   "overlay": [{"source": "./patches"}]}
''',
    )

    # fmt: off
    parser.add_argument(
        '-d', '--debug', type=int, default=1,
        help='Sets the debugging level. Higher means more output. Currently, 3 is the highest.')

    parser.add_argument(
        '-v', '--version', action='version', version=f'swimvfs {__version__}')

    parser.add_argument(
        '-P', '--parallelization', type=int, default=1,
        help='If larger than 1, nested overlays are fetched concurrently with this many threads.')

    parser.add_argument(
        '--timeout', type=float, default=60,
        help='Timeout in seconds for connecting to and reading from HTTP(S) and S3 endpoints.')

    parser.add_argument(
        '--source', type=str,
        help='Compose a single overlay with this source instead of reading a configuration file.')

    parser.add_argument(
        '--workdir', type=str, default='/',
        help='Folder inside the source to use as root. Only used together with --source.')

    parser.add_argument(
        '--type', type=str, default='',
        help='Forces the archive type, e.g., .zip, .tar.gz, .tar. Only used together with --source.')

    parser.add_argument(
        'arguments', nargs='*', metavar='[CONFIG] [ls|cat|stat] [PATH]',
        help='Path to a JSON file containing the overlay configuration or "-" to read it from stdin. '
             'The configuration must be omitted when --source is given. The command lists a folder, '
             'prints a file to stdout, or shows file metadata. It defaults to listing the root folder.')
    # fmt: on

    args = parser.parse_args(rawArgs)

    positionals = list(args.arguments)
    args.config = None
    if not args.source:
        if not positionals:
            parser.error("Either a configuration file or --source must be specified!")
        args.config = positionals.pop(0)

    args.command = positionals.pop(0) if positionals else 'ls'
    if args.command not in COMMANDS:
        parser.error(f"Invalid command '{args.command}'. Choose from: {', '.join(COMMANDS)}")
    args.path = positionals.pop(0) if positionals else '/'
    if positionals:
        parser.error(f"Unexpected arguments: {' '.join(positionals)}")
    return args


def _load_overlay(args) -> Overlay:
    if args.source:
        return Overlay(source=args.source, workdir=args.workdir, type=args.type)

    if args.config == '-':
        config: Any = json.load(sys.stdin)
    else:
        with open(args.config, 'rb') as file:
            config = json.load(file)
    return Overlay.from_config(config)


def _print_stat(vfs: VirtualFileSystem, path: str) -> None:
    fileInfo = vfs.stat(path)
    print(f"  File: {path}")
    print(f"  Size: {fileInfo.size}")
    print(f"  Mode: {stat.filemode(fileInfo.mode)} ({fileInfo.mode & 0o7777:04o})")
    print(f"Modify: {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(fileInfo.mtime))}")
    if fileInfo.linkname:
        print(f"  Link: {fileInfo.linkname}")


def process_parsed_arguments(args) -> int:
    overlay = _load_overlay(args)
    composer = OverlayComposer(timeout=args.timeout, parallelization=args.parallelization)
    with VirtualFileSystem(overlay, composer) as vfs:
        if args.command == 'ls':
            for name in vfs.read_dir(args.path):
                print(name)
        elif args.command == 'cat':
            with vfs.open(args.path) as file:
                sys.stdout.flush()
                shutil.copyfileobj(file, sys.stdout.buffer)
                sys.stdout.buffer.flush()
        elif args.command == 'stat':
            _print_stat(vfs, args.path)
    return 0


def cli(rawArgs: Optional[list[str]] = None) -> int:
    """
    Command line interface for swimvfs. Call with args = [ '--help' ] for a description.

    rawArgs: In general, rawArgs is None, meaning sys.argv is used. When used programmatically with a custom
             list of arguments, the first argument should not be the path to the script / the executable,
             i.e., call either cli() or cli(sys.argv[1:])!
    """

    # Manually parse --debug argument in case argument parsing with argparse itself goes wrong.
    tmpArgs = rawArgs if rawArgs else sys.argv
    debug = 1
    for i in range(len(tmpArgs) - 1):
        if tmpArgs[i] in ['-d', '--debug'] and tmpArgs[i + 1].isdecimal():
            debug = int(tmpArgs[i + 1])

    logging.basicConfig(
        level=LOG_LEVELS.get(debug, logging.DEBUG if debug > 3 else logging.ERROR),
        format='[%(levelname)s] %(name)s: %(message)s',
    )

    try:
        return process_parsed_arguments(_parse_args(rawArgs))
    except (OSError, SwimVfsError, ValueError) as exception:
        print("[Error]", exception, file=sys.stderr)
        if debug >= 3:
            traceback.print_exc()

    return 1


if __name__ == '__main__':
    sys.exit(cli(sys.argv[1:]))
