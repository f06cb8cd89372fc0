#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
from setuptools import setup

scriptPath = os.path.abspath( os.path.dirname( __file__ ) )
with open( os.path.join( scriptPath, 'README.md' ), encoding = 'utf-8' ) as file:
    readmeContents = file.read()

setup(
    name             = 'swimvfs',
    version          = '0.3.0',

    description      = 'Read-only overlay file system composed from folders and remote archives',
    license          = 'MIT',
    classifiers      = [ 'License :: OSI Approved :: MIT License',
                         'Development Status :: 4 - Beta',
                         'Natural Language :: English',
                         'Operating System :: MacOS',
                         'Operating System :: Unix',
                         'Programming Language :: Python :: 3',
                         'Programming Language :: Python :: 3.9',
                         'Programming Language :: Python :: 3.10',
                         'Programming Language :: Python :: 3.11',
                         'Programming Language :: Python :: 3.12',
                         'Topic :: System :: Archiving',
                         'Topic :: System :: Filesystems' ],

    long_description = readmeContents,
    long_description_content_type = 'text/markdown',

    # The core library lives in core/ so that it can be used without the frontend.
    # Its subpackages are namespace packages without __init__.py, which is why they are listed explicitly.
    packages         = [ 'swimvfs',
                         'swimvfscore',
                         'swimvfscore.mountsource',
                         'swimvfscore.mountsource.backends',
                         'swimvfscore.mountsource.compositing',
                         'swimvfscore.mountsource.formats' ],
    package_dir      = { 'swimvfscore': 'core/swimvfscore' },
    python_requires  = '>=3.9',
    install_requires = [
        'fsspec',
        'requests',
        's3fs',
    ],
    extras_require   = {
        'test' : [ 'pytest' ],
    },
    entry_points = { 'console_scripts': [ 'swimvfs=swimvfs.cli:cli' ] }
)
