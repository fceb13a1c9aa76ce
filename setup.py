#!/usr/bin/env python3

import setuptools

import pyspawn
long_description = pyspawn.__doc__

setuptools.setup(
    name='pyspawn',
    version='0.1.0',
    author='Mihail Georgiev',
    author_email='misho88@gmail.com',
    description='pyspawn - launch child processes and talk to them over asyncio',
    long_description=long_description,
    long_description_content_type='text/plain',
    url='https://github.com/misho88/pyspawn',
    packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    extras_require={
        'test': ['pytest', 'pytest-asyncio'],
    },
)
