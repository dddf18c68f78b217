#!/usr/bin/env python
# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import os
import re

from setuptools import setup, find_packages

install_requires = ['numpy>=1.21', 'scipy>=1.7', 'packaging']
tests_require = ['pytest>=7', 'hypothesis>=6']


def _version():
    init = os.path.join(os.path.dirname(__file__), 'src', 'rkmor', '__init__.py')
    with open(init) as f:
        return re.search(r"^__version__ = '([^']+)'", f.read(), re.M).group(1)


def setup_package():
    setup(
        name='rkmor',
        version=_version(),
        author='rkMOR developers',
        package_dir={'': 'src'},
        packages=find_packages('src'),
        include_package_data=True,
        description='Rational Krylov model order reduction of linear time-invariant systems',
        python_requires='>=3.10',
        tests_require=tests_require,
        install_requires=install_requires,
        extras_require={'tests': tests_require},
        classifiers=['Development Status :: 4 - Beta',
                     'License :: OSI Approved :: BSD License',
                     'Programming Language :: Python :: 3',
                     'Intended Audience :: Science/Research',
                     'Topic :: Scientific/Engineering :: Mathematics'],
        zip_safe=False,
    )


if __name__ == '__main__':
    setup_package()
