# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

__version__ = '2025.1.0'

import os

from rkmor.core.defaults import load_defaults_from_file
from rkmor.tools.io import file_owned_by_current_user

if 'RKMOR_DEFAULTS' in os.environ:
    filename = os.environ['RKMOR_DEFAULTS']
    if filename in ('', 'NONE'):
        print('Not loading any rkMOR defaults from config file')
    else:
        for fn in filename.split(':'):
            if not os.path.exists(fn):
                raise OSError('Cannot load rkMOR defaults from file ' + fn)
            print('Loading rkMOR defaults from file ' + fn + ' (set by RKMOR_DEFAULTS)')
            load_defaults_from_file(fn)
else:
    filename = os.path.join(os.getcwd(), 'rkmor_defaults.py')
    if os.path.exists(filename):
        if not file_owned_by_current_user(filename):
            raise OSError('Cannot load rkMOR defaults from config file ' + filename
                          + ': not owned by user running Python interpreter')
        print('Loading rkMOR defaults from file ' + filename)
        load_defaults_from_file(filename)

from rkmor.core.logger import set_log_format, set_log_levels

set_log_levels()
set_log_format()
