# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import pytest

from rkmor.algorithms.krylov import KrylovOptions
from rkmor.core.defaults import defaults, defaults_changes, get_defaults, load_defaults_from_file, print_defaults, \
    set_defaults


@defaults('c', 'd')
def func(a, b, c=2, d=3, e=4):
    return a, b, c, d, e


def test_defaults():
    assert func(0, 1) == (0, 1, 2, 3, 4)
    assert func(0, 1, None, d=None) == (0, 1, 2, 3, 4)
    assert func(0, 1, 5, d=None) == (0, 1, 5, 3, 4)
    with pytest.raises(TypeError):
        assert func(0, c=2, d=3)
    changes = defaults_changes()
    set_defaults({__name__ + '.func.c': 42})
    assert defaults_changes() == changes + 1
    assert func(0, 1) == (0, 1, 42, 3, 4)
    assert func(0, 1, None, d=None) == (0, 1, 42, 3, 4)
    assert func(0, 1, 5, d=None) == (0, 1, 5, 3, 4)
    assert get_defaults(file=False, code=False)[__name__ + '.func.c'] == 42
    set_defaults({__name__ + '.func.c': 2})


def test_set_unknown_default():
    with pytest.raises(KeyError):
        set_defaults({__name__ + '.func.e': 5})


def test_krylov_options_defaults():
    key = 'rkmor.algorithms.krylov.KrylovOptions.__init__.orth'
    assert get_defaults()[key] == '2mgs'
    set_defaults({key: 'dgks'})
    try:
        assert KrylovOptions().orth == 'dgks'
        assert KrylovOptions(orth=None).orth == 'dgks'
        assert KrylovOptions(orth='mgs').orth == 'mgs'
    finally:
        set_defaults({key: '2mgs'})
    assert KrylovOptions().orth == '2mgs'


def test_print_defaults(capsys):
    print_defaults()
    out = capsys.readouterr().out
    assert 'rkMOR defaults' in out


def test_load_defaults_from_file(tmp_path):
    filename = tmp_path / 'rkmor_defaults.py'
    filename.write_text(f"d = {{'{__name__}.func.d': 7}}\n")
    load_defaults_from_file(str(filename))
    try:
        assert func(0, 1) == (0, 1, 2, 7, 4)
    finally:
        set_defaults({__name__ + '.func.d': 3})
    assert func(0, 1) == (0, 1, 2, 3, 4)
