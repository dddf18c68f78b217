# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
import pytest
import scipy.sparse as sps

from rkmor.models.iosys import LTIModel


def random_lti(n, m, p, seed, kind='dense'):
    """Random asymptotically stable |LTIModel|.

    `kind` is one of `'dense'`, `'sparse'` or `'descriptor'` (dense with a
    diagonal positive definite E).
    """
    rng = np.random.default_rng(seed)
    A = rng.standard_normal((n, n))
    A -= (np.linalg.eigvals(A).real.max() + 1) * np.eye(n)
    B = rng.standard_normal((n, m))
    C = rng.standard_normal((p, n))
    E = None
    if kind == 'descriptor':
        E = np.diag(rng.uniform(1, 2, n))
        A = E @ A
    elif kind == 'sparse':
        A = sps.csc_matrix(A)
    return LTIModel.from_matrices(A, B, C, E=E)


@pytest.fixture
def diag_fom():
    """The system with A = diag(-1, -2, -3), B = C^T = ones."""
    return LTIModel.from_matrices(np.diag([-1., -2., -3.]), np.ones((3, 1)), np.ones((1, 3)))


@pytest.fixture(params=['dense', 'sparse', 'descriptor'])
def siso_fom(request):
    return random_lti(10, 1, 1, seed=1, kind=request.param)


@pytest.fixture(params=['dense', 'descriptor'])
def mimo_fom(request):
    return random_lti(12, 2, 3, seed=2, kind=request.param)
