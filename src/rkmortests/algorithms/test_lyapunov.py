# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
import pytest

from rkmor.algorithms.lyapunov import solve_cont_lyap_dense_rhs, solve_lyap_dense
from rkmor.core.exceptions import InversionError

n_list = [10, 40]


def _stable_pencil(n, with_E, rng):
    A = rng.standard_normal((n, n))
    A -= (np.linalg.eigvals(A).real.max() + 1) * np.eye(n)
    if not with_E:
        return A, None
    E = np.eye(n) + rng.uniform(-0.1, 0.1, (n, n)) / n
    return E @ A, E


def relative_residual(A, E, B, X, trans=False):
    if E is None:
        E = np.eye(A.shape[0])
    if not trans:
        AXE = A @ X @ E.T
        RHS = B @ B.T
    else:
        AXE = A.T @ X @ E
        RHS = B.T @ B
    return np.linalg.norm(AXE + AXE.T + RHS) / np.linalg.norm(RHS)


@pytest.mark.parametrize('n', n_list)
@pytest.mark.parametrize('with_E', [False, True])
@pytest.mark.parametrize('trans', [False, True])
def test_solve_lyap_dense(n, with_E, trans, rng):
    A, E = _stable_pencil(n, with_E, rng)
    B = rng.standard_normal((3, n)) if trans else rng.standard_normal((n, 2))
    X = solve_lyap_dense(A, E, B, trans=trans)
    assert relative_residual(A, E, B, X, trans=trans) < 1e-8
    assert np.allclose(X, X.T)


@pytest.mark.parametrize('with_E', [False, True])
@pytest.mark.parametrize('trans', [False, True])
def test_solve_cont_lyap_dense_rhs(with_E, trans, rng):
    n = 10
    A, E = _stable_pencil(n, with_E, rng)
    Q = rng.standard_normal((n, n))
    X = solve_cont_lyap_dense_rhs(A, E, Q, trans=trans)
    Em = np.eye(n) if E is None else E
    if trans:
        res = A.T @ X @ Em + Em.T @ X @ A + Q
    else:
        res = A @ X @ Em.T + Em @ X @ A.T + Q
    assert np.linalg.norm(res) < 1e-8 * np.linalg.norm(Q)


def test_singular_E():
    with pytest.raises(InversionError):
        solve_lyap_dense(-np.eye(2), np.zeros((2, 2)), np.ones((2, 1)))
