# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
import pytest
import scipy.sparse as sps

from rkmor.core.exceptions import ConstError, InversionError
from rkmor.models.iosys import LTIModel

K = np.array([1., 2., 3.])


def test_from_matrices():
    fom = LTIModel.from_matrices(np.diag(-K), np.ones(3), np.ones(3), name='diag')
    assert fom.order == 3
    assert fom.dim_input == fom.dim_output == 1
    assert fom.is_siso
    assert fom.B.shape == (3, 1) and fom.C.shape == (1, 3)
    assert not fom.is_sparse
    assert not fom.is_descriptor
    assert 'diag' in str(fom)


@pytest.mark.parametrize('kwargs', [
    {'A': np.ones((2, 3))},
    {'B': np.ones((2, 1))},
    {'C': np.ones((1, 2))},
    {'D': np.ones((2, 2))},
    {'E': np.eye(2)},
    {'A': np.diag(-K) + 1j},
])
def test_invalid_matrices(kwargs):
    matrices = dict(A=np.diag(-K), B=np.ones((3, 1)), C=np.ones((1, 3)))
    matrices.update(kwargs)
    with pytest.raises(ValueError):
        LTIModel.from_matrices(**matrices)


def test_immutable(diag_fom):
    with pytest.raises(ConstError):
        diag_fom.A = np.eye(3)
    fom = diag_fom.with_(name='renamed')
    assert fom.name == 'renamed'
    assert np.array_equal(fom.A, diag_fom.A)


def test_eval_tf(diag_fom):
    for s in (0, 1j, 2 + 3j):
        assert np.allclose(diag_fom.eval_tf(s), np.sum(1 / (s + K)))
        assert np.allclose(diag_fom.eval_dtf(s), -np.sum(1 / (s + K)**2))


def test_eval_dtf_finite_difference(siso_fom):
    s, h = 1 + 1j, 1e-6
    fd = (siso_fom.eval_tf(s + h) - siso_fom.eval_tf(s - h)) / (2 * h)
    assert np.allclose(siso_fom.eval_dtf(s), fd, rtol=1e-5, atol=1e-6)


def test_eval_tf_pole(diag_fom):
    with pytest.raises(InversionError):
        diag_fom.eval_tf(-1)
    with pytest.raises(InversionError):
        diag_fom.with_(A=sps.csc_matrix(diag_fom.A)).eval_tf(-2)


def test_descriptor():
    E = np.diag([2., 3., 4.])
    fom = LTIModel.from_matrices(E @ np.diag(-K), np.ones(3), np.ones(3), E=E)
    assert fom.is_descriptor
    for s in (0, 1j):
        assert np.allclose(fom.eval_tf(s), np.sum(1 / (s + K) / np.diag(E)))
    assert np.allclose(np.sort(fom.poles().real), -K[::-1])
    assert not LTIModel.from_matrices(np.diag(-K), np.ones(3), np.ones(3), E=np.eye(3)).is_descriptor


def test_poles_and_stability(diag_fom):
    assert np.allclose(np.sort(diag_fom.poles().real), [-3, -2, -1])
    assert diag_fom.is_stable()
    assert not diag_fom.is_stable(margin=1.5)
    assert not LTIModel.from_matrices(np.diag([-1., 1.]), np.ones(2), np.ones(2)).is_stable()


def test_gramians(diag_fom):
    P = diag_fom.gramian('c')
    Q = diag_fom.gramian('o')
    assert np.allclose(P, 1 / (K[:, np.newaxis] + K))
    assert np.allclose(Q, P)
    with pytest.raises(ValueError):
        diag_fom.gramian('x')


def test_h2_norm(diag_fom):
    assert np.isclose(diag_fom.h2_norm(), np.sqrt(np.sum(1 / (K[:, np.newaxis] + K))))
    assert LTIModel.from_matrices(np.array([[1.]]), np.ones(1), np.ones(1)).h2_norm() == np.inf
    assert LTIModel.from_matrices(np.diag(-K), np.ones(3), np.ones(3), D=np.ones((1, 1))).h2_norm() == np.inf


def test_h2_norm_sparse(siso_fom):
    assert np.isclose(siso_fom.h2_norm(), siso_fom.to_dense().h2_norm())


def test_sub(siso_fom):
    err = siso_fom - siso_fom
    assert err.order == 2 * siso_fom.order
    assert err.is_sparse == siso_fom.is_sparse
    assert np.allclose(err.eval_tf(1j), 0)
    assert err.h2_norm() < 1e-4 * siso_fom.h2_norm()

    rom = LTIModel.from_matrices(np.array([[-1.]]), np.ones(1), np.ones(1))
    err = siso_fom - rom
    assert np.allclose(err.eval_tf(2.), siso_fom.eval_tf(2.) - 1 / 3)


def test_sub_sparse_matrices():
    A = sps.diags([-1., -2., -3.], format='csc')
    B = sps.csc_matrix(np.ones((3, 1)))
    fom = LTIModel.from_matrices(A, B, np.ones((1, 3)))
    rom = LTIModel.from_matrices(np.array([[-1.]]), np.ones(1), np.ones(1))
    err = fom - rom
    assert err.is_sparse
    assert isinstance(err.B, np.ndarray) and isinstance(err.C, np.ndarray)
    assert err.B.shape == (4, 1) and err.C.shape == (1, 4)
    assert np.allclose(err.eval_tf(1.), 1 / 2 + 1 / 3 + 1 / 4 - 1 / 2)


def test_sub_mismatch(diag_fom, mimo_fom):
    with pytest.raises(ValueError):
        diag_fom - mimo_fom


def test_to_dense(siso_fom):
    dense = siso_fom.to_dense()
    assert not dense.is_sparse
    assert isinstance(dense.A, np.ndarray)
    assert np.allclose(dense.eval_tf(1.), siso_fom.eval_tf(1.))
