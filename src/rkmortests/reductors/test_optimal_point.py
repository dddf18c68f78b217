# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
import pytest

from rkmor.core.exceptions import AccuracyError
from rkmor.models.iosys import LTIModel
from rkmor.reductors import optimal_point
from rkmor.reductors.optimal_point import (RKIcopReductor, RKOpReductor, optimal_point_from_impulse,
                                           optimal_point_from_lyapunov)


def _diag_fom(n=6, B=None, C=None):
    A = -np.diag(np.arange(1., n + 1))
    B = np.ones((n, 1)) if B is None else B
    C = np.ones((1, n)) if C is None else C
    return LTIModel.from_matrices(A, B, C)


def test_optimal_point_from_impulse():
    a = 2.
    t = np.linspace(0, 20, 200001)
    s_opt = optimal_point_from_impulse(np.exp(-a * t), t)
    assert s_opt.shape == (1, 1)
    assert np.isclose(s_opt[0, 0], a, rtol=1e-3)


def test_optimal_point_from_impulse_channels():
    t = np.linspace(0, 20, 100001)
    h = np.empty((len(t), 2, 3))
    for i in range(2):
        for j in range(3):
            h[:, i, j] = np.exp(-(i + j + 1) * t)
    s_opt = optimal_point_from_impulse(h, t)
    assert s_opt.shape == (2, 3)
    assert np.allclose(s_opt, np.add.outer(np.arange(2), np.arange(3)) + 1, rtol=1e-3)

    s_opt = optimal_point_from_impulse(h[:, :, 0], t)
    assert s_opt.shape == (2, 1)


@pytest.mark.parametrize('h,t', [
    (np.ones((3, 1, 1, 1)), np.arange(3.)),
    (np.ones(3), np.arange(4.)),
    (np.ones(1), np.zeros(1)),
    (np.ones(3), np.array([0., 2., 1.])),
    (np.zeros(3), np.arange(3.)),
])
def test_optimal_point_from_impulse_invalid(h, t):
    with pytest.raises(ValueError):
        optimal_point_from_impulse(h, t)


@pytest.mark.parametrize('e', [1., 3.])
def test_optimal_point_first_order(e):
    a = 2.5
    fom = LTIModel.from_matrices(np.array([[-a * e]]), np.ones(1), np.ones(1), E=np.array([[e]]))
    s_opt = optimal_point_from_lyapunov(fom)
    assert s_opt.shape == (1, 1)
    assert np.isclose(s_opt[0, 0], a)


def test_optimal_point_lyapunov_vs_impulse():
    fom = _diag_fom(n=2)
    t = np.linspace(0, 40, 400001)
    h = np.exp(-t) + np.exp(-2 * t)
    assert np.allclose(optimal_point_from_lyapunov(fom), optimal_point_from_impulse(h, t), rtol=1e-3)


def test_optimal_point_symmetrization_fails(monkeypatch):
    calls = []

    def lyap(A, E, Q):
        calls.append(Q)
        X = np.eye(A.shape[0])
        X[0, 1] = np.nan
        return X

    monkeypatch.setattr(optimal_point, 'solve_cont_lyap_dense_rhs', lyap)
    with pytest.raises(AccuracyError):
        optimal_point_from_lyapunov(_diag_fom(n=3), max_sym_retries=2)
    assert len(calls) == 1


def test_optimal_point_mimo(rng):
    fom = _diag_fom(n=6, B=rng.standard_normal((6, 2)), C=rng.standard_normal((3, 6)))
    s_opt = optimal_point_from_lyapunov(fom)
    assert s_opt.shape == (3, 2)
    assert np.all(s_opt > 0)


@pytest.mark.parametrize('rk', ['two_sided', 'input', 'output'])
def test_rkop_siso(rk):
    fom = _diag_fom()
    rkop = RKOpReductor(fom)
    rom = rkop.reduce(2, rk=rk)
    assert rom.order == 2
    s = rkop.s_opt[0, 0]
    assert s > 0
    assert np.allclose(rom.eval_tf(s), fom.eval_tf(s))
    assert np.allclose(rom.eval_dtf(s), fom.eval_dtf(s))
    assert rkop.V.shape == (fom.order, 2)


def test_rkop_mimo(rng):
    m, p, q = 2, 2, 1
    fom = _diag_fom(n=8, B=rng.standard_normal((8, m)), C=rng.standard_normal((p, 8)))
    rkop = RKOpReductor(fom)
    rom = rkop.reduce(q)
    assert rom.order == m * p * q
    assert rkop.s_opt.shape == (p, m)
    for i in range(p):
        for j in range(m):
            s = rkop.s_opt[i, j]
            assert np.allclose(rom.eval_tf(s)[:, j], fom.eval_tf(s)[:, j])
            assert np.allclose(rom.eval_tf(s)[i], fom.eval_tf(s)[i])


@pytest.mark.parametrize('q,rk', [(0, 'two_sided'), (1.5, 'two_sided'), (1, 'both')])
def test_rkop_invalid(q, rk):
    with pytest.raises(ValueError):
        RKOpReductor(_diag_fom()).reduce(q, rk=rk)


def test_rkicop():
    fom = _diag_fom()
    rkicop = RKIcopReductor(fom)
    rom = rkicop.reduce(1., 2, tol=1e-6, maxiter=50)
    assert rom.order == 2
    assert rkicop.status in ('converged', 'maxiter')
    assert len(rkicop.s_traj) == rkicop.iterations + 1
    assert rkicop.s_traj[0] == 1.
    assert rkicop.s_opt == rkicop.s_traj[-1]
    s = rkicop.s_opt
    assert np.allclose(rom.eval_tf(s), fom.eval_tf(s))
    assert np.allclose(rom.eval_dtf(s), fom.eval_dtf(s))


def test_rkicop_maxiter():
    rkicop = RKIcopReductor(_diag_fom())
    rkicop.reduce(1., 1, tol=1e-15, maxiter=2)
    assert rkicop.status == 'maxiter'
    assert rkicop.iterations == 2
    assert len(rkicop.s_traj) == 3


@pytest.mark.parametrize('s0,q,kwargs', [
    (0., 2, {}),
    (1j, 2, {}),
    (1., 0, {}),
    (1., 2, {'tol': 0}),
    (1., 2, {'maxiter': 0}),
    (1., 2, {'rk': 'both'}),
])
def test_rkicop_invalid(s0, q, kwargs):
    with pytest.raises(ValueError):
        RKIcopReductor(_diag_fom()).reduce(s0, q, **kwargs)


def test_rkicop_mimo(mimo_fom):
    with pytest.raises(ValueError):
        RKIcopReductor(mimo_fom).reduce(1., 2)
