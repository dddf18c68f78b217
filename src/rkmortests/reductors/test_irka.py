# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
import pytest

from rkmor.core.exceptions import AccuracyError
from rkmor.models.iosys import LTIModel
from rkmor.reductors.h2 import IRKAOptions, IRKAReductor


def _symmetric_fom(m=1, n=10, seed=0):
    rng = np.random.default_rng(seed)
    A = -np.diag(np.logspace(0, 2, n))
    B = np.ones((n, 1)) if m == 1 else rng.standard_normal((n, m))
    return LTIModel.from_matrices(A, B, B.T)


def test_irka_exact_rom():
    A = np.diag([-1., -2., -3.])
    B = np.array([[1.], [1.], [0.]])
    C = np.array([[1., 1., 0.]])
    fom = LTIModel.from_matrices(A, B, C)
    irka = IRKAReductor(fom)
    rom = irka.reduce([1, 2], stop_crit='s0')
    assert isinstance(rom, LTIModel) and rom.order == 2
    assert irka.status == 'converged'
    assert irka.iterations == 1
    assert np.allclose(irka.s0, [1, 2])
    assert np.allclose(np.sort(rom.poles().real), [-2, -1])


def test_irka(siso_fom):
    irka = IRKAReductor(siso_fom)
    rom = irka.reduce(2, maxiter=10)
    assert rom.order == 2
    assert irka.status in ('converged', 'maxiter')


def test_irka_default_options(siso_fom):
    irka = IRKAReductor(siso_fom)
    rom = irka.reduce(3, maxiter=5)
    assert rom.order == 3
    assert irka.status in ('converged', 'maxiter')
    assert irka.V.shape == (siso_fom.order, 3)


@pytest.mark.parametrize('lse', ['sparse', 'full'])
def test_irka_order_drop_fails(lse):
    A = np.diag([-1., -2., -3.])
    B = np.array([[1.], [1.], [0.]])
    fom = LTIModel.from_matrices(A, B, B.T)
    irka = IRKAReductor(fom)
    with pytest.raises(AccuracyError):
        irka.reduce(3, stop_crit='s0', krylov={'lse': lse})
    assert irka.status == 'failed'
    assert irka.iterations == 0
    assert len(irka.s0_traj) == 1


def test_irka_failed_on_deflation():
    A = np.diag([-1., -2., -3.])
    B = np.array([[1.], [1.], [0.]])
    irka = IRKAReductor(LTIModel.from_matrices(A, B, B.T))
    with pytest.raises(AccuracyError):
        irka.reduce(3, krylov={'deflation': 'raise'})
    assert irka.status == 'failed'
    assert irka.rom_traj == []


def test_irka_trajectories():
    fom = _symmetric_fom()
    irka = IRKAReductor(fom)
    rom = irka.reduce(3, tol=1e-4, maxiter=100)
    assert rom.order == 3
    assert irka.status == 'converged'
    assert len(irka.s0_traj) == len(irka.Rt_traj) == len(irka.Lt_traj) == irka.iterations + 1
    assert len(irka.rom_traj) == len(irka.conv_crit) == irka.iterations
    assert irka.rom_traj[-1] is rom
    assert irka.conv_crit[-1] < 1e-4
    assert np.allclose(irka.s0_traj[0], np.logspace(-1, 1, 3))
    assert np.all(irka.s0.real > 0)
    assert irka.V.shape == irka.W.shape == (fom.order, 3)

    # the reduced model interpolates at the shifts of the last iteration
    for s in irka.s0_traj[-2]:
        assert np.allclose(rom.eval_tf(s), fom.eval_tf(s))
        assert np.allclose(rom.eval_dtf(s), fom.eval_dtf(s))


def test_irka_mimo():
    fom = _symmetric_fom(m=2)
    irka = IRKAReductor(fom)
    rom = irka.reduce(3, maxiter=20)
    assert rom.order == 3
    assert rom.dim_input == rom.dim_output == 2
    s0, Rt, Lt = irka.s0_traj[-2], irka.Rt_traj[-2], irka.Lt_traj[-2]
    assert np.allclose(np.linalg.norm(irka.Rt, axis=0), 1)
    for s, r, l in zip(s0, Rt.T, Lt.T):
        assert np.allclose(rom.eval_tf(s) @ r, fom.eval_tf(s) @ r)
        assert np.allclose(l @ rom.eval_tf(s), l @ fom.eval_tf(s))


def test_irka_maxiter():
    irka = IRKAReductor(_symmetric_fom())
    rom = irka.reduce(2, options={'maxiter': 1, 'tol': 1e-14})
    assert rom.order == 2
    assert irka.status == 'maxiter'
    assert irka.iterations == 1


def test_irka_callback():
    calls = []

    def callback(reductor, iteration):
        calls.append(iteration)
        return iteration == 2

    irka = IRKAReductor(_symmetric_fom())
    irka.reduce(2, tol=1e-14, callback=callback)
    assert irka.status == 'interrupted'
    assert calls == [1, 2]
    assert irka.iterations == 2


@pytest.mark.parametrize('stop_crit', ['s0', 'sysr', 'any', 'all'])
def test_irka_stop_crit(stop_crit):
    irka = IRKAReductor(_symmetric_fom())
    irka.reduce(2, stop_crit=stop_crit, maxiter=5)
    if stop_crit == 'sysr':
        assert irka.conv_crit[0] == np.inf
    assert all(c >= 0 for c in irka.conv_crit)


def test_irka_force_rhp(siso_fom):
    irka = IRKAReductor(siso_fom)
    irka.reduce(2, force_rhp=True, maxiter=3)
    for s0 in irka.s0_traj:
        assert np.all(s0.real > 0)


def test_irka_initial_directions():
    fom = _symmetric_fom(m=2)
    irka = IRKAReductor(fom)
    s0 = [1 + 1j, 1 - 1j]
    Rt = np.array([[1 + 1j, 1 - 1j], [2, 2]])
    Lt = np.ones((2, 2))
    rom = irka.reduce(s0, Rt=Rt, Lt=Lt, maxiter=2)
    assert rom.order == 2
    assert np.array_equal(irka.Rt_traj[0], Rt[:, ::-1])


def test_irka_options():
    options = IRKAOptions.from_dict({'tol': 1e-6}, maxiter=5)
    assert options.tol == 1e-6 and options.maxiter == 5
    assert options.stop_crit == 'any'
    assert options.krylov.orth == '2mgs'
    assert IRKAOptions.from_dict(options) is options
    assert IRKAOptions.from_dict(options, tol=1e-2).maxiter == 5
    assert IRKAOptions(krylov={'lse': 'full'}).krylov.lse == 'full'


@pytest.mark.parametrize('s0,kwargs', [
    (0, {}),
    (11, {}),
    ([1 + 1j], {}),
    (2, {'Rt': np.ones((1, 3))}),
    (2, {'tol': -1}),
    (2, {'maxiter': 0}),
    (2, {'stop_crit': 'h2'}),
    (2, {'tolerance': 1e-3}),
    (2, {'options': 'tol=1e-3'}),
])
def test_irka_invalid(s0, kwargs):
    with pytest.raises(ValueError):
        IRKAReductor(_symmetric_fom()).reduce(s0, **kwargs)
