# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

r"""Rational Krylov reduction at a single optimal expansion point.

For a single-input single-output system with impulse response :math:`g(t)`,
the expansion point

.. math::
    s_{opt} = \sqrt{\frac{\int_0^\infty t \dot{g}(t)^2 \, dt}
                         {\int_0^\infty t g(t)^2 \, dt}}

minimizes an upper bound of the error of Laguerre-based reduction. Both
integrals can be evaluated from sampled impulse responses or via Lyapunov
equations.
"""

from numbers import Integral

import numpy as np

from rkmor.algorithms.lyapunov import solve_cont_lyap_dense_rhs
from rkmor.core.base import BasicObject
from rkmor.core.defaults import defaults
from rkmor.core.exceptions import AccuracyError
from rkmor.core.logger import getLogger
from rkmor.models.iosys import LTIModel
from rkmor.reductors.interpolation import RKReductor


def _real_sqrt(ratio, logger):
    s = np.emath.sqrt(ratio)
    if np.iscomplexobj(s) or s < 0:
        logger.warning_once('The optimal expansion point is negative or complex. '
                            'It has been replaced by its absolute value.')
        s = abs(s)
    return float(s)


def optimal_point_from_impulse(h, t):
    """Compute optimal expansion points from sampled impulse responses.

    Parameters
    ----------
    h
        Impulse response samples as |NumPy array| of shape `(nt,)` (SISO),
        `(nt, p)` or `(nt, p, m)`.
    t
        Sample times as 1D |NumPy array| of length `nt`.

    Returns
    -------
    s_opt
        |NumPy array| of shape `(p, m)` with the optimal point of each
        input-output channel.
    """
    logger = getLogger('rkmor.reductors.optimal_point.optimal_point_from_impulse')
    h = np.asarray(h, dtype=float)
    t = np.asarray(t, dtype=float).ravel()
    if h.ndim == 1:
        h = h[:, np.newaxis, np.newaxis]
    elif h.ndim == 2:
        h = h[:, :, np.newaxis]
    elif h.ndim != 3:
        raise ValueError(f'Impulse response has to have 1 to 3 dimensions, got {h.ndim}')
    if len(t) != h.shape[0]:
        raise ValueError(f'Got {len(t)} sample times for {h.shape[0]} impulse response samples')
    if len(t) < 2:
        raise ValueError('At least two samples are needed')
    dt = np.diff(t)
    if np.any(dt <= 0):
        raise ValueError('Sample times have to be strictly increasing')

    dh = np.diff(h, axis=0) / dt[:, np.newaxis, np.newaxis]
    m1 = np.einsum('i,ijk->jk', t, h**2)
    m2 = np.einsum('i,ijk->jk', t[:-1], dh**2)

    p, m = m1.shape
    s_opt = np.empty((p, m))
    for i in range(p):
        for j in range(m):
            if m1[i, j] == 0:
                raise ValueError(f'Impulse response of channel ({i}, {j}) has zero energy')
            s_opt[i, j] = _real_sqrt(m2[i, j] / m1[i, j], logger)
    return s_opt


@defaults('max_sym_retries')
def optimal_point_from_lyapunov(fom, max_sym_retries=5):
    r"""Compute optimal expansion points via Lyapunov equations.

    For each output :math:`i` and input :math:`j`, solves

    .. math::
        A P E^T + E P A^T + b_j b_j^T = 0, \quad
        A Y E^T + E Y A^T + E P E^T = 0

    and returns

    .. math::
        s_{opt} = \sqrt{\frac{c_i A Y A^T c_i^T}{C_i Y C_i^T}},
        \quad c = C E^{-1}.

    The Lyapunov equations are solved densely.

    Parameters
    ----------
    fom
        The |LTIModel|.
    max_sym_retries
        Maximum number of symmetrization steps for :math:`E P E^T`.

    Returns
    -------
    s_opt
        |NumPy array| of shape `(fom.dim_output, fom.dim_input)`.
    """
    assert isinstance(fom, LTIModel)
    logger = getLogger('rkmor.reductors.optimal_point.optimal_point_from_lyapunov')
    fom = fom.to_dense()
    A, B, C = fom.A, fom.B, fom.C
    E = fom.E
    Em = fom.E_or_identity
    c = C if E is None else np.linalg.solve(E.T, C.T).T

    s_opt = np.empty((fom.dim_output, fom.dim_input))
    for j in range(fom.dim_input):
        b = B[:, j:j + 1]
        P = solve_cont_lyap_dense_rhs(A, E, b @ b.T)
        Psym = 0.5 * (Em @ P @ Em.T + Em @ P.T @ Em.T)
        count = 0
        while not np.array_equal(Psym, Psym.T):
            if count >= max_sym_retries:
                raise AccuracyError('E P E^T could not be symmetrized')
            Psym = 0.5 * (Psym + Psym.T)
            count += 1
        Y = solve_cont_lyap_dense_rhs(A, E, Psym)
        AYAT = A @ Y @ A.T
        for i in range(fom.dim_output):
            num = c[i] @ AYAT @ c[i]
            den = C[i] @ Y @ C[i]
            if den == 0:
                raise ValueError(f'Channel ({i}, {j}) has zero energy')
            s_opt[i, j] = _real_sqrt(num / den, logger)
    return s_opt


def _check_rk(rk):
    if rk not in ('two_sided', 'input', 'output'):
        raise ValueError(f"rk has to be one of 'two_sided', 'input', 'output', got {rk!r}")


def _reduce_at(rk_reductor, s0, Rt, Lt, rk, options):
    if rk == 'two_sided':
        return rk_reductor.reduce(s0, s0, Rt=Rt, Lt=Lt, options=options)
    elif rk == 'input':
        return rk_reductor.reduce(s0, Rt=Rt, options=options)
    else:
        return rk_reductor.reduce(None, s0, Lt=Lt, options=options)


class RKOpReductor(BasicObject):
    """Rational Krylov reduction at the optimal expansion point.

    The optimal point is computed by :func:`optimal_point_from_lyapunov`.
    SISO systems are reduced by matching `q` moments at the optimal point.
    For MIMO systems, every input-output channel `(i, j)` contributes `q`
    moments at its own optimal point with unit tangential directions
    :math:`e_j` (right) and :math:`e_i` (left).

    Parameters
    ----------
    fom
        The full-order |LTIModel| to reduce.
    """

    def __init__(self, fom):
        assert isinstance(fom, LTIModel)
        self.fom = fom
        self.s_opt = None
        self.V = self.W = None

    def reduce(self, q, rk='two_sided', options=None):
        """Reduce at the optimal expansion point.

        Parameters
        ----------
        q
            Number of moments to match per channel.
        rk
            `'two_sided'`, `'input'` or `'output'` Krylov subspaces.
        options
            |KrylovOptions| or dict of options.

        Returns
        -------
        rom
            Reduced |LTIModel|.
        """
        if not isinstance(q, Integral) or q < 1:
            raise ValueError(f'q has to be a positive integer, got {q!r}')
        _check_rk(rk)
        fom = self.fom
        self.s_opt = optimal_point_from_lyapunov(fom)
        self.logger.info(f'Optimal expansion point(s): {self.s_opt.ravel()}')

        if fom.is_siso:
            s0 = np.full(q, self.s_opt[0, 0])
            Rt = Lt = None
        else:
            p, m = fom.dim_output, fom.dim_input
            s0 = np.repeat(self.s_opt.T.ravel(), q)
            Rt = np.repeat(np.kron(np.eye(m), np.ones((1, p))), q, axis=1)
            Lt = np.repeat(np.tile(np.eye(p), (1, m)), q, axis=1)

        rk_reductor = RKReductor(fom)
        rom = _reduce_at(rk_reductor, s0, Rt, Lt, rk, options)
        self.V, self.W = rk_reductor.V, rk_reductor.W
        return rom


class RKIcopReductor(BasicObject):
    """Rational Krylov reduction at an iteratively computed optimal point.

    Starting at the expansion point `s0`, the system is reduced and the
    expansion point is replaced by the optimal point of the reduced model
    (see :func:`optimal_point_from_lyapunov`) until it converges.
    Only SISO systems are supported.

    After :meth:`reduce`, the attributes `s_opt`, `s_traj`, `status`
    (`'converged'` or `'maxiter'`), `iterations`, `V` and `W` are available.

    Parameters
    ----------
    fom
        The full-order |LTIModel| to reduce.
    """

    def __init__(self, fom):
        assert isinstance(fom, LTIModel)
        self.fom = fom
        self.s_opt = None
        self.s_traj = []
        self.status = None
        self.iterations = 0
        self.V = self.W = None

    def reduce(self, s0, q, tol=1e-2, maxiter=20, rk='two_sided', options=None):
        """Reduce at an iteratively computed optimal expansion point.

        Parameters
        ----------
        s0
            Initial expansion point (real scalar).
        q
            Number of moments to match.
        tol
            Tolerance for the relative change of the expansion point.
        maxiter
            Maximum number of iterations.
        rk
            `'two_sided'`, `'input'` or `'output'` Krylov subspaces.
        options
            |KrylovOptions| or dict of options.

        Returns
        -------
        rom
            Reduced |LTIModel| at the final expansion point.
        """
        if not self.fom.is_siso:
            raise ValueError('Iterative optimal point computation is only available for SISO systems')
        if not isinstance(q, Integral) or q < 1:
            raise ValueError(f'q has to be a positive integer, got {q!r}')
        if not isinstance(maxiter, Integral) or maxiter < 1:
            raise ValueError(f'maxiter has to be a positive integer, got {maxiter!r}')
        if tol <= 0:
            raise ValueError(f'tol has to be positive, got {tol}')
        if np.iscomplexobj(s0) or s0 == 0:
            raise ValueError(f'Initial expansion point has to be real and nonzero, got {s0}')
        _check_rk(rk)

        s = float(s0)
        self.s_traj = [s]
        self.status = 'maxiter'
        rk_reductor = RKReductor(self.fom)
        for it in range(maxiter):
            rom = _reduce_at(rk_reductor, np.full(q, s), None, None, rk, options)
            s_new = optimal_point_from_lyapunov(rom)[0, 0]
            crit = abs(s_new - s) / abs(s)
            self.logger.info(f'Iteration {it + 1}: s_opt = {s_new:e}, relative change {crit:e}')
            s = s_new
            self.s_traj.append(s)
            self.iterations = it + 1
            if crit < tol:
                self.status = 'converged'
                break
        else:
            self.logger.warning(f'Optimal point iteration did not converge within {maxiter} iterations')

        self.s_opt = s
        rom = _reduce_at(rk_reductor, np.full(q, s), None, None, rk, options)
        self.V, self.W = rk_reductor.V, rk_reductor.W
        return rom
