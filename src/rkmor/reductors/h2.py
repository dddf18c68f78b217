# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

"""Reductors based on H2-norm."""

from numbers import Integral, Real

import numpy as np
import scipy.linalg as spla

from rkmor.algorithms.krylov import KrylovOptions
from rkmor.algorithms.shifts import check_conjugate_pairs, cplxpair, s0_vect
from rkmor.core.base import BasicObject, ImmutableObject
from rkmor.core.defaults import defaults
from rkmor.core.exceptions import AccuracyError, InversionError, LinAlgError
from rkmor.models.iosys import LTIModel
from rkmor.reductors.interpolation import RKReductor


class IRKAOptions(ImmutableObject):
    """Options of the Iterative Rational Krylov Algorithm.

    Parameters
    ----------
    tol
        Tolerance for the convergence criterion.
    maxiter
        Maximum number of iterations.
    stop_crit
        Convergence criterion:

        - `'s0'`: relative change of the shifts,
        - `'sysr'`: relative :math:`\\mathcal{H}_2` distance of consecutive
          reduced models,
        - `'any'`: the smaller of both,
        - `'all'`: the larger of both.
    force_rhp
        If `True`, new shifts are reflected into the right half plane.
    krylov
        |KrylovOptions| (or dict) used for the Krylov bases.
    """

    _stop_crits = ('any', 'all', 's0', 'sysr')

    @defaults('tol', 'maxiter', 'stop_crit', 'force_rhp')
    def __init__(self, tol=1e-3, maxiter=50, stop_crit='any', force_rhp=False, krylov=None):
        krylov = KrylovOptions.from_dict(krylov)
        self.__auto_init(locals())
        self.validate()

    @classmethod
    def from_dict(cls, options, **kwargs):
        """Create |IRKAOptions| from `None`, a dict or an instance, updated by `kwargs`."""
        if isinstance(options, cls):
            if not kwargs:
                return options
            options = {arg: getattr(options, arg) for arg in cls._init_arguments}
        elif options is None:
            options = {}
        elif not isinstance(options, dict):
            raise ValueError(f'IRKA options have to be given as dict, got {type(options)}')
        options = dict(options, **kwargs)
        unknown = set(options) - set(cls._init_arguments)
        if unknown:
            raise ValueError(f'Unknown IRKA options: {sorted(unknown)}')
        return cls(**options)

    def validate(self):
        if not isinstance(self.tol, Real) or self.tol <= 0:
            raise ValueError(f'tol has to be a positive number, got {self.tol!r}')
        if not isinstance(self.maxiter, Integral) or self.maxiter < 1:
            raise ValueError(f'maxiter has to be a positive integer, got {self.maxiter!r}')
        if self.stop_crit not in self._stop_crits:
            raise ValueError(f'stop_crit has to be one of {self._stop_crits}, got {self.stop_crit!r}')


def _normalize_directions(D):
    if D.shape[0] == 1:
        return np.ones(D.shape)
    norms = np.linalg.norm(D, axis=0)
    norms[norms == 0] = 1
    return D / norms


def _rom_to_shifts(rom, force_rhp):
    """Compute new shifts and tangential directions from the reduced model.

    Returns the mirrored poles `-eig(Ar, Er)` together with the residue
    directions, ordered by :func:`~rkmor.algorithms.shifts.cplxpair` with
    conjugate pairs made exactly conjugate.
    """
    A, B, C = rom.A, rom.B, rom.C
    E = rom.E_or_identity
    try:
        poles, X = spla.eig(A, E)
        b = spla.solve(E @ X, B)
    except (spla.LinAlgError, ValueError) as e:
        raise LinAlgError('Eigendecomposition of the reduced model failed') from e
    c = (C @ X).T
    if not np.all(np.isfinite(poles)):
        raise LinAlgError('Reduced model has infinite poles')

    s0 = -poles
    if force_rhp:
        s0 = np.abs(s0.real) + 1j * s0.imag
    try:
        s0, perm = cplxpair(s0)
    except ValueError as e:
        raise LinAlgError('New shifts are not closed under conjugation') from e
    Rt = b[perm].T
    Lt = c[perm].T

    is_cplx = s0.imag != 0
    for i in np.flatnonzero(is_cplx)[::2]:
        s0[i + 1] = s0[i].conjugate()
        Rt[:, i + 1] = Rt[:, i].conj()
        Lt[:, i + 1] = Lt[:, i].conj()
    Rt[:, ~is_cplx] = Rt[:, ~is_cplx].real
    Lt[:, ~is_cplx] = Lt[:, ~is_cplx].real
    return s0, _normalize_directions(Rt), _normalize_directions(Lt)


class IRKAReductor(BasicObject):
    """Iterative Rational Krylov Algorithm reductor.

    Starting from initial shifts and tangential directions, repeatedly
    performs two-sided rational Krylov reduction and replaces the shifts by
    the mirrored poles of the reduced model (and the directions by its
    residue directions) until the shifts are a fixed point.

    After :meth:`reduce`, the following attributes are available:

    - `status`: `'converged'`, `'maxiter'`, `'interrupted'` or `'failed'`,
    - `iterations`: number of performed iterations,
    - `s0`, `Rt`, `Lt`: final shifts and tangential directions,
    - `s0_traj`, `Rt_traj`, `Lt_traj`: shifts and directions of all iterations
      (starting with the initial ones),
    - `rom_traj`: reduced models of all iterations,
    - `conv_crit`: values of the convergence criterion,
    - `V`, `W`: projection matrices of the last reduction.

    Parameters
    ----------
    fom
        The full-order |LTIModel| to reduce.
    """

    def __init__(self, fom):
        assert isinstance(fom, LTIModel)
        self.fom = fom
        self._clear_lists()

    def _clear_lists(self):
        self.s0_traj = []
        self.Rt_traj = []
        self.Lt_traj = []
        self.rom_traj = []
        self.conv_crit = []
        self.status = None
        self.iterations = 0
        self.s0 = self.Rt = self.Lt = None
        self.V = self.W = None

    def _initial_data(self, s0, Rt, Lt):
        fom = self.fom
        if isinstance(s0, Integral):
            if s0 < 1:
                raise ValueError(f'Reduced order has to be positive, got {s0}')
            s0 = np.logspace(-1, 1, s0).astype(complex)
        else:
            s0 = s0_vect(s0)
        r = len(s0)
        if r > fom.order:
            raise ValueError(f'Reduced order {r} is larger than the full order {fom.order}')
        Rt = np.ones((fom.dim_input, r)) if Rt is None else np.array(Rt, dtype=complex, ndmin=2)
        Lt = np.ones((fom.dim_output, r)) if Lt is None else np.array(Lt, dtype=complex, ndmin=2)
        if Rt.shape != (fom.dim_input, r):
            raise ValueError(f'Rt has to have shape {(fom.dim_input, r)}, got {Rt.shape}')
        if Lt.shape != (fom.dim_output, r):
            raise ValueError(f'Lt has to have shape {(fom.dim_output, r)}, got {Lt.shape}')
        check_conjugate_pairs(s0, Rt)
        check_conjugate_pairs(s0, Lt)
        s0, perm = cplxpair(s0)
        return s0, Rt[:, perm], Lt[:, perm]

    def _compute_conv_crit(self, s0, s0_old, rom, rom_old, stop_crit):
        crits = []
        if stop_crit in ('s0', 'any', 'all'):
            crits.append(spla.norm(s0 - s0_old) / spla.norm(s0))
        if stop_crit in ('sysr', 'any', 'all'):
            if rom_old is None or not rom.is_stable() or not rom_old.is_stable():
                crits.append(np.inf)
            else:
                crits.append((rom_old - rom).h2_norm() / rom.h2_norm())
        return max(crits) if stop_crit == 'all' else min(crits)

    def reduce(self, s0, Rt=None, Lt=None, options=None, callback=None, **kwargs):
        r"""Reduce using IRKA.

        See Algorithm 4.1 in Gugercin, Antoulas, Beattie (2008).

        Parameters
        ----------
        s0
            Can be:

            - order of the reduced model (a positive integer), the initial
              shifts are then `logspace(-1, 1, r)`,
            - initial shifts (vector or two-row matrix of shifts and
              multiplicities), closed under conjugation.
        Rt
            Initial right tangential directions of shape
            `(fom.dim_input, r)`. Defaults to ones.
        Lt
            Initial left tangential directions of shape
            `(fom.dim_output, r)`. Defaults to ones.
        options
            |IRKAOptions| or dict of options.
        callback
            Function `callback(reductor, iteration)` called after each
            iteration. If it returns `True`, the iteration is stopped.
        kwargs
            Individual options overriding `options` (e.g. `tol=1e-6`).

        Returns
        -------
        rom
            Reduced |LTIModel|.
        """
        self._clear_lists()
        options = IRKAOptions.from_dict(options, **kwargs)
        s0, Rt, Lt = self._initial_data(s0, Rt, Lt)
        self.s0_traj.append(s0)
        self.Rt_traj.append(Rt)
        self.Lt_traj.append(Lt)

        self.logger.info(f'Starting IRKA with {len(s0)} shift(s)')
        rk = RKReductor(self.fom)
        rom = None
        for it in range(options.maxiter):
            rom_old, s0_old = rom, s0
            try:
                rom = rk.reduce(s0, s0, Rt, Lt, options=options.krylov)
                if rom.order != len(s0_old):
                    raise AccuracyError(f'Reduced order dropped from {len(s0_old)} to {rom.order} '
                                        'due to linearly dependent Krylov vectors')
                s0, Rt, Lt = _rom_to_shifts(rom, options.force_rhp)
            except (InversionError, AccuracyError, LinAlgError) as e:
                self.status = 'failed'
                self.logger.error(f'IRKA failed in iteration {it + 1}: {e}')
                raise
            self.iterations = it + 1
            self.s0_traj.append(s0)
            self.Rt_traj.append(Rt)
            self.Lt_traj.append(Lt)
            self.rom_traj.append(rom)
            self.conv_crit.append(self._compute_conv_crit(s0, s0_old, rom, rom_old, options.stop_crit))
            self.logger.info(f'Convergence criterion in iteration {it + 1}: {self.conv_crit[-1]:e}')

            stop = callback is not None and callback(self, it + 1)
            if self.conv_crit[-1] < options.tol:
                self.status = 'converged'
                break
            if stop:
                self.status = 'interrupted'
                self.logger.info(f'IRKA interrupted after iteration {it + 1}')
                break
        else:
            self.status = 'maxiter'
            self.logger.warning(f'IRKA did not converge within {options.maxiter} iterations '
                                f'(convergence criterion {self.conv_crit[-1]:e})')

        self.s0, self.Rt, self.Lt = s0, Rt, Lt
        self.V, self.W = rk.V, rk.W
        return rom
