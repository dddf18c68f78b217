# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
import scipy.sparse as sps
from scipy.sparse.linalg import ArpackNoConvergence, eigsh

from rkmor.algorithms.krylov import KrylovOptions, rational_arnoldi, rational_arnoldi_two_sided
from rkmor.algorithms.shifts import s0_vect
from rkmor.algorithms.sylvester import sylvester_input_matrix, sylvester_output_matrix
from rkmor.core.base import BasicObject
from rkmor.core.defaults import defaults
from rkmor.core.exceptions import AccuracyError, InversionError
from rkmor.models.iosys import LTIModel
from rkmor.reductors.basic import LTIPGReductor


@defaults('sym_tol', 'dense_threshold')
def is_spd(M, sym_tol=1e-12, dense_threshold=500):
    """Check whether a matrix is symmetric positive definite.

    Parameters
    ----------
    M
        Square |NumPy array| or |SciPy spmatrix|.
    sym_tol
        Relative tolerance of the symmetry check.
    dense_threshold
        Sparse matrices of up to this size are checked via a dense Cholesky
        decomposition, larger ones via the smallest eigenvalue.
    """
    scale = abs(M).max()
    if scale == 0 or abs(M - M.T).max() > sym_tol * scale:
        return False
    if sps.issparse(M) and M.shape[0] > dense_threshold:
        try:
            lam = eigsh(M, k=1, which='SA', return_eigenvectors=False)[0]
        except ArpackNoConvergence:
            return False
        return lam > 0
    try:
        np.linalg.cholesky(M.toarray() if sps.issparse(M) else M)
    except np.linalg.LinAlgError:
        return False
    return True


def _parse_shifts(s0):
    if s0 is None or np.size(s0) == 0:
        return None
    return s0_vect(s0)


class RKReductor(BasicObject):
    """Rational Krylov reductor.

    Computes input (and output) rational Krylov subspaces for given
    expansion points and projects the full-order model onto them. For MIMO
    systems, tangential directions can be given. Otherwise, block Krylov
    subspaces are computed and the reduced order is in general larger than
    the number of shifts.

    After :meth:`reduce`, the following attributes are available (`None`
    where not applicable):

    - `V`, `W`: projection matrices,
    - `Bb`, `Rsylv`, `S_V`: input Sylvester equation
      :math:`A V - E V S_V - B R_{sylv} = 0` and
      :math:`B_\\perp = B - E V E_r^{-1} B_r`,
    - `Cb`, `Lsylv`, `S_W`: output Sylvester equation
      :math:`A^T W - E^T W S_W - C^T L_{sylv} = 0` and
      :math:`C_\\perp = C - C_r E_r^{-1} W^T E`.

    Parameters
    ----------
    fom
        The full-order |LTIModel| to reduce.
    """

    def __init__(self, fom):
        assert isinstance(fom, LTIModel)
        self.fom = fom
        self._pg_reductor = None
        self._clear()

    def _clear(self):
        self.V = self.W = None
        self.Bb = self.Rsylv = self.S_V = None
        self.Cb = self.Lsylv = self.S_W = None

    def _product(self, product):
        if isinstance(product, str):
            if product != 'auto':
                raise ValueError(f"product has to be 'auto', None or a matrix, got {product!r}")
            if self.fom.E is None or not is_spd(self.fom.E):
                return None
            self.logger.info('Using E as inner product')
            return self.fom.E
        return product

    def reduce(self, s0_inp=None, s0_out=None, Rt=None, Lt=None, product='auto', options=None):
        """Reduce using rational Krylov subspaces.

        Parameters
        ----------
        s0_inp
            Expansion points of the input Krylov subspace (vector or two-row
            matrix of shifts and multiplicities) or `None`.
        s0_out
            Expansion points of the output Krylov subspace or `None`.
        Rt
            Right tangential directions of shape `(fom.dim_input, len(s0_inp))`
            or `None` (block Krylov).
        Lt
            Left tangential directions of shape `(fom.dim_output, len(s0_out))`
            or `None` (block Krylov).
        product
            Inner product matrix for the orthogonalization, `None` for the
            Euclidean product or `'auto'` to use `fom.E` if it is symmetric
            positive definite.
        options
            |KrylovOptions| or dict of options.

        Returns
        -------
        rom
            Reduced |LTIModel|.
        """
        fom = self.fom
        s0_inp = _parse_shifts(s0_inp)
        s0_out = _parse_shifts(s0_out)
        if s0_inp is None and s0_out is None:
            raise ValueError('No expansion points assigned')
        if s0_inp is not None and s0_out is not None and len(s0_inp) != len(s0_out):
            raise ValueError('Inconsistent length of expansion point vectors')
        if Rt is not None and s0_inp is None:
            raise ValueError('Right tangential directions given without input shifts')
        if Lt is not None and s0_out is None:
            raise ValueError('Left tangential directions given without output shifts')
        P = self._product(product)
        options = KrylovOptions.from_dict(options)
        self._clear()

        C_T = fom.C.T
        if s0_out is None:
            self.logger.info('Computing input Krylov subspace')
            V, S, R = rational_arnoldi(fom.A, fom.E, fom.B, s0_inp, Rt=Rt, product=P, options=options)
            W = V
            self.S_V, self.Rsylv = S, R
        elif s0_inp is None:
            self.logger.info('Computing output Krylov subspace')
            W, S_W, L = rational_arnoldi(fom.A, fom.E, C_T, s0_out, Rt=Lt, product=P, trans=True,
                                         options=options)
            V = W
            self.S_W, self.Lsylv = S_W, L
        elif np.array_equal(s0_inp, s0_out):
            self.logger.info('Computing input and output Krylov subspaces')
            V, S, R, W, S_W, L = rational_arnoldi_two_sided(fom.A, fom.E, fom.B, fom.C, s0_inp, Rt=Rt, Lt=Lt,
                                                            product=P, options=options)
            self.S_V, self.Rsylv, self.S_W, self.Lsylv = S, R, S_W, L
        else:
            self.logger.info('Computing input and output Krylov subspaces for different shifts')
            V, S, R = rational_arnoldi(fom.A, fom.E, fom.B, s0_inp, Rt=Rt, product=P, options=options)
            W, S_W, L = rational_arnoldi(fom.A, fom.E, C_T, s0_out, Rt=Lt, product=P, trans=True,
                                         options=options)
            self.S_V, self.Rsylv, self.S_W, self.Lsylv = S, R, S_W, L

        if V.shape != W.shape:
            raise AccuracyError(f'Input and output bases have different dimensions ({V.shape[1]} and {W.shape[1]}) '
                                'after deflation')

        self._pg_reductor = LTIPGReductor(fom, W, V)
        rom = self._pg_reductor.reduce()
        cond = np.linalg.cond(rom.E)
        if cond > 1 / np.sqrt(np.finfo(float).eps):
            raise InversionError(f'Reduced E = W^T E V is (nearly) singular (condition number {cond:e})')

        if self.Rsylv is not None:
            self.Bb = sylvester_input_matrix(fom.E, fom.B, V, rom.E, rom.B)
        if self.Lsylv is not None:
            self.Cb = sylvester_output_matrix(fom.E, fom.C, W, rom.E, rom.C)
        self.V, self.W = V, W
        return rom

    def reconstruct(self, u):
        """Reconstruct high-dimensional state from reduced state `u`."""
        return self._pg_reductor.reconstruct(u)
