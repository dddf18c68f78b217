# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

r"""Sylvester equations of rational Krylov subspaces.

A basis :math:`V` of a rational Krylov subspace satisfies a Sylvester
equation

.. math::
    A V - E V S - B R = 0,

where the eigenvalues of :math:`S` are the shifts. For a reduced model
:math:`(A_r, B_r, C_r, E_r) = (W^T A V, W^T B, C V, W^T E V)` this can be
rewritten as

.. math::
    A V - E V E_r^{-1} A_r - B_\perp R = 0,
    \quad B_\perp = B - E V E_r^{-1} B_r,

which is used to certify interpolation and for error bounds.
"""

import numpy as np
import scipy.linalg as spla
import scipy.sparse as sps

from rkmor.core.exceptions import InversionError


def _dense(M):
    return M.toarray() if sps.issparse(M) else np.asarray(M)


def sylvester_residual(A, E, B, V, S, R, trans=False):
    """Frobenius norm of :math:`A V - E V S - B R`.

    If `trans` is `True`, `A` and `E` are transposed (and `B` is expected to
    be :math:`C^T`).
    """
    if trans:
        A = A.T
        E = None if E is None else E.T
    EV = V if E is None else E @ V
    res = A @ V - _dense(EV) @ S - _dense(B) @ R
    return np.linalg.norm(_dense(res))


def recover_sylvester(A, E, B, V):
    r"""Compute :math:`S` and :math:`R` from a basis :math:`V`.

    Solves :math:`[E V, B] [S; R] = A V` in the least-squares sense. If `V`
    spans a rational Krylov subspace, the residual is zero and the solution
    is unique whenever :math:`[E V, B]` has full column rank.

    Parameters
    ----------
    A
        The matrix A.
    E
        The matrix E or `None`.
    B
        The matrix B.
    V
        Basis as a 2D |NumPy array|.

    Returns
    -------
    S
        2D |NumPy array| of shape `(r, r)`.
    R
        2D |NumPy array| of shape `(m, r)`.
    residual
        Frobenius norm of :math:`A V - E V S - B R`.
    """
    B = _dense(B)
    EV = _dense(V if E is None else E @ V)
    M = np.hstack([EV, B])
    AV = _dense(A @ V)
    X = spla.lstsq(M, AV)[0]
    r = V.shape[1]
    S, R = X[:r], X[r:]
    return S, R, np.linalg.norm(AV - M @ X)


def sylvester_input_matrix(E, B, V, Er, Br):
    r"""Compute :math:`B_\perp = B - E V E_r^{-1} B_r`."""
    EV = _dense(V if E is None else E @ V)
    try:
        return _dense(B) - EV @ spla.solve(Er, Br)
    except spla.LinAlgError as e:
        raise InversionError('Reduced E is singular') from e


def sylvester_output_matrix(E, C, W, Er, Cr):
    r"""Compute :math:`C_\perp = C - C_r E_r^{-1} W^T E`."""
    WTE = _dense(W.T if E is None else (E.T @ W).T)
    try:
        return _dense(C) - spla.solve(Er.T, Cr.T).T @ WTE
    except spla.LinAlgError as e:
        raise InversionError('Reduced E is singular') from e
