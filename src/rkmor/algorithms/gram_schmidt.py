# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np


def inner(X, Y, product=None):
    """Inner products `X^T P Y` of the columns of two real 2D arrays."""
    return X.T @ Y if product is None else X.T @ (product @ Y)


def norm(x, product=None):
    """Norm of a single column vector w.r.t. `product`."""
    if product is None:
        return np.linalg.norm(x)
    return np.sqrt(max(float(x @ (product @ x)), 0.))


def _mgs_pass(basis, y, h, product):
    for j in range(basis.shape[1]):
        p = inner(basis[:, j], y, product)
        y -= p * basis[:, j]
        h[j] += p


def _cgs_pass(basis, y, h, product):
    p = inner(basis, y, product)
    y -= basis @ p
    h += p


def orthogonalize_block(V, Y, product=None, method='2mgs', deflation_tol=1e-12, dgks_eta=1 / np.sqrt(2)):
    r"""Orthonormalize a block of columns against an orthonormal basis.

    Computes a decomposition

    .. math::
        Y = V H + Q T

    where the columns of `Q` are orthonormal and orthogonal to `V` (unless
    `method` is `'none'`). Columns of `Y` which are linearly dependent on the
    columns of `V` and the preceding columns of `Y` are deflated: they do not
    contribute a column to `Q`, so `T` can have fewer rows than columns.

    Parameters
    ----------
    V
        Real 2D |NumPy array| with orthonormal columns (possibly with zero
        columns).
    Y
        Real 2D |NumPy array| of new columns.
    product
        The inner product matrix or `None` (Euclidean product).
    method
        `'mgs'` (one modified Gram-Schmidt pass), `'2mgs'` (two passes),
        `'dgks'` (classical Gram-Schmidt with DGKS reorthogonalization) or
        `'none'` (normalization only).
    deflation_tol
        A column is deflated if its norm after orthogonalization is at most
        `deflation_tol` times its norm before orthogonalization.
    dgks_eta
        For `'dgks'`, reorthogonalize if the norm decreased by more than this
        factor.

    Returns
    -------
    Q
        The new orthonormal columns.
    H
        Coefficient matrix of shape `(V.shape[1], Y.shape[1])`.
    T
        Upper trapezoidal coefficient matrix of shape `(Q.shape[1], Y.shape[1])`.
    deflated
        List of indices of deflated columns of `Y`.
    """
    assert method in ('mgs', '2mgs', 'dgks', 'none')
    k, b = V.shape[1], Y.shape[1]
    H = np.zeros((k, b))
    T = np.zeros((b, b))
    Q = np.zeros((V.shape[0], b))
    kept, deflated = [], []

    for i in range(b):
        y = np.array(Y[:, i], dtype=float)
        h = np.zeros(k + len(kept))
        basis = np.hstack([V, Q[:, kept]]) if kept else V
        initial_norm = norm(y, product)

        if method == 'mgs':
            _mgs_pass(basis, y, h, product)
        elif method == '2mgs':
            _mgs_pass(basis, y, h, product)
            _mgs_pass(basis, y, h, product)
        elif method == 'dgks':
            _cgs_pass(basis, y, h, product)
            if norm(y, product) < dgks_eta * initial_norm:
                _cgs_pass(basis, y, h, product)
        nrm = norm(y, product)

        H[:, i] = h[:k]
        T[:len(kept), i] = h[k:]
        if nrm <= deflation_tol * initial_norm or nrm == 0:
            deflated.append(i)
            continue
        Q[:, i] = y / nrm
        T[len(kept), i] = nrm
        kept.append(i)

    return Q[:, kept], H, T[:len(kept)], deflated
