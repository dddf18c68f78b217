# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
import scipy
import scipy.sparse as sps
from packaging.version import parse
from scipy.linalg import hessenberg, lu_factor, lu_solve
from scipy.sparse.linalg import lgmres, splu

from rkmor.core.defaults import defaults
from rkmor.core.exceptions import InversionError
from rkmor.solvers.interface import Factorization, Solver

SCIPY_1_14_OR_NEWER = parse(scipy.__version__) >= parse('1.14')


def _shifted(A, E, s):
    if E is None:
        E = sps.eye(A.shape[0], format='csc') if sps.issparse(A) else np.eye(A.shape[0])
    if np.imag(s) == 0:
        s = np.real(s)
    return A - s * E


def _promoted(matrix_dtype, F):
    return F.astype(np.promote_types(matrix_dtype, F.dtype), copy=False)


def _check_pivots(diag, s):
    diag = np.abs(diag)
    if diag.size == 0:
        return
    if diag.min() <= diag.size * np.finfo(float).eps * diag.max():
        raise InversionError(f'Shifted matrix A - s*E is singular for s = {s}')


class ScipyLinearFactorization(Factorization):

    @defaults('check_finite')
    def __init__(self, check_finite=True):
        self.check_finite = check_finite

    def solve(self, F, trans=False):
        if F.ndim == 1:
            return self.solve(F[:, np.newaxis], trans=trans)[:, 0]
        X = self._solve_impl(F, trans)
        if self.check_finite and not np.isfinite(np.sum(X)):
            raise InversionError('Result contains non-finite values')
        return X

    def _solve_impl(self, F, trans):
        raise NotImplementedError


class _LUFactorization(ScipyLinearFactorization):

    def __init__(self, matrix, s):
        super().__init__()
        self.lu_and_piv = lu_factor(matrix, check_finite=False)
        self.dtype = matrix.dtype
        _check_pivots(np.diag(self.lu_and_piv[0]), s)

    def _solve_impl(self, F, trans):
        return lu_solve(self.lu_and_piv, _promoted(self.dtype, F), trans=1 if trans else 0, check_finite=False)


class _SpLUFactorization(ScipyLinearFactorization):

    def __init__(self, matrix, s, permc_spec):
        super().__init__()
        try:
            self.lu = splu(matrix, permc_spec=permc_spec)
        except RuntimeError as e:
            raise InversionError(f'Shifted matrix A - s*E is singular for s = {s}') from e
        self.dtype = matrix.dtype
        _check_pivots(self.lu.U.diagonal(), s)

    def _solve_impl(self, F, trans):
        trans = 'T' if trans else 'N'
        if np.iscomplexobj(F) and not np.issubdtype(self.dtype, np.complexfloating):
            # SuperLU solves only in the dtype of the factors
            return (self.lu.solve(np.asfortranarray(F.real), trans=trans)
                    + 1j * self.lu.solve(np.asfortranarray(F.imag), trans=trans))
        return self.lu.solve(np.asfortranarray(_promoted(self.dtype, F)), trans=trans)


class _HessenbergFactorization(ScipyLinearFactorization):

    def __init__(self, H, Q, E_lu, s):
        super().__init__()
        self.Q = Q
        self.E_lu = E_lu
        HmsI = H - s * np.eye(H.shape[0]) if np.imag(s) != 0 else H - np.real(s) * np.eye(H.shape[0])
        self.lu_and_piv = lu_factor(HmsI, check_finite=False)
        self.dtype = HmsI.dtype
        _check_pivots(np.diag(self.lu_and_piv[0]), s)

    def _solve_impl(self, F, trans):
        # A - s*E = E Q (H - s*I) Q^T
        F = _promoted(self.dtype, F)
        if not trans:
            if self.E_lu is not None:
                F = lu_solve(self.E_lu, F, check_finite=False)
            X = lu_solve(self.lu_and_piv, self.Q.T @ F, check_finite=False)
            return self.Q @ X
        X = lu_solve(self.lu_and_piv, self.Q.T @ F, trans=1, check_finite=False)
        X = self.Q @ X
        if self.E_lu is not None:
            X = lu_solve(self.E_lu, X, trans=1, check_finite=False)
        return X


class _IterativeFactorization(ScipyLinearFactorization):

    def __init__(self, matrix, tol, maxiter, inner_m, outer_k):
        super().__init__()
        self.matrix = matrix
        self.tol = tol
        self.maxiter = maxiter
        self.inner_m = inner_m
        self.outer_k = outer_k

    def _solve_impl(self, F, trans):
        matrix = self.matrix.T if trans else self.matrix
        F = _promoted(matrix.dtype, F)
        X = np.empty((matrix.shape[1], F.shape[1]), dtype=F.dtype, order='F')
        for i in range(F.shape[1]):
            if SCIPY_1_14_OR_NEWER:
                X[:, i], info = lgmres(matrix, F[:, i], atol=self.tol, rtol=self.tol, maxiter=self.maxiter,
                                       inner_m=self.inner_m, outer_k=self.outer_k)
            else:
                X[:, i], info = lgmres(matrix, F[:, i], tol=self.tol, atol=self.tol, maxiter=self.maxiter,
                                       inner_m=self.inner_m, outer_k=self.outer_k)
            if info > 0:
                raise InversionError(f'lgmres failed to converge after {info} iterations')
            elif info < 0:
                raise InversionError(f'lgmres failed with error code {info} (illegal input or breakdown)')
        return X


class ScipyLUSolver(Solver):
    """Dense LU decomposition (`scipy.linalg.lu_factor`) of each shifted matrix."""

    def factor(self, A, E, s):
        matrix = _shifted(A.toarray() if sps.issparse(A) else A,
                          E.toarray() if sps.issparse(E) else E, s)
        return _LUFactorization(np.asarray(matrix), s)


class ScipySpLUSolver(Solver):
    """Sparse LU decomposition (`scipy.sparse.linalg.splu`) of each shifted matrix."""

    @defaults('permc_spec')
    def __init__(self, permc_spec='COLAMD'):
        self.__auto_init(locals())

    def factor(self, A, E, s):
        matrix = sps.csc_matrix(_shifted(sps.csc_matrix(A), None if E is None else sps.csc_matrix(E), s))
        return _SpLUFactorization(matrix, s, self.permc_spec)


class ScipyHessenbergSolver(Solver):
    """Shifted solves via a Hessenberg decomposition computed once per pencil.

    The pencil is transformed to :math:`E^{-1} A = Q H Q^T` with upper
    Hessenberg :math:`H`. Each shift then only requires the factorization
    of :math:`H - s I`.
    """

    def __init__(self):
        self._pencil = None

    def _decompose(self, A, E):
        if self._pencil is not None and self._pencil[0] is A and self._pencil[1] is E:
            return self._pencil[2]
        self.logger.info('Computing Hessenberg decomposition of the pencil')
        A_dense = A.toarray() if sps.issparse(A) else np.asarray(A)
        E_lu = None
        if E is not None:
            E_dense = E.toarray() if sps.issparse(E) else np.asarray(E)
            E_lu = lu_factor(E_dense, check_finite=False)
            if np.abs(np.diag(E_lu[0])).min() <= E_dense.shape[0] * np.finfo(float).eps * np.abs(E_dense).max():
                raise InversionError('E is singular, Hessenberg solves need an invertible E')
            A_dense = lu_solve(E_lu, A_dense, check_finite=False)
        H, Q = hessenberg(A_dense, calc_q=True)
        self._pencil = (A, E, (H, Q, E_lu))
        return H, Q, E_lu

    def factor(self, A, E, s):
        H, Q, E_lu = self._decompose(A, E)
        return _HessenbergFactorization(H, Q, E_lu, s)


class ScipyLGMRESSolver(Solver):
    """Iterative solution of the shifted systems using `scipy.sparse.linalg.lgmres`."""

    @defaults('tol', 'maxiter', 'inner_m', 'outer_k')
    def __init__(self, tol=1e-10, maxiter=1000, inner_m=39, outer_k=3):
        self.__auto_init(locals())

    def factor(self, A, E, s):
        matrix = _shifted(sps.csr_matrix(A) if sps.issparse(A) else A,
                          None if E is None else (sps.csr_matrix(E) if sps.issparse(E) else E), s)
        return _IterativeFactorization(matrix, self.tol, self.maxiter, self.inner_m, self.outer_k)


_SOLVERS = {
    'sparse': ScipySpLUSolver,
    'full': ScipyLUSolver,
    'hess': ScipyHessenbergSolver,
    'iterative': ScipyLGMRESSolver,
}


def solver_for(lse):
    """Return the |Solver| for the linear solve strategy `lse`.

    Parameters
    ----------
    lse
        One of `'sparse'` (sparse LU), `'full'` (dense LU), `'hess'`
        (Hessenberg-reduced dense solves) and `'iterative'` (LGMRES).

    Returns
    -------
    The |Solver|.
    """
    try:
        return _SOLVERS[lse]()
    except KeyError:
        raise ValueError(f'Unknown linear solve strategy {lse!r}, expected one of {sorted(_SOLVERS)}') from None
