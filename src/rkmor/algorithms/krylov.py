# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

"""Module for computing rational Krylov subspaces' bases."""

import numpy as np
import scipy.sparse as sps

from rkmor.algorithms.gram_schmidt import orthogonalize_block
from rkmor.algorithms.shifts import check_conjugate_pairs, s0_vect
from rkmor.bindings.scipy import solver_for
from rkmor.core.base import BasicObject, ImmutableObject
from rkmor.core.defaults import defaults
from rkmor.core.exceptions import AccuracyError, InversionError
from rkmor.core.logger import getLogger


class KrylovOptions(ImmutableObject):
    """Options of the rational Krylov basis construction.

    Parameters
    ----------
    orth
        Orthogonalization method: `'mgs'` (modified Gram-Schmidt), `'2mgs'`
        (modified Gram-Schmidt with reorthogonalization), `'dgks'`
        (classical Gram-Schmidt with DGKS correction) or `'none'`
        (normalization only).
    lse
        Linear solve strategy for the shifted systems: `'sparse'`, `'full'`,
        `'hess'` or `'iterative'` (see :func:`~rkmor.bindings.scipy.solver_for`).
    deflation
        What to do with linearly dependent basis vectors: `'drop'` them (with
        a warning) or `'raise'` an :class:`~rkmor.core.exceptions.AccuracyError`.
    deflation_tol
        Relative norm reduction during orthogonalization below which a vector
        is considered linearly dependent.
    dgks_eta
        Reorthogonalization threshold of the `'dgks'` method.
    perturb_singular
        If `True`, a shift for which `A - s*E` is singular is perturbed by
        `sqrt(eps) * max(1, |s|)`. Otherwise an
        :class:`~rkmor.core.exceptions.InversionError` is raised.
    """

    _orth_methods = ('mgs', '2mgs', 'dgks', 'none')
    _lse_methods = ('sparse', 'full', 'hess', 'iterative')
    _deflation_methods = ('drop', 'raise')

    @defaults('orth', 'lse', 'deflation', 'deflation_tol', 'dgks_eta', 'perturb_singular')
    def __init__(self, orth='2mgs', lse='sparse', deflation='drop', deflation_tol=1e-12,
                 dgks_eta=1 / np.sqrt(2), perturb_singular=True):
        self.__auto_init(locals())
        self.validate()

    @classmethod
    def from_dict(cls, options):
        """Create |KrylovOptions| from a dict, an existing instance or `None`."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if not isinstance(options, dict):
            raise ValueError(f'Krylov options have to be given as dict, got {type(options)}')
        unknown = set(options) - set(cls._init_arguments)
        if unknown:
            raise ValueError(f'Unknown Krylov options: {sorted(unknown)}')
        return cls(**options)

    def validate(self):
        if self.orth not in self._orth_methods:
            raise ValueError(f'orth has to be one of {self._orth_methods}, got {self.orth!r}')
        if self.lse not in self._lse_methods:
            raise ValueError(f'lse has to be one of {self._lse_methods}, got {self.lse!r}')
        if self.deflation not in self._deflation_methods:
            raise ValueError(f'deflation has to be one of {self._deflation_methods}, got {self.deflation!r}')
        if not 0 <= self.deflation_tol < 1:
            raise ValueError(f'deflation_tol has to be in [0, 1), got {self.deflation_tol}')
        if not 0 < self.dgks_eta < 1:
            raise ValueError(f'dgks_eta has to be in (0, 1), got {self.dgks_eta}')


class _KrylovBasis(BasicObject):
    r"""Incrementally built basis together with its Sylvester equation.

    Maintains a real matrix `V` and matrices `S`, `R` such that

    .. math::
        A V - E V S - B R = 0,

    where for `trans == True` the pencil is replaced by its transpose.
    """

    def __init__(self, E, B, product, options, trans):
        self.E = None if E is None else (E.T if trans else E)
        self.B = B
        self.product = product
        self.options = options
        self.trans = trans
        n, m = B.shape
        self.V = np.zeros((n, 0))
        self.S = np.zeros((0, 0))
        self.R = np.zeros((m, 0))
        self.deflated = 0

    def _apply_E(self, Y):
        return Y if self.E is None else self.E @ Y

    def add_group(self, factorization, s, directions):
        """Add the vectors of one shift to the basis.

        `directions` holds one entry per occurrence of the shift: `None` for
        block Krylov vectors or a tangential direction vector. A repeated
        occurrence with equal direction continues the chain of derivative
        vectors, a different direction starts a new chain.
        """
        Y = K = prev = None
        for d in directions:
            if Y is not None and (d is None or np.array_equal(d, prev)):
                Yc = factorization.solve(self._apply_E(Y), trans=self.trans)
                Rc, Cc = None, K
            else:
                Rc = np.eye(self.B.shape[1]) if d is None else d.reshape((-1, 1))
                Yc = factorization.solve(self.B @ Rc, trans=self.trans)
                Cc = None
            Y, K = self._add(Yc, s, Rc, Cc)
            prev = d

    def _add(self, Yc, s, Rc, Cc):
        # on entry: A Yc = E Yc s + E V Cc + B Rc
        k = self.V.shape[1]
        b = Yc.shape[1]
        scale = np.max(np.linalg.norm(Yc, axis=0))
        if scale > 0:
            Yc = Yc / scale
            Rc = None if Rc is None else Rc / scale
            Cc = None if Cc is None else Cc / scale
        Cc = np.zeros((k, b)) if Cc is None else Cc
        Rc = np.zeros((self.B.shape[1], b)) if Rc is None else Rc

        if np.imag(s) == 0:
            Y = Yc.real
            Sx = np.real(s) * np.eye(b)
            C = Cc.real
            Rx = Rc.real
        else:
            Y = np.hstack([Yc.real, Yc.imag])
            a, c = s.real, s.imag
            Ib = np.eye(b)
            Sx = np.block([[a * Ib, c * Ib], [-c * Ib, a * Ib]])
            C = np.hstack([Cc.real, Cc.imag])
            Rx = np.hstack([Rc.real, Rc.imag])

        Q, H, T, deflated = orthogonalize_block(self.V, Y, product=self.product, method=self.options.orth,
                                                deflation_tol=self.options.deflation_tol,
                                                dgks_eta=self.options.dgks_eta)
        if deflated:
            if self.options.deflation == 'raise':
                raise AccuracyError(f'Linearly dependent Krylov vector for shift s = {s}')
            self.logger.warning(f'Dropping {len(deflated)} linearly dependent Krylov vector(s) for shift s = {s}')
            self.deflated += len(deflated)

        # Q = (Y - V H) T^+, so A Q = E [V, Q] S_new[:, k:] + B R_new[:, k:]
        Tp = np.linalg.pinv(T) if T.size else np.zeros((Y.shape[1], 0))
        kk = k + Q.shape[1]
        S = np.zeros((kk, kk))
        S[:k, :k] = self.S
        S[:k, k:] = (H @ Sx + C - self.S @ H) @ Tp
        S[k:, k:] = T @ Sx @ Tp
        self.S = S
        self.R = np.hstack([self.R, (Rx - self.R @ H) @ Tp])
        self.V = np.hstack([self.V, Q])

        K = np.vstack([H, T])
        if np.imag(s) != 0:
            K = K[:, :b] + 1j * K[:, b:]
        return Yc, K


def _dense(M):
    return M.toarray() if sps.issparse(M) else np.asarray(M, dtype=float)


def _factor(solver, A, E, s, options, logger):
    try:
        return solver.factor(A, E, s), s
    except InversionError as e:
        if not options.perturb_singular:
            raise InversionError(f'A - s*E is singular for shift s = {s}') from e
        s_pert = s + np.sqrt(np.finfo(float).eps) * max(1., abs(s))
        logger.warning(f'A - s*E is singular for shift s = {s}, using perturbed shift {s_pert}')
        try:
            return solver.factor(A, E, s_pert), s_pert
        except InversionError as e2:
            raise InversionError(f'A - s*E is singular for shift s = {s} and perturbed shift {s_pert}') from e2


def _directions(D, dim, k, name):
    if D is None:
        return None
    D = np.array(D)
    D = D.astype(complex if np.iscomplexobj(D) else float)
    if D.ndim == 1 and dim == 1:
        D = D.reshape((1, -1))
    if D.shape != (dim, k):
        raise ValueError(f'{name} has to have shape {(dim, k)}, got {D.shape}')
    return D


def _shift_groups(s0, *directions):
    """Group consecutive equal shifts with their directions.

    Only real shifts and shifts with positive imaginary part are kept. Their
    conjugates are represented by the real and imaginary parts of the basis
    vectors.
    """
    tol = 100 * np.finfo(float).eps
    groups = []
    for i, s in enumerate(s0):
        if abs(s.imag) <= tol * abs(s):
            s = complex(s.real, 0.)
        elif s.imag < 0:
            continue
        dirs = tuple(None if D is None else D[:, i] for D in directions)
        if groups and groups[-1][0] == s:
            for g, d in zip(groups[-1][1], dirs):
                g.append(d)
        else:
            groups.append((s, tuple([d] for d in dirs)))
    return [(s if s.imag != 0 else s.real, dirs) for s, dirs in groups]


def _check_order(A, s0, D, width):
    n = A.shape[0]
    r = len(s0) * (width if D is None else 1)
    if r > n:
        raise ValueError(f'Requested reduced order {r} is larger than the full order {n}')


def rational_arnoldi(A, E, B, s0, Rt=None, product=None, trans=False, options=None):
    r"""Rational Arnoldi algorithm with Sylvester equation tracking.

    If `trans == False`, computes a real basis :math:`V`, orthonormal w.r.t.
    `product`, of the rational Krylov subspace

    .. math::
        \mathrm{span}\{
            (A - s_1 E)^{-1} B r_1,
            (A - s_2 E)^{-1} B r_2,
            \ldots,
            (A - s_k E)^{-1} B r_k
        \},

    together with matrices :math:`S` and :math:`R` satisfying

    .. math::
        A V - E V S - B R = 0.

    If `trans == True`, `A` and `E` are replaced by their transposes (and `B`
    is expected to be the transposed output matrix :math:`C^T`).

    Shifts are allowed to repeat. For `m` consecutive occurrences of the
    same shift with the same direction

    .. math::
        (A - s E)^{-1} B r,
        (A - s E)^{-1} E (A - s E)^{-1} B r,
        \ldots,
        \left((A - s E)^{-1} E\right)^{m - 1} (A - s E)^{-1} B r

    are added. If `Rt` is `None`, all columns of `B` are used for every shift
    (block Krylov subspace). Complex shifts have to come in conjugate pairs
    with conjugate directions. Each pair contributes the real and imaginary
    parts of its basis vectors.

    Parameters
    ----------
    A
        Real |NumPy array| or |SciPy spmatrix| A.
    E
        Real |NumPy array| or |SciPy spmatrix| E or `None` (identity).
    B
        Real matrix of shape `(n, m)`.
    s0
        Shifts in any format accepted by :func:`~rkmor.algorithms.shifts.s0_vect`.
    Rt
        Tangential directions of shape `(m, len(s0))` or `None`.
    product
        Symmetric positive definite inner product matrix or `None`.
    trans
        Boolean, see above.
    options
        |KrylovOptions| or dict of options.

    Returns
    -------
    V
        Basis as a real 2D |NumPy array|.
    S
        Real 2D |NumPy array|.
    R
        Real 2D |NumPy array|.
    """
    logger = getLogger('rkmor.algorithms.krylov.rational_arnoldi')
    options = KrylovOptions.from_dict(options)
    s0 = s0_vect(s0)
    B = _dense(B)
    if B.ndim == 1:
        B = B.reshape((-1, 1))
    if A.shape[0] != A.shape[1] or B.shape[0] != A.shape[0]:
        raise ValueError('A and B have incompatible shapes')
    Rt = _directions(Rt, B.shape[1], len(s0), 'Rt')
    check_conjugate_pairs(s0, Rt)
    _check_order(A, s0, Rt, B.shape[1])

    basis = _KrylovBasis(E, B, product, options, trans)
    solver = solver_for(options.lse)
    with logger.block(f'Computing rational Krylov basis for {len(s0)} shift(s) ...'):
        for s, (dirs,) in _shift_groups(s0, Rt):
            factorization, s = _factor(solver, A, E, s, options, logger)
            basis.add_group(factorization, s, dirs)
            del factorization
    return basis.V, basis.S, basis.R


def rational_arnoldi_two_sided(A, E, B, C, s0, Rt=None, Lt=None, product=None, options=None):
    r"""Two-sided rational Arnoldi algorithm.

    Computes the bases `V` and `W` of :func:`rational_arnoldi` for the input
    side (`A`, `E`, `B`, `Rt`) and the output side (`A^T`, `E^T`, `C^T`,
    `Lt`) using a single factorization of :math:`A - s E` per shift, so that

    .. math::
        A V - E V S - B R &= 0, \\
        A^T W - E^T W S_W - C^T L &= 0.

    Parameters
    ----------
    A
        Real |NumPy array| or |SciPy spmatrix| A.
    E
        Real |NumPy array| or |SciPy spmatrix| E or `None` (identity).
    B
        Real matrix of shape `(n, m)`.
    C
        Real matrix of shape `(p, n)`.
    s0
        Shifts in any format accepted by :func:`~rkmor.algorithms.shifts.s0_vect`.
    Rt
        Right tangential directions of shape `(m, len(s0))` or `None`.
    Lt
        Left tangential directions of shape `(p, len(s0))` or `None`.
    product
        Symmetric positive definite inner product matrix or `None`.
    options
        |KrylovOptions| or dict of options.

    Returns
    -------
    V, S, R, W, S_W, L
        Real 2D |NumPy arrays|.
    """
    logger = getLogger('rkmor.algorithms.krylov.rational_arnoldi_two_sided')
    options = KrylovOptions.from_dict(options)
    s0 = s0_vect(s0)
    B = _dense(B)
    C = _dense(C)
    if B.ndim == 1:
        B = B.reshape((-1, 1))
    if C.ndim == 1:
        C = C.reshape((1, -1))
    if A.shape[0] != A.shape[1] or B.shape[0] != A.shape[0] or C.shape[1] != A.shape[0]:
        raise ValueError('A, B and C have incompatible shapes')
    Rt = _directions(Rt, B.shape[1], len(s0), 'Rt')
    Lt = _directions(Lt, C.shape[0], len(s0), 'Lt')
    check_conjugate_pairs(s0, Rt)
    check_conjugate_pairs(s0, Lt)
    _check_order(A, s0, Rt, B.shape[1])
    _check_order(A, s0, Lt, C.shape[0])

    basis_V = _KrylovBasis(E, B, product, options, False)
    basis_W = _KrylovBasis(E, C.T, product, options, True)
    solver = solver_for(options.lse)
    with logger.block(f'Computing two-sided rational Krylov bases for {len(s0)} shift(s) ...'):
        for s, (rdirs, ldirs) in _shift_groups(s0, Rt, Lt):
            factorization, s = _factor(solver, A, E, s, options, logger)
            basis_V.add_group(factorization, s, rdirs)
            basis_W.add_group(factorization, s, ldirs)
            del factorization
    return basis_V.V, basis_V.S, basis_V.R, basis_W.V, basis_W.S, basis_W.R
