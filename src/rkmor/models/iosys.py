# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
import scipy.linalg as spla
import scipy.sparse as sps
from scipy.sparse.linalg import splu

from rkmor.core.base import ImmutableObject
from rkmor.core.defaults import defaults
from rkmor.core.exceptions import InversionError


def _to_matrix(M, name):
    if sps.issparse(M):
        M = sps.csc_matrix(M)
    else:
        M = np.array(M)
        if M.ndim == 1:
            M = M.reshape((-1, 1)) if name == 'B' else M.reshape((1, -1))
        elif M.ndim == 0:
            M = M.reshape((1, 1))
    if M.ndim != 2:
        raise ValueError(f'{name} has to be a matrix')
    if not np.isrealobj(M):
        raise ValueError(f'{name} has to be real')
    return M.astype(float)


def _dense(M):
    return M.toarray() if sps.issparse(M) else np.asarray(M)


class LTIModel(ImmutableObject):
    r"""Class for linear time-invariant systems.

    This class describes input-state-output systems given by

    .. math::
        E \dot{x}(t) & = A x(t) + B u(t), \\
                y(t) & = C x(t) + D u(t),

    where :math:`A`, :math:`B`, :math:`C`, :math:`D`, and :math:`E` are real
    matrices given as |NumPy arrays| or |SciPy spmatrices|. The transfer
    function of the system is

    .. math::
        H(s) = C (s E - A)^{-1} B + D.

    Parameters
    ----------
    A
        The matrix A of shape `(n, n)`.
    B
        The matrix B of shape `(n, m)`.
    C
        The matrix C of shape `(p, n)`.
    D
        The matrix D of shape `(p, m)` or `None` (zero matrix).
    E
        The matrix E of shape `(n, n)` or `None` (identity matrix).
    name
        Name of the system.

    Attributes
    ----------
    order
        The order of the system (the state dimension `n`).
    dim_input
        The number of inputs `m`.
    dim_output
        The number of outputs `p`.
    """

    def __init__(self, A, B, C, D=None, E=None, name=None):
        A = _to_matrix(A, 'A')
        B = _to_matrix(B, 'B')
        C = _to_matrix(C, 'C')
        n = A.shape[0]
        if A.shape != (n, n):
            raise ValueError(f'A has to be square, got shape {A.shape}')
        if B.shape[0] != n:
            raise ValueError(f'B has to have {n} rows, got shape {B.shape}')
        if C.shape[1] != n:
            raise ValueError(f'C has to have {n} columns, got shape {C.shape}')
        if D is not None:
            D = _dense(_to_matrix(D, 'D'))
            if D.shape != (C.shape[0], B.shape[1]):
                raise ValueError(f'D has to have shape {(C.shape[0], B.shape[1])}, got shape {D.shape}')
        if E is not None:
            E = _to_matrix(E, 'E')
            if E.shape != (n, n):
                raise ValueError(f'E has to have shape {(n, n)}, got shape {E.shape}')

        self.__auto_init(locals())
        self.order = n
        self.dim_input = B.shape[1]
        self.dim_output = C.shape[0]

    @classmethod
    def from_matrices(cls, A, B, C, D=None, E=None, name=None):
        """Create |LTIModel| from matrices.

        |NumPy arrays| are copied, 1D arrays are interpreted as the single
        column of `B` or the single row of `C`.
        """
        return cls(A, B, C, D=D, E=E, name=name)

    def __str__(self):
        return (
            f'{self.name}\n'
            f'    class: {self.__class__.__name__}\n'
            f'    number of equations: {self.order}\n'
            f'    number of inputs:    {self.dim_input}\n'
            f'    number of outputs:   {self.dim_output}\n'
            f'    {"descriptor" if self.is_descriptor else "standard"} system\n'
            f'    {"sparse" if self.is_sparse else "dense"} matrices'
        )

    @property
    def is_siso(self):
        return self.dim_input == 1 and self.dim_output == 1

    @property
    def is_sparse(self):
        return sps.issparse(self.A)

    @property
    def is_descriptor(self):
        """`True` if `E` is given and not the identity."""
        if self.E is None:
            return False
        if sps.issparse(self.E):
            return (self.E != sps.eye(self.order, format='csc')).nnz > 0
        return not np.array_equal(self.E, np.eye(self.order))

    @property
    def D_or_zero(self):
        return self.D if self.D is not None else np.zeros((self.dim_output, self.dim_input))

    @property
    def E_or_identity(self):
        if self.E is not None:
            return self.E
        return sps.eye(self.order, format='csc') if self.is_sparse else np.eye(self.order)

    def to_dense(self):
        """Return the system with all matrices converted to |NumPy arrays|."""
        return self.with_(A=_dense(self.A), B=_dense(self.B), C=_dense(self.C),
                          E=None if self.E is None else _dense(self.E))

    def eval_tf(self, s):
        r"""Evaluate the transfer function.

        .. math::
            H(s) = C (s E - A)^{-1} B + D.

        Parameters
        ----------
        s
            Complex number.

        Returns
        -------
        tfs
            Transfer function evaluated at `s` as a 2D |NumPy array| of shape
            `(dim_output, dim_input)`.
        """
        X = self._solve_shifted(s, _dense(self.B))
        return _dense(self.C @ X) + self.D_or_zero

    def eval_dtf(self, s):
        r"""Evaluate the derivative of the transfer function.

        .. math::
            \frac{d H}{d s}(s) = -C (s E - A)^{-1} E (s E - A)^{-1} B.
        """
        X = self._solve_shifted(s, _dense(self.B))
        X = self._solve_shifted(s, _dense(self.E_or_identity @ X))
        return -_dense(self.C @ X)

    def _solve_shifted(self, s, F):
        M = s * self.E_or_identity - self.A
        try:
            if sps.issparse(M):
                return splu(sps.csc_matrix(M)).solve(F.astype(np.promote_types(M.dtype, F.dtype)))
            return spla.solve(M, F)
        except (spla.LinAlgError, RuntimeError) as e:
            raise InversionError(f'sE - A is singular for s = {s}') from e

    def poles(self):
        """Compute system poles.

        Returns
        -------
        One-dimensional |NumPy array| of system poles.
        """
        if self.E is None:
            return spla.eigvals(_dense(self.A))
        return spla.eigvals(_dense(self.A), _dense(self.E))

    @defaults('margin')
    def is_stable(self, margin=0.):
        """`True` if all poles have real part below `-margin`."""
        poles = self.poles()
        return bool(np.all(np.isfinite(poles)) and np.all(poles.real < -margin))

    def gramian(self, typ='c'):
        """Compute the controllability (`'c'`) or observability (`'o'`) Gramian.

        For descriptor systems, the observability Gramian is the solution of
        :math:`A^T Q E + E^T Q A + C^T C = 0`.
        """
        from rkmor.algorithms.lyapunov import solve_lyap_dense
        A = _dense(self.A)
        E = None if self.E is None else _dense(self.E)
        if typ == 'c':
            return solve_lyap_dense(A, E, _dense(self.B), trans=False)
        elif typ == 'o':
            return solve_lyap_dense(A, E, _dense(self.C), trans=True)
        raise ValueError(f'Unknown Gramian type {typ!r}')

    def h2_norm(self):
        r"""Compute the :math:`\mathcal{H}_2`-norm of the |LTIModel|.

        The norm is computed from the controllability Gramian :math:`P` as
        :math:`\sqrt{\operatorname{tr}(C P C^T)}`. For unstable systems or a
        nonzero `D` the norm is infinite.
        """
        if not self.is_stable():
            self.logger.warning('System is not stable, H2-norm is infinite')
            return np.inf
        if self.D is not None and np.any(self.D != 0):
            return np.inf
        P = self.gramian('c')
        C = _dense(self.C)
        return np.sqrt(max(np.trace(C @ P @ C.T), 0.))

    def __sub__(self, other):
        """Error system with block-diagonal state matrices."""
        if not isinstance(other, LTIModel):
            return NotImplemented
        if (self.dim_input, self.dim_output) != (other.dim_input, other.dim_output):
            raise ValueError('Systems have different numbers of inputs or outputs')
        sparse = self.is_sparse or other.is_sparse
        block_diag = sps.block_diag if sparse else spla.block_diag
        A = block_diag((self.A, other.A), format='csc') if sparse else block_diag(self.A, other.A)
        B = np.vstack((_dense(self.B), _dense(other.B)))
        C = np.hstack((_dense(self.C), -_dense(other.C)))
        D = self.D_or_zero - other.D_or_zero
        if self.E is None and other.E is None:
            E = None
        elif sparse:
            E = block_diag((self.E_or_identity, other.E_or_identity), format='csc')
        else:
            E = block_diag(_dense(self.E_or_identity), _dense(other.E_or_identity))
        return LTIModel(A, B, C, D=D if np.any(D != 0) else None, E=E,
                        name=f'{self.name}_minus_{other.name}')
