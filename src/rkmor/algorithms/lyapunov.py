# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
from scipy.linalg import solve, solve_continuous_lyapunov

from rkmor.core.exceptions import InversionError


def _solve_lyap_dense_check_args(A, E, Q):
    assert isinstance(A, np.ndarray)
    assert A.ndim == 2
    assert A.shape[0] == A.shape[1]
    if E is not None:
        assert isinstance(E, np.ndarray)
        assert E.shape == A.shape
    assert isinstance(Q, np.ndarray)
    assert Q.shape == A.shape


def solve_cont_lyap_dense_rhs(A, E, Q, trans=False):
    """Compute the solution of a continuous-time Lyapunov equation with general right-hand side.

    Returns the solution :math:`X` of

    - if trans is `False`:

      .. math::
          A X E^T + E X A^T + Q = 0,

    - if trans is `True`:

      .. math::
          A^T X E + E^T X A + Q = 0,

    where :math:`E = I` if `E` is `None`.

    If `E` is not `None`, the equation is reduced to a standard Lyapunov
    equation by inverting `E` and solved with
    `scipy.linalg.solve_continuous_lyapunov`.

    Parameters
    ----------
    A
        The matrix A as a 2D |NumPy array|.
    E
        The matrix E as a 2D |NumPy array| or `None`.
    Q
        The right-hand side as a square 2D |NumPy array|.
    trans
        Whether the first matrix in the Lyapunov equation is transposed.

    Returns
    -------
    X
        Lyapunov equation solution as a |NumPy array|.
    """
    _solve_lyap_dense_check_args(A, E, Q)
    if trans:
        A = A.T
        E = None if E is None else E.T
    if E is not None:
        try:
            A = solve(E, A)
            Q = solve(E, solve(E, Q.T).T)
        except np.linalg.LinAlgError as e:
            raise InversionError('E is singular') from e
    return solve_continuous_lyapunov(A, -Q)


def solve_lyap_dense(A, E, B, trans=False):
    """Compute the solution of a continuous-time Lyapunov equation.

    Returns the solution :math:`X` of

    - if trans is `False`:

      .. math::
          A X E^T + E X A^T + B B^T = 0,

    - if trans is `True`:

      .. math::
          A^T X E + E^T X A + B^T B = 0.

    See :func:`solve_cont_lyap_dense_rhs`.
    """
    BBT = B.T @ B if trans else B @ B.T
    return solve_cont_lyap_dense_rhs(A, E, BBT, trans=trans)
