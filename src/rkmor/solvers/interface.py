# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

from rkmor.core.base import BasicObject, ImmutableObject, abstractmethod


class Factorization(BasicObject):
    """Factorization of a single shifted matrix :math:`A - s E`.

    Instances are created by :meth:`Solver.factor` and are meant to be
    short-lived: they hold the (possibly large) factors for one shift only.
    """

    @abstractmethod
    def solve(self, F, trans=False):
        """Solve :math:`(A - s E) X = F` or, if `trans` is `True`, :math:`(A - s E)^T X = F`.

        Parameters
        ----------
        F
            Right-hand side as a 2D |NumPy array|.
        trans
            Whether to solve with the transposed (not conjugated) matrix.

        Returns
        -------
        X
            Solution as a 2D |NumPy array|.
        """
        pass


class Solver(ImmutableObject):
    r"""Solver for shifted linear systems.

    Solves equations of the form

    .. math::
        (A - s E) X = F \quad\text{or}\quad (A - s E)^T X = F

    for a real pencil :math:`(A, E)` and a (possibly complex) shift
    :math:`s`. Singular shifted matrices are reported by raising
    :class:`~rkmor.core.exceptions.InversionError` from :meth:`factor`.
    """

    @abstractmethod
    def factor(self, A, E, s):
        """Factorize :math:`A - s E`.

        Parameters
        ----------
        A
            The matrix A (|NumPy array| or |SciPy spmatrix|).
        E
            The matrix E or `None` (identity).
        s
            The shift.

        Returns
        -------
        The |Factorization|.

        Raises
        ------
        InversionError
            The shifted matrix is singular.
        """
        pass

    def solve(self, A, E, s, F, trans=False):
        """Factorize :math:`A - s E` and solve a single system with it."""
        return self.factor(A, E, s).solve(F, trans=trans)
