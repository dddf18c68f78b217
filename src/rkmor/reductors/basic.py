# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

import numpy as np
import scipy.sparse as sps

from rkmor.core.base import BasicObject
from rkmor.models.iosys import LTIModel


def project(M, W, V):
    """Compute `W^T M V` (with `W` or `V` possibly `None`) as a |NumPy array|."""
    if V is not None:
        M = M @ V
    if W is not None:
        M = (M.T @ W).T if sps.issparse(M) else W.T @ M
    return M.toarray() if sps.issparse(M) else np.asarray(M)


class LTIPGReductor(BasicObject):
    """Petrov-Galerkin projection of an |LTIModel|.

    Parameters
    ----------
    fom
        The full order |LTIModel| to reduce.
    W
        The basis of the test space as a 2D |NumPy array|.
    V
        The basis of the ansatz space as a 2D |NumPy array|.
    """

    def __init__(self, fom, W, V):
        assert isinstance(fom, LTIModel)
        assert W.shape == V.shape
        assert V.shape[0] == fom.order
        self.fom = fom
        self.W = W
        self.V = V

    def project_operators(self):
        fom = self.fom
        W, V = self.W, self.V
        projected_operators = {'A': project(fom.A, W, V),
                               'B': project(fom.B, W, None),
                               'C': project(fom.C, None, V),
                               'D': fom.D,
                               'E': project(fom.E_or_identity, W, V)}
        return projected_operators

    def reduce(self):
        """Return the reduced |LTIModel| `(W^T A V, W^T B, C V, D, W^T E V)`."""
        with self.logger.block(f'Projecting {self.fom.name} onto {self.V.shape[1]}-dimensional subspace ...'):
            return LTIModel(name=f'{self.fom.name}_reduced', **self.project_operators())

    def reconstruct(self, u):
        """Reconstruct high-dimensional state from reduced state `u`."""
        return self.V @ u
