# This file is part of the rkMOR project.
# Copyright rkMOR developers and contributors. All rights reserved.
# License: BSD 2-Clause License (https://opensource.org/licenses/BSD-2-Clause)

"""Normalization of shift sets.

Shifts (expansion points) can be given as a scalar, as a flat sequence in
which multiplicities are expressed by repetition, or as a two-row array whose
first row holds the distinct shifts and whose second row holds their
multiplicities::

    s0_vect([[1, 2j, -2j],
             [2, 1,   1]])   # -> [1, 1, 2j, -2j]
"""

from numbers import Number

import numpy as np

from rkmor.core.defaults import defaults


def s0_vect(s0):
    """Convert a shift specification to a flat vector of shifts.

    Parameters
    ----------
    s0
        Scalar, 1D sequence of shifts, or array of shape `(2, k)` holding
        shifts and multiplicities.

    Returns
    -------
    s0
        1D complex |NumPy array| of shifts.

    Raises
    ------
    ValueError
        The shift set is empty, contains non-finite values or invalid
        multiplicities.
    """
    if isinstance(s0, Number):
        s0 = np.array([s0], dtype=complex)
    else:
        s0 = np.array(s0, dtype=complex)
        if s0.ndim == 2 and s0.shape[0] == 2 and s0.shape[1] > 0:
            mult = s0[1]
            if np.any(mult.imag != 0) or np.any(mult.real != np.round(mult.real)) or np.any(mult.real < 1):
                raise ValueError('Multiplicities have to be positive integers')
            s0 = np.repeat(s0[0], mult.real.astype(int))
        elif s0.ndim == 2 and 1 in s0.shape:
            s0 = s0.ravel()
        elif s0.ndim != 1:
            raise ValueError(f'Shifts have to be given as a vector or as a two-row matrix, got shape {s0.shape}')
    if len(s0) == 0:
        raise ValueError('Shift set is empty')
    if not np.all(np.isfinite(s0)):
        raise ValueError('Shifts have to be finite')
    return s0


@defaults('tol')
def cplxpair(x, tol=100 * np.finfo(float).eps):
    """Sort complex numbers into complex conjugate pairs.

    The pairs are ordered by increasing real part, the element with negative
    imaginary part first. Real numbers follow the pairs in increasing order.

    Parameters
    ----------
    x
        1D array of complex numbers.
    tol
        Relative tolerance. Numbers whose imaginary part is at most `tol`
        times their absolute value are considered real (and their imaginary
        part is set to zero); two numbers are conjugates if their distance
        after conjugation is at most `tol` times their absolute value.

    Returns
    -------
    y
        Sorted 1D complex |NumPy array|.
    perm
        Permutation such that `y` is (up to the cleaned imaginary parts)
        `x[perm]`.

    Raises
    ------
    ValueError
        A complex number has no conjugate partner.
    """
    x = np.asarray(x, dtype=complex).ravel()
    mag = np.abs(x)
    is_real = np.abs(x.imag) <= tol * mag
    x = np.where(is_real, x.real, x)

    real_idx = np.flatnonzero(is_real)
    real_idx = real_idx[np.argsort(x[real_idx].real, kind='stable')]
    neg_idx = [i for i in np.lexsort((x.imag, x.real)) if not is_real[i] and x[i].imag < 0]
    pos_idx = [i for i in range(len(x)) if not is_real[i] and x[i].imag > 0]

    perm = []
    for i in neg_idx:
        if not pos_idx:
            raise ValueError(f'Complex number {x[i]} has no conjugate partner')
        dists = np.abs(x[pos_idx] - x[i].conjugate())
        k = int(np.argmin(dists))
        if dists[k] > tol * mag[i]:
            raise ValueError(f'Complex number {x[i]} has no conjugate partner')
        perm.extend((i, pos_idx.pop(k)))
    if pos_idx:
        raise ValueError(f'Complex number {x[pos_idx[0]]} has no conjugate partner')
    perm = np.array(perm + list(real_idx), dtype=int)
    return x[perm], perm


@defaults('tol')
def check_conjugate_pairs(s0, Rt=None, tol=100 * np.finfo(float).eps):
    """Check that complex shifts come in conjugate pairs.

    Every complex shift needs a partner with conjugate value (so conjugate
    shifts have equal multiplicity) and, if tangential directions are given,
    conjugate direction. Real shifts need real directions.

    Parameters
    ----------
    s0
        1D array of shifts.
    Rt
        Tangential directions as a 2D array with `len(s0)` columns or `None`.
    tol
        Relative tolerance of the comparisons.

    Raises
    ------
    ValueError
        The shifts or directions are not closed under conjugation.
    """
    s0 = np.asarray(s0)
    is_real = np.abs(s0.imag) <= tol * np.abs(s0)
    if Rt is not None:
        Rt = np.asarray(Rt)
        assert Rt.ndim == 2 and Rt.shape[1] == len(s0)
        scale = np.maximum(np.abs(Rt).max(axis=0), 1.)
        if np.any(np.abs(Rt[:, is_real].imag) > tol * scale[is_real]):
            raise ValueError('Real shifts need real tangential directions')

    unpaired = [i for i in range(len(s0)) if not is_real[i] and s0[i].imag > 0]
    for i in range(len(s0)):
        if is_real[i] or s0[i].imag > 0:
            continue
        for k, j in enumerate(unpaired):
            if abs(s0[j] - s0[i].conjugate()) > tol * abs(s0[i]):
                continue
            if Rt is not None and np.any(np.abs(Rt[:, j] - Rt[:, i].conj()) > tol * scale[i]):
                continue
            del unpaired[k]
            break
        else:
            raise ValueError(f'Shift {s0[i]} has no conjugate partner (with conjugate direction)')
    if unpaired:
        raise ValueError(f'Shift {s0[unpaired[0]]} has no conjugate partner (with conjugate direction)')
