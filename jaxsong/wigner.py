"""Wigner 3j-symbols for jaxsong.

Computes a whole family of 3j-symbols at once,

    f(l1) = ( l1  l2  l3 )      l1 = l1_min, ..., l1_max,
            ( m1  m2  m3 )      m1 = -m2 - m3,

with l1_min = max(|l2 - l3|, |m1|) and l1_max = l2 + l3, via the
Schulten-Gordon three-term recurrence

    l1 A(l1+1) f(l1+1) + B(l1) f(l1) + (l1+1) A(l1) f(l1-1) = 0,
    A(l1) = sqrt[(l1^2 - (l2-l3)^2) ((l2+l3+1)^2 - l1^2) (l1^2 - m1^2)],
    B(l1) = -(2 l1 + 1) [l2(l2+1) m1 - l3(l3+1) m1 - l1(l1+1)(m3 - m2)].

The recurrence is run forward from l1_min and backward from l1_max (each is
stable while the family grows away from its end) and the two halves are
matched on a small window in the middle. The family is then normalised by
sum_l1 (2 l1 + 1) f(l1)^2 = 1 and the sign fixed by
sgn f(l1_max) = (-1)^(l2 - l3 - m1).

These are small host-side arrays (at most 2 L_max + 1 entries per family),
so the module works in numpy.

References:
    Schulten & Gordon, J. Math. Phys. 16, 1961 (1975)
    Luscombe & Luban, Phys. Rev. E 57, 7274 (1998)
    SLATEC: drc3jj.f
"""

from __future__ import annotations

import math

import numpy as np

_RESCALE = 1e100


def _A(l1, l2, l3, m1):
    return math.sqrt(
        max(0.0, (l1 * l1 - (l2 - l3) ** 2) * ((l2 + l3 + 1) ** 2 - l1 * l1) * (l1 * l1 - m1 * m1))
    )


def _B(l1, l2, l3, m1, m2, m3):
    return -(2 * l1 + 1) * (
        l2 * (l2 + 1) * m1 - l3 * (l3 + 1) * m1 - l1 * (l1 + 1) * (m3 - m2)
    )


def _forward(l1_min, n_steps, l2, l3, m1, m2, m3):
    """Unnormalised f(l1_min), ..., f(l1_min + n_steps - 1)."""
    f = np.zeros(n_steps)
    f[0] = 1.0
    if n_steps == 1:
        return f
    if l1_min == 0:
        # l2 == l3 and m1 == 0; B(0) = 0 so use (1 l l; 0 m -m)/(0 l l; 0 m -m)
        f[1] = -(m3 - m2) * f[0] / _A(1, l2, l3, m1)
    else:
        f[1] = -_B(l1_min, l2, l3, m1, m2, m3) * f[0] / (l1_min * _A(l1_min + 1, l2, l3, m1))
    for k in range(1, n_steps - 1):
        l1 = l1_min + k
        f[k + 1] = -(
            _B(l1, l2, l3, m1, m2, m3) * f[k] + (l1 + 1) * _A(l1, l2, l3, m1) * f[k - 1]
        ) / (l1 * _A(l1 + 1, l2, l3, m1))
        if abs(f[k + 1]) > _RESCALE:
            f[: k + 2] /= _RESCALE
    return f


def _backward(l1_max, n_steps, l2, l3, m1, m2, m3):
    """Unnormalised f(l1_max - n_steps + 1), ..., f(l1_max)."""
    f = np.zeros(n_steps)
    f[-1] = 1.0
    if n_steps == 1:
        return f
    f[-2] = -_B(l1_max, l2, l3, m1, m2, m3) * f[-1] / ((l1_max + 1) * _A(l1_max, l2, l3, m1))
    for k in range(n_steps - 2, 0, -1):
        l1 = l1_max - (n_steps - 1 - k)
        f[k - 1] = -(
            _B(l1, l2, l3, m1, m2, m3) * f[k] + l1 * _A(l1 + 1, l2, l3, m1) * f[k + 1]
        ) / ((l1 + 1) * _A(l1, l2, l3, m1))
        if abs(f[k - 1]) > _RESCALE:
            f[k - 1:] /= _RESCALE
    return f


def wigner_3j_l1_family(l2: int, l3: int, m2: int, m3: int):
    """All 3j-symbols (l1 l2 l3; -m2-m3 m2 m3) allowed by the triangle rule.

    Args:
        l2, l3: non-negative integer multipoles
        m2, m3: integer azimuthal numbers

    Returns:
        (l1_min, values) with values[i] = (l1_min+i l2 l3; m1 m2 m3).
        values is empty when |m2| > l2 or |m3| > l3.
    """
    m1 = -m2 - m3
    l1_min = max(abs(l2 - l3), abs(m1))
    l1_max = l2 + l3
    if abs(m2) > l2 or abs(m3) > l3 or l1_max < l1_min:
        return l1_min, np.zeros(0)

    n = l1_max - l1_min + 1
    if n <= 4:
        f = _forward(l1_min, n, l2, l3, m1, m2, m3)
    else:
        mid = n // 2
        fwd = _forward(l1_min, mid + 2, l2, l3, m1, m2, m3)
        bwd = _backward(l1_max, n - mid + 1, l2, l3, m1, m2, m3)
        # Overlap window: family indices mid-1, mid, mid+1
        a = fwd[mid - 1: mid + 2]
        b = bwd[0:3]
        scale = np.dot(a, b) / np.dot(b, b)
        f = np.concatenate([fwd[:mid], scale * bwd[1:]])

    l1 = np.arange(l1_min, l1_max + 1)
    f = f / math.sqrt(np.sum((2 * l1 + 1) * f**2))
    sign = -1.0 if (l2 - l3 - m1) % 2 else 1.0
    if np.sign(f[-1]) != sign:
        f = -f
    return l1_min, f


def wigner_3j_l1_middle(l: int, L: int, m_l: int, m_L: int):
    """Family (l l1 L; m_l 0 m_L) as a function of the middle multipole l1.

    Uses (l l1 L; m_l 0 m_L) = (-1)^(l + l1 + L) (l1 l L; 0 m_l m_L).

    Returns:
        (l1_min, values), as wigner_3j_l1_family
    """
    l1_min, f = wigner_3j_l1_family(l, L, m_l, m_L)
    if f.shape[0] == 0:
        return l1_min, f
    l1 = np.arange(l1_min, l1_min + f.shape[0])
    return l1_min, np.where((l + l1 + L) % 2, -f, f)
