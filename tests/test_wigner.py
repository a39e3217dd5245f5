"""Test the 3j-symbol recurrence against sympy's exact values."""

import numpy as np
import pytest
from sympy.physics.wigner import wigner_3j

from jaxsong import wigner_3j_l1_family, wigner_3j_l1_middle


FAMILIES = [
    (1, 1, 0, 0),
    (1, 1, 1, -1),
    (1, 1, 1, 0),
    (2, 2, 0, 0),
    (5, 3, 2, -2),
    (10, 4, 0, 0),
    (10, 4, -2, 2),
    (12, 12, 3, -1),
    (50, 4, 0, 0),
    (50, 4, 2, -2),
    (40, 25, 7, -3),
]


@pytest.mark.parametrize("l2, l3, m2, m3", FAMILIES)
def test_family_matches_sympy(l2, l3, m2, m3):
    l1_min, values = wigner_3j_l1_family(l2, l3, m2, m3)
    m1 = -m2 - m3
    assert l1_min == max(abs(l2 - l3), abs(m1))
    assert values.shape[0] == l2 + l3 - l1_min + 1
    ref = np.array([
        float(wigner_3j(l1, l2, l3, m1, m2, m3))
        for l1 in range(l1_min, l2 + l3 + 1)
    ])
    err = np.max(np.abs(values - ref))
    assert err < 1e-12, f"3j family ({l2},{l3};{m2},{m3}): max abs error {err:.2e}"


@pytest.mark.parametrize("l2, l3, m2, m3", FAMILIES)
def test_family_normalisation(l2, l3, m2, m3):
    l1_min, values = wigner_3j_l1_family(l2, l3, m2, m3)
    l1 = np.arange(l1_min, l1_min + values.shape[0])
    norm = np.sum((2 * l1 + 1) * values**2)
    assert abs(norm - 1.0) < 1e-12


def test_zero_parity_terms_vanish():
    """(l1 l2 l3; 0 0 0) vanishes for odd l1 + l2 + l3."""
    l1_min, values = wigner_3j_l1_family(10, 4, 0, 0)
    l1 = np.arange(l1_min, l1_min + values.shape[0])
    assert np.all(values[(l1 + 14) % 2 == 1] == 0.0)


def test_forbidden_m_is_empty():
    _, values = wigner_3j_l1_family(1, 3, 2, 0)
    assert values.shape[0] == 0


def test_middle_family():
    l, L, m = 10, 3, 2
    l1_min, values = wigner_3j_l1_middle(l, L, -m, m)
    assert l1_min == 7
    for i, l1 in enumerate(range(l1_min, l + L + 1)):
        ref = float(wigner_3j(l, l1, L, -m, 0, m))
        assert abs(values[i] - ref) < 1e-12, f"l1={l1}: {values[i]:.6e} vs {ref:.6e}"
