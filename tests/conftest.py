"""Test fixtures for the jaxsong test suite.

Provides:
- Small and scenario-sized ProjectionParams / ProjectionTables
- Direct (non-tabulated) J_Llm(x) built from scipy's spherical_jn and
  sympy's exact 3j-symbols, as an independent reference
- --fast flag for quick regression checks
"""

# Enable 64-bit JAX (the tables are double precision)
import jax
jax.config.update("jax_enable_x64", True)

import numpy as np
import pytest
from scipy.special import spherical_jn
from sympy.physics.wigner import wigner_3j

from jaxsong import ProjectionParams, projection_init


SCENARIO = ProjectionParams(
    xx_max=1000.0,
    xx_step=0.5,
    L_max=4,
    l=(2, 10, 50),
    m=(0, 1, 2),
    has_J_TT=True,
    has_J_EE=True,
    has_J_EB=True,
)


def pytest_addoption(parser):
    parser.addoption(
        "--fast", action="store_true", default=False,
        help="Run fast subset of tests (every 10th point)"
    )


@pytest.fixture
def fast_mode(request):
    return request.config.getoption("--fast")


@pytest.fixture(scope="session")
def scenario_tables():
    """Tables for xx_max=1000, xx_step=0.5, L_max=4, l=[2,10,50], m=[0,1,2]."""
    return projection_init(SCENARIO)


@pytest.fixture(scope="session")
def fast_tables():
    """Tables of the fast preset (x up to 200)."""
    return projection_init(ProjectionParams.fast())


def direct_J(kind, L, l, m, x):
    """J_Llm(x) summed directly over l1 with scipy Bessels and sympy 3j's."""
    x = np.asarray(x, dtype=np.float64)
    spin = 0 if kind == "TT" else 2
    parity = 1 if kind == "EB" else 0
    total = np.zeros_like(x)
    for l1 in range(abs(l - L), l + L + 1):
        if (L + l + l1) % 2 != parity:
            continue
        first = float(wigner_3j(l, l1, L, spin, 0, -spin))
        second = float(wigner_3j(l, l1, L, -m, 0, m))
        half = (L - l - l1 - parity) // 2
        phase = -1.0 if half % 2 else 1.0
        total = total + phase * (2 * l1 + 1) * spherical_jn(l1, x) * first * second
    return (-1.0) ** m * (2 * L + 1) * total


def relative_error(computed, reference, eps=1e-30):
    """Compute relative error, avoiding division by zero."""
    return np.abs(computed - reference) / (np.abs(reference) + eps)


def max_relative_error(computed, reference, eps=1e-30):
    """Return (max_rel_err, index_of_max)."""
    rel = relative_error(computed, reference, eps)
    idx = np.argmax(rel)
    return float(rel[idx]), int(idx)


def assert_close(computed, reference, rtol, atol=0.0, name="quantity", coordinate=None):
    """Assert |computed - reference| <= atol + rtol |reference|, with a clear message."""
    computed = np.asarray(computed, dtype=np.float64)
    reference = np.asarray(reference, dtype=np.float64)
    excess = np.abs(computed - reference) - (atol + rtol * np.abs(reference))
    idx = int(np.argmax(excess))
    if excess.reshape(-1)[idx] > 0:
        max_err, _ = max_relative_error(computed.reshape(-1), reference.reshape(-1))
        coord_str = f" at index {idx}"
        if coordinate is not None:
            coord_str = f" at {np.asarray(coordinate).reshape(-1)[idx]:.6g}"
        msg = (
            f"{name}: error beyond tolerance{coord_str}"
            f" (expected {reference.reshape(-1)[idx]:.6e}, got {computed.reshape(-1)[idx]:.6e})"
            f" -- rtol {rtol:.1e}, atol {atol:.1e}, max rel error {max_err:.3e}"
        )
        raise AssertionError(msg)
