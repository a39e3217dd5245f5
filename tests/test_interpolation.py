"""Test uniform-grid cubic spline interpolation."""

import jax
import jax.numpy as jnp
import numpy as np

from jaxsong.interpolation import (
    linear_eval_uniform,
    natural_spline_d2_uniform,
    spline_derivative_uniform,
    spline_eval_uniform,
)
from jaxsong.sparse import SparseSlot


def _spline(x, y):
    h = float(x[1] - x[0])
    d2 = natural_spline_d2_uniform(y, y.shape[0], h)
    return h, d2


def test_spline_sin():
    """Spline of sin(x) should match to high accuracy."""
    x = jnp.linspace(0, 2 * jnp.pi, 100)
    y = jnp.sin(x)
    h, d2 = _spline(x, y)

    x_eval = jnp.linspace(0.1, 2 * jnp.pi - 0.1, 500)
    y_eval = spline_eval_uniform(y, d2, h, x_eval / h)
    max_err = float(jnp.max(jnp.abs(y_eval - jnp.sin(x_eval))))
    assert max_err < 1e-5, f"Spline sin error: {max_err:.2e}"


def test_spline_derivative_cos():
    """Derivative of spline(sin) should be cos."""
    x = jnp.linspace(0, 2 * jnp.pi, 200)
    y = jnp.sin(x)
    h, d2 = _spline(x, y)

    x_eval = jnp.linspace(0.1, 2 * jnp.pi - 0.1, 100)
    dy = spline_derivative_uniform(y, d2, h, x_eval / h)
    max_err = float(jnp.max(jnp.abs(dy - jnp.cos(x_eval))))
    assert max_err < 1e-3, f"Spline derivative error: {max_err:.2e}"


def test_spline_exp():
    """Spline of exp(x) on a sparse grid (natural ends are wrong for exp)."""
    x = jnp.linspace(0, 5, 50)
    y = jnp.exp(x)
    h, d2 = _spline(x, y)

    x_eval = jnp.linspace(0.5, 4.5, 200)
    y_eval = spline_eval_uniform(y, d2, h, x_eval / h)
    rel_err = jnp.abs(y_eval - jnp.exp(x_eval)) / jnp.exp(x_eval)
    max_rel_err = float(jnp.max(rel_err))
    assert max_rel_err < 5e-4, f"Spline exp rel error: {max_rel_err:.2e}"


def test_spline_hits_knots():
    y = jnp.array([0.3, -1.2, 2.5, 0.7, 0.0, 4.1])
    d2 = natural_spline_d2_uniform(y, 6, 0.5)
    at_knots = spline_eval_uniform(y, d2, 0.5, jnp.arange(6.0))
    assert jnp.allclose(at_knots, y, atol=1e-14)
    assert float(d2[0]) == 0.0 and float(d2[-1]) == 0.0


def test_padding_is_ignored():
    """Solving on a padded array with the true length gives the same d2y."""
    y = jnp.sin(jnp.linspace(0, 3, 40))
    d2_exact = natural_spline_d2_uniform(y, 40, 0.1)

    padded = jnp.concatenate([y, 7.0 * jnp.ones(25)])
    d2_padded = natural_spline_d2_uniform(padded, 40, 0.1)
    assert jnp.allclose(d2_padded[:40], d2_exact, atol=1e-13)
    assert jnp.all(d2_padded[40:] == 0.0)


def test_short_stretches():
    """One or two knots: no curvature."""
    for n in (1, 2):
        d2 = natural_spline_d2_uniform(jnp.array([1.0, 2.0, 0.0, 0.0]), n, 1.0)
        assert jnp.all(d2 == 0.0)


def test_linear():
    y = jnp.array([0.0, 2.0, 4.0, 0.0])
    vals = linear_eval_uniform(y, jnp.array([0.5, 1.25, 2.5]))
    assert jnp.allclose(vals, jnp.array([1.0, 2.5, 2.0]))


def test_slot_pytree():
    """SparseSlot should work as a JAX pytree (flatten/unflatten)."""
    y = jnp.linspace(0, 1, 10) ** 2
    d2 = natural_spline_d2_uniform(y, 10, 0.5)
    slot = SparseSlot(4, 10, 0.5, y, d2)

    leaves, treedef = jax.tree_util.tree_flatten(slot)
    assert len(leaves) == 2
    slot2 = jax.tree_util.tree_unflatten(treedef, leaves)

    x_eval = jnp.array([2.6, 3.3])
    assert jnp.allclose(slot.evaluate(x_eval), slot2.evaluate(x_eval))
    assert slot2.index_xmin == 4 and slot2.x_size == 10


def test_spline_grad():
    """Gradients should flow through spline evaluation."""

    def f(y_knots):
        d2 = natural_spline_d2_uniform(y_knots, y_knots.shape[0], 0.05)
        return spline_eval_uniform(y_knots, d2, 0.05, jnp.array(10.3))

    y = jnp.sin(jnp.linspace(0, 1, 21))
    grad = jax.grad(f)(y)
    assert float(jnp.sum(jnp.abs(grad))) > 0, "Gradient through spline is zero"
    assert np.all(np.isfinite(np.asarray(grad))), "NaN in spline gradient"
