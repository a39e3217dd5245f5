"""Cubic spline and linear interpolation on uniform grids for jaxsong.

Every tabulated function lives on a compacted stretch of the shared uniform
x-grid, so all splines here assume a constant knot spacing h. The natural
spline second derivatives come from the tridiagonal system

    d2y_{i-1} + 4 d2y_i + d2y_{i+1} = 6 (y_{i+1} - 2 y_i + y_{i-1}) / h^2,
    d2y_0 = d2y_{n-1} = 0,

solved by the Thomas algorithm with jax.lax.scan. The solver works on a
fixed-size padded array plus the true length n, so slots of different length
share one compiled kernel and can be vmapped together.

Evaluation uses the standard cubic spline formula
    S(x) = A*y_i + B*y_{i+1} + (A^3 - A)*d2y_i*h^2/6 + (B^3 - B)*d2y_{i+1}*h^2/6
where A = (x_{i+1} - x) / h, B = (x - x_i) / h.

References:
    CLASS: tools/arrays.c (array_spline_table_lines, array_spline_eval)
    Numerical Recipes Ch. 3.3
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jaxtyping import Array, Float, Int


def natural_spline_d2_uniform(
    y: Float[Array, "N"], n: Int[Array, ""], h: float
) -> Float[Array, "N"]:
    """Second derivatives of the natural cubic spline through y[:n].

    Args:
        y: knot values, padded to a fixed length N >= n (padding is ignored)
        n: number of valid knots (may be traced)
        h: knot spacing

    Returns:
        d2y of shape (N,); zero at both ends of the valid range and beyond it
    """
    y = jnp.asarray(y)
    size = y.shape[0]
    if size < 3:
        return jnp.zeros_like(y)

    rhs = 6.0 * (y[2:] - 2.0 * y[1:-1] + y[:-2]) / h**2    # rows 1..N-2

    # Forward sweep: diag_i = 4 - 1/diag_{i-1}, r_i = rhs_i - r_{i-1}/diag_{i-1}
    def forward_step(carry, rhs_i):
        d_prev, r_prev = carry
        d = 4.0 - 1.0 / d_prev
        r = rhs_i - r_prev / d_prev
        return (d, r), (d, r)

    # Seeding with d_prev = inf gives diag_1 = 4, r_1 = rhs_1
    zero = jnp.zeros((), dtype=y.dtype)
    _, (diag, r) = jax.lax.scan(forward_step, (zero + jnp.inf, zero), rhs)

    # Back substitution from the last valid interior row n-2
    rows = jnp.arange(1, size - 1)

    def backward_step(d2_next, inputs):
        row, d_i, r_i = inputs
        d2 = jnp.where(row <= n - 2, (r_i - d2_next) / d_i, 0.0)
        return d2, d2

    _, d2_interior = jax.lax.scan(backward_step, zero, (rows, diag, r), reverse=True)

    return jnp.concatenate([jnp.zeros(1, dtype=y.dtype), d2_interior, jnp.zeros(1, dtype=y.dtype)])


def _interval(pos, n):
    """Interval index i (clamped to [0, n-2]) and weights A, B for position pos."""
    i = jnp.clip(jnp.floor(pos).astype(jnp.int64), 0, jnp.maximum(n - 2, 0))
    B = pos - i
    A = 1.0 - B
    return i, A, B


def spline_eval_uniform(
    y: Float[Array, "N"],
    d2y: Float[Array, "N"],
    h: float,
    pos: Float[Array, "..."],
) -> Float[Array, "..."]:
    """Evaluate the spline at fractional knot positions pos (0 <= pos <= N-1)."""
    n = y.shape[0]
    i, A, B = _interval(pos, n)
    i1 = jnp.minimum(i + 1, n - 1)
    return (
        A * y[i]
        + B * y[i1]
        + ((A**3 - A) * d2y[i] + (B**3 - B) * d2y[i1]) * h**2 / 6.0
    )


def spline_derivative_uniform(
    y: Float[Array, "N"],
    d2y: Float[Array, "N"],
    h: float,
    pos: Float[Array, "..."],
) -> Float[Array, "..."]:
    """First derivative dS/dx at fractional knot positions pos.

    S'(x) = (y_{i+1} - y_i)/h - (3A^2 - 1)*d2y_i*h/6 + (3B^2 - 1)*d2y_{i+1}*h/6
    """
    n = y.shape[0]
    if n < 2:
        return jnp.zeros_like(jnp.asarray(pos, dtype=jnp.float64))
    i, A, B = _interval(pos, n)
    return (
        (y[i + 1] - y[i]) / h
        - (3.0 * A**2 - 1.0) * d2y[i] * h / 6.0
        + (3.0 * B**2 - 1.0) * d2y[i + 1] * h / 6.0
    )


def linear_eval_uniform(y: Float[Array, "N"], pos: Float[Array, "..."]) -> Float[Array, "..."]:
    """Linear interpolation at fractional knot positions pos."""
    n = y.shape[0]
    i, A, B = _interval(pos, n)
    i1 = jnp.minimum(i + 1, n - 1)
    return A * y[i] + B * y[i1]
