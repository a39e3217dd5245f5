"""Convolution of sampled functions with a tabulated radial kernel.

Computes

    I(r) = int dk f(k) g(k) K_l(k r)

on a (non-uniform) k-grid as sum_i delta_kk[i] f[i] g[i] K_l(kk[i] r), where
K_l is j_l from the Bessel table or, when a projection is given, the
tabulated J_Llm with the same l. The accuracy is that of the table
interpolation and of the quadrature weights.

References:
    SONG source: bessel2.c (bessel2_convolution)
"""

from __future__ import annotations

import jax.numpy as jnp
from jaxtyping import Array, Float

from jaxsong.errors import ConfigurationError


def trapezoidal_weights(kk: Float[Array, "Nk"]) -> Float[Array, "Nk"]:
    """Weights w such that sum_i w[i] h(kk[i]) is the trapezoid rule on kk."""
    kk = jnp.asarray(kk, dtype=jnp.float64)
    if kk.shape[0] < 2:
        return jnp.zeros_like(kk)
    dk = jnp.diff(kk)
    w = jnp.zeros_like(kk)
    w = w.at[:-1].add(0.5 * dk)
    w = w.at[1:].add(0.5 * dk)
    return w


def convolution(
    tables,
    kk: Float[Array, "Nk"],
    delta_kk: Float[Array, "Nk"],
    f: Float[Array, "Nk"],
    g: Float[Array, "Nk"],
    l: int,
    r: float,
    projection=None,
    linear: bool = False,
) -> float:
    """Integrate f(k) g(k) K_l(k r) dk with the quadrature weights delta_kk.

    Args:
        tables: ProjectionTables from projection_init
        kk: k-grid, shape (Nk,)
        delta_kk: quadrature weights on kk (see trapezoidal_weights)
        f, g: sampled functions on kk
        l: target multipole
        r: radial parameter; kk * r must lie inside the x-grid
        projection: None for K_l = j_l, or (kind, index_L, index_m) for
            K_l = J_{L l m} of that projection type
        linear: interpolate the Bessel table linearly instead of by spline

    Returns:
        the integral, as a float
    """
    kk = jnp.asarray(kk, dtype=jnp.float64)
    delta_kk = jnp.asarray(delta_kk, dtype=jnp.float64)
    f = jnp.asarray(f, dtype=jnp.float64)
    g = jnp.asarray(g, dtype=jnp.float64)
    shapes = {a.shape for a in (kk, delta_kk, f, g)}
    if len(shapes) != 1 or kk.ndim != 1:
        raise ConfigurationError(
            f"kk, delta_kk, f, g must be 1-d arrays of one length, got shapes "
            f"{kk.shape}, {delta_kk.shape}, {f.shape}, {g.shape}"
        )

    x = kk * r
    if projection is None:
        index_l1 = tables.l1_list.position(l)
        if linear:
            kernel = tables.j_l1_at_x_linear(index_l1, x)
        else:
            kernel = tables.j_l1_at_x(index_l1, x)
    else:
        kind, index_L, index_m = projection
        kernel = tables.J_Llm_at_x(kind, index_L, tables.index_of_l(l), index_m, x)

    return float(jnp.sum(delta_kk * f * g * kernel))
