"""Spherical Bessel functions for jaxsong.

Computes j_l(x) for a whole list of multipoles on a whole x array in one pass:

- upward recurrence from j_0, j_1 where x >= l (stable, oscillatory regime);
- backward (Miller's) recurrence where x < l, started at
  l_start = l_max + extra with j_{l_start+1} = 0, j_{l_start} = 1 and
  normalised against the exact j_0 and j_1.

The backward pass rescales at every step and keeps a running log of the
scale factors, so a value recorded early can be brought to the final scale
without ever storing an overflowing number. Normalising against both j_0 and
j_1 (least squares on the pair) avoids the zeros of j_0 at x = n*pi.

All recurrences use jax.lax.fori_loop for O(1) compilation time
regardless of l (no Python loop unrolling).

References:
    Numerical Recipes Ch. 6
    Abramowitz & Stegun 10.1
    SONG source: bessel2.c (bessel2_j_for_l1)
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float


def _j0(x: Float[Array, "..."]) -> Float[Array, "..."]:
    """j_0(x) = sin(x) / x."""
    x_safe = jnp.where(jnp.abs(x) < 1e-8, 1e-8, x)
    return jnp.where(jnp.abs(x) < 1e-8, 1.0 - x**2 / 6.0, jnp.sin(x_safe) / x_safe)


def _j1(x: Float[Array, "..."]) -> Float[Array, "..."]:
    """j_1(x) = sin(x)/x^2 - cos(x)/x."""
    x_safe = jnp.where(jnp.abs(x) < 1e-8, 1e-8, x)
    return jnp.where(
        jnp.abs(x) < 1e-8,
        x / 3.0,
        jnp.sin(x_safe) / x_safe**2 - jnp.cos(x_safe) / x_safe,
    )


def _miller_extra(l_max: int) -> int:
    # Past the turning point j_l decays on a scale ~ l^(1/3)
    return 30 + int(6.0 * l_max ** (1.0 / 3.0))


def spherical_jl_table(l_list, x: Float[Array, "Nx"]) -> Float[Array, "Nl Nx"]:
    """Compute j_l(x) for every l in l_list and every x.

    Args:
        l_list: non-negative integer multipoles (static), any order, no duplicates
        x: non-negative arguments, shape (Nx,)

    Returns:
        array of shape (len(l_list), Nx); row i holds j_{l_list[i]}(x)
    """
    l_arr = np.asarray(l_list, dtype=np.int64).reshape(-1)
    x = jnp.asarray(x, dtype=jnp.float64)
    n_out = l_arr.shape[0]
    l_max = int(l_arr.max())

    # Output row of each multipole 0..l_max+1; n_out means "not requested",
    # which .at[...].set(mode="drop") discards.
    row = np.full(l_max + 2, n_out, dtype=np.int64)
    row[l_arr] = np.arange(n_out)
    row = jnp.asarray(row)

    x_safe = jnp.where(jnp.abs(x) < 1e-30, 1e-30, x)
    j0 = _j0(x)
    j1 = _j1(x)

    # --- Upward recurrence (stable for x >= l) ---
    up = jnp.zeros((n_out, x.shape[0]))
    up = up.at[row[0]].set(j0, mode="drop")
    up = up.at[row[1]].set(j1, mode="drop")

    def up_body(l_curr, state):
        out, j_prev, j_curr = state
        j_next = (2.0 * l_curr + 1.0) / x_safe * j_curr - j_prev
        # |j_l(x)| <= 1; the clip only bites where x < l, which is not used
        j_next = jnp.clip(j_next, -1.0, 1.0)
        out = out.at[row[l_curr + 1]].set(j_next, mode="drop")
        return (out, j_curr, j_next)

    if l_max >= 2:
        up, _, _ = jax.lax.fori_loop(1, l_max, up_body, (up, j0, j1))

    # --- Backward recurrence (stable for x < l) ---
    l_start = l_max + _miller_extra(l_max)

    def down_body(i, state):
        j_curr, j_next, log_scale, out, out_log = state
        n = l_start - i
        j_prev = (2.0 * n + 1.0) / x_safe * j_curr - j_next
        # Consecutive values never vanish together
        scale = jnp.maximum(jnp.abs(j_prev), jnp.abs(j_curr))
        j_prev = j_prev / scale
        j_curr = j_curr / scale
        log_scale = log_scale + jnp.log(scale)
        r = jnp.where(n - 1 <= l_max, row[jnp.minimum(n - 1, l_max + 1)], n_out)
        out = out.at[r].set(j_prev, mode="drop")
        out_log = out_log.at[r].set(log_scale, mode="drop")
        return (j_prev, j_curr, log_scale, out, out_log)

    init = (
        jnp.ones_like(x),
        jnp.zeros_like(x),
        jnp.zeros_like(x),
        jnp.zeros((n_out, x.shape[0])),
        jnp.zeros((n_out, x.shape[0])),
    )
    u0, u1, log_final, back, back_log = jax.lax.fori_loop(0, l_start, down_body, init)

    # u0, u1 are the unnormalised j_0, j_1 at the final scale
    norm = (j0 * u0 + j1 * u1) / (u0**2 + u1**2)
    back = back * jnp.exp(back_log - log_final[None, :]) * norm[None, :]

    # --- Hard switch at x = l ---
    l_col = jnp.asarray(l_arr, dtype=jnp.float64)[:, None]
    result = jnp.where(x[None, :] >= l_col, up, back)

    # j_0(0) = 1, j_l(0) = 0 for l > 0
    at_zero = jnp.where(l_col == 0.0, 1.0, 0.0)
    result = jnp.where(jnp.abs(x[None, :]) < 1e-30, at_zero, result)
    return result


def spherical_jl(l: int, x: Float[Array, "..."]) -> Float[Array, "..."]:
    """Compute spherical Bessel function j_l(x).

    Args:
        l: order (non-negative integer, static)
        x: non-negative argument(s), any shape

    Returns:
        j_l(x), same shape as x
    """
    x = jnp.asarray(x, dtype=jnp.float64)
    return spherical_jl_table([l], x.reshape(-1))[0].reshape(x.shape)
