"""Sparse function tables for jaxsong.

A tabulated function (j_l1(x) or J_Llm(x)) is stored only on the single
contiguous stretch of the x-grid where it is non-negligible:

    values[i] = f(xx[index_xmin + i]),   i = 0, ..., x_size - 1,

together with the natural-spline second derivatives on that stretch. Outside
the stretch the function is exactly zero. A function that is negligible
everywhere is an explicit empty slot (index_xmin is None, x_size == 0).

The stretch runs from the first to the last grid point where |f| > cut.
Samples below the cutoff between those two points are kept, so an
oscillating function never loses a lobe that lies past one of its zeros.

References:
    SONG source: include/bessel2.h (index_xmin_J, x_size_J, x_min_J, J_Llm_x)
"""

from __future__ import annotations

from functools import partial
from typing import Dict, Hashable, Optional

import jax
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float

from jaxsong.errors import AllocationError, DomainError
from jaxsong.interpolation import (
    linear_eval_uniform,
    natural_spline_d2_uniform,
    spline_derivative_uniform,
    spline_eval_uniform,
)

# Positions within this many grid steps of a stretch edge count as on the edge
_EDGE_TOL = 1e-9


@jax.tree_util.register_pytree_node_class
class SparseSlot:
    """One tabulated function on its non-negligible stretch of the x-grid.

    Attributes:
        index_xmin: first grid index of the stretch, None if negligible everywhere
        x_size: number of stored samples (0 if negligible everywhere)
        x_min: x at index_xmin, None if negligible everywhere
        xx_step: grid spacing
        values: samples on the stretch, shape (x_size,)
        d2values: spline second derivatives, shape (x_size,)
    """

    def __init__(self, index_xmin, x_size, xx_step, values, d2values):
        self.index_xmin = None if index_xmin is None else int(index_xmin)
        self.x_size = int(x_size)
        self.xx_step = float(xx_step)
        self.values = values
        self.d2values = d2values

    @classmethod
    def negligible(cls, xx_step: float) -> SparseSlot:
        empty = jnp.zeros(0)
        return cls(None, 0, xx_step, empty, empty)

    @property
    def is_negligible(self) -> bool:
        return self.index_xmin is None

    @property
    def x_min(self) -> Optional[float]:
        if self.is_negligible:
            return None
        return self.index_xmin * self.xx_step

    @property
    def index_xmax(self) -> Optional[int]:
        """Last grid index of the stretch."""
        if self.is_negligible:
            return None
        return self.index_xmin + self.x_size - 1

    def _positions(self, x):
        """Fractional positions inside the stretch and the in-stretch mask."""
        x = jnp.asarray(x, dtype=jnp.float64)
        pos = x / self.xx_step - self.index_xmin
        inside = (pos >= -_EDGE_TOL) & (pos <= self.x_size - 1 + _EDGE_TOL)
        pos = jnp.clip(pos, 0.0, self.x_size - 1)
        return pos, inside

    def evaluate(self, x: Float[Array, "..."]) -> Float[Array, "..."]:
        """Cubic-spline value at x; exactly 0 outside the stretch."""
        if self.is_negligible:
            return jnp.zeros_like(jnp.asarray(x, dtype=jnp.float64))
        pos, inside = self._positions(x)
        val = spline_eval_uniform(self.values, self.d2values, self.xx_step, pos)
        return jnp.where(inside, val, 0.0)

    def evaluate_linear(self, x: Float[Array, "..."]) -> Float[Array, "..."]:
        """Linear-interpolation value at x; exactly 0 outside the stretch."""
        if self.is_negligible:
            return jnp.zeros_like(jnp.asarray(x, dtype=jnp.float64))
        pos, inside = self._positions(x)
        return jnp.where(inside, linear_eval_uniform(self.values, pos), 0.0)

    def derivative(self, x: Float[Array, "..."]) -> Float[Array, "..."]:
        """First derivative of the spline at x; 0 outside the stretch."""
        if self.is_negligible:
            return jnp.zeros_like(jnp.asarray(x, dtype=jnp.float64))
        pos, inside = self._positions(x)
        der = spline_derivative_uniform(self.values, self.d2values, self.xx_step, pos)
        return jnp.where(inside, der, 0.0)

    def dense(self, xx_size: int) -> Float[Array, "Nx"]:
        """Samples on the full grid, zero outside the stretch."""
        out = jnp.zeros(xx_size)
        if self.is_negligible:
            return out
        return out.at[self.index_xmin:self.index_xmin + self.x_size].set(self.values)

    # --- JAX pytree registration ---

    def tree_flatten(self):
        children = (self.values, self.d2values)
        aux_data = (self.index_xmin, self.x_size, self.xx_step)
        return children, aux_data

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        obj = object.__new__(cls)
        obj.index_xmin, obj.x_size, obj.xx_step = aux_data
        obj.values, obj.d2values = children
        return obj


@partial(jax.jit, static_argnames=("xx_step",))
def _compact_rows(dense, cut, xx_step):
    """Stretch bounds, shifted samples and spline second derivatives per row.

    dense has shape (S, Nx). For each row, the stretch is [first, last] where
    first/last are the first/last index with |f| > cut. The returned samples
    are shifted so that index 0 is `first`, and zero past the stretch.
    """
    nx = dense.shape[1]
    idx = jnp.arange(nx)

    def one_row(row):
        above = jnp.abs(row) > cut
        has_any = jnp.any(above)
        first = jnp.argmax(above)
        last = nx - 1 - jnp.argmax(above[::-1])
        size = jnp.where(has_any, last - first + 1, 0)
        shifted = jnp.roll(row, -first)
        shifted = jnp.where(idx < size, shifted, 0.0)
        d2 = natural_spline_d2_uniform(shifted, size, xx_step)
        return first, size, shifted, d2

    return jax.vmap(one_row)(dense)


def compact_to_slots(dense: Float[Array, "S Nx"], cut: float, xx_step: float):
    """Turn dense rows into SparseSlots (one per row)."""
    first, size, shifted, d2 = _compact_rows(dense, cut, xx_step)
    first = np.asarray(first)
    size = np.asarray(size)
    slots = []
    for s in range(dense.shape[0]):
        n = int(size[s])
        if n == 0:
            slots.append(SparseSlot.negligible(xx_step))
        else:
            slots.append(SparseSlot(int(first[s]), n, xx_step, shifted[s, :n], d2[s, :n]))
    return slots


class SparseTable:
    """Flat store key -> SparseSlot, owning every slot it holds.

    Keys are index_l1 for the Bessel table and
    (ProjectionType, index_L, index_l, index_m) for the J table.
    """

    def __init__(self, name: str, xx_size: int, xx_step: float, max_stored_samples: int = 0):
        self.name = name
        self.xx_size = xx_size
        self.xx_step = xx_step
        self.max_stored_samples = max_stored_samples
        self.slots: Dict[Hashable, SparseSlot] = {}
        self.count_allocated = 0
        self.x_size_max = 0

    def store(self, key: Hashable, slot: SparseSlot) -> None:
        if key in self.slots:
            raise AllocationError(f"{self.name} table: slot {key!r} is already filled")
        # The empty slot still stands for one (zero) sample
        n = max(slot.x_size, 1)
        if self.max_stored_samples and self.count_allocated + n > self.max_stored_samples:
            raise AllocationError(
                f"{self.name} table: storing slot {key!r} ({n} samples) exceeds "
                f"max_stored_samples={self.max_stored_samples} "
                f"({self.count_allocated} already stored)"
            )
        self.slots[key] = slot
        self.count_allocated += n
        self.x_size_max = max(self.x_size_max, slot.x_size)

    def __getitem__(self, key: Hashable) -> SparseSlot:
        try:
            return self.slots[key]
        except KeyError:
            raise DomainError(f"{self.name} table has no slot {key!r}") from None

    def __contains__(self, key: Hashable) -> bool:
        return key in self.slots

    def __len__(self) -> int:
        return len(self.slots)

    def clear(self) -> None:
        self.slots.clear()
        self.count_allocated = 0
        self.x_size_max = 0
