"""Bessel and projection-function tabulators for jaxsong.

Fills the two sparse tables from which everything else is interpolated:

1. bessel_tabulate: j_l1(x) for every l1 in the l1 list on the whole x-grid,
   compacted with the j_l1_cut threshold.
2. projection_tabulate: J_Llm(x) for every enabled projection type and every
   (L, l, m) of the configured lists, compacted with J_Llm_cut.

Slots are independent. Within a chunk of slots the work is one vmapped /
batched JAX computation; each slot is written exactly once from its chunk's
result. Slots that vanish by selection rules are stored as negligible
without computing anything.

References:
    SONG source: bessel2.c (bessel2_init, bessel2_j_for_l1, bessel2_J_for_Llm)
"""

from __future__ import annotations

import logging

import jax
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float, Int

from jaxsong.bessel import spherical_jl_table
from jaxsong.errors import AllocationError
from jaxsong.grid import L1List, XGrid
from jaxsong.params import ProjectionParams
from jaxsong.projection import (
    J_Llm_on_grid,
    ProjectionType,
    is_admissible,
    projection_workspace,
)
from jaxsong.sparse import SparseSlot, SparseTable, compact_to_slots

logger = logging.getLogger(__name__)


def enabled_types(params: ProjectionParams):
    """Projection types switched on by has_J_TT / has_J_EE / has_J_EB, in that order."""
    kinds = []
    if params.has_J_TT:
        kinds.append(ProjectionType.TT)
    if params.has_J_EE:
        kinds.append(ProjectionType.EE)
    if params.has_J_EB:
        kinds.append(ProjectionType.EB)
    return kinds


def _chunks(items, size):
    for start in range(0, len(items), size):
        yield items[start:start + size]


# ---------------------------------------------------------------------------
# Bessel table
# ---------------------------------------------------------------------------

def bessel_tabulate(grid: XGrid, l1_list: L1List, params: ProjectionParams) -> SparseTable:
    """Sample and compact j_l1(x) for every l1 in the l1 list.

    Returns:
        SparseTable keyed by index_l1
    """
    table = SparseTable("j_l1", grid.xx_size, grid.xx_step, params.max_stored_samples)
    positions = list(range(l1_list.l1_size))

    try:
        for chunk in _chunks(positions, params.slot_chunk_size):
            dense = spherical_jl_table(l1_list.l1[chunk], grid.xx)
            slots = compact_to_slots(dense, params.j_l1_cut, grid.xx_step)
            for index_l1, slot in zip(chunk, slots):
                table.store(index_l1, slot)
            logger.debug("j_l1: filled %d/%d multipoles", chunk[-1] + 1, l1_list.l1_size)
    except MemoryError as err:
        if isinstance(err, AllocationError):
            raise
        raise AllocationError(
            f"j_l1 table: out of memory after {len(table)} of {l1_list.l1_size} multipoles"
        ) from err

    return table


# ---------------------------------------------------------------------------
# J table
# ---------------------------------------------------------------------------

@jax.jit
def _contract(
    bessel_dense: Float[Array, "N1 Nx"],
    positions: Int[Array, "S W"],
    coefficients: Float[Array, "S W"],
) -> Float[Array, "S Nx"]:
    """J[s, x] = sum_w coefficients[s, w] * j_{l1(positions[s, w])}(xx[x])."""

    def one_slot(pos, coeff):
        return coeff @ bessel_dense[pos]

    return jax.vmap(one_slot)(positions, coefficients)


def J_for_Llm(
    kind: ProjectionType,
    index_L: int,
    index_l: int,
    index_m: int,
    grid: XGrid,
    l1_list: L1List,
    bessel_table: SparseTable,
    params: ProjectionParams,
) -> SparseSlot:
    """Tabulate a single J_Llm(x) slot through the per-call workspace."""
    L = params.L_list[index_L]
    l = params.l[index_l]
    m = params.m[index_m]
    if not is_admissible(kind, L, l, m):
        return SparseSlot.negligible(grid.xx_step)
    ws = projection_workspace(kind, L, l, m, l1_list, bessel_table)
    values = J_Llm_on_grid(ws)
    return compact_to_slots(values[None, :], params.J_Llm_cut, grid.xx_step)[0]


def projection_tabulate(
    grid: XGrid,
    l1_list: L1List,
    bessel_table: SparseTable,
    params: ProjectionParams,
) -> SparseTable:
    """Tabulate every enabled J_Llm(x).

    Returns:
        SparseTable keyed by (ProjectionType, index_L, index_l, index_m)
    """
    table = SparseTable("J_Llm", grid.xx_size, grid.xx_step, params.max_stored_samples)
    L_list = params.L_list

    try:
        bessel_dense = jnp.stack(
            [bessel_table[i].dense(grid.xx_size) for i in range(l1_list.l1_size)]
        )

        jobs = []
        for kind in enabled_types(params):
            for index_L, L in enumerate(L_list):
                for index_l, l in enumerate(params.l):
                    for index_m, m in enumerate(params.m):
                        key = (kind, index_L, index_l, index_m)
                        if not is_admissible(kind, L, l, m):
                            table.store(key, SparseSlot.negligible(grid.xx_step))
                            continue
                        ws = projection_workspace(kind, L, l, m, l1_list)
                        jobs.append((key, ws.index_l1, ws.coefficients))

        width = 2 * params.L_max + 1
        n_done = 0
        for chunk in _chunks(jobs, params.slot_chunk_size):
            positions = np.zeros((len(chunk), width), dtype=np.int64)
            coefficients = np.zeros((len(chunk), width))
            for s, (_, index_l1, coeff) in enumerate(chunk):
                positions[s, :index_l1.shape[0]] = index_l1
                coefficients[s, :coeff.shape[0]] = coeff

            dense = _contract(bessel_dense, jnp.asarray(positions), jnp.asarray(coefficients))
            slots = compact_to_slots(dense, params.J_Llm_cut, grid.xx_step)
            for (key, _, _), slot in zip(chunk, slots):
                table.store(key, slot)

            n_done += len(chunk)
            logger.debug("J_Llm: filled %d/%d admissible slots", n_done, len(jobs))
    except MemoryError as err:
        if isinstance(err, AllocationError):
            raise
        raise AllocationError(
            f"J_Llm table: out of memory after {len(table)} slots"
        ) from err

    return table
