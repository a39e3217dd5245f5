"""Entry points of jaxsong: build, query and release the projection tables.

projection_init runs the whole fill phase (grid -> l1 list -> j_l1 table ->
J_Llm table) and returns a ProjectionTables. After that the tables are
read-only: any number of callers may evaluate concurrently. projection_free
releases the tables; later queries raise LifecycleError.

References:
    SONG source: bessel2.c (bessel2_init, bessel2_free, bessel2_J_Llm_at_x,
        bessel2_l1_at_x, bessel2_l1_at_x_linear)
"""

from __future__ import annotations

import logging

import numpy as np
from jaxtyping import Array, Float

from jaxsong.convolution import convolution
from jaxsong.errors import ConfigurationError, DomainError, LifecycleError
from jaxsong.grid import L1List, XGrid, build_l1_list, build_xx_grid
from jaxsong.params import ProjectionParams, validate_params
from jaxsong.projection import ProjectionType
from jaxsong.sparse import SparseSlot, SparseTable
from jaxsong.tabulation import bessel_tabulate, projection_tabulate

logger = logging.getLogger(__name__)


class ProjectionTables:
    """Sampling grid, l1 list, j_l1 table and J_Llm table, plus evaluators."""

    def __init__(
        self,
        params: ProjectionParams,
        grid: XGrid,
        l1_list: L1List,
        bessel_table: SparseTable,
        J_table: SparseTable,
    ):
        self.params = params
        self.grid = grid
        self.l1_list = l1_list
        self.bessel_table = bessel_table
        self.J_table = J_table
        self._freed = False

    # --- lookups ---

    def _check_alive(self):
        if self._freed:
            raise LifecycleError("projection tables were released by projection_free")

    def _check_x(self, x):
        x_arr = np.asarray(x, dtype=np.float64)
        tol = 1e-9 * self.grid.xx_step
        if np.any(x_arr > self.grid.xx_max + tol):
            raise DomainError(
                f"x={float(np.max(x_arr)):g} exceeds the sampling grid maximum "
                f"xx_max={self.grid.xx_max:g}"
            )
        if np.any(x_arr < -tol):
            raise DomainError(f"x={float(np.min(x_arr)):g} is negative")

    def index_of_l(self, l: int) -> int:
        """Position of the primary multipole l in params.l."""
        try:
            return list(self.params.l).index(l)
        except ValueError:
            raise ConfigurationError(f"l={l} is not in the primary multipole list {self.params.l}") from None

    def J_slot(self, kind, index_L: int, index_l: int, index_m: int) -> SparseSlot:
        self._check_alive()
        try:
            kind = ProjectionType(kind)
        except ValueError:
            raise ConfigurationError(f"unknown projection type {kind!r}") from None
        return self.J_table[(kind, index_L, index_l, index_m)]

    def j_slot(self, index_l1: int) -> SparseSlot:
        self._check_alive()
        return self.bessel_table[index_l1]

    # --- evaluators ---

    def J_Llm_at_x(
        self, kind, index_L: int, index_l: int, index_m: int, x: Float[Array, "..."]
    ) -> Float[Array, "..."]:
        """Interpolated J_Llm(x); exactly 0 in the negligible region.

        Raises:
            DomainError: x beyond xx_max (or negative), or no such slot
        """
        slot = self.J_slot(kind, index_L, index_l, index_m)
        self._check_x(x)
        return slot.evaluate(x)

    def j_l1_at_x(self, index_l1: int, x: Float[Array, "..."]) -> Float[Array, "..."]:
        """Spline-interpolated j_l1(x) for l1 = l1_list.l1[index_l1]."""
        slot = self.j_slot(index_l1)
        self._check_x(x)
        return slot.evaluate(x)

    def j_l1_at_x_linear(self, index_l1: int, x: Float[Array, "..."]) -> Float[Array, "..."]:
        """Linearly interpolated j_l1(x), for callers that do not need spline accuracy."""
        slot = self.j_slot(index_l1)
        self._check_x(x)
        return slot.evaluate_linear(x)

    def convolution(self, kk, delta_kk, f, g, l, r, projection=None, linear=False) -> float:
        self._check_alive()
        return convolution(self, kk, delta_kk, f, g, l, r, projection=projection, linear=linear)

    # --- bookkeeping ---

    def summary(self) -> dict:
        self._check_alive()
        return {
            "xx_size": self.grid.xx_size,
            "xx_max": self.grid.xx_max,
            "l1_size": self.l1_list.l1_size,
            "j_l1_slots": len(self.bessel_table),
            "j_l1_samples": self.bessel_table.count_allocated,
            "J_slots": len(self.J_table),
            "J_samples": self.J_table.count_allocated,
            "J_x_size_max": self.J_table.x_size_max,
        }

    def free(self) -> None:
        self.bessel_table.clear()
        self.J_table.clear()
        self._freed = True


def projection_init(params: ProjectionParams = ProjectionParams()) -> ProjectionTables:
    """Build the grid, the l1 list and both sparse tables.

    Raises:
        ConfigurationError: inconsistent settings, empty l1 list, L > L_max
        AllocationError: a table could not be stored
    """
    validate_params(params)
    log = logger.info if params.verbose else logger.debug

    grid = build_xx_grid(params)
    l1_list = build_l1_list(params)
    log("x grid: %d points, step %g, xx_max %g", grid.xx_size, grid.xx_step, grid.xx_max)
    log("l1 list: %d multipoles in [%d, %d]", l1_list.l1_size, l1_list.l1[0], l1_list.l1_max)

    bessel_table = bessel_tabulate(grid, l1_list, params)
    log("j_l1 table: %d samples stored", bessel_table.count_allocated)

    J_table = projection_tabulate(grid, l1_list, bessel_table, params)
    log(
        "J_Llm table: %d slots, %d samples stored, longest slot %d",
        len(J_table), J_table.count_allocated, J_table.x_size_max,
    )

    return ProjectionTables(params, grid, l1_list, bessel_table, J_table)


def projection_free(tables: ProjectionTables) -> None:
    """Release both tables; the object can no longer be queried."""
    tables.free()
