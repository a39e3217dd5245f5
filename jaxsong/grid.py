"""Grid Builder for jaxsong.

Builds the two index structures shared by every table:

- the x sampling grid xx = [0, xx_step, ..., xx_max], uniform;
- the l1 list, i.e. all auxiliary multipoles l1 that enter
      J_Llm(x) = sum_l1 (...) j_l1(x) (l l1 L; . 0 .)(l l1 L; -m 0 m)
  for the requested (L, l, m). By the triangle rule l1 lies in
  [|l - L|, l + L], so extending each primary l by +-L_max covers all L.

References:
    SONG source: bessel2.c (bessel2_get_xx_list, bessel2_get_l1_list)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float, Int

from jaxsong.errors import ConfigurationError
from jaxsong.params import ProjectionParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class XGrid:
    """Uniform sampling grid of x, shared by the Bessel and J tables."""

    xx: Float[Array, "Nx"]
    xx_step: float
    xx_max: float

    @property
    def xx_size(self) -> int:
        return int(self.xx.shape[0])


@dataclass(frozen=True)
class L1List:
    """Sorted auxiliary multipoles plus the l1 -> position lookup (-1 = absent)."""

    l1: Int[np.ndarray, "N1"]
    index_l1: Int[np.ndarray, "l1max_plus_1"]

    @property
    def l1_size(self) -> int:
        return int(self.l1.shape[0])

    @property
    def l1_max(self) -> int:
        return int(self.l1[-1])

    def contains(self, l1: int) -> bool:
        return 0 <= l1 <= self.l1_max and bool(self.index_l1[l1] >= 0)

    def position(self, l1: int) -> int:
        """Position of l1 inside the list. Absent values are an error, never zero."""
        if not self.contains(l1):
            raise ConfigurationError(
                f"l1={l1} is not in the l1 list (range {int(self.l1[0])}..{self.l1_max}, "
                f"{self.l1_size} entries)"
            )
        return int(self.index_l1[l1])


def build_xx_grid(params: ProjectionParams) -> XGrid:
    """Uniform grid on [0, xx_max]; xx_max is raised to a multiple of xx_step."""
    if not params.xx_step > 0:
        raise ConfigurationError(f"xx_step must be positive, got {params.xx_step}")
    if not params.xx_max > 0:
        raise ConfigurationError(f"xx_max must be positive, got {params.xx_max}")

    n_steps = params.xx_max / params.xx_step
    n_int = int(round(n_steps))
    if abs(n_steps - n_int) > 1e-9 * max(1.0, n_steps):
        n_int = int(math.ceil(n_steps))
        logger.warning(
            "xx_max=%g is not a multiple of xx_step=%g; using xx_max=%g",
            params.xx_max, params.xx_step, n_int * params.xx_step,
        )

    xx = jnp.arange(n_int + 1, dtype=jnp.float64) * params.xx_step
    return XGrid(xx=xx, xx_step=float(params.xx_step), xx_max=float(n_int * params.xx_step))


def build_l1_list(params: ProjectionParams) -> L1List:
    """Union over primary l of [max(0, l - L_max - dm), l + L_max + dm].

    dm = max(m) when extend_l1_using_m is set, else 0.
    """
    dm = max(params.m) if (params.extend_l1_using_m and len(params.m) > 0) else 0
    reach = params.L_max + dm

    l1_set = set()
    for l in params.l:
        l1_set.update(range(max(0, l - reach), l + reach + 1))

    if not l1_set:
        raise ConfigurationError("the l1 list is empty; the primary multipole list l is empty")

    l1 = np.array(sorted(l1_set), dtype=np.int64)
    index_l1 = np.full(int(l1[-1]) + 1, -1, dtype=np.int64)
    index_l1[l1] = np.arange(l1.shape[0])

    logger.debug("l1 list: %d multipoles in [%d, %d]", l1.shape[0], l1[0], l1[-1])
    return L1List(l1=l1, index_l1=index_l1)
