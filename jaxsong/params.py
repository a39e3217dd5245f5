"""Parameter container for jaxsong.

ProjectionParams: grid bounds, multipole lists, cutoffs and flags of the
second-order projection functions. Static (never traced by JAX): it controls
array shapes, so it is a frozen dataclass built once before tabulation.

References:
    SONG source: include/bessel2.h (struct bessels2)
    SONG source: input2.c (bessel2 precision parameters)
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Tuple

from jaxsong.errors import ConfigurationError


def _default_l():
    return (2, 10, 50)


def _default_m():
    return (0,)


@dataclass(frozen=True)
class ProjectionParams:
    """Precision and selection settings of the projection-function tables.

    Units: x is dimensionless (x = k * r). Multipole lists are tuples of
    non-negative ints. `L` defaults to 0, 1, ..., L_max when left empty.
    """

    # Sampling grid of x
    xx_max: float = 1000.0        # always raised to a multiple of xx_step
    xx_step: float = 0.5

    # Multipoles
    l: Tuple[int, ...] = field(default_factory=_default_l)   # primary list (first-order l's)
    m: Tuple[int, ...] = field(default_factory=_default_m)   # azimuthal numbers
    L_max: int = 4
    L: Tuple[int, ...] = ()       # empty -> range(L_max + 1)

    # Negligibility cutoffs (region x << l)
    j_l1_cut: float = 1e-12
    J_Llm_cut: float = 1e-10

    # Which projection functions to tabulate
    has_J_TT: bool = True
    has_J_EE: bool = False
    has_J_EB: bool = False

    # Extend the l1 list by max(m) on both sides of each l
    extend_l1_using_m: bool = False

    # Fill phase
    slot_chunk_size: int = 64     # slots per vmapped chunk
    max_stored_samples: int = 0   # 0 = unlimited

    verbose: bool = False

    @property
    def L_list(self) -> Tuple[int, ...]:
        if self.L:
            return tuple(self.L)
        return tuple(range(self.L_max + 1))

    def replace(self, **kwargs) -> ProjectionParams:
        """Return a new ProjectionParams with specified fields replaced."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(kwargs)
        return ProjectionParams(**current)

    @staticmethod
    def fast():
        """Small preset for quick checks: x up to 200, l up to 20."""
        return ProjectionParams(
            xx_max=200.0,
            xx_step=0.5,
            l=(2, 5, 10, 20),
            m=(0, 1, 2),
            L_max=2,
        )

    @staticmethod
    def polarization():
        """All three projection types, m up to 2, as needed for T and E bispectra."""
        return ProjectionParams(
            l=(2, 3, 4, 5, 6, 8, 10, 15, 20, 30, 50),
            m=(0, 1, 2),
            L_max=4,
            has_J_TT=True,
            has_J_EE=True,
            has_J_EB=True,
            extend_l1_using_m=True,
        )


def validate_params(params: ProjectionParams) -> None:
    """Raise ConfigurationError if the settings are inconsistent."""
    if not params.xx_step > 0:
        raise ConfigurationError(f"xx_step must be positive, got {params.xx_step}")
    if not params.xx_max > 0:
        raise ConfigurationError(f"xx_max must be positive, got {params.xx_max}")
    if params.L_max < 0:
        raise ConfigurationError(f"L_max must be non-negative, got {params.L_max}")
    if any(l < 0 for l in params.l):
        raise ConfigurationError(f"multipoles in l must be non-negative, got {params.l}")
    if len(params.m) == 0:
        raise ConfigurationError("m list must not be empty")
    if any(m < 0 for m in params.m):
        raise ConfigurationError(f"m values must be non-negative, got {params.m}")
    for L in params.L_list:
        if L < 0 or L > params.L_max:
            raise ConfigurationError(f"requested L={L} outside [0, L_max={params.L_max}]")
    if params.j_l1_cut < 0 or params.J_Llm_cut < 0:
        raise ConfigurationError(
            f"cutoffs must be non-negative, got j_l1_cut={params.j_l1_cut}, "
            f"J_Llm_cut={params.J_Llm_cut}"
        )
    if not (params.has_J_TT or params.has_J_EE or params.has_J_EB):
        raise ConfigurationError("no projection function requested (has_J_TT/EE/EB all off)")
    if params.slot_chunk_size < 1:
        raise ConfigurationError(f"slot_chunk_size must be >= 1, got {params.slot_chunk_size}")
    if params.max_stored_samples < 0:
        raise ConfigurationError(
            f"max_stored_samples must be >= 0, got {params.max_stored_samples}"
        )
