"""3j-symbol and sum engine for the second-order projection functions.

At second order the line-of-sight integral couples modes, so the ordinary
spherical Bessel function j_l(x) is replaced by the projection function

    J_Llm(x) = (-1)^m (2L+1) sum_l1 i^(L-l-l1) (2 l1 + 1) j_l1(x)
               ( l  l1  L ) ( l  l1  L )
               ( s   0 -s ) (-m   0  m )

with s = 0 for temperature (TT) and s = 2 for polarisation (EE, EB). TT and
EE sum over l1 with L + l + l1 even, EB over l1 with L + l + l1 odd and the
phase i^(L-l-l1-1); all phases are therefore real. The triangle rule limits
l1 to [|l - L|, l + L].

References:
    Pettinari, PhD thesis, arXiv:1405.2280, eqs. 5.97, 5.103, 5.104
    Beneke & Fidler, arXiv:1003.1834, eq. B.12
    SONG source: bessel2.c (bessel2_J_for_Llm, bessel2_J_Llm)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float

from jaxsong.errors import SelectionRuleError
from jaxsong.grid import L1List
from jaxsong.sparse import SparseTable
from jaxsong.wigner import wigner_3j_l1_middle


class ProjectionType(enum.Enum):
    """Which projection function: temperature, E-mode, E/B mixing."""

    TT = "TT"
    EE = "EE"
    EB = "EB"

    @property
    def spin(self) -> int:
        return 0 if self is ProjectionType.TT else 2

    @property
    def parity(self) -> int:
        """Required parity of L + l + l1."""
        return 1 if self is ProjectionType.EB else 0


def l1_range(L: int, l: int):
    """Triangle range [|l - L|, l + L] of the auxiliary multipole."""
    return abs(l - L), l + L


def is_admissible(kind: ProjectionType, L: int, l: int, m: int) -> bool:
    """True unless selection rules make J_Llm identically zero.

    Checked up front by the tabulator, so that an empty l1 set is stored as
    a negligible slot instead of being reported as an error.
    """
    if L < 0 or l < 0 or abs(m) > l or abs(m) > L:
        return False
    if kind.spin > l or kind.spin > L:
        return False
    l1_min, l1_max = l1_range(L, l)
    # l1_min has the parity of L + l; the next l1 has the other one
    if (L + l + l1_min) % 2 == kind.parity:
        return True
    return l1_min + 1 <= l1_max


def _phase(kind: ProjectionType, L: int, l: int, l1: np.ndarray) -> np.ndarray:
    """Real value of i^(L-l-l1) (TT, EE) or i^(L-l-l1-1) (EB)."""
    half = (L - l - l1 - kind.parity) // 2
    return np.where(half % 2, -1.0, 1.0)


@dataclass
class ProjectionWorkspace:
    """Per-call buffers for one (kind, L, l, m).

    Attributes:
        l1_min, l1_max, l1_size: admissible l1 range (triangle rule)
        index_l1_min: position of l1_min in the global l1 list
        index_l1: position of every l1 of the range in the global l1 list
        first_3j: (l l1 L; s 0 -s) for every l1 of the range
        second_3j: (l l1 L; -m 0 m) for every l1 of the range
        admissible: parity mask (L + l + l1 matches the kind)
        coefficients: full weight of j_l1 in the sum, zero where not admissible
        bessels: j_l1 samples on the grid, shape (l1_size, xx_size), or None
    """

    kind: ProjectionType
    L: int
    l: int
    m: int
    l1_min: int
    l1_max: int
    l1_size: int
    index_l1_min: int
    index_l1: np.ndarray
    first_3j: np.ndarray
    second_3j: np.ndarray
    admissible: np.ndarray
    coefficients: np.ndarray
    bessels: Float[Array, "N1 Nx"] = None

    @property
    def l1(self) -> np.ndarray:
        return np.arange(self.l1_min, self.l1_max + 1)


def projection_workspace(
    kind: ProjectionType,
    L: int,
    l: int,
    m: int,
    l1_list: L1List,
    bessel_table: SparseTable = None,
) -> ProjectionWorkspace:
    """Fill the 3j and Bessel buffers needed by J_Llm for one (kind, L, l, m).

    Raises:
        SelectionRuleError: no l1 survives the triangle/parity/spin rules
        ConfigurationError: an l1 of the triangle range is missing from the l1 list
    """
    if not is_admissible(kind, L, l, m):
        raise SelectionRuleError(
            f"J_{kind.value}(L={L}, l={l}, m={m}) has no admissible l1; "
            "it vanishes identically by selection rules"
        )

    l1_min, l1_max = l1_range(L, l)
    l1 = np.arange(l1_min, l1_max + 1)
    index_l1 = np.array([l1_list.position(int(v)) for v in l1], dtype=np.int64)

    first_min, first = wigner_3j_l1_middle(l, L, kind.spin, -kind.spin)
    second_min, second = wigner_3j_l1_middle(l, L, -m, m)
    # Both families start at |l - L| since the middle m is 0
    assert first_min == l1_min and second_min == l1_min

    admissible = (L + l + l1) % 2 == kind.parity
    sign_m = -1.0 if m % 2 else 1.0
    coefficients = (
        sign_m * (2 * L + 1) * _phase(kind, L, l, l1) * (2 * l1 + 1) * first * second
    )
    coefficients = np.where(admissible, coefficients, 0.0)

    bessels = None
    if bessel_table is not None:
        bessels = jnp.stack([bessel_table[int(i)].dense(bessel_table.xx_size) for i in index_l1])

    return ProjectionWorkspace(
        kind=kind,
        L=L,
        l=l,
        m=m,
        l1_min=l1_min,
        l1_max=l1_max,
        l1_size=int(l1.shape[0]),
        index_l1_min=int(index_l1[0]),
        index_l1=index_l1,
        first_3j=first,
        second_3j=second,
        admissible=admissible,
        coefficients=coefficients,
        bessels=bessels,
    )


def J_Llm(workspace: ProjectionWorkspace, index_x: int) -> float:
    """J_Llm at the grid point xx[index_x]."""
    column = workspace.bessels[:, index_x]
    return float(jnp.dot(jnp.asarray(workspace.coefficients), column))


def J_Llm_on_grid(workspace: ProjectionWorkspace) -> Float[Array, "Nx"]:
    """J_Llm at every grid point."""
    return jnp.asarray(workspace.coefficients) @ workspace.bessels
