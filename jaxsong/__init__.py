"""jaxsong: second-order projection functions J_Llm(x) in JAX.

Usage:
    import jaxsong

    params = jaxsong.ProjectionParams(xx_max=1000.0, xx_step=0.5, L_max=4,
                                      l=(2, 10, 50), m=(0, 1, 2))
    tables = jaxsong.projection_init(params)

    # J^TT for L = params.L_list[2], l = params.l[1], m = params.m[0]
    J = tables.J_Llm_at_x("TT", 2, 1, 0, 500.0)

    # int dk f(k) g(k) j_l(k r)
    I = tables.convolution(kk, jaxsong.trapezoidal_weights(kk), f, g, l=10, r=100.0)

    jaxsong.projection_free(tables)
"""

import jax
jax.config.update("jax_enable_x64", True)

from jaxsong.errors import (  # noqa: F401
    AllocationError,
    ConfigurationError,
    DomainError,
    ErrorKind,
    LifecycleError,
    ProjectionError,
    SelectionRuleError,
)
from jaxsong.params import ProjectionParams, validate_params  # noqa: F401
from jaxsong.grid import XGrid, L1List, build_xx_grid, build_l1_list  # noqa: F401
from jaxsong.bessel import spherical_jl, spherical_jl_table  # noqa: F401
from jaxsong.wigner import wigner_3j_l1_family, wigner_3j_l1_middle  # noqa: F401
from jaxsong.sparse import SparseSlot, SparseTable  # noqa: F401
from jaxsong.projection import (  # noqa: F401
    J_Llm,
    J_Llm_on_grid,
    ProjectionType,
    ProjectionWorkspace,
    is_admissible,
    projection_workspace,
)
from jaxsong.tabulation import bessel_tabulate, projection_tabulate, J_for_Llm  # noqa: F401
from jaxsong.convolution import convolution, trapezoidal_weights  # noqa: F401
from jaxsong.tables import ProjectionTables, projection_init, projection_free  # noqa: F401
