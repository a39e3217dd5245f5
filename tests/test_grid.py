"""Test the x sampling grid and the l1 list."""

import numpy as np
import pytest

from jaxsong import ConfigurationError, ProjectionParams, build_l1_list, build_xx_grid
from tests.conftest import SCENARIO


class TestXGrid:

    def test_scenario_size(self):
        grid = build_xx_grid(SCENARIO)
        assert grid.xx_size == 2001, f"xx_size={grid.xx_size}, expected 2001"
        assert float(grid.xx[-1]) == pytest.approx(1000.0, abs=1e-12)

    def test_uniform_step(self):
        grid = build_xx_grid(SCENARIO)
        steps = np.diff(np.asarray(grid.xx))
        assert np.allclose(steps, 0.5, rtol=0, atol=1e-10), (
            f"grid step varies: min {steps.min():.15g}, max {steps.max():.15g}"
        )
        assert float(grid.xx[0]) == 0.0

    def test_xx_max_raised_to_multiple(self, caplog):
        grid = build_xx_grid(ProjectionParams(xx_max=10.2, xx_step=0.5))
        assert grid.xx_max == pytest.approx(10.5)
        assert grid.xx_size == 22
        assert "not a multiple" in caplog.text

    @pytest.mark.parametrize("xx_max, xx_step", [(0.0, 0.5), (-1.0, 0.5), (10.0, 0.0), (10.0, -0.1)])
    def test_nonpositive_bounds(self, xx_max, xx_step):
        with pytest.raises(ConfigurationError):
            build_xx_grid(ProjectionParams(xx_max=xx_max, xx_step=xx_step))


class TestL1List:

    def test_scenario_coverage(self):
        l1 = build_l1_list(SCENARIO)
        # [0, 14] from l=2 and l=10, [46, 54] from l=50
        assert l1.l1.tolist() == list(range(0, 15)) + list(range(46, 55))
        assert l1.l1_size >= len(SCENARIO.l)

    def test_triangle_completeness(self):
        params = ProjectionParams(l=(3, 7, 30, 31), L_max=5, m=(0,))
        l1 = build_l1_list(params)
        for L in params.L_list:
            for l in params.l:
                for v in range(abs(l - L), l + L + 1):
                    assert l1.contains(v), f"l1={v} missing for (L={L}, l={l})"

    def test_lookup(self):
        l1 = build_l1_list(SCENARIO)
        for i, v in enumerate(l1.l1):
            assert l1.position(int(v)) == i
        for v in range(l1.l1_max + 1):
            if v not in set(l1.l1.tolist()):
                assert l1.index_l1[v] == -1
                assert not l1.contains(v)

    def test_absent_is_an_error(self):
        l1 = build_l1_list(SCENARIO)
        with pytest.raises(ConfigurationError):
            l1.position(30)
        with pytest.raises(ConfigurationError):
            l1.position(10_000)

    def test_sorted_unique(self):
        l1 = build_l1_list(ProjectionParams(l=(10, 2, 5, 5), L_max=3))
        assert np.all(np.diff(l1.l1) > 0)

    def test_extend_using_m(self):
        base = build_l1_list(ProjectionParams(l=(20,), L_max=2, m=(0, 3)))
        wide = build_l1_list(ProjectionParams(l=(20,), L_max=2, m=(0, 3), extend_l1_using_m=True))
        assert base.l1.tolist() == list(range(18, 23))
        assert wide.l1.tolist() == list(range(15, 26))

    def test_empty(self):
        with pytest.raises(ConfigurationError):
            build_l1_list(ProjectionParams(l=()))
