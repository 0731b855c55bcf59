import numpy as np
import pytest

from simulation import ENGINES, make_run, run_single_simulation, run_to_convergence, shifted_quadratic


class TestShiftedQuadratic:
    def test_minimizer_and_gradient(self):
        f, grad, x_star = shifted_quadratic(4, weights=[1.0, 2.0, 3.0, 4.0])
        np.testing.assert_array_equal(x_star, [1.0, 2.0, 3.0, 4.0])
        assert f(x_star) == 0.0

        g = np.empty(4)
        grad(g, np.zeros(4))
        np.testing.assert_allclose(g, [-2.0, -8.0, -18.0, -32.0])
        assert f(np.zeros(4)) == pytest.approx(1 + 8 + 27 + 64)


class TestRunToConvergence:
    def test_zero_steps_at_minimizer(self):
        f, grad, x_star = shifted_quadratic(3)
        step, state = make_run("bfgs", x_star, f, grad)
        assert run_to_convergence(step, state) == 0

    def test_gives_up_after_max_iter(self):
        f, grad, _ = shifted_quadratic(3)
        calls = []
        _, state = make_run("lbfgs", np.zeros(3), f, grad, m=2)
        assert run_to_convergence(lambda: calls.append(1), state, max_iter=7) == 7
        assert len(calls) == 7

    def test_rejects_unknown_engine(self):
        f, grad, _ = shifted_quadratic(3)
        with pytest.raises(ValueError, match="engine"):
            make_run("newton", np.zeros(3), f, grad)


class TestRunSingleSimulation:
    @pytest.mark.parametrize("engine", ENGINES)
    def test_engines_reach_minimizer(self, engine):
        iterations, rel_error = run_single_simulation(
            seed=0, engine=engine, n=10, m=5, condition=10.0
        )
        assert 0 < iterations < 500
        assert rel_error < 1e-5

    def test_runs_are_reproducible(self):
        a = run_single_simulation(seed=3, engine="lbfgs", n=8, m=3, condition=5.0)
        b = run_single_simulation(seed=3, engine="lbfgs", n=8, m=3, condition=5.0)
        assert a == b
