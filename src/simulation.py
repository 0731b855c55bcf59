# simulation.py
import numpy as np
import scipy.stats as st
import os
import itertools

import structlog

from quasi_newton import (
    BFGSState,
    BackTrack,
    LBFGSMethod,
    LBFGSState,
    bfgs_step,
    lbfgs_step,
)

logger = structlog.get_logger(__name__)

ENGINES = ("bfgs", "lbfgs")


# ---------------------------------------------------------------------
# test-problem helper
def shifted_quadratic(n, weights=None):
    """
    f(x) = Σ w_i (x_i − i)²,  i = 1..n.

    Returns (objective, gradient, minimizer); ``gradient(out, x)`` writes
    into ``out``.
    """
    c = np.arange(1, n + 1, dtype=float)
    w = np.ones(n) if weights is None else np.asarray(weights, dtype=float)

    def objective(x):
        d = x - c
        return float(np.dot(w * d, d))

    def gradient(out, x):
        np.subtract(x, c, out=out)
        out *= 2.0 * w

    return objective, gradient, c


# ---------------------------------------------------------------------
def run_to_convergence(step, state, gradient_tol=1e-8, max_iter=500):
    """
    Call ``step()`` until ‖∇f‖ < gradient_tol or ``max_iter`` steps were
    taken.  Returns the number of steps.
    """
    k = 0
    while state.grad_norm() >= gradient_tol and k < max_iter:
        step()
        k += 1
    return k


def make_run(engine, x0, objective, gradient, *, m=5, line_search=None):
    """Build ``(step, state)`` for one optimisation run of ``engine``."""
    ls = BackTrack() if line_search is None else line_search

    if engine == "bfgs":
        state = BFGSState.from_problem(x0, objective, gradient)

        def step():
            return bfgs_step(state, ls, objective, gradient)

    elif engine == "lbfgs":
        method = LBFGSMethod(m=m)
        state = LBFGSState.from_problem(x0, objective, gradient, m)

        def step():
            return lbfgs_step(method, state, ls, objective, gradient)

    else:
        raise ValueError(f"unknown engine {engine!r}, expected one of {ENGINES}")

    return step, state


# ---------------------------------------------------------------------
def run_single_simulation(seed: int, *, engine: str, n: int, m: int, condition: float,
                          gradient_tol: float = 1e-8, max_iter: int = 500):
    """
    ▸ 1) draw a random start and a weighted quadratic with κ = condition
    ▸ 2) run ``engine`` until ‖∇f‖ < gradient_tol
    ▸ 3) compare the final point to the analytic minimiser
    """
    rng = np.random.default_rng(seed)
    log = logger.bind(seed=seed, engine=engine, n=n, m=m, condition=condition)
    log.debug("simulation_run_start")

    weights = np.linspace(1.0, condition, n)
    objective, gradient, x_star = shifted_quadratic(n, weights)
    x0 = rng.normal(0.0, float(n), size=n)

    step, state = make_run(engine, x0, objective, gradient, m=m)
    iterations = run_to_convergence(step, state, gradient_tol=gradient_tol, max_iter=max_iter)

    # ------------ metric ------------
    error = np.linalg.norm(state.x - x_star)
    norm = np.linalg.norm(x_star)
    rel_error = (error / norm) * 100 if norm != 0 else 0.0

    log.info(
        "simulation_run_complete",
        iterations=iterations,
        converged=state.grad_norm() < gradient_tol,
        relative_error=rel_error,
        f_final=state.f_prev,
    )
    return iterations, rel_error


# ---------------------------------------------------------------------

if __name__ == "__main__":
    from event_logging import init_logging

    log_dir = init_logging()
    logger.info("simulation_start", log_dir=str(log_dir))

    N_SIMULATIONS = 50

    # ------------------------------------------------------------------
    # Hyper‑parameter grid definition
    param_grid = {
        "ENGINE":    list(ENGINES),
        "N":         [10, 20, 60, 200],
        "M":         [3, 5, 10],
        "CONDITION": [1.0, 10.0, 100.0],
    }

    for ENGINE, N, M, CONDITION in itertools.product(
        param_grid["ENGINE"], param_grid["N"], param_grid["M"], param_grid["CONDITION"]
    ):
        if ENGINE == "bfgs" and M != param_grid["M"][0]:
            continue  # memory depth only matters for L-BFGS

        config_name = f"{ENGINE}_n_{N}_m_{M}_cond_{CONDITION:g}"
        logger.info("grid_search_config_start", config=config_name)

        runs = [
            run_single_simulation(seed=i, engine=ENGINE, n=N, m=M, condition=CONDITION)
            for i in range(N_SIMULATIONS)
        ]
        iterations = np.array([it for it, _ in runs], dtype=float)
        errors = np.array([err for _, err in runs])

        mean_iter = np.mean(iterations)
        if np.ptp(iterations) > 0:
            ci_low, ci_high = st.t.interval(
                confidence=0.95,
                df=len(iterations) - 1,
                loc=mean_iter,
                scale=st.sem(iterations),
            )
        else:
            ci_low = ci_high = mean_iter

        print("\n--- ✅  Simulation Analysis ---")
        print(f"Config: {config_name}")
        print(f"Ran {len(iterations)} simulations.")
        print(f"Average iterations to convergence: {mean_iter:.2f}")
        print(f"95% CI: [{ci_low:.2f}, {ci_high:.2f}]")
        print(f"Worst relative error: {errors.max():.2e}%")

        logger.info(
            "grid_search_config_complete",
            config=config_name,
            mean_iterations=mean_iter,
            ci_low=ci_low,
            ci_high=ci_high,
            max_relative_error=float(errors.max()),
        )

        # ---------------- save artefacts ----------------
        results_dir = os.path.join(os.getcwd(), "results", config_name)
        os.makedirs(results_dir, exist_ok=True)

        np.save(os.path.join(results_dir, "iterations.npy"), iterations)

        with open(os.path.join(results_dir, "summary.txt"), "w") as f:
            f.write(f"--- Quasi-Newton Simulation ({config_name}) ---\n")
            f.write(f"Simulations: {len(iterations)}\n")
            f.write(f"Mean iterations: {mean_iter:.2f}\n")
            f.write(f"95% CI: [{ci_low:.2f}, {ci_high:.2f}]\n")
            f.write(f"Max relative error: {errors.max():.2e}%\n")
