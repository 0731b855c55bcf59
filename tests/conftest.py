import numpy as np
import pytest


class FixedStep:
    """Line search stand-in that always takes the same step length."""

    def __init__(self, alpha=1.0):
        self.alpha = alpha
        self.x_prev_seen = []

    def backtrack(self, x, x_prev, direction, f_prev, grad_prev, objective):
        self.x_prev_seen.append(x_prev.copy())
        x[:] = x_prev + self.alpha * direction
        return objective(x)


def make_quadratic(n, weights=None):
    """f(x) = Σ w_i (x_i − i)², i = 1..n, with an in-place gradient."""
    c = np.arange(1, n + 1, dtype=float)
    w = np.ones(n) if weights is None else np.asarray(weights, dtype=float)

    def f(x):
        d = x - c
        return float(np.dot(w * d, d))

    def grad(out, x):
        out[:] = 2.0 * w * (x - c)

    return f, grad, c


def random_spd(rng, n):
    a = rng.normal(size=(n, n))
    b = a @ a.T
    return 0.5 * (b + b.T) + n * np.eye(n)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def fixed_step():
    return FixedStep


@pytest.fixture
def quadratic():
    return make_quadratic


@pytest.fixture
def spd(rng):
    return lambda n: random_spd(rng, n)
