# ---------------------------------------------------------------------
# state.py
#
# Mutable optimisation state for the BFGS and L-BFGS engines.
#
# – Every buffer is allocated once, at construction, and then updated
#   in place by the engines on every step.
# – One state object per optimisation run.  Scratch buffers (u, q, α)
#   live on the state, so two runs must never share one.
# ---------------------------------------------------------------------

import numbers
from typing import Callable, Optional

import numpy as np

Objective = Callable[[np.ndarray], float]
Gradient = Callable[[np.ndarray, np.ndarray], None]


class ConfigurationError(ValueError):
    """Raised when a state, method or line search is built inconsistently."""


# ------------------------------------------------------------
def _as_point(x0) -> np.ndarray:
    x = np.array(x0, dtype=float)
    if x.ndim != 1 or x.size == 0:
        raise ConfigurationError(
            f"initial point must be a non-empty 1-D array, got shape {x.shape}"
        )
    return x


def _as_gradient(g0, n: int) -> np.ndarray:
    g = np.array(g0, dtype=float)
    if g.shape != (n,):
        raise ConfigurationError(
            f"initial gradient has shape {g.shape}, expected ({n},)"
        )
    return g


def _as_value(f0) -> float:
    try:
        f = float(f0)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"initial objective value {f0!r} is not a scalar") from e
    if not np.isfinite(f):
        raise ConfigurationError(f"initial objective value must be finite, got {f}")
    return f


def _evaluate(x0, objective: Objective, gradient: Gradient):
    x = _as_point(x0)
    g0 = np.empty_like(x)
    gradient(g0, x)
    return x, objective(x), g0


# ------------------------------------------------------------
class _BaseState:
    """Fields shared by both engines."""

    def __init__(self, x0, f0, g0):
        self.x = _as_point(x0)
        n = self.x.size
        self.x_prev = self.x.copy()
        self.grad_prev = _as_gradient(g0, n)
        self.f_prev = _as_value(f0)

        self.s = np.zeros(n)
        self.y = np.zeros(n)
        self.direction = np.zeros(n)

    @property
    def n(self) -> int:
        return self.x.size

    def grad_norm(self) -> float:
        return float(np.linalg.norm(self.grad_prev))


class BFGSState(_BaseState):
    """
    State of a full-memory BFGS run.

    Parameters
    ----------
    x0 : initial point, length n
    f0 : objective at ``x0``
    g0 : gradient at ``x0``
    H0 : optional symmetric n×n initial inverse-Hessian approximation
         (identity when omitted)

    Attributes
    ----------
    Hi : n×n inverse-Hessian approximation, Fortran ordered so that the
         BLAS kernels can update it in place
    u  : scratch vector holding ``Hi @ y`` during an update
    """

    def __init__(self, x0, f0, g0, H0: Optional[np.ndarray] = None):
        super().__init__(x0, f0, g0)
        n = self.n

        if H0 is None:
            self.Hi = np.asfortranarray(np.eye(n))
        else:
            H = np.array(H0, dtype=float, order="F")
            if H.shape != (n, n):
                raise ConfigurationError(
                    f"initial inverse Hessian has shape {H.shape}, expected ({n}, {n})"
                )
            if not np.array_equal(H, H.T):
                raise ConfigurationError("initial inverse Hessian must be symmetric")
            self.Hi = H

        self.u = np.zeros(n)

    @classmethod
    def from_problem(cls, x0, objective: Objective, gradient: Gradient, H0=None):
        """Build a state by evaluating ``objective`` and ``gradient`` at ``x0``."""
        x, f0, g0 = _evaluate(x0, objective, gradient)
        return cls(x, f0, g0, H0=H0)


class LBFGSState(_BaseState):
    """
    State of a limited-memory BFGS run with memory depth ``m``.

    ``s_mem`` and ``y_mem`` are n×m ring buffers, one column per curvature
    pair; ``rho`` holds 1/(yᵀs) for the same columns.  ``alpha`` and ``q``
    are two-loop scratch.
    """

    def __init__(self, x0, f0, g0, m: int):
        super().__init__(x0, f0, g0)
        m = _as_depth(m)
        n = self.n

        self.s_mem = np.zeros((n, m), order="F")
        self.y_mem = np.zeros((n, m), order="F")
        self.rho = np.zeros(m)
        self.alpha = np.zeros(m)
        self.q = np.zeros(n)

    @property
    def m(self) -> int:
        return self.rho.size

    @classmethod
    def from_problem(cls, x0, objective: Objective, gradient: Gradient, m: int):
        """Build a state by evaluating ``objective`` and ``gradient`` at ``x0``."""
        x, f0, g0 = _evaluate(x0, objective, gradient)
        return cls(x, f0, g0, m)


# ------------------------------------------------------------
def _as_depth(m) -> int:
    if isinstance(m, bool) or not isinstance(m, numbers.Integral):
        raise ConfigurationError(f"memory depth must be an integer, got {m!r}")
    if m < 1:
        raise ConfigurationError(f"memory depth must be >= 1, got {m}")
    return int(m)


class LBFGSMethod:
    """
    L-BFGS method record.

    Parameters
    ----------
    m           : memory depth, fixed for the run
    pseudo_iter : 1 + number of successful memory insertions since the
                  last restart
    """

    def __init__(self, m: int = 10, pseudo_iter: int = 1):
        self.m = _as_depth(m)
        if isinstance(pseudo_iter, bool) or not isinstance(pseudo_iter, numbers.Integral) \
                or pseudo_iter < 1:
            raise ConfigurationError(f"pseudo_iter must be an integer >= 1, got {pseudo_iter!r}")
        self.pseudo_iter = int(pseudo_iter)

    def __repr__(self) -> str:
        return f"LBFGSMethod(m={self.m}, pseudo_iter={self.pseudo_iter})"

    @property
    def n_pairs(self) -> int:
        """Number of curvature pairs the two-loop recursion may read."""
        return min(self.pseudo_iter - 1, self.m)

    def restart(self):
        """Logically discard every stored pair."""
        self.pseudo_iter = 1

    def check_state(self, state: LBFGSState):
        if state.m != self.m:
            raise ConfigurationError(
                f"state was built for memory depth {state.m}, method uses {self.m}"
            )
