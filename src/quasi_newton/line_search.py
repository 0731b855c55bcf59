# ---------------------------------------------------------------------
# line_search.py
#
# Inexact backtracking line search shared by the BFGS and L-BFGS
# engines.  The engines only rely on the ``LineSearch`` shape:
#
#     f_new = ls.backtrack(x, x_prev, direction, f_prev, grad_prev, f)
#     step  = ls.alpha
#
# where ``x`` is moved in place and ``alpha`` is the accepted step length.
# ---------------------------------------------------------------------

import logging
from typing import Protocol

import numpy as np

from .state import ConfigurationError, Objective

logger = logging.getLogger(__name__)


class LineSearch(Protocol):
    alpha: float

    def backtrack(
        self,
        x: np.ndarray,
        x_prev: np.ndarray,
        direction: np.ndarray,
        f_prev: float,
        grad_prev: np.ndarray,
        objective: Objective,
    ) -> float: ...


class BackTrack:
    """
    Armijo backtracking line search.

    Starting from ``alpha0`` the trial step is shrunk by ``rho`` until

        f(x_prev + a·d) ≤ f_prev + c1 · a · ∇f_prevᵀd

    Parameters
    ----------
    alpha0   : initial trial step
    rho      : contraction factor, 0 < rho < 1
    c1       : sufficient-decrease constant, 0 < c1 < 1
    max_iter : maximum number of trial points
    """

    def __init__(self, alpha0: float = 1.0, rho: float = 0.5, c1: float = 1e-4,
                 max_iter: int = 50):
        if not alpha0 > 0:
            raise ConfigurationError(f"alpha0 must be positive, got {alpha0}")
        if not 0 < rho < 1:
            raise ConfigurationError(f"rho must lie in (0, 1), got {rho}")
        if not 0 < c1 < 1:
            raise ConfigurationError(f"c1 must lie in (0, 1), got {c1}")
        if max_iter < 1:
            raise ConfigurationError(f"max_iter must be >= 1, got {max_iter}")

        self.alpha0 = float(alpha0)
        self.rho = float(rho)
        self.c1 = float(c1)
        self.max_iter = int(max_iter)

        self.alpha = self.alpha0
        self.n_evals = 0

    def __repr__(self) -> str:
        return (f"BackTrack(alpha0={self.alpha0}, rho={self.rho}, c1={self.c1}, "
                f"max_iter={self.max_iter})")

    def backtrack(self, x, x_prev, direction, f_prev, grad_prev, objective) -> float:
        """
        Move ``x`` along ``direction`` from ``x_prev`` and return f at the
        accepted point.

        If no trial satisfies the Armijo condition, ``x`` is put back to
        ``x_prev``, ``alpha`` becomes 0 and ``f_prev`` is returned.
        """
        slope = float(np.dot(grad_prev, direction))
        a = self.alpha0
        self.n_evals = 0

        for _ in range(self.max_iter):
            # x = x_prev + a·d
            np.multiply(direction, a, out=x)
            x += x_prev

            f_x = objective(x)
            self.n_evals += 1
            if f_x <= f_prev + self.c1 * a * slope:
                self.alpha = a
                return f_x
            a *= self.rho

        logger.warning(
            "backtrack_max_iter",
            extra={"max_iter": self.max_iter, "slope": slope, "last_alpha": a / self.rho},
        )
        x[:] = x_prev
        self.alpha = 0.0
        return f_prev
