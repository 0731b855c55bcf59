# ---------------------------------------------------------------------
# bfgs.py
#
# Full-memory BFGS: an explicit dense inverse-Hessian approximation Hi
# is kept on the state and corrected after every accepted step with the
# Sherman–Morrison–Woodbury form of the BFGS recurrence
#
#     Hi ← Hi + α s sᵀ − β (u sᵀ + s uᵀ),    u = Hi y,
#     α = (yᵀs + uᵀy) / (yᵀs)²,               β = 1 / (yᵀs).
#
# – The update is skipped whenever yᵀs ≤ 0 (Hi stays bit-identical).
# – Both kernels keep Hi exactly symmetric.
# ---------------------------------------------------------------------

import logging

import numpy as np
from scipy.linalg import blas

from .line_search import LineSearch
from .state import BFGSState, Gradient, Objective

logger = logging.getLogger(__name__)

# Below this dimension the elementwise kernel beats three BLAS calls.
DENSE_KERNEL_MAX_DIM = 50

KERNELS = ("auto", "dense", "blas")


# ------------------------------------------------------------
def compute_direction(state: BFGSState) -> np.ndarray:
    """Write  p = −Hi ∇f_prev  into ``state.direction`` and return it."""
    np.dot(state.Hi, state.grad_prev, out=state.direction)
    np.negative(state.direction, out=state.direction)

    logger.debug(
        "bfgs_direction_computed",
        extra={"grad_norm": state.grad_norm(), "slope": float(state.direction @ state.grad_prev)},
    )
    return state.direction


def advance(state: BFGSState, line_search: LineSearch, objective: Objective) -> float:
    """
    Move ``state.x`` along ``state.direction`` with the line search.

    ``x_prev`` holds the pre-step point while the search runs; the new
    objective value is stored in ``f_prev`` and returned.
    """
    state.x_prev[:] = state.x
    state.f_prev = line_search.backtrack(
        state.x,
        state.x_prev,
        state.direction,
        state.f_prev,
        state.grad_prev,
        objective,
    )
    return state.f_prev


# ------------------------------------------------------------
def _update_dense(hi, s, u, alpha, beta):
    # outer(s, s) and outer(u, s) + outer(s, u) are symmetric bit for bit
    hi += alpha * np.outer(s, s) - beta * (np.outer(u, s) + np.outer(s, u))
    return hi


def _update_blas(hi, s, u, alpha, beta):
    syr, syr2 = blas.get_blas_funcs(("syr", "syr2"), (hi,))

    # upper triangle only: A ← A + α s sᵀ, then A ← A − β (u sᵀ + s uᵀ)
    a = syr(alpha, s, a=hi, lower=0, overwrite_a=1)
    a = syr2(-beta, u, s, a=a, lower=0, overwrite_a=1)

    lower = np.tril_indices(a.shape[0], -1)
    a[lower] = a.T[lower]

    if a is not hi:  # f2py copied (non-Fortran or non-native layout)
        hi[...] = a
    return hi


def update_curvature(state: BFGSState, kernel: str = "auto") -> bool:
    """
    Fold the latest (s, y) pair into ``state.Hi``.

    Parameters
    ----------
    state  : BFGS state with ``s`` and ``y`` already filled in
    kernel : ``"dense"`` (elementwise outer products), ``"blas"``
             (syr/syr2 on the upper triangle, mirrored) or ``"auto"``
             (dense for n < DENSE_KERNEL_MAX_DIM, BLAS otherwise)

    Returns
    -------
    True if Hi was updated, False if the curvature condition failed.
    """
    if kernel not in KERNELS:
        raise ValueError(f"unknown kernel {kernel!r}, expected one of {KERNELS}")

    curv = float(np.dot(state.y, state.s))
    if not curv > 0:
        logger.info("bfgs_curvature_skip", extra={"curvature": curv})
        return False

    np.dot(state.Hi, state.y, out=state.u)
    alpha = (curv + float(np.dot(state.u, state.y))) / (curv * curv)
    beta = 1.0 / curv

    if kernel == "auto":
        kernel = "dense" if state.n < DENSE_KERNEL_MAX_DIM else "blas"

    if kernel == "dense":
        _update_dense(state.Hi, state.s, state.u, alpha, beta)
    else:
        _update_blas(state.Hi, state.s, state.u, alpha, beta)

    logger.debug(
        "bfgs_hessian_updated",
        extra={"curvature": curv, "alpha": alpha, "beta": beta, "kernel": kernel},
    )
    return True


# ------------------------------------------------------------
def bfgs_step(
    state: BFGSState,
    line_search: LineSearch,
    objective: Objective,
    gradient: Gradient,
    kernel: str = "auto",
) -> float:
    """
    One BFGS iteration: direction → line search → (s, y) → Hi update.

    The gradient at the new point is carried over into ``grad_prev`` for
    the next call.  Returns the objective value at the new point.
    """
    compute_direction(state)
    f_x = advance(state, line_search, objective)

    # change in state
    np.multiply(state.direction, line_search.alpha, out=state.s)

    # change in gradient
    state.y[:] = state.grad_prev
    gradient(state.grad_prev, state.x)
    np.subtract(state.grad_prev, state.y, out=state.y)

    update_curvature(state, kernel=kernel)
    return f_x
