# ---------------------------------------------------------------------
# l_bfgs.py
#
# Limited-memory BFGS.  The inverse Hessian H_k is never formed; it is
# implied by the last ≤ m curvature pairs (s, y, ρ) stored column-wise in
# the ring buffers ``s_mem`` / ``y_mem`` / ``rho`` of an LBFGSState, and
# applied to the gradient with the classic two-loop recursion.
#
# – Insertion k (1-based) lives in column (k − 1) mod m.
# – Only insertions max(pseudo_iter − m, 1) … pseudo_iter − 1 are valid.
# – A pair with infinite ρ = 1/(yᵀs) wipes the whole memory (restart).
# ---------------------------------------------------------------------

import logging

import numpy as np

from .line_search import LineSearch
from .state import Gradient, LBFGSMethod, LBFGSState, Objective

logger = logging.getLogger(__name__)


def memory_slot(k: int, m: int) -> int:
    """Ring-buffer column of the k-th insertion (k ≥ 1)."""
    return (k - 1) % m


# ------------------------------------------------------------
def twoloop(state: LBFGSState, method: LBFGSMethod) -> np.ndarray:
    """
    Write the descent direction  d = −H_k ∇f_prev  into
    ``state.direction`` using the two-loop recursion and return it.

    With an empty memory (``pseudo_iter == 1``) both loops are empty and
    the result is exactly the steepest-descent direction −∇f_prev.
    """
    method.check_state(state)

    m = method.m
    lower = max(method.pseudo_iter - m, 1)
    upper = method.pseudo_iter - 1

    q = state.q
    r = state.direction
    al = state.alpha
    q[:] = state.grad_prev

    # ---------- first (backward) loop ----------
    for i in range(upper, lower - 1, -1):
        idx = memory_slot(i, m)
        s_i = state.s_mem[:, idx]
        y_i = state.y_mem[:, idx]

        al[idx] = state.rho[idx] * np.dot(s_i, q)
        q -= al[idx] * y_i

    # ---------- initial scaling H₀ = γI from the newest pair ----------
    if method.pseudo_iter > 1:
        idx = memory_slot(upper, m)
        s_i = state.s_mem[:, idx]
        y_i = state.y_mem[:, idx]

        gamma = np.dot(s_i, y_i) / np.dot(y_i, y_i)
        np.multiply(q, gamma, out=r)
    else:
        r[:] = q

    # ---------- second (forward) loop ----------
    for i in range(lower, upper + 1):
        idx = memory_slot(i, m)
        s_i = state.s_mem[:, idx]
        y_i = state.y_mem[:, idx]

        beta = state.rho[idx] * np.dot(y_i, r)
        r += s_i * (al[idx] - beta)

    np.negative(r, out=r)

    logger.debug(
        "lbfgs_direction_computed",
        extra={"grad_norm": state.grad_norm(), "mem_pairs": method.n_pairs},
    )
    return r


# ------------------------------------------------------------
def update_memory(state: LBFGSState, method: LBFGSMethod) -> bool:
    """
    Store the latest (s, y) pair, overwriting the oldest one once the ring
    is full.

    If ρ = 1/(yᵀs) is infinite the memory is erased instead
    (``pseudo_iter`` back to 1).  Returns True when the pair was stored.
    """
    method.check_state(state)

    with np.errstate(divide="ignore", over="ignore"):
        rho = np.reciprocal(np.dot(state.y, state.s))

    if np.isinf(rho):
        logger.info(
            "lbfgs_memory_restart",
            extra={"discarded_pairs": method.n_pairs, "pseudo_iter": method.pseudo_iter},
        )
        method.restart()
        return False

    idx = memory_slot(method.pseudo_iter, method.m)
    state.s_mem[:, idx] = state.s
    state.y_mem[:, idx] = state.y
    state.rho[idx] = rho

    method.pseudo_iter += 1

    logger.debug(
        "lbfgs_pair_stored",
        extra={"slot": idx, "rho": float(rho), "memory_len": method.n_pairs},
    )
    return True


# ------------------------------------------------------------
def advance(
    state: LBFGSState,
    method: LBFGSMethod,
    line_search: LineSearch,
    objective: Objective,
) -> float:
    """
    Snapshot ``x`` into ``x_prev``, compute the two-loop direction and move
    ``x`` with the line search.  Returns (and stores) the new objective.
    """
    state.x_prev[:] = state.x

    twoloop(state, method)

    state.f_prev = line_search.backtrack(
        state.x,
        state.x_prev,
        state.direction,
        state.f_prev,
        state.grad_prev,
        objective,
    )
    return state.f_prev


def lbfgs_step(
    method: LBFGSMethod,
    state: LBFGSState,
    line_search: LineSearch,
    objective: Objective,
    gradient: Gradient,
) -> float:
    """
    One L-BFGS iteration: two-loop direction → line search → (s, y) →
    memory update.  The new gradient is carried over in ``grad_prev``.
    """
    f_x = advance(state, method, line_search, objective)

    # change in state
    np.multiply(state.direction, line_search.alpha, out=state.s)

    # store previous gradient, refresh it, take the difference
    state.y[:] = state.grad_prev
    gradient(state.grad_prev, state.x)
    np.subtract(state.grad_prev, state.y, out=state.y)

    update_memory(state, method)
    return f_x
