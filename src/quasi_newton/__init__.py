"""
Quasi-Newton update steps for smooth unconstrained minimisation.

    >>> state = BFGSState.from_problem(x0, f, grad)
    >>> ls = BackTrack()
    >>> while state.grad_norm() > 1e-8:
    ...     bfgs_step(state, ls, f, grad)

``f(x) -> float`` evaluates the objective, ``grad(out, x)`` writes the
gradient into ``out``.  The L-BFGS engine works the same way with an
``LBFGSState`` plus an ``LBFGSMethod`` record and ``lbfgs_step``.
"""

from .bfgs import DENSE_KERNEL_MAX_DIM, bfgs_step, update_curvature
from .l_bfgs import lbfgs_step, memory_slot, twoloop, update_memory
from .line_search import BackTrack, LineSearch
from .state import BFGSState, ConfigurationError, LBFGSMethod, LBFGSState

__all__ = [
    "BFGSState",
    "BackTrack",
    "ConfigurationError",
    "DENSE_KERNEL_MAX_DIM",
    "LBFGSMethod",
    "LBFGSState",
    "LineSearch",
    "bfgs_step",
    "lbfgs_step",
    "memory_slot",
    "twoloop",
    "update_curvature",
    "update_memory",
]
